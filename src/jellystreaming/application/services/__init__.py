"""Application services for title reconciliation."""
