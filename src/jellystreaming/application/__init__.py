"""Application layer: reconciliation services and the detail-view poller."""
