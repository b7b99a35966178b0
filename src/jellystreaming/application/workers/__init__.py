"""Background workers: the per-view reconciliation poller."""
