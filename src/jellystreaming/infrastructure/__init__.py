"""Infrastructure layer: HTTP clients, observability and app lifecycle."""
