"""HTTP API for the browser front end."""
