"""HTTP API for triggering and tracking deployments."""
