"""HTTP routing for the service."""
