"""Content risk analyzer service."""
