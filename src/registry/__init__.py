"""Registry specific helpers."""
