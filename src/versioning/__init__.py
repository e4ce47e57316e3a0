"""Registry metadata models, parsing and version selection."""
