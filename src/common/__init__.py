"""Shared helpers: errors, logging, HTTP client and integrity checks."""
