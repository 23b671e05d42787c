"""Core configuration, errors and validation helpers."""
