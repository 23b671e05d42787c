"""Database helpers for the forum store."""
