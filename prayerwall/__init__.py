"""
Prayer wall backend package.

This package provides a FastAPI application for submitting prayer intentions,
counting prayers offered for them, and tracking a communal weekly prayer
challenge, with storage abstractions for Postgres and an in-memory fallback.
"""
