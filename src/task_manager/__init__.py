"""Task manager service: CRUD over a MongoDB task collection."""

__version__ = "1.0.0"
