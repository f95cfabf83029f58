"""Authorization-aware query building and keyset pagination for search indexes."""

__version__ = "0.1.0"
