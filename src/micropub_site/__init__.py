"""Micropub ingestion and post versioning service."""

__version__ = "0.1.0"
