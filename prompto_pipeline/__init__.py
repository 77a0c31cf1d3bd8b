"""Prompto — Cloud Storage → Firestore migration scripts and read API."""

__version__ = "1.0.0"
