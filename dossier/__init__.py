"""Dossier - local client-case workspace store."""

__version__ = "0.1.0"
