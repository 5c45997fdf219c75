"""Offline-first storage, sync and trail-package exchange for heritage trail recording."""

__version__ = "0.4.0"
