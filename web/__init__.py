"""Web UI package for the Marketo template exporter."""

from .app import create_app

__all__ = ['create_app']
