"""Deployment server - token-protected file and site-template intake."""

__version__ = "1.0.0"
