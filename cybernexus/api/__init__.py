"""
API module for CyberNexus ISMS.

REST API consumed by the web frontend.
"""

from cybernexus.api.app import create_app

__all__ = ["create_app"]
