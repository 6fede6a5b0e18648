"""
HTTP package for the ranking service.
"""

from rankpool.api.app import create_app

__all__ = ["create_app"]
