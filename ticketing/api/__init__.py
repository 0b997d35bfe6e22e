"""
Ticketing API
"""

from .app import create_app
from .dependencies import Container

__all__ = ["create_app", "Container"]
