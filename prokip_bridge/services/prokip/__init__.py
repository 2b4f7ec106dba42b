"""
Prokip Domain Services
======================

Prokip login, token refresh and per-user configuration.
"""

from .prokip_service import ProkipService

__all__ = [
    'ProkipService'
]
