"""
Reporting Domain Services
=========================

Dashboard analytics over the sync tables.
"""

from .analytics_service import AnalyticsService

__all__ = [
    'AnalyticsService'
]
