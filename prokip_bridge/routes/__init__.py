"""
Prokip Bridge Routes
====================

API routers, mounted by the application factory.
"""

from .prokip_routes import router as prokip_router
from .connection_routes import router as connection_router
from .sync_routes import router as sync_router
from .webhook_routes import router as webhook_router
from .error_routes import router as error_router
from .analytics_routes import router as analytics_router

__all__ = [
    'prokip_router', 'connection_router', 'sync_router',
    'webhook_router', 'error_router', 'analytics_router'
]
