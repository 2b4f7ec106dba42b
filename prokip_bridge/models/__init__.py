"""
Prokip Bridge Models Package
============================

Domain Structure:
- Core: Base model and database setup
- Connection: store connections and Prokip configuration
- Sync logs: SalesLog, InventoryLog, InventoryCache, SyncError, WebhookEvent
"""

from .base import BaseModel

from .connection import (
    Connection,
    ProkipConfig,
)

from .sync_log import (
    SalesLog,
    InventoryLog,
    InventoryCache,
    SyncError,
    WebhookEvent,
)

__all__ = [
    'BaseModel',
    'Connection', 'ProkipConfig',
    'SalesLog', 'InventoryLog', 'InventoryCache', 'SyncError', 'WebhookEvent',
]
