"""
Sync Domain Services
====================

Order reconciliation, stock propagation, webhooks, catalogue seeding and
error recovery between WooCommerce and Prokip.
"""

from .order_sync_service import OrderSyncService
from .inventory_sync_service import InventorySyncService
from .webhook_service import WebhookService
from .product_sync_service import ProductSyncService
from .error_recovery_service import ErrorRecoveryService

__all__ = [
    'OrderSyncService',
    'InventorySyncService',
    'WebhookService',
    'ProductSyncService',
    'ErrorRecoveryService'
]
