"""
Prokip Bridge Services Module
=============================

Services layer for the WooCommerce <-> Prokip bridge.
Services are wired through a per-request ServiceRegistry.
"""

from .base import BaseService, transactional
from .exceptions import *

# Connection Domain
from .connection import (
    ConnectionService, CredentialCipher
)

# Prokip Domain
from .prokip import (
    ProkipService
)

# Sync Domain
from .sync import (
    OrderSyncService, InventorySyncService, WebhookService, ProductSyncService, ErrorRecoveryService
)

# Reporting Domain
from .reporting import (
    AnalyticsService
)

__all__ = [
    # Base Classes
    'BaseService', 'transactional',

    # Connection Domain
    'ConnectionService', 'CredentialCipher',

    # Prokip Domain
    'ProkipService',

    # Sync Domain
    'OrderSyncService', 'InventorySyncService', 'WebhookService', 'ProductSyncService',
    'ErrorRecoveryService',

    # Reporting Domain
    'AnalyticsService',

    'ServiceRegistry', 'create_service_registry'
]


class ServiceRegistry:
    """
    Service Registry for dependency injection
    Owns one instance of every service for a request or CLI command
    """

    def __init__(self, db_session, config: dict, current_user: int = None,
                 store_client_factory=None, prokip_client_factory=None, sleep=None):
        self.db_session = db_session
        self.config = config
        self.current_user = current_user
        self._services = {}

        # Client factories are injectable so tests can swap in doubles
        self._store_client_factory = store_client_factory
        self._prokip_client_factory = prokip_client_factory
        self._sleep = sleep

        self._init_core_services()
        self._init_domain_services()

    def _init_core_services(self):
        """Initialize services the sync services depend on"""

        self._services['prokip'] = ProkipService(
            db_session=self.db_session,
            config=self.config,
            current_user=self.current_user,
            client_factory=self._prokip_client_factory
        )

        self._services['connection'] = ConnectionService(
            db_session=self.db_session,
            config=self.config,
            current_user=self.current_user,
            store_client_factory=self._store_client_factory
        )

    def _init_domain_services(self):
        """Initialize domain services with their dependencies"""

        sync_kwargs = dict(
            db_session=self.db_session,
            connection_service=self._services['connection'],
            prokip_service=self._services['prokip'],
            config=self.config,
            current_user=self.current_user
        )

        # Sync Domain
        self._services['order_sync'] = OrderSyncService(**sync_kwargs)
        self._services['inventory_sync'] = InventorySyncService(**sync_kwargs)
        self._services['product_sync'] = ProductSyncService(**sync_kwargs)

        self._services['webhook'] = WebhookService(
            order_sync_service=self._services['order_sync'],
            **sync_kwargs
        )

        self._services['error_recovery'] = ErrorRecoveryService(
            order_sync_service=self._services['order_sync'],
            sleep=self._sleep,
            **sync_kwargs
        )

        # Reporting Domain
        self._services['analytics'] = AnalyticsService(
            db_session=self.db_session,
            config=self.config,
            current_user=self.current_user
        )

    def get_service(self, service_name: str):
        """Get service by name"""
        if service_name not in self._services:
            raise ValueError(f"Service '{service_name}' not found")
        return self._services[service_name]

    def get_all_services(self) -> dict:
        """Get all registered services"""
        return self._services.copy()

    # Convenience accessors
    @property
    def prokip_service(self) -> ProkipService:
        return self._services['prokip']

    @property
    def connection_service(self) -> ConnectionService:
        return self._services['connection']

    @property
    def order_sync_service(self) -> OrderSyncService:
        """Get OrderSyncService - bidirectional order reconciliation"""
        return self._services['order_sync']

    @property
    def inventory_sync_service(self) -> InventorySyncService:
        return self._services['inventory_sync']

    @property
    def product_sync_service(self) -> ProductSyncService:
        return self._services['product_sync']

    @property
    def webhook_service(self) -> WebhookService:
        return self._services['webhook']

    @property
    def error_recovery_service(self) -> ErrorRecoveryService:
        return self._services['error_recovery']

    @property
    def analytics_service(self) -> AnalyticsService:
        return self._services['analytics']


# Factory function for easy service registry creation
def create_service_registry(db_session, config: dict, current_user: int = None, **factories) -> ServiceRegistry:
    """Factory function for creating a ServiceRegistry"""
    return ServiceRegistry(db_session, config, current_user, **factories)
