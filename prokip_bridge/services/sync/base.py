"""
Sync Service Base
=================

Dedup lookups, error recording and store stock updates shared by the sync services.
"""

from typing import Any, Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService
from ..connection.connection_service import ConnectionService
from ..prokip.prokip_service import ProkipService
from ..exceptions import UnsupportedPlatformError
from ...models import Connection, SalesLog, InventoryCache, InventoryLog, SyncError

SOURCE_WOOCOMMERCE = 'woocommerce'
SOURCE_PROKIP = 'prokip'


class SyncServiceBase(BaseService):

    def __init__(self, db_session: AsyncSession, connection_service: ConnectionService,
                 prokip_service: ProkipService, config: Dict[str, Any], current_user: Optional[int] = None):
        super().__init__(db_session, current_user)
        self.connection_service = connection_service
        self.prokip_service = prokip_service
        self.config = config

    async def _get_sales_log(self, connection_id: int, source: str, order_id) -> Optional[SalesLog]:
        result = await self.db_session.execute(
            select(SalesLog).filter(
                SalesLog.connection_id == connection_id,
                SalesLog.source == source,
                SalesLog.order_id == str(order_id),
            )
        )
        return result.scalars().first()

    async def _already_synced(self, connection_id: int, source: str, order_id) -> bool:
        return await self._get_sales_log(connection_id, source, order_id) is not None

    async def _record_error(self, connection_id: Optional[int], error_type: str, message: str,
                            details: Optional[Dict[str, Any]] = None) -> SyncError:
        """Persist a SyncError; the caller commits."""
        error = SyncError(
            connection_id=connection_id,
            error_type=error_type,
            error_message=message,
            error_details=details or {},
        )
        self.db_session.add(error)
        await self.db_session.flush()
        self.logger.error(f"Sync error ({error_type}) on connection {connection_id}: {message}")
        return error

    async def _get_inventory_log(self, connection_id: int, sku: str) -> Optional[InventoryLog]:
        result = await self.db_session.execute(
            select(InventoryLog).filter(InventoryLog.connection_id == connection_id, InventoryLog.sku == sku)
        )
        return result.scalars().first()

    async def _get_cache(self, connection_id: int, sku: str) -> Optional[InventoryCache]:
        result = await self.db_session.execute(
            select(InventoryCache).filter(InventoryCache.connection_id == connection_id, InventoryCache.sku == sku)
        )
        return result.scalars().first()

    async def _set_cache(self, connection_id: int, sku: str, quantity: int) -> InventoryCache:
        cache = await self._get_cache(connection_id, sku)
        if cache is None:
            cache = InventoryCache(connection_id=connection_id, sku=sku, quantity=quantity)
            self.db_session.add(cache)
            await self.db_session.flush()
        else:
            cache.quantity = quantity
        return cache

    def update_store_inventory(self, connection: Connection, sku: str, quantity: int,
                               store_client=None) -> bool:
        """
        Set the store's stock for `sku`. Returns False when the SKU is not in the store.
        """
        if connection.platform != 'woocommerce':
            raise UnsupportedPlatformError(connection.platform)
        store = store_client or self.connection_service.get_store_client(connection)
        product = store.find_product_by_sku(sku)
        if not product:
            return False
        store.update_product_stock(product['id'], max(0, int(quantity)))
        return True
