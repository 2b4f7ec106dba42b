"""
Inventory Sync Service
======================

Prokip is the stock master: quantities from the Prokip stock report are
pushed to each connected store.

Polling compares against InventoryCache so only changed SKUs are pushed; a
SKU seen for the first time is cached without a push.
"""

from typing import Any, Dict, List

from sqlalchemy import select

from .base import SyncServiceBase
from .mapper import stock_quantity, to_float
from ..exceptions import ExternalServiceError
from ...models import Connection, InventoryLog


class InventorySyncService(SyncServiceBase):
    """Prokip -> store stock propagation"""

    async def poll_prokip_stock(self, user_id: int) -> Dict[str, Any]:
        """Push stock changes since the previous poll to every sync-enabled store."""
        prokip_config = await self.prokip_service.require_config(user_id)
        connections = await self.connection_service.list_connections(
            user_id, platform='woocommerce', sync_enabled_only=True
        )
        results = {'checked': 0, 'updated': 0, 'cached': 0, 'missing': [], 'errors': []}
        if not connections:
            self.logger.info(f"No sync-enabled connections for user {user_id}, nothing to poll")
            return results

        prokip = await self.prokip_service.get_client(user_id)
        stock_items = prokip.get_stock_report(location_id=prokip_config.location_id)
        self.logger.info(f"Polling {len(stock_items)} Prokip stock rows for {len(connections)} connection(s)")

        for connection in connections:
            store = self.connection_service.get_store_client(connection)
            for item in stock_items:
                sku = item.get('sku')
                if not sku:
                    continue
                quantity = stock_quantity(item)
                results['checked'] += 1

                cache = await self._get_cache(connection.id, sku)
                if cache is None:
                    await self._set_cache(connection.id, sku, quantity)
                    results['cached'] += 1
                    continue
                if cache.quantity == quantity:
                    continue

                pushed = await self._push(connection, store, sku, quantity, results)
                if pushed is None:
                    continue
                cache.quantity = quantity
                if pushed:
                    results['updated'] += 1

            await self.db_session.commit()

        self.logger.info(f"Stock poll for user {user_id}: {results['updated']} updated, "
                         f"{results['cached']} newly cached, {len(results['errors'])} errors")
        return results

    async def sync_inventory_to_store(self, user_id: int, connection_id: int) -> Dict[str, Any]:
        """Push every Prokip SKU's stock to one store regardless of the cache."""
        connection = await self.connection_service.get_connection(connection_id, user_id)
        prokip_config = await self.prokip_service.require_config(user_id)
        prokip = await self.prokip_service.get_client(user_id)
        store = self.connection_service.get_store_client(connection)

        stock_items = prokip.get_stock_report(location_id=prokip_config.location_id)
        results = {'total': 0, 'updated': 0, 'missing': [], 'errors': []}

        for item in stock_items:
            sku = item.get('sku')
            if not sku:
                continue
            quantity = stock_quantity(item)
            results['total'] += 1

            pushed = await self._push(connection, store, sku, quantity, results)
            if pushed is None:
                continue
            if pushed:
                results['updated'] += 1
            await self._set_cache(connection.id, sku, quantity)
            await self._refresh_inventory_log(connection, item, sku, quantity)

        connection.last_sync = self._now()
        await self.db_session.commit()

        self.logger.info(f"Inventory pushed to connection {connection_id}: "
                         f"{results['updated']}/{results['total']} SKUs updated")
        return results

    async def _push(self, connection: Connection, store, sku: str, quantity: int,
                    results: Dict[str, Any]):
        """True pushed, False SKU missing in the store, None on failure (recorded)."""
        try:
            pushed = self.update_store_inventory(connection, sku, quantity, store_client=store)
        except ExternalServiceError as e:
            results['errors'].append(f"{sku}: {e.message}")
            await self._record_error(connection.id, 'inventory', f"Inventory sync failed: {e.message}", {
                'operation': 'inventory_sync',
                'sku': sku,
                'quantity': quantity,
            })
            return None
        if not pushed:
            self.logger.warning(f"Product with SKU {sku} not found in {connection.store_url}")
            results['missing'].append(sku)
        return pushed

    async def _refresh_inventory_log(self, connection: Connection, item: Dict[str, Any],
                                     sku: str, quantity: int) -> InventoryLog:
        log = await self._get_inventory_log(connection.id, sku)
        if log is None:
            log = InventoryLog(connection_id=connection.id, sku=sku)
            self.db_session.add(log)
            await self.db_session.flush()
        log.product_id = str(item.get('product_id') or item.get('id') or '') or log.product_id
        log.product_name = item.get('product') or item.get('product_name') or item.get('name') or log.product_name
        log.quantity = quantity
        if item.get('unit_price') is not None:
            log.price = to_float(item['unit_price'])
        log.last_synced = self._now()
        return log

    async def get_inventory_logs(self, connection_id: int, user_id: int) -> List[InventoryLog]:
        await self.connection_service.get_connection(connection_id, user_id)
        result = await self.db_session.execute(
            select(InventoryLog).filter(InventoryLog.connection_id == connection_id).order_by(InventoryLog.sku)
        )
        return list(result.scalars().all())
