"""
Order Sync Service
==================

Bidirectional order reconciliation between WooCommerce and Prokip:

- WooCommerce orders become Prokip sells (Prokip deducts its own stock).
- Prokip sells decrement the matching WooCommerce product stock.

Every processed order leaves a SalesLog row; an existing row means the order
is skipped on later runs.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select

from .base import SyncServiceBase, SOURCE_WOOCOMMERCE, SOURCE_PROKIP
from .mapper import (
    index_by_sku, map_order_to_sell, map_line_items, is_store_originated, sale_lines,
    parse_woo_datetime, parse_prokip_datetime, format_prokip_datetime, customer_name,
    to_float, to_int,
)
from ..exceptions import (
    BridgeException, ConfigurationError, ExternalServiceError, ProkipAPIError, WooCommerceAPIError
)
from ..integration import ProkipClient, WooCommerceClient
from ...models import Connection, InventoryLog, SalesLog

ORDER_STATUSES = ('completed', 'processing')


class OrderSyncService(SyncServiceBase):
    """Sequential WooCommerce <-> Prokip order reconciliation"""

    async def sync_woocommerce(self, user_id: int, connection_id: Optional[int] = None,
                               lookback_days: Optional[int] = None) -> Dict[str, Any]:
        """Run both directions for each sync-enabled WooCommerce connection of the user."""
        prokip_config = await self.prokip_service.require_config(user_id)

        if connection_id is not None:
            connections = [await self.connection_service.get_connection(connection_id, user_id)]
        else:
            connections = await self.connection_service.list_connections(
                user_id, platform='woocommerce', sync_enabled_only=True
            )
        if not connections:
            raise ConfigurationError("WooCommerce connection not found")

        prokip = await self.prokip_service.get_client(user_id)
        days = lookback_days or self.config.get('SYNC_LOOKBACK_DAYS', 7)
        since = self._now() - timedelta(days=days)

        self.logger.info(f"Starting bidirectional sync for user {user_id} "
                         f"({len(connections)} connection(s), since {since:%Y-%m-%d %H:%M})")

        connection_results = []
        for connection in connections:
            store = self.connection_service.get_store_client(connection)
            woo_to_prokip = await self.sync_store_orders_to_prokip(
                connection, store, prokip, prokip_config.location_id, since
            )
            prokip_to_woo = await self.sync_prokip_sales_to_store(
                connection, store, prokip, prokip_config.location_id, since
            )
            connection.last_sync = self._now()
            await self.db_session.commit()

            self.logger.info(
                f"Connection {connection.id}: WooCommerce -> Prokip "
                f"{woo_to_prokip['success']}/{woo_to_prokip['processed']} "
                f"({woo_to_prokip['stock_deducted']} items), Prokip -> WooCommerce "
                f"{prokip_to_woo['success']}/{prokip_to_woo['processed']} "
                f"({prokip_to_woo['stock_updated']} items)"
            )
            connection_results.append({
                'connection_id': connection.id,
                'store_url': connection.store_url,
                'woo_to_prokip': woo_to_prokip,
                'prokip_to_woo': prokip_to_woo,
            })

        return {
            'success': True,
            'message': 'Bidirectional sync completed',
            'connections': connection_results,
        }

    # --- WooCommerce -> Prokip ---

    async def sync_store_orders_to_prokip(self, connection: Connection, store: WooCommerceClient,
                                          prokip: ProkipClient, location_id, since: datetime) -> Dict[str, Any]:
        results = {'processed': 0, 'success': 0, 'skipped': 0, 'errors': [], 'stock_deducted': 0}

        try:
            orders = store.get_orders(ORDER_STATUSES, after=since)
            products_by_sku = index_by_sku(prokip.get_products(location_id=location_id))
        except ExternalServiceError as e:
            results['errors'].append(e.message)
            await self._record_error(connection.id, 'order', e.message, {'operation': 'order_fetch'})
            await self.db_session.commit()
            return results

        for order in orders:
            results['processed'] += 1
            order_id = order.get('id')
            try:
                outcome = await self.process_store_order(connection, order, prokip, products_by_sku, location_id)
            except BridgeException as e:
                # Nothing is written for an order before Prokip accepts the sell
                results['errors'].append(f"Order {order_id}: {e.message}")
                await self._record_error(connection.id, 'order', f"Order processing failed: {e.message}", {
                    'operation': 'order_processing',
                    'order_id': str(order_id),
                    'platform': connection.platform,
                })
                await self.db_session.commit()
                continue

            if outcome['status'] == 'duplicate':
                self.logger.debug(f"Order {order_id} already processed, skipping")
                results['skipped'] += 1
            elif outcome['status'] == 'unmapped':
                results['errors'].append(f"Order {order_id}: No valid products")
            else:
                results['success'] += 1
                results['stock_deducted'] += outcome['stock_deducted']
            await self.db_session.commit()

        return results

    async def process_store_order(self, connection: Connection, order: Dict[str, Any], prokip: ProkipClient,
                                  products_by_sku: Dict[str, Dict[str, Any]], location_id) -> Dict[str, Any]:
        """
        Push one WooCommerce order to Prokip as a sell unless already logged.

        Returns `{"status": "duplicate" | "unmapped" | "synced", ...}`. The
        caller commits.
        """
        order_id = str(order.get('id'))
        if await self._already_synced(connection.id, SOURCE_WOOCOMMERCE, order_id):
            return {'status': 'duplicate'}

        sell_body = map_order_to_sell(order, products_by_sku, location_id)
        if sell_body is None:
            self.logger.warning(f"No valid products found for order #{order_id}")
            return {'status': 'unmapped'}

        response = prokip.create_sell(sell_body)
        sell_id = ProkipClient.extract_sell_id(response)

        stock_deducted = 0
        for line in map_line_items(order, products_by_sku):
            stock_deducted += await self._deduct_local_stock(connection, line)

        self.db_session.add(SalesLog(
            connection_id=connection.id,
            source=SOURCE_WOOCOMMERCE,
            order_id=order_id,
            order_number=str(order.get('number') or order_id),
            prokip_sell_id=sell_id,
            customer_name=customer_name(order),
            customer_email=(order.get('billing') or {}).get('email'),
            total_amount=to_float(order.get('total')),
            status=order.get('status') or 'completed',
            order_date=parse_woo_datetime(order.get('date_created')),
            synced_at=self._now(),
        ))
        await self.db_session.flush()

        self.logger.info(f"Order {order_id} pushed to Prokip as sell {sell_id} (local stock -{stock_deducted})")
        return {'status': 'synced', 'prokip_sell_id': sell_id, 'stock_deducted': stock_deducted}

    async def _deduct_local_stock(self, connection: Connection, line: Dict[str, Any]) -> int:
        """Decrement the local InventoryLog by min(ordered, on hand); never below zero."""
        log = await self._get_inventory_log(connection.id, line['sku'])
        if log is None:
            log = InventoryLog(
                connection_id=connection.id,
                sku=line['sku'],
                product_id=str(line['product_id']),
                product_name=line['name'],
                quantity=0,
                price=line['unit_price'],
            )
            self.db_session.add(log)
            await self.db_session.flush()

        to_deduct = min(line['quantity'], log.quantity or 0)
        log.last_synced = self._now()
        if to_deduct <= 0:
            self.logger.warning(f"Insufficient local stock to deduct for {line['sku']}")
            return 0
        log.quantity = max(0, log.quantity - to_deduct)
        return to_deduct

    # --- Prokip -> WooCommerce ---

    async def fetch_recent_sales(self, prokip: ProkipClient, location_id, since: datetime) -> List[Dict[str, Any]]:
        """Date-filtered sells; falls back to an unfiltered request and filters locally."""
        try:
            sales = prokip.get_sales(location_id=location_id, start_date=format_prokip_datetime(since))
        except ProkipAPIError as e:
            self.logger.warning(f"Date filter failed ({e.message}), retrying without date filter")
            sales = prokip.get_sales(location_id=location_id)

        recent = []
        for sale in sales:
            sale_date = parse_prokip_datetime(sale.get('transaction_date'))
            if sale_date is None or sale_date < since:
                continue
            recent.append(sale)
        return recent

    async def sync_prokip_sales_to_store(self, connection: Connection, store: WooCommerceClient,
                                         prokip: ProkipClient, location_id, since: datetime) -> Dict[str, Any]:
        results = {'processed': 0, 'success': 0, 'skipped': 0, 'errors': [], 'stock_updated': 0}

        try:
            sales = await self.fetch_recent_sales(prokip, location_id, since)
        except ExternalServiceError as e:
            results['errors'].append(e.message)
            return results

        try:
            store_products = index_by_sku(store.get_products(per_page=100))
        except WooCommerceAPIError as e:
            self.logger.warning(f"Could not fetch WooCommerce products: {e.message}")
            store_products = {}

        for sale in sales:
            results['processed'] += 1
            sale_id = str(sale.get('id'))

            if is_store_originated(sale):
                results['skipped'] += 1
                continue
            if await self._already_synced(connection.id, SOURCE_PROKIP, sale_id):
                results['skipped'] += 1
                continue

            outcome = await self.apply_sale_to_store(connection, sale, store, store_products)
            results['stock_updated'] += outcome['stock_updated']
            results['skipped'] += len(outcome['missing_skus'])
            results['errors'].extend(outcome['errors'])
            results['success'] += 1
            await self.db_session.commit()

        return results

    async def apply_sale_to_store(self, connection: Connection, sale: Dict[str, Any], store: WooCommerceClient,
                                  store_products: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        """Decrement store stock for each sell line, then log the sale. The caller commits."""
        sale_id = str(sale.get('id'))
        outcome = {'stock_updated': 0, 'missing_skus': [], 'errors': []}

        for line in sale_lines(sale):
            sku, quantity = line['sku'], line['quantity']
            if not sku:
                continue
            store_product = store_products.get(sku)
            if not store_product:
                self.logger.warning(f"WooCommerce product with SKU {sku} not found")
                outcome['missing_skus'].append(sku)
                continue
            try:
                new_stock = self.deduct_store_stock(store, store_product['id'], quantity)
            except ExternalServiceError as e:
                outcome['errors'].append(f"Product {sku}: {e.message}")
                await self._record_error(connection.id, 'inventory', f"Inventory sync failed: {e.message}", {
                    'operation': 'stock_deduction',
                    'sku': sku,
                    'quantity': quantity,
                    'sale_id': sale_id,
                })
                continue

            cache = await self._get_cache(connection.id, sku)
            if cache is not None:
                cache.quantity = new_stock
            outcome['stock_updated'] += quantity

        contact = sale.get('contact') or {}
        self.db_session.add(SalesLog(
            connection_id=connection.id,
            source=SOURCE_PROKIP,
            order_id=sale_id,
            order_number=sale.get('invoice_no') or sale_id,
            prokip_sell_id=sale_id,
            customer_name=contact.get('name') or 'Prokip Customer',
            customer_email=contact.get('email') or '',
            total_amount=to_float(sale.get('final_total')),
            status='completed',
            order_date=parse_prokip_datetime(sale.get('transaction_date')),
            synced_at=self._now(),
        ))
        await self.db_session.flush()

        self.logger.info(f"Prokip sale {sale_id} synced to WooCommerce (stock -{outcome['stock_updated']})")
        return outcome

    @staticmethod
    def deduct_store_stock(store: WooCommerceClient, product_id, quantity: int) -> int:
        """Read current stock, write max(0, current - quantity); returns the new stock."""
        current = to_int(store.get_product(product_id).get('stock_quantity'))
        new_stock = max(0, current - quantity)
        store.update_product_stock(product_id, new_stock)
        return new_stock

    async def list_sales_logs(self, user_id: int, connection_id: Optional[int] = None,
                              source: Optional[str] = None, page: int = 1, per_page: int = 20) -> Dict[str, Any]:
        query = select(SalesLog).join(Connection, SalesLog.connection_id == Connection.id).filter(
            Connection.user_id == user_id
        )
        if connection_id is not None:
            query = query.filter(SalesLog.connection_id == connection_id)
        if source:
            query = query.filter(SalesLog.source == source)
        return await self._paginate_query(query.order_by(SalesLog.synced_at.desc(), SalesLog.id.desc()),
                                          page=page, per_page=per_page)
