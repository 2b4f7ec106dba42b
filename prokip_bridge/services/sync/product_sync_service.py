"""
Product Sync Service
====================

Catalogue seeding between Prokip and a store, matched by SKU.
"""

from typing import Any, Dict, List

from .base import SyncServiceBase
from .mapper import index_by_sku, product_sell_price, stock_quantity, to_float, to_int
from ..exceptions import ExternalServiceError


class ProductSyncService(SyncServiceBase):

    async def push_products(self, user_id: int, connection_id: int) -> Dict[str, Any]:
        """Create Prokip products that the store lacks."""
        connection = await self.connection_service.get_connection(connection_id, user_id)
        prokip_config = await self.prokip_service.require_config(user_id)
        prokip = await self.prokip_service.get_client(user_id)
        store = self.connection_service.get_store_client(connection)

        prokip_products = prokip.get_products(location_id=prokip_config.location_id)
        store_skus = set(index_by_sku(store.get_products(per_page=100)))

        results = {'created': 0, 'existing': 0, 'skipped': 0, 'errors': []}
        for product in prokip_products:
            name, sku = product.get('name'), product.get('sku')
            if not name or not sku:
                results['skipped'] += 1
                continue
            if sku in store_skus:
                results['existing'] += 1
                continue
            try:
                store.create_product(name, sku, product_sell_price(product))
            except ExternalServiceError as e:
                results['errors'].append(f"{sku}: {e.message}")
                await self._record_error(connection.id, 'product', f"Product push failed: {e.message}", {
                    'operation': 'product_push',
                    'sku': sku,
                    'name': name,
                    'price': product_sell_price(product),
                })
                continue
            store_skus.add(sku)
            results['created'] += 1

        await self.db_session.commit()
        self.logger.info(f"Pushed {results['created']} Prokip products to {connection.store_url}")
        return results

    async def pull_products(self, user_id: int, connection_id: int) -> Dict[str, Any]:
        """Create store products that Prokip lacks."""
        connection = await self.connection_service.get_connection(connection_id, user_id)
        prokip_config = await self.prokip_service.require_config(user_id)
        prokip = await self.prokip_service.get_client(user_id)
        store = self.connection_service.get_store_client(connection)

        prokip_skus = set(index_by_sku(prokip.get_products(location_id=prokip_config.location_id)))
        store_products = store.get_products(per_page=100)

        results = {'created': 0, 'existing': 0, 'skipped': 0, 'errors': []}
        for product in store_products:
            name, sku = product.get('name'), product.get('sku')
            if not name or not sku:
                results['skipped'] += 1
                continue
            if sku in prokip_skus:
                results['existing'] += 1
                continue
            payload = self.build_prokip_product(product, prokip_config.location_id)
            try:
                prokip.create_product(payload)
            except ExternalServiceError as e:
                results['errors'].append(f"{sku}: {e.message}")
                await self._record_error(connection.id, 'product', f"Product pull failed: {e.message}", {
                    'operation': 'product_pull',
                    'sku': sku,
                    'payload': payload,
                })
                continue
            prokip_skus.add(sku)
            results['created'] += 1

        await self.db_session.commit()
        self.logger.info(f"Pulled {results['created']} products from {connection.store_url} into Prokip")
        return results

    @staticmethod
    def build_prokip_product(store_product: Dict[str, Any], location_id) -> Dict[str, Any]:
        price = to_float(store_product.get('regular_price') or store_product.get('price'))
        payload = {
            'name': store_product['name'],
            'sku': store_product['sku'],
            'type': 'single',
            'enable_stock': 1 if store_product.get('manage_stock') else 0,
            'single_dsp': price,
            'single_dsp_inc_tax': price,
            'product_locations': [to_int(location_id)] if location_id else [],
        }
        if store_product.get('stock_quantity') is not None:
            payload['opening_stock'] = to_int(store_product['stock_quantity'])
        return payload

    async def compare_products(self, user_id: int, connection_id: int) -> List[Dict[str, Any]]:
        """Per-SKU stock on both sides; a side without the SKU reports None."""
        connection = await self.connection_service.get_connection(connection_id, user_id)
        prokip_config = await self.prokip_service.require_config(user_id)
        prokip = await self.prokip_service.get_client(user_id)
        store = self.connection_service.get_store_client(connection)

        prokip_stock = {
            item['sku']: item for item in prokip.get_stock_report(location_id=prokip_config.location_id)
            if item.get('sku')
        }
        store_products = index_by_sku(store.get_products(per_page=100))

        rows = []
        for sku in sorted(set(prokip_stock) | set(store_products)):
            prokip_item = prokip_stock.get(sku)
            store_item = store_products.get(sku)
            prokip_qty = stock_quantity(prokip_item) if prokip_item else None
            store_qty = to_int(store_item.get('stock_quantity')) if store_item else None
            rows.append({
                'sku': sku,
                'name': (store_item or {}).get('name') or (prokip_item or {}).get('product'),
                'prokip_stock': prokip_qty,
                'store_stock': store_qty,
                'difference': (prokip_qty - store_qty) if prokip_qty is not None and store_qty is not None else None,
                'in_sync': prokip_qty == store_qty,
            })
        return rows
