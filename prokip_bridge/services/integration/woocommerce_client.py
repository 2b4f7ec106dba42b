"""
WooCommerce REST Client
=======================

Thin wrapper over the WooCommerce `wc/v3` REST API.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from .http_client import RestClient
from ..exceptions import WooCommerceAPIError, ValidationError

logger = logging.getLogger(__name__)

WEBHOOK_TOPICS = ('order.created', 'order.updated', 'order.deleted')


def normalize_store_url(store_url: str) -> str:
    """`shop.example.com/` -> `https://shop.example.com`"""
    url = (store_url or '').strip()
    if not url:
        raise ValidationError("Store URL is required", field='store_url')
    if not url.startswith('http'):
        url = f"https://{url}"
    return url.rstrip('/')


def store_host(store_url: str) -> str:
    """Scheme-less, lowercase host+path used to match webhook sources."""
    url = normalize_store_url(store_url).lower()
    return url.split('://', 1)[-1]


class WooCommerceClient(RestClient):
    """Client for one WooCommerce store"""

    service_name = 'WooCommerce'
    error_class = WooCommerceAPIError

    def __init__(self, store_url: str, username: str, password: str, timeout: int = 15,
                 max_retries: int = 3, session=None):
        self.store_url = normalize_store_url(store_url)
        super().__init__(f"{self.store_url}/wp-json/wc/v3/", timeout, max_retries, session)
        # Consumer key/secret and application passwords both use HTTP Basic
        self.session.auth = (username, password)
        self.session.headers['Content-Type'] = 'application/json'

    def test_connection(self) -> bool:
        self.get('products', params={'per_page': 1})
        return True

    # --- Orders ---

    def get_orders(self, statuses: Iterable[str] = ('completed', 'processing'),
                   after: Optional[datetime] = None, per_page: int = 50) -> List[Dict[str, Any]]:
        """Fetch orders per status; WooCommerce filters one status per request."""
        orders: List[Dict[str, Any]] = []
        for status in statuses:
            params = {'status': status, 'per_page': per_page}
            if after:
                params['after'] = after.strftime('%Y-%m-%dT%H:%M:%S')
            batch = self.unwrap_list(self.get('orders', params=params))
            logger.info(f"Fetched {len(batch)} {status} orders from {self.store_url}")
            orders.extend(batch)
        return orders

    def get_order(self, order_id) -> Dict[str, Any]:
        return self.get(f'orders/{order_id}')

    # --- Products ---

    def get_products(self, per_page: int = 100, sku: Optional[str] = None) -> List[Dict[str, Any]]:
        params = {'per_page': per_page}
        if sku:
            params['sku'] = sku
        return self.unwrap_list(self.get('products', params=params))

    def get_product(self, product_id) -> Dict[str, Any]:
        return self.get(f'products/{product_id}')

    def find_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        for product in self.get_products(per_page=10, sku=sku):
            if product.get('sku') == sku:
                return product
        return None

    def update_product_stock(self, product_id, quantity: int) -> Dict[str, Any]:
        return self.put(f'products/{product_id}', {
            'manage_stock': True,
            'stock_quantity': int(quantity),
        })

    def create_product(self, name: str, sku: str, regular_price, stock_quantity: Optional[int] = None) -> Dict[str, Any]:
        payload = {
            'name': name,
            'sku': sku,
            'regular_price': str(regular_price),
        }
        if stock_quantity is not None:
            payload['manage_stock'] = True
            payload['stock_quantity'] = int(stock_quantity)
        return self.post('products', payload)

    # --- Webhooks ---

    def list_webhooks(self) -> List[Dict[str, Any]]:
        return self.unwrap_list(self.get('webhooks'))

    def create_webhook(self, name: str, topic: str, delivery_url: str, secret: str) -> Dict[str, Any]:
        return self.post('webhooks', {
            'name': name,
            'topic': topic,
            'delivery_url': delivery_url,
            'secret': secret,
        })

    def register_webhooks(self, delivery_url: str, secret: str) -> List[str]:
        """Register order webhooks not already pointing at `delivery_url`; returns created topics."""
        try:
            existing = {(w.get('topic'), w.get('delivery_url')) for w in self.list_webhooks()}
        except WooCommerceAPIError as e:
            logger.warning(f"Skipping webhook existence check for {self.store_url}: {e.message}")
            existing = set()

        created = []
        for topic in WEBHOOK_TOPICS:
            if (topic, delivery_url) in existing:
                continue
            try:
                self.create_webhook(f"Prokip {topic}", topic, delivery_url, secret)
                created.append(topic)
            except WooCommerceAPIError as e:
                if isinstance(e.response_body, dict) and e.response_body.get('code') == 'woocommerce_webhook_exists':
                    continue
                logger.warning(f"Failed to register webhook {topic} for {self.store_url}: {e.message}")
        return created
