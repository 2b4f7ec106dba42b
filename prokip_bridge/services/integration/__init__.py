"""
Integration Domain
==================

HTTP clients for the WooCommerce REST API and the Prokip connector API.
"""

from .http_client import RestClient
from .woocommerce_client import WooCommerceClient, normalize_store_url, store_host, WEBHOOK_TOPICS
from .prokip_client import ProkipClient

__all__ = [
    'RestClient',
    'WooCommerceClient',
    'ProkipClient',
    'normalize_store_url',
    'store_host',
    'WEBHOOK_TOPICS',
]
