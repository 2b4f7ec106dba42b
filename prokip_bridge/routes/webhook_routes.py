"""
Webhook Routes
==============

Public endpoint receiving WooCommerce order webhooks
"""

import json
import logging

from fastapi import APIRouter, Depends, Request
from typing import Dict, Any

from ..services import ServiceRegistry
from ..dependencies import get_public_service_registry
from ..responses import APIResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/woocommerce", response_model=Dict[str, Any])
async def woocommerce_webhook(
    request: Request,
    service_registry: ServiceRegistry = Depends(get_public_service_registry)
):
    """
    Receive a WooCommerce order webhook

    Topic and store come from the `X-WC-Webhook-Topic` / `X-WC-Webhook-Source`
    headers, falling back to the payload.
    """
    body = await request.body()
    try:
        payload = json.loads(body or b'{}')
    except ValueError:
        # Delivery pings are form-encoded (`webhook_id=...`)
        logger.info("Received non-JSON webhook delivery (ping)")
        return APIResponse.success(data={'processed': False}, message="Ping received")
    if not isinstance(payload, dict):
        payload = {}

    topic = request.headers.get('x-wc-webhook-topic') or payload.get('topic') or 'order.created'
    source_url = (
        request.headers.get('x-wc-webhook-source')
        or (payload.get('resource') or {}).get('site_url')
        or payload.get('site_url')
    )

    result = await service_registry.webhook_service.handle_woocommerce(payload, topic, source_url)
    return APIResponse.success(data=result, message="Webhook received")
