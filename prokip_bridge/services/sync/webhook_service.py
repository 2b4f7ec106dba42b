"""
Webhook Service
===============

Processes inbound WooCommerce order webhooks. Every delivery is stored as a
WebhookEvent before anything else happens, so unmatched or failed deliveries
can be inspected later.
"""

from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from .base import SyncServiceBase, SOURCE_WOOCOMMERCE
from .mapper import index_by_sku, map_refund_to_return_products, format_prokip_datetime
from .order_sync_service import OrderSyncService
from ..connection.connection_service import ConnectionService
from ..prokip.prokip_service import ProkipService
from ..exceptions import BridgeException
from ..integration import ProkipClient
from ...models import Connection, WebhookEvent

RETURN_TOPICS = ('order.refunded', 'order.cancelled')
PAID_STATUSES = ('processing', 'completed')
RETURN_STATUSES = ('refunded', 'cancelled')


def resolve_action(topic: Optional[str], status: Optional[str]) -> Optional[str]:
    """'sell', 'return' or None for a webhook topic and order status."""
    topic = (topic or '').lower()
    status = (status or '').lower()

    if topic in RETURN_TOPICS or (topic == 'order.updated' and status in RETURN_STATUSES):
        return 'return'
    if topic == 'order.paid' or (topic in ('order.created', 'order.updated') and status in PAID_STATUSES):
        return 'sell'
    return None


class WebhookService(SyncServiceBase):
    """WooCommerce order webhooks -> Prokip sells and sell returns"""

    def __init__(self, db_session: AsyncSession, connection_service: ConnectionService,
                 prokip_service: ProkipService, order_sync_service: OrderSyncService,
                 config: Dict[str, Any], current_user: Optional[int] = None):
        super().__init__(db_session, connection_service, prokip_service, config, current_user)
        self.order_sync_service = order_sync_service

    async def handle_woocommerce(self, payload: Dict[str, Any], topic: Optional[str],
                                 source_url: Optional[str]) -> Dict[str, Any]:
        event = WebhookEvent(platform='woocommerce', topic=topic, payload=payload, processed=False)
        self.db_session.add(event)
        await self.db_session.flush()

        connection = await self.connection_service.find_by_store_url(source_url) if source_url else None
        if connection is None:
            return await self._leave_unprocessed(event, f"No connection found for store {source_url}")
        event.connection_id = connection.id

        prokip_config = await self.prokip_service.get_config(connection.user_id)
        if not prokip_config or not prokip_config.token or not prokip_config.location_id:
            return await self._leave_unprocessed(event, "Prokip is not configured for this store's owner")

        action = resolve_action(topic, payload.get('status'))
        order_id = str(payload.get('id') or payload.get('number') or '')
        self.logger.info(f"Webhook {topic} for order {order_id} from {connection.store_url}: {action or 'ignored'}")

        try:
            prokip = await self.prokip_service.get_client(connection.user_id)
            if action == 'sell':
                products_by_sku = index_by_sku(prokip.get_products(location_id=prokip_config.location_id))
                outcome = await self.order_sync_service.process_store_order(
                    connection, payload, prokip, products_by_sku, prokip_config.location_id
                )
            elif action == 'return':
                outcome = await self.process_return(connection, payload, prokip, prokip_config.location_id)
            else:
                outcome = {'status': 'ignored'}
        except BridgeException as e:
            event.error = e.message
            await self._record_error(connection.id, 'order', f"Webhook processing failed: {e.message}", {
                'operation': 'order_processing',
                'order_id': order_id,
                'platform': connection.platform,
                'topic': topic,
            })
            await self.db_session.commit()
            return {'processed': False, 'event_id': event.id, 'error': e.message}

        event.processed = True
        event.processed_at = self._now()
        connection.last_sync = self._now()
        await self.db_session.commit()

        return {'processed': True, 'event_id': event.id, 'action': action, **outcome}

    async def process_return(self, connection: Connection, order: Dict[str, Any], prokip: ProkipClient,
                             location_id) -> Dict[str, Any]:
        """Post a sell return for a previously synced order."""
        order_id = str(order.get('id') or order.get('number'))
        log = await self._get_sales_log(connection.id, SOURCE_WOOCOMMERCE, order_id)
        if log is None or not log.prokip_sell_id:
            self.logger.warning(f"Order {order_id} was never synced to Prokip, no return to post")
            return {'status': 'not_synced'}
        if log.status in RETURN_STATUSES:
            return {'status': 'duplicate'}

        products_by_sku = index_by_sku(prokip.get_products(location_id=location_id))
        return_body = {
            'transaction_id': log.prokip_sell_id,
            'transaction_date': format_prokip_datetime(None),
            'products': map_refund_to_return_products(order, products_by_sku),
            'discount_amount': 0,
            'discount_type': 'fixed',
        }
        prokip.create_sell_return(return_body)

        log.status = (order.get('status') or 'refunded').lower()
        if log.status not in RETURN_STATUSES:
            log.status = 'refunded'
        self.logger.info(f"Sell return posted for order {order_id} (sell {log.prokip_sell_id})")
        return {'status': 'returned', 'prokip_sell_id': log.prokip_sell_id}

    async def _leave_unprocessed(self, event: WebhookEvent, reason: str) -> Dict[str, Any]:
        self.logger.warning(f"Webhook event {event.id} left unprocessed: {reason}")
        event.error = reason
        await self.db_session.commit()
        return {'processed': False, 'event_id': event.id, 'error': reason}
