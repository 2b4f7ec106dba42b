"""
Error Recovery Service
======================

Automatic retry of persisted SyncErrors.

Each error is classified from its type and message; every class carries a
retry budget, a backoff schedule (seconds) and a recovery action. Errors that
exhaust their budget are escalated: the reason and whether a person needs to
step in are written back into `error_details`.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .base import SyncServiceBase
from .mapper import index_by_sku
from .order_sync_service import OrderSyncService
from ..connection.connection_service import ConnectionService
from ..prokip.prokip_service import ProkipService
from ..exceptions import BridgeException
from ...models import Connection, SyncError

NETWORK_TIMEOUT = 'NETWORK_TIMEOUT'
RATE_LIMIT = 'RATE_LIMIT'
AUTH_ERROR = 'AUTH_ERROR'
PRODUCT_NOT_FOUND = 'PRODUCT_NOT_FOUND'
INVENTORY_SYNC_ERROR = 'INVENTORY_SYNC_ERROR'
ORDER_PROCESSING_ERROR = 'ORDER_PROCESSING_ERROR'
UNKNOWN_ERROR = 'UNKNOWN_ERROR'

RECOVERY_STRATEGIES = {
    NETWORK_TIMEOUT: {'max_retries': 3, 'backoff': [1, 2, 4], 'action': '_retry_operation'},
    RATE_LIMIT: {'max_retries': 5, 'backoff': [5, 10, 20, 40, 60], 'action': '_retry_operation'},
    AUTH_ERROR: {'max_retries': 2, 'backoff': [1, 5], 'action': '_retry_with_auth_refresh'},
    PRODUCT_NOT_FOUND: {'max_retries': 1, 'backoff': [2], 'action': '_retry_with_product_creation'},
    INVENTORY_SYNC_ERROR: {'max_retries': 3, 'backoff': [2, 5, 10], 'action': '_retry_inventory_sync'},
    ORDER_PROCESSING_ERROR: {'max_retries': 2, 'backoff': [5, 15], 'action': '_retry_order_processing'},
}

MANUAL_INTERVENTION_MARKERS = (
    'invalid credentials',
    'account suspended',
    'api key revoked',
    'store not found',
    'permission denied',
    'configuration error',
)

MANUAL_STEPS = {
    AUTH_ERROR: 'Please re-authenticate the store connection in Settings',
    PRODUCT_NOT_FOUND: 'Verify the product exists in both systems or create it manually',
    RATE_LIMIT: 'Wait for rate limit to reset or contact platform support',
    NETWORK_TIMEOUT: 'Check network connectivity and firewall settings',
    INVENTORY_SYNC_ERROR: 'Verify product SKUs match between systems',
    ORDER_PROCESSING_ERROR: 'Check order data format and required fields',
}


def classify_error(error_type: Optional[str], message: Optional[str]) -> str:
    """Map a SyncError's type and message onto a recovery class; first match wins."""
    text = (message or '').lower()

    if 'timeout' in text or 'network' in text or 'etimedout' in text:
        return NETWORK_TIMEOUT
    if 'rate limit' in text or 'too many requests' in text or '429' in text:
        return RATE_LIMIT
    if 'unauthorized' in text or '401' in text or 'authentication' in text:
        return AUTH_ERROR
    if 'product not found' in text or '404' in text or 'sku not found' in text:
        return PRODUCT_NOT_FOUND
    if error_type == 'inventory' or 'inventory sync' in text:
        return INVENTORY_SYNC_ERROR
    if error_type == 'order' or 'order processing' in text:
        return ORDER_PROCESSING_ERROR
    return UNKNOWN_ERROR


def requires_manual_intervention(reason: Optional[str]) -> bool:
    text = (reason or '').lower()
    return any(marker in text for marker in MANUAL_INTERVENTION_MARKERS)


def manual_steps(error_class: str) -> str:
    return MANUAL_STEPS.get(error_class, 'Review error details and contact support if needed')


class ErrorRecoveryService(SyncServiceBase):
    """Retries unresolved SyncErrors with per-class strategies"""

    def __init__(self, db_session: AsyncSession, connection_service: ConnectionService,
                 prokip_service: ProkipService, order_sync_service: OrderSyncService,
                 config: Dict[str, Any], current_user: Optional[int] = None,
                 sleep: Optional[Callable[[float], Awaitable[Any]]] = None):
        super().__init__(db_session, connection_service, prokip_service, config, current_user)
        self.order_sync_service = order_sync_service
        self.sleep = sleep or asyncio.sleep

    async def recover(self, user_id: Optional[int] = None, error_id: Optional[int] = None) -> Dict[str, Any]:
        """Attempt recovery of one unresolved error, or all of them (scoped to a user when given)."""
        query = select(SyncError).filter(SyncError.resolved.is_(False))
        if error_id is not None:
            query = query.filter(SyncError.id == error_id)
        if user_id is not None:
            query = query.join(Connection, SyncError.connection_id == Connection.id).filter(
                Connection.user_id == user_id
            )
        result = await self.db_session.execute(query.order_by(SyncError.id))
        errors = list(result.scalars().all())

        results = []
        for error in errors:
            results.append(await self.attempt_recovery(error))

        recovered = sum(1 for r in results if r['success'])
        self.logger.info(f"Error recovery processed {len(results)} error(s), {recovered} recovered")
        return {'success': True, 'processed': len(results), 'recovered': recovered, 'results': results}

    async def attempt_recovery(self, error: SyncError) -> Dict[str, Any]:
        error_class = classify_error(error.error_type, error.error_message)
        strategy = RECOVERY_STRATEGIES.get(error_class)

        if strategy is None:
            return {
                'error_id': error.id,
                'success': False,
                'strategy': error_class,
                'message': f"No recovery strategy for error type: {error_class}",
                'requires_manual_intervention': True,
                'next_steps': manual_steps(error_class),
            }

        self.logger.info(f"Attempting recovery for error {error.id} ({error_class})")
        error.recovery_attempts = (error.recovery_attempts or 0) + 1
        error.last_recovery_at = self._now()
        await self.db_session.commit()

        action = getattr(self, strategy['action'])
        backoff = strategy['backoff']
        failure = None

        for attempt in range(strategy['max_retries']):
            if attempt > 0:
                await self.sleep(backoff[attempt] if attempt < len(backoff) else 1)
            try:
                outcome = await action(error)
            except BridgeException as e:
                self.logger.warning(f"Recovery attempt {attempt + 1} for error {error.id} failed: {e.message}")
                failure = e.message
                continue

            if outcome['success']:
                return await self._mark_recovered(error, error_class, attempt + 1, outcome['message'])
            failure = outcome['message']

        return await self.escalate(error, error_class, failure or 'Recovery failed')

    async def _mark_recovered(self, error: SyncError, error_class: str, attempts: int,
                              message: str) -> Dict[str, Any]:
        now = self._now()
        error.resolved = True
        error.resolved_at = now
        error.auto_recovered = True
        error.error_details = {
            **(error.error_details or {}),
            'original_error': error.error_message,
            'recovery_strategy': error_class,
            'recovered_at': now.isoformat(),
            'auto_recovered': True,
        }
        await self.db_session.commit()

        self.logger.info(f"Error {error.id} recovered after {attempts} attempt(s)")
        return {
            'error_id': error.id,
            'success': True,
            'strategy': error_class,
            'attempts': attempts,
            'message': f"Recovered successfully after {attempts} attempts: {message}",
            'auto_recovered': True,
        }

    async def escalate(self, error: SyncError, error_class: str, reason: str) -> Dict[str, Any]:
        manual = requires_manual_intervention(reason)
        error.error_details = {
            **(error.error_details or {}),
            'original_error': error.error_message,
            'escalation_reason': reason,
            'requires_manual_intervention': manual,
            'escalated_at': self._now().isoformat(),
            'recovery_strategy': error_class,
        }
        await self.db_session.commit()

        if manual:
            self.logger.error(f"Manual intervention required for error {error.id} ({error_class}): {reason}")
        else:
            self.logger.warning(f"Automatic recovery of error {error.id} failed: {reason}")

        return {
            'error_id': error.id,
            'success': False,
            'strategy': error_class,
            'message': 'Automatic recovery failed after all attempts',
            'requires_manual_intervention': manual,
            'escalation_reason': reason,
            'next_steps': manual_steps(error_class) if manual else 'Will retry automatically',
        }

    # --- Recovery actions; each returns {"success", "message"} or raises ---

    async def _connection_for(self, error: SyncError) -> Optional[Connection]:
        if error.connection_id is None:
            return None
        return await self.db_session.get(Connection, error.connection_id)

    async def _retry_operation(self, error: SyncError) -> Dict[str, Any]:
        """Replay the operation named in the error details."""
        operation = (error.error_details or {}).get('operation')
        if operation in ('inventory_sync', 'stock_deduction'):
            return await self._retry_inventory_sync(error)
        if operation == 'order_processing':
            return await self._retry_order_processing(error)
        if operation == 'product_push':
            return await self._retry_with_product_creation(error)
        return {'success': False, 'message': 'No specific retry action available'}

    async def _retry_with_auth_refresh(self, error: SyncError) -> Dict[str, Any]:
        connection = await self._connection_for(error)
        if connection is None:
            return {'success': False, 'message': 'Connection not found'}

        token = await self.prokip_service.refresh(connection.user_id)
        if not token:
            return {'success': False, 'message': 'Prokip token refresh failed: invalid credentials'}

        self.connection_service.get_store_client(connection).test_connection()
        return {'success': True, 'message': 'Authentication refreshed'}

    async def _retry_with_product_creation(self, error: SyncError) -> Dict[str, Any]:
        details = error.error_details or {}
        sku = details.get('sku')
        connection = await self._connection_for(error)
        if not sku or connection is None:
            return {'success': False, 'message': 'Missing SKU or connection details'}

        store = self.connection_service.get_store_client(connection)
        if store.find_product_by_sku(sku) is None:
            store.create_product(details.get('name') or f"Product {sku}", sku, details.get('price') or 0, 0)
        return {'success': True, 'message': f"Product {sku} created successfully"}

    async def _retry_inventory_sync(self, error: SyncError) -> Dict[str, Any]:
        details = error.error_details or {}
        sku = details.get('sku')
        connection = await self._connection_for(error)
        if not sku or connection is None:
            return {'success': False, 'message': 'Missing SKU or connection details'}

        store = self.connection_service.get_store_client(connection)
        quantity = int(details.get('quantity') or 0)

        if details.get('operation') == 'stock_deduction':
            product = store.find_product_by_sku(sku)
            if product is None:
                return {'success': False, 'message': f"Product not found in store: {sku}"}
            new_stock = OrderSyncService.deduct_store_stock(store, product['id'], quantity)
            return {'success': True, 'message': f"Stock for {sku} reduced to {new_stock}"}

        if not self.update_store_inventory(connection, sku, quantity, store_client=store):
            return {'success': False, 'message': f"Product not found in store: {sku}"}
        await self._set_cache(connection.id, sku, quantity)
        return {'success': True, 'message': f"Inventory sync successful for {sku}"}

    async def _retry_order_processing(self, error: SyncError) -> Dict[str, Any]:
        """Re-fetch the WooCommerce order and push it to Prokip again."""
        order_id = (error.error_details or {}).get('order_id')
        connection = await self._connection_for(error)
        if not order_id or connection is None:
            return {'success': False, 'message': 'Missing order processing details'}

        prokip_config = await self.prokip_service.require_config(connection.user_id)
        prokip = await self.prokip_service.get_client(connection.user_id)
        store = self.connection_service.get_store_client(connection)

        order = store.get_order(order_id)
        products_by_sku = index_by_sku(prokip.get_products(location_id=prokip_config.location_id))
        outcome = await self.order_sync_service.process_store_order(
            connection, order, prokip, products_by_sku, prokip_config.location_id
        )
        if outcome['status'] == 'unmapped':
            return {'success': False, 'message': f"Order {order_id}: No valid products"}
        return {'success': True, 'message': f"Order {order_id} processed successfully"}

    # --- Stats ---

    async def get_recovery_stats(self, user_id: Optional[int] = None,
                                 connection_id: Optional[int] = None) -> Dict[str, Any]:
        base = select(SyncError, Connection.store_name).outerjoin(
            Connection, SyncError.connection_id == Connection.id
        )
        if user_id is not None:
            base = base.filter(Connection.user_id == user_id)
        if connection_id is not None:
            base = base.filter(SyncError.connection_id == connection_id)

        rows = (await self.db_session.execute(
            base.order_by(SyncError.created_at.desc(), SyncError.id.desc())
        )).all()

        total = len(rows)
        resolved = sum(1 for error, _ in rows if error.resolved)
        recent: List[Dict[str, Any]] = [
            {
                'id': error.id,
                'type': error.error_type,
                'message': error.error_message,
                'created_at': error.created_at,
                'store_name': store_name,
                'recovery_attempts': error.recovery_attempts,
            }
            for error, store_name in rows if not error.resolved
        ][:10]

        return {
            'total': total,
            'resolved': resolved,
            'unresolved': total - resolved,
            'recovery_rate': f"{(resolved / total * 100):.2f}%" if total else '0%',
            'recent_errors': recent,
        }
