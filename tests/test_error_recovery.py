import pytest
from sqlalchemy import select

from prokip_bridge.models import InventoryCache, SalesLog, SyncError
from prokip_bridge.services.exceptions import AuthenticationError, WooCommerceAPIError
from prokip_bridge.services.sync.error_recovery_service import (
    classify_error, requires_manual_intervention,
    NETWORK_TIMEOUT, RATE_LIMIT, AUTH_ERROR, PRODUCT_NOT_FOUND,
    INVENTORY_SYNC_ERROR, ORDER_PROCESSING_ERROR, UNKNOWN_ERROR,
)

from conftest import prokip_product, woo_order, USER_ID


@pytest.mark.parametrize('error_type, message, expected', [
    ('order', 'request timeout: POST sell', NETWORK_TIMEOUT),
    ('inventory', 'network error: failed to connect', NETWORK_TIMEOUT),
    ('order', '429 error on GET sell: Too Many Requests', RATE_LIMIT),
    ('product', 'Unauthorized', AUTH_ERROR),
    ('inventory', 'SKU not found: SKU-1', PRODUCT_NOT_FOUND),
    ('inventory', 'stock write rejected', INVENTORY_SYNC_ERROR),
    ('order', 'sell rejected', ORDER_PROCESSING_ERROR),
    ('product', 'something odd', UNKNOWN_ERROR),
])
def test_classify_error(error_type, message, expected):
    assert classify_error(error_type, message) == expected


def test_manual_intervention_markers():
    assert requires_manual_intervention('Prokip token refresh failed: Invalid Credentials')
    assert requires_manual_intervention('Permission denied for this store')
    assert not requires_manual_intervention('Product not found in store: SKU-1')
    assert not requires_manual_intervention(None)


async def _add_error(session, connection_id, error_type, message, details):
    error = SyncError(connection_id=connection_id, error_type=error_type,
                      error_message=message, error_details=details)
    session.add(error)
    await session.commit()
    return error


async def test_inventory_error_is_recovered(session, registry, store_client, connection, sleeps):
    error = await _add_error(session, connection.id, 'inventory', 'Inventory sync failed: rejected',
                             {'operation': 'inventory_sync', 'sku': 'SKU-1', 'quantity': 4})
    store_client.find_product_by_sku.return_value = {'id': 11, 'sku': 'SKU-1'}

    result = await registry.error_recovery_service.recover(USER_ID)

    assert result['processed'] == 1
    assert result['recovered'] == 1
    assert result['results'][0]['attempts'] == 1
    assert sleeps == []
    store_client.update_product_stock.assert_called_once_with(11, 4)

    assert error.resolved is True
    assert error.auto_recovered is True
    assert error.recovery_attempts == 1
    assert error.error_details['operation'] == 'inventory_sync'
    assert error.error_details['recovery_strategy'] == INVENTORY_SYNC_ERROR

    cache = (await session.execute(select(InventoryCache))).scalars().one()
    assert cache.quantity == 4


async def test_retries_follow_backoff_schedule(session, registry, store_client, connection, sleeps):
    await _add_error(session, connection.id, 'inventory', 'Inventory sync failed: rejected',
                     {'operation': 'inventory_sync', 'sku': 'SKU-1', 'quantity': 4})
    store_client.find_product_by_sku.return_value = {'id': 11, 'sku': 'SKU-1'}
    store_client.update_product_stock.side_effect = [
        WooCommerceAPIError('503 error on PUT products/11: busy', status_code=503),
        WooCommerceAPIError('503 error on PUT products/11: busy', status_code=503),
        {'id': 11},
    ]

    result = await registry.error_recovery_service.recover(USER_ID)

    assert result['results'][0]['success'] is True
    assert result['results'][0]['attempts'] == 3
    assert sleeps == [5, 10]


async def test_stock_deduction_error_is_replayed(session, registry, store_client, connection):
    await _add_error(session, connection.id, 'inventory', 'Stock deduction failed: busy',
                     {'operation': 'stock_deduction', 'sku': 'SKU-1', 'quantity': 2, 'sale_id': '55'})
    store_client.find_product_by_sku.return_value = {'id': 11, 'sku': 'SKU-1'}
    store_client.get_product.return_value = {'id': 11, 'stock_quantity': 5}

    result = await registry.error_recovery_service.recover(USER_ID)

    assert result['recovered'] == 1
    store_client.update_product_stock.assert_called_once_with(11, 3)


async def test_exhausted_retries_escalate(session, registry, store_client, connection, sleeps):
    error = await _add_error(session, connection.id, 'inventory', 'Inventory sync failed: rejected',
                             {'operation': 'inventory_sync', 'sku': 'SKU-1', 'quantity': 4})

    result = await registry.error_recovery_service.recover(USER_ID)

    outcome = result['results'][0]
    assert outcome['success'] is False
    assert outcome['requires_manual_intervention'] is False
    assert outcome['next_steps'] == 'Will retry automatically'
    assert sleeps == [5, 10]

    assert error.resolved is False
    assert error.error_details['escalation_reason'] == 'Product not found in store: SKU-1'
    # Escalation keeps the original details for the next attempt
    assert error.error_details['sku'] == 'SKU-1'


async def test_auth_failure_needs_manual_intervention(session, registry, prokip_client, prokip_config,
                                                      connection, sleeps):
    await _add_error(session, connection.id, 'order', '401 error on POST sell: Unauthorized',
                     {'operation': 'order_processing', 'order_id': '101'})
    prokip_client.refresh_token.side_effect = AuthenticationError('Invalid Prokip credentials')

    result = await registry.error_recovery_service.recover(USER_ID)

    outcome = result['results'][0]
    assert outcome['strategy'] == AUTH_ERROR
    assert outcome['requires_manual_intervention'] is True
    assert outcome['next_steps'] == 'Please re-authenticate the store connection in Settings'
    assert sleeps == [5]


async def test_unknown_errors_are_not_retried(session, registry, connection):
    error = await _add_error(session, connection.id, 'product', 'something odd', {})

    result = await registry.error_recovery_service.recover(USER_ID, error.id)

    assert result['results'][0]['requires_manual_intervention'] is True
    assert error.recovery_attempts == 0


async def test_order_error_is_reprocessed(session, registry, store_client, prokip_client,
                                          prokip_config, connection):
    await _add_error(session, connection.id, 'order', 'Order processing failed: sell rejected',
                     {'operation': 'order_processing', 'order_id': '103', 'platform': 'woocommerce'})
    store_client.get_order.return_value = woo_order(order_id=103)
    prokip_client.get_products.return_value = [prokip_product()]

    result = await registry.error_recovery_service.recover(USER_ID)

    assert result['recovered'] == 1
    store_client.get_order.assert_called_once_with('103')
    log = (await session.execute(select(SalesLog))).scalars().one()
    assert log.order_id == '103'


async def test_recovery_is_scoped_to_user(session, registry, connection):
    await _add_error(session, None, 'product', 'orphaned failure', {})

    result = await registry.error_recovery_service.recover(USER_ID)

    assert result['processed'] == 0


async def test_recovery_stats(session, registry, connection):
    resolved = await _add_error(session, connection.id, 'inventory', 'old failure', {})
    resolved.resolved = True
    await _add_error(session, connection.id, 'order', 'sell rejected', {})
    await _add_error(session, connection.id, 'inventory', 'stock write rejected', {})
    await session.commit()

    stats = await registry.error_recovery_service.get_recovery_stats(USER_ID)

    assert stats['total'] == 3
    assert stats['resolved'] == 1
    assert stats['unresolved'] == 2
    assert stats['recovery_rate'] == '33.33%'
    assert len(stats['recent_errors']) == 2
    assert stats['recent_errors'][0]['store_name'] == 'Example Shop'


async def test_recovery_stats_without_errors(registry):
    stats = await registry.error_recovery_service.get_recovery_stats(USER_ID)
    assert stats['recovery_rate'] == '0%'
    assert stats['recent_errors'] == []
