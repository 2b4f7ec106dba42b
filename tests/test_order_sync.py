import pytest
from sqlalchemy import select

from prokip_bridge.models import SalesLog, InventoryLog, SyncError
from prokip_bridge.services.exceptions import ConfigurationError, ProkipAPIError

from conftest import prokip_product, woo_order, prokip_sale, USER_ID


async def _sales_logs(session, source=None):
    query = select(SalesLog)
    if source:
        query = query.filter(SalesLog.source == source)
    return list((await session.execute(query)).scalars().all())


async def test_store_order_becomes_prokip_sell(session, registry, store_client, prokip_client,
                                               prokip_config, connection):
    store_client.get_orders.return_value = [woo_order(order_id=101, quantity=2)]
    prokip_client.get_products.return_value = [prokip_product()]
    prokip_client.create_sell.return_value = [{'id': 900}]
    session.add(InventoryLog(connection_id=connection.id, sku='SKU-1', quantity=5))
    await session.commit()

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    woo_to_prokip = result['connections'][0]['woo_to_prokip']
    assert woo_to_prokip['processed'] == 1
    assert woo_to_prokip['success'] == 1
    assert woo_to_prokip['stock_deducted'] == 2

    sell_body = prokip_client.create_sell.call_args[0][0]
    assert sell_body['sells'][0]['invoice_no'] == 'WC-101'

    logs = await _sales_logs(session, 'woocommerce')
    assert len(logs) == 1
    assert logs[0].order_id == '101'
    assert logs[0].prokip_sell_id == '900'
    assert logs[0].customer_name == 'Ada Lovelace'

    inventory = (await session.execute(select(InventoryLog))).scalars().one()
    assert inventory.quantity == 3


async def test_local_stock_never_goes_negative(session, registry, store_client, prokip_client,
                                               prokip_config, connection):
    store_client.get_orders.return_value = [woo_order(quantity=4)]
    prokip_client.get_products.return_value = [prokip_product()]
    session.add(InventoryLog(connection_id=connection.id, sku='SKU-1', quantity=1))
    await session.commit()

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    assert result['connections'][0]['woo_to_prokip']['stock_deducted'] == 1
    inventory = (await session.execute(select(InventoryLog))).scalars().one()
    assert inventory.quantity == 0


async def test_missing_inventory_row_is_created(session, registry, store_client, prokip_client,
                                                prokip_config, connection):
    store_client.get_orders.return_value = [woo_order()]
    prokip_client.get_products.return_value = [prokip_product()]

    await registry.order_sync_service.sync_woocommerce(USER_ID)

    inventory = (await session.execute(select(InventoryLog))).scalars().one()
    assert inventory.sku == 'SKU-1'
    assert inventory.quantity == 0
    assert inventory.product_name == 'Blue Mug'


async def test_synced_order_is_not_sent_twice(session, registry, store_client, prokip_client,
                                              prokip_config, connection):
    store_client.get_orders.return_value = [woo_order(order_id=101)]
    prokip_client.get_products.return_value = [prokip_product()]

    await registry.order_sync_service.sync_woocommerce(USER_ID)
    second = await registry.order_sync_service.sync_woocommerce(USER_ID)

    assert prokip_client.create_sell.call_count == 1
    assert second['connections'][0]['woo_to_prokip']['skipped'] == 1
    assert len(await _sales_logs(session)) == 1


async def test_order_without_matching_products_is_retried_later(session, registry, store_client,
                                                                 prokip_client, prokip_config, connection):
    store_client.get_orders.return_value = [woo_order(order_id=102, sku='UNKNOWN')]
    prokip_client.get_products.return_value = [prokip_product()]

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    assert result['connections'][0]['woo_to_prokip']['errors'] == ['Order 102: No valid products']
    prokip_client.create_sell.assert_not_called()
    assert await _sales_logs(session) == []


async def test_failed_sell_is_recorded(session, registry, store_client, prokip_client,
                                       prokip_config, connection):
    store_client.get_orders.return_value = [woo_order(order_id=103)]
    prokip_client.get_products.return_value = [prokip_product()]
    prokip_client.create_sell.side_effect = ProkipAPIError('500 error on POST sell: boom', status_code=500)

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    assert len(result['connections'][0]['woo_to_prokip']['errors']) == 1
    error = (await session.execute(select(SyncError))).scalars().one()
    assert error.error_type == 'order'
    assert error.error_details['order_id'] == '103'
    assert await _sales_logs(session) == []


async def test_prokip_sale_reduces_store_stock(session, registry, store_client, prokip_client,
                                               prokip_config, connection):
    prokip_client.get_sales.return_value = [prokip_sale(sale_id=55, quantity=3)]
    store_client.get_products.return_value = [{'id': 11, 'sku': 'SKU-1', 'stock_quantity': 10}]
    store_client.get_product.return_value = {'id': 11, 'stock_quantity': 10}

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    prokip_to_woo = result['connections'][0]['prokip_to_woo']
    assert prokip_to_woo['success'] == 1
    assert prokip_to_woo['stock_updated'] == 3
    store_client.update_product_stock.assert_called_once_with(11, 7)

    logs = await _sales_logs(session, 'prokip')
    assert [log.order_id for log in logs] == ['55']
    assert logs[0].order_number == 'INV-55'


async def test_store_stock_floors_at_zero(registry, store_client, prokip_client, prokip_config, connection):
    prokip_client.get_sales.return_value = [prokip_sale(quantity=3)]
    store_client.get_products.return_value = [{'id': 11, 'sku': 'SKU-1'}]
    store_client.get_product.return_value = {'id': 11, 'stock_quantity': 1}

    await registry.order_sync_service.sync_woocommerce(USER_ID)

    store_client.update_product_stock.assert_called_once_with(11, 0)


async def test_store_originated_and_logged_sales_are_skipped(session, registry, store_client, prokip_client,
                                                             prokip_config, connection):
    session.add(SalesLog(connection_id=connection.id, source='prokip', order_id='56'))
    await session.commit()
    prokip_client.get_sales.return_value = [
        prokip_sale(sale_id=54, invoice_no='WC-101'),
        prokip_sale(sale_id=56),
    ]
    store_client.get_products.return_value = [{'id': 11, 'sku': 'SKU-1'}]

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    assert result['connections'][0]['prokip_to_woo']['skipped'] == 2
    store_client.update_product_stock.assert_not_called()


async def test_unmatched_sku_is_counted_as_skipped(registry, store_client, prokip_client,
                                                   prokip_config, connection):
    prokip_client.get_sales.return_value = [prokip_sale(sku='NOT-IN-STORE')]

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    prokip_to_woo = result['connections'][0]['prokip_to_woo']
    assert prokip_to_woo['skipped'] == 1
    assert prokip_to_woo['stock_updated'] == 0
    store_client.update_product_stock.assert_not_called()


async def test_sales_fall_back_to_unfiltered_request(registry, store_client, prokip_client,
                                                     prokip_config, connection):
    prokip_client.get_sales.side_effect = [
        ProkipAPIError('400 error on GET sell: bad date', status_code=400),
        [prokip_sale(sale_id=60), prokip_sale(sale_id=61, days_ago=30)],
    ]
    store_client.get_products.return_value = [{'id': 11, 'sku': 'SKU-1'}]
    store_client.get_product.return_value = {'id': 11, 'stock_quantity': 10}

    result = await registry.order_sync_service.sync_woocommerce(USER_ID)

    assert prokip_client.get_sales.call_count == 2
    assert result['connections'][0]['prokip_to_woo']['processed'] == 1


async def test_sync_updates_last_sync(registry, prokip_config, connection):
    assert connection.last_sync is None
    await registry.order_sync_service.sync_woocommerce(USER_ID)
    assert connection.last_sync is not None


async def test_sync_requires_prokip_config(registry, connection):
    with pytest.raises(ConfigurationError):
        await registry.order_sync_service.sync_woocommerce(USER_ID)


async def test_sync_requires_a_connection(registry, prokip_config):
    with pytest.raises(ConfigurationError):
        await registry.order_sync_service.sync_woocommerce(USER_ID)


async def test_sales_logs_are_paginated(session, registry, connection):
    for order_id in range(5):
        session.add(SalesLog(connection_id=connection.id, source='woocommerce', order_id=str(order_id)))
    await session.commit()

    page = await registry.order_sync_service.list_sales_logs(USER_ID, page=2, per_page=2)

    assert page['total'] == 5
    assert len(page['items']) == 2
