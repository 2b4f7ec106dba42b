from datetime import datetime

from prokip_bridge.services.sync.mapper import (
    index_by_sku, resolve_variation_id, map_line_items, map_order_to_sell,
    map_refund_to_return_products, is_store_originated, sale_lines, parse_prokip_datetime,
    parse_woo_datetime, stock_quantity, customer_name,
)

from conftest import prokip_product, woo_order


def test_index_by_sku_keeps_first_and_drops_blank():
    products = [{'id': 1, 'sku': 'A'}, {'id': 2, 'sku': 'A'}, {'id': 3, 'sku': ''}, {'id': 4}]
    indexed = index_by_sku(products)
    assert list(indexed) == ['A']
    assert indexed['A']['id'] == 1


def test_single_product_uses_its_variation():
    assert resolve_variation_id(prokip_product(variation_id=70)) == 70


def test_variable_product_uses_first_variation_of_group():
    product = {
        'id': 9,
        'type': 'variable',
        'product_variations': [
            {'variations': []},
            {'variations': [{'variation_id': 91}, {'variation_id': 92}]},
        ],
    }
    assert resolve_variation_id(product) == 91


def test_variation_falls_back_to_product_id():
    assert resolve_variation_id({'id': 5, 'type': 'single'}) == 5
    assert resolve_variation_id({'id': 6, 'type': 'variable', 'variations': []}) == 6


def test_line_items_include_tax_per_unit():
    lines = map_line_items(woo_order(quantity=2, price='10.00', total_tax='3.00'),
                           index_by_sku([prokip_product()]))
    assert len(lines) == 1
    line = lines[0]
    assert line['product_id'] == 7
    assert line['variation_id'] == 70
    assert line['quantity'] == 2
    assert line['unit_price'] == 10.0
    assert line['unit_price_inc_tax'] == 11.5


def test_order_to_sell_body():
    body = map_order_to_sell(woo_order(order_id=101), index_by_sku([prokip_product()]), '3')
    sell = body['sells'][0]
    assert sell['invoice_no'] == 'WC-101'
    assert sell['location_id'] == 3
    assert sell['status'] == 'final'
    assert sell['final_total'] == 23.0
    assert sell['payments'][0]['amount'] == 23.0
    assert sell['products'][0] == {
        'product_id': 7, 'variation_id': 70, 'quantity': 2, 'unit_price': 10.0, 'unit_price_inc_tax': 11.5
    }


def test_order_without_known_skus_maps_to_none():
    order = woo_order(sku='UNKNOWN')
    assert map_order_to_sell(order, index_by_sku([prokip_product()]), '1') is None

    order['line_items'] = [{'name': 'No SKU', 'quantity': 1, 'price': '5'}]
    assert map_order_to_sell(order, index_by_sku([prokip_product()]), '1') is None


def test_refund_uses_refunded_quantity_when_present():
    order = woo_order(quantity=3)
    products_by_sku = index_by_sku([prokip_product()])
    assert map_refund_to_return_products(order, products_by_sku)[0]['quantity'] == 3

    order['line_items'][0]['refunded_quantity'] = -1
    assert map_refund_to_return_products(order, products_by_sku)[0]['quantity'] == 1


def test_store_originated_invoices():
    assert is_store_originated({'invoice_no': 'WC-101'})
    assert is_store_originated({'invoice_no': 'WOO-7'})
    assert not is_store_originated({'invoice_no': 'INV-0042'})
    assert not is_store_originated({})


def test_sale_lines_read_both_shapes():
    assert sale_lines({'products': [{'sku': 'A', 'quantity': '2'}]}) == [{'sku': 'A', 'quantity': 2}]
    nested = {'sell_lines': [{'quantity': 4, 'variations': {'sub_sku': 'B'}}]}
    assert sale_lines(nested) == [{'sku': 'B', 'quantity': 4}]


def test_datetime_parsing():
    assert parse_prokip_datetime('2024-05-01 10:22:03') == datetime(2024, 5, 1, 10, 22, 3)
    assert parse_prokip_datetime('2024-05-01T10:22:03Z') == datetime(2024, 5, 1, 10, 22, 3)
    assert parse_prokip_datetime('not a date') is None
    assert parse_woo_datetime(None) is None


def test_stock_quantity_and_customer_name():
    assert stock_quantity({'stock': '12.0'}) == 12
    assert stock_quantity({'qty_available': 4}) == 4
    assert stock_quantity({}) == 0
    assert customer_name(woo_order()) == 'Ada Lovelace'
    assert customer_name({}) == 'Customer'
