"""
Order / Sell Mapping
====================

Pure functions translating between WooCommerce orders and Prokip sells.
Products are matched by SKU on both sides.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

# Invoice prefixes of sells created from store orders; never echo these back
STORE_INVOICE_PREFIXES = ('WC-', 'WOO-')
WOO_INVOICE_PREFIX = 'WC-'

PROKIP_DATETIME_FORMAT = '%Y-%m-%d %H:%M:%S'

DEFAULT_CONTACT_ID = 1


def index_by_sku(products: Iterable[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """First product wins on duplicate SKUs."""
    indexed: Dict[str, Dict[str, Any]] = {}
    for product in products:
        sku = product.get('sku')
        if sku and sku not in indexed:
            indexed[sku] = product
    return indexed


def to_float(value: Any, default: float = 0.0) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_int(value: Any, default: int = 0) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def parse_woo_datetime(value: Optional[str]) -> Optional[datetime]:
    """WooCommerce dates are ISO 8601 (`2024-05-01T10:22:03`)."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        return None
    return parsed.replace(tzinfo=None)


def parse_prokip_datetime(value: Optional[str]) -> Optional[datetime]:
    """Prokip dates are `YYYY-MM-DD HH:MM:SS`; ISO strings are accepted too."""
    if not value:
        return None
    try:
        return datetime.strptime(str(value)[:19], PROKIP_DATETIME_FORMAT)
    except ValueError:
        return parse_woo_datetime(value)


def format_prokip_datetime(value: Optional[datetime]) -> str:
    return (value or datetime.utcnow()).strftime(PROKIP_DATETIME_FORMAT)


def resolve_variation_id(prokip_product: Dict[str, Any]):
    """
    Pick the variation id Prokip expects on a sell line.

    Single products carry one DUMMY variation; variable products use the first
    variation of each variation group, then the flat `variations` list. The
    product id is the fallback.
    """
    groups = prokip_product.get('product_variations') or []

    if prokip_product.get('type') == 'variable':
        for group in groups:
            variations = group.get('variations') or []
            if variations and variations[0].get('variation_id') is not None:
                return variations[0]['variation_id']
        flat = prokip_product.get('variations') or []
        if flat and flat[0].get('variation_id') is not None:
            return flat[0]['variation_id']
        return prokip_product.get('id')

    for group in groups:
        for variation in group.get('variations') or []:
            if variation.get('variation_id') is not None:
                return variation['variation_id']
    return prokip_product.get('id')


def product_sell_price(prokip_product: Dict[str, Any]) -> float:
    """Selling price including tax from the first variation."""
    for group in prokip_product.get('product_variations') or []:
        for variation in group.get('variations') or []:
            if variation.get('sell_price_inc_tax') is not None:
                return to_float(variation['sell_price_inc_tax'])
    return 0.0


def stock_quantity(item: Dict[str, Any]) -> int:
    """Stock report rows use `stock` or `qty_available`."""
    return to_int(item.get('stock') or item.get('qty_available') or 0)


def map_line_items(order: Dict[str, Any], products_by_sku: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sell lines for every order line item whose SKU exists in Prokip."""
    lines = []
    for item in order.get('line_items') or []:
        sku = item.get('sku')
        if not sku:
            continue
        prokip_product = products_by_sku.get(sku)
        if not prokip_product:
            continue

        quantity = to_int(item.get('quantity'), 0)
        if quantity <= 0:
            continue
        unit_price = to_float(item.get('price'))
        tax_per_unit = to_float(item.get('total_tax')) / quantity

        lines.append({
            'product_id': prokip_product.get('id'),
            'variation_id': resolve_variation_id(prokip_product),
            'quantity': quantity,
            'unit_price': unit_price,
            'unit_price_inc_tax': round(unit_price + tax_per_unit, 4),
            'sku': sku,
            'name': item.get('name') or prokip_product.get('name') or 'Product',
        })
    return lines


def map_order_to_sell(order: Dict[str, Any], products_by_sku: Dict[str, Dict[str, Any]],
                      location_id) -> Optional[Dict[str, Any]]:
    """
    Build the Prokip `sell` request body for a WooCommerce order.

    Returns None when no line item maps to a Prokip product.
    """
    lines = map_line_items(order, products_by_sku)
    if not lines:
        return None

    order_id = order.get('id') or order.get('number')
    final_total = to_float(order.get('total'))
    created = parse_woo_datetime(order.get('date_created') or order.get('created_at'))

    return {
        'sells': [{
            'location_id': to_int(location_id),
            'contact_id': DEFAULT_CONTACT_ID,
            'transaction_date': format_prokip_datetime(created),
            'invoice_no': f"{WOO_INVOICE_PREFIX}{order_id}",
            'status': 'final',
            'type': 'sell',
            'payment_status': 'paid',
            'final_total': final_total,
            'products': [
                {key: line[key] for key in ('product_id', 'variation_id', 'quantity', 'unit_price', 'unit_price_inc_tax')}
                for line in lines
            ],
            'payments': [{
                'method': 'cash',
                'amount': final_total,
                'paid_on': format_prokip_datetime(None),
            }],
        }]
    }


def map_refund_to_return_products(order: Dict[str, Any],
                                  products_by_sku: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Return lines for a refunded or cancelled order.

    The full ordered quantity is returned unless a line item carries an
    explicit `refunded_quantity`.
    """
    products = []
    for line in map_line_items(order, products_by_sku):
        quantity = line['quantity']
        for item in order.get('line_items') or []:
            if item.get('sku') == line['sku'] and item.get('refunded_quantity') is not None:
                quantity = abs(to_int(item['refunded_quantity'])) or quantity
        products.append({
            'product_id': line['product_id'],
            'variation_id': line['variation_id'],
            'quantity': quantity,
            'unit_price_inc_tax': line['unit_price_inc_tax'],
        })
    return products


def is_store_originated(sale: Dict[str, Any]) -> bool:
    invoice_no = str(sale.get('invoice_no') or '')
    return invoice_no.startswith(STORE_INVOICE_PREFIXES)


def sale_lines(sale: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Sell lines as (sku, quantity) dicts.

    The connector returns either `products` with a `sku`, or `sell_lines`
    with the SKU under `product.sku` / `variations.sub_sku`.
    """
    lines = []
    for line in sale.get('products') or sale.get('sell_lines') or []:
        sku = line.get('sku') or (line.get('variations') or {}).get('sub_sku') or (line.get('product') or {}).get('sku')
        quantity = to_int(line.get('quantity') or line.get('quantity_sold') or 0)
        lines.append({'sku': sku, 'quantity': quantity})
    return lines


def customer_name(order: Dict[str, Any]) -> str:
    billing = order.get('billing') or {}
    name = ' '.join(part for part in (billing.get('first_name'), billing.get('last_name')) if part)
    return name or 'Customer'
