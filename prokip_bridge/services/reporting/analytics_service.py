"""
Analytics Service
=================

Dashboard figures computed from SalesLog, InventoryLog and Connection rows.
"""

from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService
from ...models import Connection, SalesLog, InventoryLog


MAX_DATE_RANGE_DAYS = 365


def parse_date_range(date_range: Optional[str], default: int = 30) -> int:
    """
    '7d' / '30d' / '90d' -> days; anything unparseable falls back to the default.

    Ranges longer than a year are clamped to MAX_DATE_RANGE_DAYS.
    """
    try:
        days = int(str(date_range or '').strip().lower().rstrip('d'))
    except ValueError:
        return default
    if days <= 0:
        return default
    return min(days, MAX_DATE_RANGE_DAYS)


def stock_status(quantity: int, threshold: int) -> str:
    if quantity <= 0:
        return 'out_of_stock'
    if quantity < threshold:
        return 'low_stock'
    return 'in_stock'


class AnalyticsService(BaseService):
    """Read-only reporting over the sync tables"""

    def __init__(self, db_session: AsyncSession, config: Dict[str, Any], current_user: Optional[int] = None):
        super().__init__(db_session, current_user)
        self.low_stock_threshold = int(config.get('LOW_STOCK_THRESHOLD', 10))

    async def _connections(self, user_id: int) -> List[Connection]:
        result = await self.db_session.execute(
            select(Connection).filter(Connection.user_id == user_id).order_by(Connection.id)
        )
        return list(result.scalars().all())

    async def _inventory(self, connection_ids: List[int]) -> List[InventoryLog]:
        if not connection_ids:
            return []
        result = await self.db_session.execute(
            select(InventoryLog).filter(InventoryLog.connection_id.in_(connection_ids))
            .order_by(InventoryLog.last_synced.desc())
        )
        return list(result.scalars().all())

    async def get_dashboard(self, user_id: int, date_range: str = '30d') -> Dict[str, Any]:
        """
        Overview, charts and status blocks for the user's stores.

        `overview.low_stock_items` counts every item below the threshold, out of
        stock included; `inventory_status` splits those into `low_stock` and
        `out_of_stock`.
        """
        days = parse_date_range(date_range)
        start = self._now() - timedelta(days=days)

        connections = await self._connections(user_id)
        connection_ids = [c.id for c in connections]

        sales: List[SalesLog] = []
        if connection_ids:
            result = await self.db_session.execute(
                select(SalesLog).filter(SalesLog.connection_id.in_(connection_ids), SalesLog.order_date >= start)
                .order_by(SalesLog.order_date.desc())
            )
            sales = list(result.scalars().all())
        inventory = await self._inventory(connection_ids)

        total_revenue = sum(s.total_amount or 0 for s in sales)
        return {
            'date_range': f"{days}d",
            'overview': {
                'total_revenue': round(total_revenue, 2),
                'total_orders': len(sales),
                'average_order_value': round(total_revenue / len(sales), 2) if sales else 0,
                'total_products': len(inventory),
                'connected_stores': len(connections),
                'low_stock_items': sum(1 for i in inventory if (i.quantity or 0) < self.low_stock_threshold),
            },
            'sales_by_platform': self._sales_by_platform(sales),
            'revenue_chart': self._revenue_chart(sales, days),
            'top_products': self._top_products(inventory),
            'recent_activity': self._recent_activity(sales, connections),
            'inventory_status': self._inventory_status(inventory),
            'sync_status': self._sync_status(connections),
        }

    @staticmethod
    def _sales_by_platform(sales: List[SalesLog]) -> Dict[str, Dict[str, Any]]:
        platforms: Dict[str, Dict[str, Any]] = {}
        for sale in sales:
            entry = platforms.setdefault(sale.source or 'unknown', {'orders': 0, 'revenue': 0.0, 'percentage': 0})
            entry['orders'] += 1
            entry['revenue'] += sale.total_amount or 0

        total = sum(p['revenue'] for p in platforms.values())
        for entry in platforms.values():
            entry['revenue'] = round(entry['revenue'], 2)
            entry['percentage'] = round(entry['revenue'] / total * 100, 1) if total else 0
        return platforms

    def _revenue_chart(self, sales: List[SalesLog], days: int) -> List[Dict[str, Any]]:
        today = self._now().date()
        by_day: Dict[str, Dict[str, Any]] = {}
        for offset in range(days - 1, -1, -1):
            key = (today - timedelta(days=offset)).isoformat()
            by_day[key] = {'date': key, 'revenue': 0.0, 'orders': 0}

        for sale in sales:
            if not sale.order_date:
                continue
            bucket = by_day.get(sale.order_date.date().isoformat())
            if bucket:
                bucket['revenue'] = round(bucket['revenue'] + (sale.total_amount or 0), 2)
                bucket['orders'] += 1
        return list(by_day.values())

    @staticmethod
    def _top_products(inventory: List[InventoryLog], limit: int = 10) -> List[Dict[str, Any]]:
        ranked = sorted(inventory, key=lambda i: i.price or 0, reverse=True)[:limit]
        return [
            {
                'name': i.product_name,
                'sku': i.sku,
                'current_stock': i.quantity,
                'price': i.price,
                'last_synced': i.last_synced,
            }
            for i in ranked
        ]

    @staticmethod
    def _recent_activity(sales: List[SalesLog], connections: List[Connection]) -> List[Dict[str, Any]]:
        activity = [
            {
                'type': 'sale',
                'message': f"New order {sale.order_number or sale.order_id} from {sale.source}",
                'timestamp': sale.order_date or sale.synced_at,
                'amount': sale.total_amount,
                'status': sale.status or 'completed',
            }
            for sale in sales[:5]
        ]
        for connection in connections:
            if connection.last_sync:
                activity.append({
                    'type': 'sync',
                    'message': f"Inventory synced with {connection.store_name or connection.store_url}",
                    'timestamp': connection.last_sync,
                    'status': 'success' if connection.sync_enabled else 'paused',
                })

        activity = [a for a in activity if a['timestamp'] is not None]
        activity.sort(key=lambda a: a['timestamp'], reverse=True)
        return activity[:10]

    def _inventory_status(self, inventory: List[InventoryLog]) -> Dict[str, int]:
        status = {'total': len(inventory), 'in_stock': 0, 'low_stock': 0, 'out_of_stock': 0}
        for item in inventory:
            status[stock_status(item.quantity or 0, self.low_stock_threshold)] += 1
        return status

    @staticmethod
    def _sync_status(connections: List[Connection]) -> Dict[str, Any]:
        last_syncs = [c.last_sync for c in connections if c.last_sync]
        return {
            'total': len(connections),
            'connected': sum(1 for c in connections if c.sync_enabled),
            'paused': sum(1 for c in connections if not c.sync_enabled),
            'error': sum(1 for c in connections if c.status == 'error'),
            'last_sync': max(last_syncs) if last_syncs else None,
        }

    async def get_product_performance(self, user_id: int) -> Dict[str, Any]:
        connections = await self._connections(user_id)
        inventory = await self._inventory([c.id for c in connections])

        products = []
        for item in inventory:
            quantity = item.quantity or 0
            products.append({
                'id': item.id,
                'sku': item.sku,
                'name': item.product_name,
                'current_stock': quantity,
                'price': item.price,
                'total_value': round(quantity * (item.price or 0), 2),
                'last_synced': item.last_synced,
                'stock_status': stock_status(quantity, self.low_stock_threshold),
            })
        products.sort(key=lambda p: p['total_value'], reverse=True)

        return {
            'products': products,
            'summary': {
                'total_products': len(products),
                'total_value': round(sum(p['total_value'] for p in products), 2),
                'low_stock_products': sum(1 for p in products if p['stock_status'] == 'low_stock'),
                'out_of_stock_products': sum(1 for p in products if p['stock_status'] == 'out_of_stock'),
            },
        }
