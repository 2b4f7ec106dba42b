"""
Sync Routes
===========

Manual triggers for order, inventory and product synchronisation
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional

from ..services import ServiceRegistry
from ..schemas import OrderSyncRequestSchema, ProductSyncRequestSchema, SalesLogSchema
from ..dependencies import get_service_registry
from ..responses import APIResponse

router = APIRouter()


@router.post("/woocommerce", response_model=Dict[str, Any])
async def sync_woocommerce(
    sync_data: Optional[OrderSyncRequestSchema] = None,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Bidirectional order sync

    - WooCommerce completed/processing orders become Prokip sells
    - Prokip sells reduce WooCommerce stock
    """
    sync_data = sync_data or OrderSyncRequestSchema()
    result = await service_registry.order_sync_service.sync_woocommerce(
        service_registry.current_user,
        connection_id=sync_data.connection_id,
        lookback_days=sync_data.lookback_days
    )
    return APIResponse.success(data=result, message=result['message'])


@router.post("/inventory/poll", response_model=Dict[str, Any])
async def poll_inventory(service_registry: ServiceRegistry = Depends(get_service_registry)):
    result = await service_registry.inventory_sync_service.poll_prokip_stock(service_registry.current_user)
    return APIResponse.success(data=result, message="Stock poll completed")


@router.post("/inventory/{connection_id}", response_model=Dict[str, Any])
async def sync_inventory(
    connection_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Push every Prokip SKU's stock to the store, ignoring the cache"""
    result = await service_registry.inventory_sync_service.sync_inventory_to_store(
        service_registry.current_user, connection_id
    )
    return APIResponse.success(data=result, message="Inventory synced")


@router.get("/inventory/{connection_id}", response_model=Dict[str, Any])
async def get_inventory_logs(
    connection_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    logs = await service_registry.inventory_sync_service.get_inventory_logs(
        connection_id, service_registry.current_user
    )
    return APIResponse.success(data=[
        {
            'sku': log.sku,
            'product_id': log.product_id,
            'product_name': log.product_name,
            'quantity': log.quantity,
            'price': log.price,
            'last_synced': log.last_synced,
        }
        for log in logs
    ])


@router.post("/products/{connection_id}", response_model=Dict[str, Any])
async def sync_products(
    connection_id: int,
    product_data: ProductSyncRequestSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Seed catalogues by SKU

    - push: create Prokip products missing in the store
    - pull: create store products missing in Prokip
    """
    product_sync = service_registry.product_sync_service
    if product_data.method == 'push':
        result = await product_sync.push_products(service_registry.current_user, connection_id)
    else:
        result = await product_sync.pull_products(service_registry.current_user, connection_id)
    message = "Products pushed to store" if product_data.method == 'push' else "Products pulled into Prokip"
    return APIResponse.success(data=result, message=message)


@router.get("/products/{connection_id}/compare", response_model=Dict[str, Any])
async def compare_products(
    connection_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    rows = await service_registry.product_sync_service.compare_products(
        service_registry.current_user, connection_id
    )
    return APIResponse.success(data=rows)


@router.get("/logs", response_model=Dict[str, Any])
async def get_sales_logs(
    connection_id: Optional[int] = Query(None),
    source: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = await service_registry.order_sync_service.list_sales_logs(
        service_registry.current_user, connection_id=connection_id, source=source,
        page=page, per_page=per_page
    )
    return APIResponse.paginated(
        data=[SalesLogSchema.model_validate(log).model_dump() for log in result['items']],
        total=result['total'],
        page=page,
        per_page=result['per_page'],
        message="Sales logs retrieved successfully"
    )
