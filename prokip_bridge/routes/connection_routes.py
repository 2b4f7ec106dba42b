"""
Connection Routes
=================

CRUD routes for store connections
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional

from ..services import ServiceRegistry
from ..schemas import (
    ConnectionSchema, ConnectionCreateSchema, ConnectionUpdateSchema, ConnectionTestSchema
)
from ..dependencies import get_service_registry
from ..responses import APIResponse

router = APIRouter()


def _serialize(connection) -> Dict[str, Any]:
    return ConnectionSchema.model_validate(connection).model_dump()


@router.get("", response_model=Dict[str, Any])
async def get_connections(
    platform: Optional[str] = Query(None),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    connections = await service_registry.connection_service.list_connections(
        service_registry.current_user, platform=platform
    )
    return APIResponse.success(
        data=[_serialize(c) for c in connections],
        message="Connections retrieved successfully"
    )


@router.post("", response_model=Dict[str, Any])
async def create_connection(
    connection_data: ConnectionCreateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Connect a WooCommerce store

    **Input validation:**
    - consumer_key/consumer_secret or woo_username/woo_app_password required
    - credentials are tested against the store before saving
    - store_url must be unique per user
    """
    connection = await service_registry.connection_service.create_connection(
        service_registry.current_user, connection_data
    )
    return APIResponse.success(data=_serialize(connection), message="Connection created successfully")


@router.post("/test", response_model=Dict[str, Any])
async def test_connection(
    connection_data: ConnectionTestSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    result = service_registry.connection_service.test_credentials(connection_data)
    return APIResponse.success(data=result, message="Store reachable and credentials valid")


@router.get("/status", response_model=Dict[str, Any])
async def get_status(service_registry: ServiceRegistry = Depends(get_service_registry)):
    status_summary = await service_registry.connection_service.get_status(service_registry.current_user)
    return APIResponse.success(data=status_summary)


@router.get("/{connection_id}", response_model=Dict[str, Any])
async def get_connection(
    connection_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    connection = await service_registry.connection_service.get_connection(
        connection_id, service_registry.current_user
    )
    return APIResponse.success(data=_serialize(connection))


@router.patch("/{connection_id}", response_model=Dict[str, Any])
async def update_connection(
    connection_id: int,
    connection_data: ConnectionUpdateSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Update store name, credentials or the sync_enabled toggle"""
    connection = await service_registry.connection_service.update_connection(
        connection_id, service_registry.current_user, connection_data
    )
    return APIResponse.success(data=_serialize(connection), message="Connection updated successfully")


@router.delete("/{connection_id}", response_model=Dict[str, Any])
async def delete_connection(
    connection_id: int,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    await service_registry.connection_service.delete_connection(connection_id, service_registry.current_user)
    return APIResponse.success(message="Connection deleted successfully")
