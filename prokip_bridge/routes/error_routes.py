"""
Error Routes
============

Sync error statistics and recovery triggers
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any, Optional

from ..services import ServiceRegistry
from ..schemas import RecoveryRequestSchema
from ..dependencies import get_service_registry
from ..responses import APIResponse

router = APIRouter()


@router.get("/stats", response_model=Dict[str, Any])
async def get_error_stats(
    connection_id: Optional[int] = Query(None),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    stats = await service_registry.error_recovery_service.get_recovery_stats(
        service_registry.current_user, connection_id
    )
    return APIResponse.success(data=stats)


@router.post("/recover", response_model=Dict[str, Any])
async def recover_errors(
    recovery_data: Optional[RecoveryRequestSchema] = None,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """Retry one unresolved error (`error_id`) or all of the caller's unresolved errors"""
    error_id = recovery_data.error_id if recovery_data else None
    result = await service_registry.error_recovery_service.recover(service_registry.current_user, error_id)
    return APIResponse.success(data=result, message="Error recovery completed")
