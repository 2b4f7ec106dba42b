"""
Analytics Routes
================
"""

from fastapi import APIRouter, Depends, Query
from typing import Dict, Any

from ..services import ServiceRegistry
from ..dependencies import get_service_registry
from ..responses import APIResponse

router = APIRouter()


@router.get("/dashboard", response_model=Dict[str, Any])
async def get_dashboard(
    date_range: str = Query('30d', pattern=r'^\d+d?$'),
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    """
    Dashboard analytics

    **Query Parameters:**
    - date_range: 7d, 30d, 90d (default: 30d, longest: 365d)
    """
    dashboard = await service_registry.analytics_service.get_dashboard(service_registry.current_user, date_range)
    return APIResponse.success(data=dashboard)


@router.get("/products", response_model=Dict[str, Any])
async def get_product_performance(service_registry: ServiceRegistry = Depends(get_service_registry)):
    performance = await service_registry.analytics_service.get_product_performance(service_registry.current_user)
    return APIResponse.success(data=performance)
