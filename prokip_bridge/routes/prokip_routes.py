"""
Prokip Routes
=============

Prokip login, location selection and catalogue passthroughs
"""

from fastapi import APIRouter, Depends
from typing import Dict, Any

from ..services import ServiceRegistry
from ..schemas import ProkipLoginSchema, ProkipLocationSchema, ProkipConfigSchema
from ..dependencies import get_service_registry, get_public_service_registry
from ..responses import APIResponse

router = APIRouter()


def _config_payload(config) -> Dict[str, Any]:
    return ProkipConfigSchema(
        user_id=config.user_id,
        location_id=config.location_id,
        api_url=config.api_url,
        expires_at=config.expires_at,
        authenticated=bool(config.token),
    ).model_dump()


@router.post("/login", response_model=Dict[str, Any])
async def login(
    login_data: ProkipLoginSchema,
    service_registry: ServiceRegistry = Depends(get_public_service_registry)
):
    """
    Authenticate against Prokip (OAuth password grant) and store the token

    The returned `token` is the bearer token for every other endpoint. It
    stays valid across Prokip token refreshes until logout.
    """
    config = await service_registry.prokip_service.login(
        login_data.username, login_data.password, login_data.user_id, login_data.location_id
    )
    return APIResponse.success(
        data={**_config_payload(config), 'token': config.api_token},
        message="Logged in to Prokip"
    )


@router.get("/config", response_model=Dict[str, Any])
async def get_config(service_registry: ServiceRegistry = Depends(get_service_registry)):
    config = await service_registry.prokip_service.get_config(service_registry.current_user)
    return APIResponse.success(data=_config_payload(config) if config else None)


@router.put("/location", response_model=Dict[str, Any])
async def set_location(
    location_data: ProkipLocationSchema,
    service_registry: ServiceRegistry = Depends(get_service_registry)
):
    config = await service_registry.prokip_service.set_location(
        service_registry.current_user, location_data.location_id
    )
    return APIResponse.success(data=_config_payload(config), message="Location updated")


@router.get("/locations", response_model=Dict[str, Any])
async def get_locations(service_registry: ServiceRegistry = Depends(get_service_registry)):
    locations = await service_registry.prokip_service.get_locations(service_registry.current_user)
    return APIResponse.success(data=locations)


@router.get("/products", response_model=Dict[str, Any])
async def get_products(service_registry: ServiceRegistry = Depends(get_service_registry)):
    products = await service_registry.prokip_service.get_products(service_registry.current_user)
    return APIResponse.success(data=products)


@router.get("/inventory", response_model=Dict[str, Any])
async def get_inventory(service_registry: ServiceRegistry = Depends(get_service_registry)):
    inventory = await service_registry.prokip_service.get_inventory(service_registry.current_user)
    return APIResponse.success(data=inventory)


@router.post("/logout", response_model=Dict[str, Any])
async def logout(service_registry: ServiceRegistry = Depends(get_service_registry)):
    await service_registry.prokip_service.logout(service_registry.current_user)
    return APIResponse.success(message="Logged out of Prokip")
