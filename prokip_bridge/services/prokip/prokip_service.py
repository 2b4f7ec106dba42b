"""
Prokip Service
==============

Token lifecycle and per-user configuration for the Prokip connector API.
"""

import secrets
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, transactional
from ..exceptions import AuthenticationError, ConfigurationError, ExternalServiceError
from ..integration import ProkipClient
from ...models import ProkipConfig

ProkipClientFactory = Callable[[Optional[str]], ProkipClient]


class ProkipService(BaseService):
    """Prokip authentication, token refresh and catalogue lookups"""

    def __init__(self, db_session: AsyncSession, config: Dict[str, Any], current_user: Optional[int] = None,
                 client_factory: Optional[ProkipClientFactory] = None):
        super().__init__(db_session, current_user)
        self.config = config
        self.api_url = config.get('PROKIP_API_URL', 'https://api.prokip.africa')
        self.client_factory = client_factory or self._default_client

    def _default_client(self, token: Optional[str] = None) -> ProkipClient:
        return ProkipClient(
            self.api_url, token,
            timeout=self.config.get('HTTP_TIMEOUT', 15),
            max_retries=self.config.get('HTTP_MAX_RETRIES', 3),
        )

    @property
    def _oauth_client(self):
        return self.config.get('PROKIP_CLIENT_ID', ''), self.config.get('PROKIP_CLIENT_SECRET', '')

    # --- Config ---

    async def get_config(self, user_id: int) -> Optional[ProkipConfig]:
        result = await self.db_session.execute(select(ProkipConfig).filter(ProkipConfig.user_id == user_id))
        return result.scalars().first()

    async def find_user_by_token(self, token: str) -> Optional[int]:
        result = await self.db_session.execute(select(ProkipConfig).filter(ProkipConfig.api_token == token))
        config = result.scalars().first()
        return config.user_id if config else None

    async def require_config(self, user_id: int) -> ProkipConfig:
        """Config with a token and a location, as the sync services need."""
        config = await self.get_config(user_id)
        if not config or not config.token or not config.location_id:
            raise ConfigurationError("Prokip configuration not found. Log in and select a location first.")
        return config

    @transactional
    async def save_config(self, token_data: Dict[str, Any], user_id: int,
                          location_id: Optional[str] = None) -> ProkipConfig:
        expires_in = int(token_data.get('expires_in') or 3600)
        config = await self.get_config(user_id)
        if config is None:
            config = ProkipConfig(user_id=user_id, api_url=self.api_url)
            self.db_session.add(config)
        if not config.api_token:
            config.api_token = secrets.token_urlsafe(32)

        config.token = token_data['access_token']
        config.refresh_token = token_data.get('refresh_token') or config.refresh_token
        config.expires_at = self._now() + timedelta(seconds=expires_in)
        if location_id is not None:
            config.location_id = str(location_id)

        await self.db_session.flush()
        self.logger.info(f"Saved Prokip config for user {user_id}")
        return config

    async def login(self, username: str, password: str, user_id: int,
                    location_id: Optional[str] = None) -> ProkipConfig:
        client_id, client_secret = self._oauth_client
        token_data = self.client_factory(None).authenticate(username, password, client_id, client_secret)
        return await self.save_config(token_data, user_id, location_id)

    @transactional
    async def set_location(self, user_id: int, location_id: str) -> ProkipConfig:
        config = await self.get_config(user_id)
        if not config:
            raise ConfigurationError("Log in to Prokip before selecting a location")
        config.location_id = str(location_id)
        return config

    @transactional
    async def logout(self, user_id: int) -> bool:
        config = await self.get_config(user_id)
        if config:
            await self.db_session.delete(config)
        return True

    # --- Tokens ---

    async def get_valid_token(self, user_id: int) -> Optional[str]:
        """Stored token, refreshed first when expired; None when unusable."""
        config = await self.get_config(user_id)
        if not config or not config.token:
            self.logger.warning(f"No Prokip config found for user {user_id}")
            return None

        if config.expires_at and self._now() >= config.expires_at:
            if not config.refresh_token:
                return None
            return await self.refresh(user_id)

        return config.token

    async def refresh(self, user_id: int) -> Optional[str]:
        config = await self.get_config(user_id)
        if not config or not config.refresh_token:
            return None
        client_id, client_secret = self._oauth_client
        try:
            token_data = self.client_factory(None).refresh_token(config.refresh_token, client_id, client_secret)
        except (AuthenticationError, ExternalServiceError) as e:
            self.logger.error(f"Failed to refresh Prokip token for user {user_id}: {e.message}")
            return None
        await self.save_config(token_data, user_id)
        return token_data['access_token']

    async def get_client(self, user_id: int) -> ProkipClient:
        token = await self.get_valid_token(user_id)
        if not token:
            raise AuthenticationError("Not authenticated with Prokip. Please log in.")
        return self.client_factory(token)

    # --- Catalogue passthroughs ---

    async def get_locations(self, user_id: int) -> List[Dict[str, Any]]:
        return (await self.get_client(user_id)).get_business_locations()

    async def get_products(self, user_id: int) -> List[Dict[str, Any]]:
        config = await self.get_config(user_id)
        client = await self.get_client(user_id)
        return client.get_products(location_id=config.location_id if config else None)

    async def get_inventory(self, user_id: int) -> List[Dict[str, Any]]:
        config = await self.get_config(user_id)
        client = await self.get_client(user_id)
        return client.get_stock_report(location_id=config.location_id if config else None)
