"""
Connection Service
==================

CRUD for store connections plus construction of authenticated store clients.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import select, delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..base import BaseService, transactional
from ..exceptions import (
    ConflictError, NotFoundError, ValidationError, UnsupportedPlatformError, WooCommerceAPIError
)
from ..integration import WooCommerceClient, normalize_store_url, store_host
from .credential_cipher import CredentialCipher
from ...models import Connection, SalesLog, InventoryLog, InventoryCache, SyncError, WebhookEvent
from ...schemas import ConnectionCreateSchema, ConnectionUpdateSchema

StoreClientFactory = Callable[[str, str, str], WooCommerceClient]


class ConnectionService(BaseService):
    """Persisted store credentials and sync flags"""

    def __init__(self, db_session: AsyncSession, config: Dict[str, Any], current_user: Optional[int] = None,
                 store_client_factory: Optional[StoreClientFactory] = None):
        super().__init__(db_session, current_user)
        self.config = config
        self.cipher = CredentialCipher(config.get('ENCRYPTION_KEY'))
        self.store_client_factory = store_client_factory or self._default_store_client

    def _default_store_client(self, store_url: str, username: str, password: str) -> WooCommerceClient:
        return WooCommerceClient(
            store_url, username, password,
            timeout=self.config.get('HTTP_TIMEOUT', 15),
            max_retries=self.config.get('HTTP_MAX_RETRIES', 3),
        )

    # --- Clients ---

    def credentials(self, connection: Connection) -> Tuple[str, str]:
        """Decrypted (username, password) pair for HTTP Basic auth."""
        if connection.consumer_key and connection.consumer_secret:
            return self.cipher.decrypt(connection.consumer_key), self.cipher.decrypt(connection.consumer_secret)
        if connection.woo_username and connection.woo_app_password:
            return connection.woo_username, self.cipher.decrypt(connection.woo_app_password)
        raise ValidationError(f"Connection {connection.id} has no WooCommerce credentials")

    def get_store_client(self, connection: Connection) -> WooCommerceClient:
        if connection.platform != 'woocommerce':
            raise UnsupportedPlatformError(connection.platform)
        username, password = self.credentials(connection)
        return self.store_client_factory(connection.store_url, username, password)

    @staticmethod
    def _auth_pair(data) -> Tuple[str, str]:
        if data.consumer_key and data.consumer_secret:
            return data.consumer_key, data.consumer_secret
        return data.woo_username, data.woo_app_password

    # --- Queries ---

    async def list_connections(self, user_id: int, platform: Optional[str] = None,
                               sync_enabled_only: bool = False) -> List[Connection]:
        query = select(Connection).filter(Connection.user_id == user_id)
        if platform:
            query = query.filter(Connection.platform == platform)
        if sync_enabled_only:
            query = query.filter(Connection.sync_enabled.is_(True), Connection.status == 'connected')
        result = await self.db_session.execute(query.order_by(Connection.id))
        return list(result.scalars().all())

    async def get_connection(self, connection_id: int, user_id: int) -> Connection:
        connection = await self._get_or_404(Connection, connection_id)
        if connection.user_id != user_id:
            raise NotFoundError('Connection', connection_id)
        return connection

    async def find_by_store_url(self, store_url: str, platform: str = 'woocommerce') -> Optional[Connection]:
        """Match on scheme-less host so http/https and trailing slashes don't matter."""
        target = store_host(store_url)
        result = await self.db_session.execute(select(Connection).filter(Connection.platform == platform))
        for connection in result.scalars().all():
            if store_host(connection.store_url) == target:
                return connection
        return None

    async def get_status(self, user_id: int) -> Dict[str, Any]:
        connections = await self.list_connections(user_id)
        return {
            'total': len(connections),
            'connected': sum(1 for c in connections if c.status == 'connected'),
            'sync_enabled': sum(1 for c in connections if c.sync_enabled),
            'connections': [
                {
                    'id': c.id,
                    'platform': c.platform,
                    'store_name': c.store_name,
                    'store_url': c.store_url,
                    'status': c.status,
                    'sync_enabled': c.sync_enabled,
                    'last_sync': c.last_sync,
                }
                for c in connections
            ],
        }

    # --- Commands ---

    def test_credentials(self, data) -> Dict[str, Any]:
        """Probe the store with the given credentials."""
        store_url = normalize_store_url(data.store_url)
        username, password = self._auth_pair(data)
        client = self.store_client_factory(store_url, username, password)
        try:
            client.test_connection()
        except WooCommerceAPIError as e:
            if e.status_code in (401, 403):
                raise ValidationError("WooCommerce rejected the credentials", field='consumer_key')
            raise
        return {'success': True, 'store_url': store_url}

    @transactional
    async def create_connection(self, user_id: int, data: ConnectionCreateSchema) -> Connection:
        store_url = normalize_store_url(data.store_url)

        existing = await self.db_session.execute(
            select(Connection).filter(Connection.user_id == user_id, Connection.store_url == store_url)
        )
        if existing.scalars().first():
            raise ConflictError(f"A connection for {store_url} already exists", 'Connection')

        self.test_credentials(data)

        connection = Connection(
            user_id=user_id,
            platform=data.platform,
            store_name=data.store_name or store_host(store_url),
            store_url=store_url,
            consumer_key=self.cipher.encrypt(data.consumer_key),
            consumer_secret=self.cipher.encrypt(data.consumer_secret),
            woo_username=data.woo_username,
            woo_app_password=self.cipher.encrypt(data.woo_app_password),
            status='connected',
            sync_enabled=data.sync_enabled,
        )
        self.db_session.add(connection)
        await self.db_session.flush()

        webhook_url = self.config.get('WEBHOOK_URL')
        if data.register_webhooks and webhook_url:
            created = self.get_store_client(connection).register_webhooks(
                webhook_url, self.config.get('WOO_WEBHOOK_SECRET', '')
            )
            self.logger.info(f"Registered webhooks {created} for {store_url}")

        self.logger.info(f"Created {connection.platform} connection {connection.id} for user {user_id}")
        return connection

    @transactional
    async def update_connection(self, connection_id: int, user_id: int, data: ConnectionUpdateSchema) -> Connection:
        connection = await self.get_connection(connection_id, user_id)
        values = data.model_dump(exclude_unset=True)

        for field in ('consumer_key', 'consumer_secret', 'woo_app_password'):
            if values.get(field):
                values[field] = self.cipher.encrypt(values[field])

        for key, value in values.items():
            setattr(connection, key, value)
        await self.db_session.flush()
        return connection

    @transactional
    async def delete_connection(self, connection_id: int, user_id: int) -> bool:
        connection = await self.get_connection(connection_id, user_id)
        # SQLite does not enforce ON DELETE without PRAGMA foreign_keys
        for model in (SalesLog, InventoryLog, InventoryCache, SyncError):
            await self.db_session.execute(delete(model).where(model.connection_id == connection_id))
        await self.db_session.execute(
            update(WebhookEvent).where(WebhookEvent.connection_id == connection_id).values(connection_id=None)
        )
        await self.db_session.delete(connection)
        self.logger.info(f"Deleted connection {connection_id}")
        return True
