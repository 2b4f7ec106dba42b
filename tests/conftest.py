from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from prokip_bridge.database import Base
from prokip_bridge.models import Connection, ProkipConfig
from prokip_bridge.services import create_service_registry
from prokip_bridge.services.integration import WooCommerceClient, ProkipClient

TEST_CONFIG = {
    'PROKIP_API_URL': 'https://api.prokip.test',
    'PROKIP_CLIENT_ID': '6',
    'PROKIP_CLIENT_SECRET': 'client-secret',
    'ENCRYPTION_KEY': 'test-encryption-key',
    'WEBHOOK_URL': None,
    'WOO_WEBHOOK_SECRET': 'prokip_secret',
    'SYNC_LOOKBACK_DAYS': 7,
    'HTTP_TIMEOUT': 5,
    'HTTP_MAX_RETRIES': 1,
    'LOW_STOCK_THRESHOLD': 10,
}

USER_ID = 1
TOKEN = 'prokip-token-1'
STORE_URL = 'https://shop.example.com'


def prokip_product(product_id=7, sku='SKU-1', name='Blue Mug', variation_id=70, price='12.50'):
    return {
        'id': product_id,
        'name': name,
        'sku': sku,
        'type': 'single',
        'product_variations': [
            {'variations': [{'variation_id': variation_id, 'sell_price_inc_tax': price}]}
        ],
    }


def woo_order(order_id=101, sku='SKU-1', quantity=2, price='10.00', total_tax='3.00', status='processing'):
    return {
        'id': order_id,
        'number': str(order_id),
        'status': status,
        'total': '23.00',
        'date_created': datetime.utcnow().strftime('%Y-%m-%dT%H:%M:%S'),
        'billing': {'first_name': 'Ada', 'last_name': 'Lovelace', 'email': 'ada@example.com'},
        'line_items': [
            {'sku': sku, 'name': 'Blue Mug', 'quantity': quantity, 'price': price, 'total_tax': total_tax}
        ],
    }


def prokip_sale(sale_id=55, sku='SKU-1', quantity=3, invoice_no='INV-55', days_ago=0):
    when = datetime.utcnow() - timedelta(days=days_ago)
    return {
        'id': sale_id,
        'invoice_no': invoice_no,
        'transaction_date': when.strftime('%Y-%m-%d %H:%M:%S'),
        'final_total': '30.00',
        'contact': {'name': 'Walk-in Customer'},
        'products': [{'sku': sku, 'quantity': quantity}],
    }


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, autoflush=False, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def store_client():
    client = MagicMock(spec=WooCommerceClient)
    client.get_orders.return_value = []
    client.get_products.return_value = []
    client.find_product_by_sku.return_value = None
    client.register_webhooks.return_value = []
    client.test_connection.return_value = {'environment': {}}
    return client


@pytest.fixture
def prokip_client():
    client = MagicMock(spec=ProkipClient)
    client.get_products.return_value = []
    client.get_sales.return_value = []
    client.get_stock_report.return_value = []
    client.create_sell.return_value = {'id': 900}
    client.create_sell_return.return_value = {'id': 901}
    return client


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def registry(session, store_client, prokip_client, sleeps):
    async def no_sleep(seconds):
        sleeps.append(seconds)

    return create_service_registry(
        session, dict(TEST_CONFIG), USER_ID,
        store_client_factory=lambda store_url, username, password: store_client,
        prokip_client_factory=lambda token=None: prokip_client,
        sleep=no_sleep,
    )


@pytest.fixture
async def prokip_config(session):
    config = ProkipConfig(
        user_id=USER_ID,
        api_token=TOKEN,
        token=TOKEN,
        refresh_token='refresh-1',
        expires_at=datetime.utcnow() + timedelta(hours=1),
        api_url=TEST_CONFIG['PROKIP_API_URL'],
        location_id='1',
    )
    session.add(config)
    await session.commit()
    return config


@pytest.fixture
async def connection(session):
    connection = Connection(
        user_id=USER_ID,
        platform='woocommerce',
        store_name='Example Shop',
        store_url=STORE_URL,
        consumer_key='ck_test',
        consumer_secret='cs_test',
        status='connected',
        sync_enabled=True,
    )
    session.add(connection)
    await session.commit()
    return connection
