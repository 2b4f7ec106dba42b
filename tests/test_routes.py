import json
from datetime import datetime, timedelta

import httpx
import pytest
from fastapi import Depends

from prokip_bridge import create_app
from prokip_bridge.database import get_db_session
from prokip_bridge.dependencies import (
    get_config, get_current_user, get_service_registry, get_public_service_registry
)
from prokip_bridge.services import create_service_registry

from conftest import TEST_CONFIG, TOKEN, STORE_URL, prokip_product, woo_order

AUTH = {'Authorization': f'Bearer {TOKEN}'}


@pytest.fixture
def app(session, store_client, prokip_client):
    app = create_app()
    factories = {
        'store_client_factory': lambda store_url, username, password: store_client,
        'prokip_client_factory': lambda token=None: prokip_client,
    }

    async def session_override():
        yield session

    async def registry_override(current_user: int = Depends(get_current_user)):
        return create_service_registry(session, dict(TEST_CONFIG), current_user, **factories)

    async def public_registry_override():
        return create_service_registry(session, dict(TEST_CONFIG), **factories)

    app.dependency_overrides[get_db_session] = session_override
    app.dependency_overrides[get_config] = lambda: dict(TEST_CONFIG)
    app.dependency_overrides[get_service_registry] = registry_override
    app.dependency_overrides[get_public_service_registry] = public_registry_override
    return app


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url='http://testserver') as client:
        yield client


async def test_health(client):
    response = await client.get('/health')
    assert response.status_code == 200
    assert response.json()['status'] == 'healthy'
    assert 'X-Request-ID' in response.headers


async def test_unknown_token_is_rejected(client, prokip_config):
    response = await client.get('/api/connections', headers={'Authorization': 'Bearer nope'})
    assert response.status_code == 401


async def test_missing_token_is_rejected(client):
    response = await client.get('/api/connections')
    assert response.status_code in (401, 403)


async def test_login_returns_bearer_token(client, prokip_client):
    prokip_client.authenticate.return_value = {'access_token': 'new-token', 'expires_in': 3600}

    response = await client.post('/api/prokip/login', json={'username': 'owner', 'password': 'pw'})

    assert response.status_code == 200
    data = response.json()['data']
    assert data['token'] and data['token'] != 'new-token'
    assert data['authenticated'] is True

    config = await client.get('/api/prokip/config', headers={'Authorization': f"Bearer {data['token']}"})
    assert config.json()['data']['user_id'] == 1


async def test_token_refresh_keeps_caller_signed_in(client, session, prokip_client, prokip_config):
    prokip_config.expires_at = datetime.utcnow() - timedelta(minutes=5)
    await session.commit()
    prokip_client.refresh_token.return_value = {'access_token': 'rotated', 'refresh_token': 'refresh-2',
                                                'expires_in': 3600}
    prokip_client.get_business_locations.return_value = [{'id': 1, 'name': 'Main'}]

    first = await client.get('/api/prokip/locations', headers=AUTH)
    second = await client.get('/api/prokip/locations', headers=AUTH)

    assert first.status_code == 200
    assert second.status_code == 200
    assert prokip_config.token == 'rotated'
    prokip_client.refresh_token.assert_called_once()


async def test_connection_crud(client, prokip_config):
    created = await client.post('/api/connections', headers=AUTH, json={
        'store_url': 'https://second.example.com',
        'consumer_key': 'ck_2',
        'consumer_secret': 'cs_2',
    })
    assert created.status_code == 200
    connection = created.json()['data']
    assert 'consumer_key' not in connection

    listing = await client.get('/api/connections', headers=AUTH)
    assert [c['store_url'] for c in listing.json()['data']] == ['https://second.example.com']

    patched = await client.patch(f"/api/connections/{connection['id']}", headers=AUTH,
                                 json={'sync_enabled': False})
    assert patched.json()['data']['sync_enabled'] is False

    deleted = await client.delete(f"/api/connections/{connection['id']}", headers=AUTH)
    assert deleted.status_code == 200
    missing = await client.get(f"/api/connections/{connection['id']}", headers=AUTH)
    assert missing.status_code == 404


async def test_duplicate_connection_conflicts(client, prokip_config, connection):
    response = await client.post('/api/connections', headers=AUTH, json={
        'store_url': STORE_URL,
        'consumer_key': 'ck',
        'consumer_secret': 'cs',
    })
    assert response.status_code == 409
    assert response.json()['error_code'] == 'CONFLICT_ERROR'


async def test_sync_without_connections_is_a_business_error(client, prokip_config):
    response = await client.post('/api/sync/woocommerce', headers=AUTH)
    assert response.status_code == 422
    assert response.json()['message'] == 'WooCommerce connection not found'


async def test_sync_route(client, store_client, prokip_client, prokip_config, connection):
    store_client.get_orders.return_value = [woo_order(order_id=301)]
    prokip_client.get_products.return_value = [prokip_product()]

    response = await client.post('/api/sync/woocommerce', headers=AUTH, json={'lookback_days': 3})

    assert response.status_code == 200
    body = response.json()
    assert body['message'] == 'Bidirectional sync completed'
    assert body['data']['connections'][0]['woo_to_prokip']['success'] == 1

    logs = await client.get('/api/sync/logs', headers=AUTH)
    assert logs.json()['pagination']['total'] == 1
    assert logs.json()['data'][0]['order_id'] == '301'


async def test_upstream_failure_maps_to_bad_gateway(client, prokip_client, prokip_config):
    from prokip_bridge.services.exceptions import ProkipAPIError
    prokip_client.get_business_locations.side_effect = ProkipAPIError('500 error on GET business-location')

    response = await client.get('/api/prokip/locations', headers=AUTH)

    assert response.status_code == 502


async def test_webhook_is_processed(client, prokip_client, prokip_config, connection):
    prokip_client.get_products.return_value = [prokip_product()]
    body = json.dumps(woo_order(order_id=401)).encode()

    response = await client.post('/api/webhooks/woocommerce', content=body, headers={
        'Content-Type': 'application/json',
        'X-WC-Webhook-Topic': 'order.created',
        'X-WC-Webhook-Source': STORE_URL + '/',
    })

    assert response.status_code == 200
    data = response.json()['data']
    assert data['processed'] is True
    assert data['status'] == 'synced'


async def test_webhook_source_falls_back_to_payload(client, prokip_client, prokip_config, connection):
    prokip_client.get_products.return_value = [prokip_product()]
    payload = woo_order(order_id=402, status='completed')
    payload['resource'] = {'site_url': 'shop.example.com'}

    response = await client.post('/api/webhooks/woocommerce', json=payload,
                                 headers={'X-WC-Webhook-Topic': 'order.updated'})

    data = response.json()['data']
    assert data['processed'] is True
    assert data['action'] == 'sell'


async def test_webhook_ping(client):
    response = await client.post('/api/webhooks/woocommerce', content=b'webhook_id=12', headers={
        'Content-Type': 'application/x-www-form-urlencoded',
    })

    assert response.status_code == 200
    assert response.json()['data'] == {'processed': False}


async def test_error_stats_route(client, prokip_config):
    response = await client.get('/api/errors/stats', headers=AUTH)
    assert response.json()['data']['recovery_rate'] == '0%'


async def test_dashboard_rejects_bad_range(client, prokip_config):
    response = await client.get('/api/analytics/dashboard?date_range=forever', headers=AUTH)
    assert response.status_code == 422


async def test_dashboard_long_range_is_clamped(client, prokip_config):
    response = await client.get('/api/analytics/dashboard?date_range=1000000d', headers=AUTH)
    assert response.status_code == 200
    assert response.json()['data']['date_range'] == '365d'
