"""
Prokip Connector Client
=======================

Client for the Prokip connector API (`/connector/api/`) and its OAuth token endpoint.
"""

import logging
from typing import Any, Dict, List, Optional

from .http_client import RestClient
from ..exceptions import ProkipAPIError, AuthenticationError

logger = logging.getLogger(__name__)


class ProkipClient(RestClient):
    """Bearer-token client for one Prokip account"""

    service_name = 'Prokip'
    error_class = ProkipAPIError

    def __init__(self, api_url: str, token: Optional[str] = None, timeout: int = 15,
                 max_retries: int = 3, session=None):
        self.api_url = api_url.rstrip('/')
        super().__init__(f"{self.api_url}/connector/api/", timeout, max_retries, session)
        if token:
            self.session.headers['Authorization'] = f'Bearer {token}'

    # --- OAuth ---

    def _token_request(self, form: Dict[str, str]) -> Dict[str, Any]:
        try:
            data = self._request('POST', f"{self.api_url}/oauth/token", data=form)
        except ProkipAPIError as e:
            if e.status_code in (400, 401):
                raise AuthenticationError(f"Invalid Prokip credentials: {e.message}")
            raise
        if not isinstance(data, dict) or not data.get('access_token'):
            raise ProkipAPIError("Invalid response format from Prokip API - missing access_token")
        return {
            'access_token': data['access_token'],
            'token_type': data.get('token_type', 'Bearer'),
            'expires_in': int(data.get('expires_in') or 3600),
            'refresh_token': data.get('refresh_token'),
            'scope': data.get('scope', ''),
        }

    def authenticate(self, username: str, password: str, client_id: str, client_secret: str) -> Dict[str, Any]:
        """Password grant"""
        return self._token_request({
            'username': username,
            'password': password,
            'client_id': client_id,
            'client_secret': client_secret,
            'grant_type': 'password',
            'scope': '',
        })

    def refresh_token(self, refresh_token: str, client_id: str, client_secret: str) -> Dict[str, Any]:
        return self._token_request({
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': client_id,
            'client_secret': client_secret,
        })

    # --- Catalogue ---

    def get_business_locations(self) -> List[Dict[str, Any]]:
        return self.unwrap_list(self.get('business-location'))

    def get_products(self, location_id: Optional[str] = None, sku: Optional[str] = None) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {'per_page': -1}
        if location_id:
            params['location_id'] = location_id
        if sku:
            params['sku'] = sku
        return self.unwrap_list(self.get('product', params=params))

    def get_product_by_sku(self, sku: str) -> Optional[Dict[str, Any]]:
        for product in self.get_products(sku=sku):
            if product.get('sku') == sku:
                return product
        return None

    def create_product(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self.post('product', payload)
        if isinstance(response, dict) and isinstance(response.get('data'), dict):
            return response['data']
        return response

    def update_product_stock(self, product_id, quantity: int, location_id: Optional[str] = None) -> Any:
        return self.put(f'product/{product_id}', {
            'product_id': product_id,
            'quantity': quantity,
            'location_id': location_id,
        })

    def get_stock_report(self, location_id: Optional[str] = None, product_id=None) -> List[Dict[str, Any]]:
        params = {}
        if location_id:
            params['location_id'] = location_id
        if product_id:
            params['product_id'] = product_id
        return self.unwrap_list(self.get('product-stock-report', params=params or None))

    # --- Sales ---

    def get_sales(self, location_id: Optional[str] = None, start_date: Optional[str] = None,
                  end_date: Optional[str] = None, per_page: int = 50) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {'per_page': per_page}
        if location_id:
            params['location_id'] = location_id
        if start_date:
            params['start_date'] = start_date
        if end_date:
            params['end_date'] = end_date
        return self.unwrap_list(self.get('sell', params=params))

    def create_sell(self, sell_body: Dict[str, Any]) -> Any:
        return self.post('sell', sell_body)

    def create_sell_return(self, return_body: Dict[str, Any]) -> Any:
        return self.post('sell-return', return_body)

    @staticmethod
    def extract_sell_id(response: Any) -> Optional[str]:
        """The sell endpoint answers with the created sell, a list of sells, or a `data` envelope."""
        if isinstance(response, dict) and 'data' in response:
            response = response['data']
        if isinstance(response, list):
            response = response[0] if response else None
        if isinstance(response, dict) and response.get('id') is not None:
            return str(response['id'])
        return None
