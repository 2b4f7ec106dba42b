"""
REST Client Base
================

Shared `requests` session handling with retries and exponential backoff for
the vendor API clients.
"""

import time
import logging
from typing import Any, Dict, Optional

import requests

from ..exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class RestClient:
    """Base HTTP client; subclasses set `service_name` and `error_class`."""

    service_name = 'API'
    error_class = ExternalServiceError

    # Status codes worth retrying
    RETRYABLE_STATUS_CODES = {408, 429, 500, 502, 503, 504}
    # Methods safe to replay after a timeout or 5xx
    IDEMPOTENT_METHODS = {'GET', 'PUT', 'DELETE', 'HEAD'}

    def __init__(self, base_url: str, timeout: int = 15, max_retries: int = 3,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/') + '/'
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.session = session or requests.Session()
        self.session.headers.update({
            'Accept': 'application/json',
            'User-Agent': 'Prokip-Integration/1.0',
        })

    @staticmethod
    def _calculate_backoff(attempt: int) -> float:
        """2^(attempt-1) seconds, capped at 60."""
        return min(2 ** (attempt - 1), 60)

    def _raise(self, message: str, status_code: Optional[int] = None, body: Any = None):
        if self.error_class is ExternalServiceError:
            raise ExternalServiceError(self.service_name, message, status_code, body)
        raise self.error_class(message, status_code=status_code, response_body=body)

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        """
        Perform a request, retrying idempotent methods on transient failures.

        Returns the decoded JSON body (or None for empty bodies). Raises the
        client's error class once retries are exhausted or on a 4xx response.
        """
        url = endpoint if endpoint.startswith('http') else f"{self.base_url}{endpoint.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)

        max_attempts = self.max_retries if method.upper() in self.IDEMPOTENT_METHODS else 1

        for attempt in range(1, max_attempts + 1):
            try:
                response = self.session.request(method, url, **kwargs)
            except requests.exceptions.Timeout:
                if attempt < max_attempts:
                    time.sleep(self._calculate_backoff(attempt))
                    continue
                self._raise(f"request timeout: {method} {url}")
            except requests.exceptions.ConnectionError:
                if attempt < max_attempts:
                    time.sleep(self._calculate_backoff(attempt))
                    continue
                self._raise(f"network error: failed to connect to {url}")
            except requests.exceptions.RequestException as e:
                self._raise(f"request failed: {str(e)}")

            if response.status_code in self.RETRYABLE_STATUS_CODES and attempt < max_attempts:
                wait = self._calculate_backoff(attempt)
                logger.warning(f"{self.service_name} {method} {url} returned {response.status_code}, "
                               f"retrying in {wait}s (attempt {attempt}/{max_attempts})")
                time.sleep(wait)
                continue

            if response.status_code >= 400:
                body = self._decode(response)
                self._raise(f"{response.status_code} error on {method} {endpoint}: {self._describe(body)}",
                            status_code=response.status_code, body=body)

            return self._decode(response)

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text

    @staticmethod
    def _describe(body: Any) -> str:
        if isinstance(body, dict):
            return str(body.get('message') or body.get('error_description') or body.get('error') or body)
        return str(body)[:300]

    @staticmethod
    def unwrap_list(payload: Any) -> list:
        """Accept both `{"data": [...]}` envelopes and bare lists."""
        if isinstance(payload, dict):
            payload = payload.get('data', [])
        return payload if isinstance(payload, list) else []

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return self._request('GET', endpoint, params=params)

    def post(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        return self._request('POST', endpoint, json=data)

    def put(self, endpoint: str, data: Optional[Dict[str, Any]] = None) -> Any:
        return self._request('PUT', endpoint, json=data)
