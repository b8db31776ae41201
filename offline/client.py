"""
OFFLINE App - Remote Dispatch API Client

Thin requests wrapper used both for immediate sends and for replaying
queued actions. Every call carries the driver's bearer token from the
session store and a bounded timeout.
"""

import logging
from typing import Any, Dict, Optional

import requests

from .exceptions import MissingTokenError, ReplayError
from .storage import QueueStore

logger = logging.getLogger(__name__)


DEFAULT_TIMEOUT = 15          # seconds per replayed request
PING_TIMEOUT = 3              # seconds for the connectivity check
SUPPORTED_METHODS = ('POST', 'PUT', 'PATCH')


class RemoteAPIClient:
    """
    Client for the remote dispatch API.

    Args:
        base_url: API root, e.g. ``https://dispatch.example.com/api``
        store: session store holding the bearer token
        timeout: per-request timeout in seconds
        session: optional pre-configured requests.Session
    """

    def __init__(
        self,
        base_url: str,
        store: QueueStore,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.store = store
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'Dispatch-Driver-Agent/1.0',
        })

    def _url(self, endpoint: str) -> str:
        if not endpoint.startswith('/'):
            endpoint = f'/{endpoint}'
        return f"{self.base_url}{endpoint}"

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        token = self.store.get_token()
        if not token:
            raise MissingTokenError()

        headers = {
            'Authorization': f'Bearer {token}',
            'Content-Type': 'application/json',
        }
        if idempotency_key:
            headers['Idempotency-Key'] = idempotency_key
        return headers

    def _request(
        self,
        method: str,
        endpoint: str,
        data: Any,
        idempotency_key: Optional[str] = None,
    ) -> requests.Response:
        method = str(method).upper()
        if method not in SUPPORTED_METHODS:
            raise ReplayError(f"Unsupported method: {method}")

        headers = self._headers(idempotency_key)
        url = self._url(endpoint)

        try:
            response = self.session.request(
                method,
                url,
                json=data,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise ReplayError(f"Request timed out after {self.timeout}s: {method} {endpoint}") from e
        except requests.exceptions.RequestException as e:
            raise ReplayError(f"Network error: {e}") from e

        if not response.ok:
            detail = ''
            try:
                body = response.json()
                if isinstance(body, dict):
                    detail = body.get('error') or body.get('message') or ''
            except ValueError:
                detail = response.text[:200]
            message = f"Request failed with status code {response.status_code}"
            if detail:
                message = f"{message}: {detail}"
            raise ReplayError(message, status_code=response.status_code)

        return response

    def replay(self, action) -> requests.Response:
        """Replay a QueuedAction verbatim; raises ReplayError on any failure."""
        return self._request(
            action.method,
            action.endpoint,
            action.data,
            idempotency_key=action.id,
        )

    def send(
        self,
        method: str,
        endpoint: str,
        data: Any,
        idempotency_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Immediate request for an online action; returns the JSON body."""
        response = self._request(method, endpoint, data, idempotency_key=idempotency_key)
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {'data': body}

    def ping(self) -> bool:
        """
        Connectivity check against the API health endpoint.

        The health route sits at the server root, beside ``/api``.
        """
        root = self.base_url[:-len('/api')] if self.base_url.endswith('/api') else self.base_url
        try:
            response = self.session.get(f"{root}/health", timeout=PING_TIMEOUT)
        except requests.exceptions.RequestException as e:
            logger.debug(f"[NETWORK] Ping failed: {e}")
            return False
        return response.status_code < 500
