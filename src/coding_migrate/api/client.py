"""Shared HTTP plumbing for the Coding and GitHub API clients."""

import asyncio
import json
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import aiohttp
import requests
from pydantic import BaseModel

from ..utils.logging import get_logger
from .exceptions import APIAuthenticationError, APIError, error_for_status
from .rate_limiter import RateLimiter

USER_AGENT = 'coding-migrate/0.1.0'


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


class APIClient:
    """Token-authenticated JSON client with blocking and async request paths.

    Blocking calls go through a ``requests.Session``; async calls open a short
    lived ``aiohttp.ClientSession``. Both paths share the rate limiter and the
    status code to exception mapping in ``_raise_for_status``.
    """

    platform = 'API'
    accept = 'application/json'

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: int = 30,
        rate_limit_per_second: Optional[float] = None,
        log=None,
    ):
        """Initialize API client.

        Args:
            base_url: API root URL
            token: Access token sent as ``Authorization: token <token>``
            timeout: Request timeout in seconds
            rate_limit_per_second: Optional request rate limit
            log: Optional logger to bind instead of the global one
        """
        if not token:
            raise APIAuthenticationError(
                f'No {self.platform} access token provided', platform=self.platform
            )

        self.base_url = base_url.rstrip('/')
        self.token = token
        self.timeout = timeout
        self.rate_limiter = RateLimiter(rate_limit_per_second) if rate_limit_per_second else None
        self.logger = get_logger(type(self).__name__, log)

        self.session = requests.Session()
        self.session.headers.update(self._headers())

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'token {self.token}',
            'Accept': self.accept,
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
        }

    def _build_url(self, endpoint: str) -> str:
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _error_message(self, status_code: int, data: Any) -> str:
        """Extract a human readable message from an error body."""
        if isinstance(data, dict) and data.get('message'):
            return str(data['message'])
        if isinstance(data, str) and data:
            return f'HTTP {status_code}: {data[:200]}'
        return f'HTTP {status_code}'

    def _raise_for_status(self, status_code: int, data: Any, headers: Dict[str, str]) -> None:
        """Map an HTTP error status onto the API exception taxonomy.

        Raises:
            APIError: Or one of its subclasses for any status >= 400
        """
        if status_code < 400:
            return

        raise error_for_status(
            self.platform,
            status_code,
            self._error_message(status_code, data),
            headers=headers,
            response_data=data if isinstance(data, dict) else None,
        )

    @staticmethod
    def _parse_body(text: str) -> Any:
        if not text:
            return None
        try:
            return json.loads(text)
        except ValueError:
            return text

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Convert a ``requests`` response, raising on error statuses."""
        headers = dict(response.headers)
        data = self._parse_body(response.text)

        self._raise_for_status(response.status_code, data, headers)

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make a blocking API request.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            data: JSON request body

        Returns:
            API response
        """
        if self.rate_limiter:
            self.rate_limiter.acquire_sync()

        url = self._build_url(endpoint)
        self.logger.debug(f'{method} {url}')

        try:
            response = self.session.request(
                method, url, params=params, json=data, timeout=self.timeout
            )
        except requests.RequestException as e:
            self.logger.error(f'Network error during {method} {url}: {e}')
            raise APIError(f'{self.platform} network error: {e}', platform=self.platform) from e

        return self._handle_response(response)

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> APIResponse:
        """Make GET request."""
        return self.request('GET', endpoint, params=params)

    def post(
        self,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make POST request."""
        return self.request('POST', endpoint, params=params, data=data)

    def delete(self, endpoint: str) -> APIResponse:
        """Make DELETE request."""
        return self.request('DELETE', endpoint)

    async def request_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make an asynchronous API request.

        Args:
            method: HTTP method
            endpoint: API endpoint
            params: Query parameters
            data: JSON request body

        Returns:
            API response
        """
        if self.rate_limiter:
            await self.rate_limiter.acquire()

        url = self._build_url(endpoint)
        self.logger.debug(f'{method} {url} (async)')

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(headers=self._headers(), timeout=timeout) as session:
                async with session.request(method, url, params=params, json=data) as response:
                    headers = dict(response.headers)
                    body = self._parse_body(await response.text())
                    status = response.status
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.error(f'Network error during {method} {url}: {e}')
            raise APIError(f'{self.platform} network error: {e}', platform=self.platform) from e

        self._raise_for_status(status, body, headers)

        return APIResponse(
            status_code=status,
            data=body,
            headers=headers,
            success=200 <= status < 300,
        )

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self.request_async('GET', endpoint, params=params)

    async def post_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous POST request."""
        return await self.request_async('POST', endpoint, data=data)

    def close(self):
        """Close the blocking client session."""
        self.session.close()
        self.logger.debug(f'{self.platform} client session closed')

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
