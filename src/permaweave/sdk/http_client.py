"""
HTTP Client for the ledger gateway

Handles all HTTP communication with retry logic, connection pooling,
and error handling.
"""

import logging
from typing import Any, Dict, Optional
from urllib.parse import urljoin

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from permaweave import __version__
from permaweave.core import config
from permaweave.core.exceptions import (
    GatewayError,
    GatewayTimeoutError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class HTTPClient:
    """
    HTTP client for gateway requests with retry logic and connection pooling.

    Features:
    - Automatic retry with exponential backoff
    - Connection pooling
    - Rate limit handling
    - Status codes mapped onto permaweave exceptions
    """

    RETRY_STATUSES = [429, 500, 502, 503, 504]

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_retries: Optional[int] = None,
        backoff_factor: Optional[float] = None,
        pool_connections: int = 10,
        pool_maxsize: int = 10,
    ) -> None:
        """
        Initialize HTTP client. Unset arguments come from ``permaweave.core.config``.

        Args:
            base_url: Gateway base URL
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries
            backoff_factor: Backoff factor for exponential backoff
            pool_connections: Number of connection pools
            pool_maxsize: Maximum size of connection pool
        """
        self.base_url = (base_url or config.GATEWAY_URL).rstrip("/") + "/"
        self.timeout = config.HTTP_TIMEOUT if timeout is None else timeout
        self.max_retries = config.HTTP_MAX_RETRIES if max_retries is None else max_retries
        self.backoff_factor = config.HTTP_BACKOFF_FACTOR if backoff_factor is None else backoff_factor

        self.session = requests.Session()
        self._setup_connection_pooling(pool_connections, pool_maxsize)

    def _setup_connection_pooling(self, pool_connections: int, pool_maxsize: int) -> None:
        """Mount a pooled adapter carrying the retry strategy."""
        adapter = HTTPAdapter(
            pool_connections=pool_connections,
            pool_maxsize=pool_maxsize,
            max_retries=Retry(
                total=self.max_retries,
                backoff_factor=self.backoff_factor,
                status_forcelist=self.RETRY_STATUSES,
                allowed_methods=["GET", "POST"],
                raise_on_status=False,
            ),
        )
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _get_headers(self, custom_headers: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": f"permaweave/{__version__}",
        }
        if custom_headers:
            headers.update(custom_headers)
        return headers

    def url_for(self, endpoint: str) -> str:
        return urljoin(self.base_url, endpoint.lstrip("/"))

    def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:
        """
        Send a request and return the raw response, whatever its status.

        Raises:
            GatewayTimeoutError: If the request times out
            NetworkError: If the gateway cannot be reached
        """
        url = self.url_for(endpoint)
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=json,
                headers=self._get_headers(headers),
                timeout=self.timeout,
            )
        except requests.Timeout as e:
            logger.error(
                f"Request timeout: {method} {url}",
                extra={"event": "gateway.timeout", "method": method, "url": url},
            )
            raise GatewayTimeoutError(f"Request timeout after {self.timeout}s") from e
        except requests.ConnectionError as e:
            logger.error(
                f"Connection error: {e}",
                extra={"event": "gateway.connection_error", "method": method, "url": url},
            )
            raise NetworkError(f"Connection error: {e}") from e
        except requests.RequestException as e:
            logger.error(
                f"Request error: {e}",
                extra={"event": "gateway.request_error", "method": method, "url": url},
            )
            raise NetworkError(f"Request error: {e}") from e

        logger.debug(
            f"{method} {url} - Status: {response.status_code}",
            extra={
                "event": "gateway.request",
                "method": method,
                "url": url,
                "status": response.status_code,
            },
        )
        return response

    def _handle_response(self, response: requests.Response, as_text: bool = False) -> Any:
        """
        Return the response body, raising for error statuses.

        Raises:
            ValidationError: 400
            NotFoundError: 404 and 410
            RateLimitError: 429
            GatewayError: any other non-2xx status
        """
        if 200 <= response.status_code < 300:
            if as_text:
                return response.text
            try:
                return response.json()
            except ValueError:
                return {"message": response.text}

        message = response.text.strip() or response.reason or "Unknown error"
        status = response.status_code

        if status == 400:
            raise ValidationError(message, details={"status": status})
        if status in (404, 410):
            raise NotFoundError(message, details={"status": status})
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(
                message,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        raise GatewayError(message, status=status, recoverable=status >= 500)

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """Make a GET request and return the decoded JSON body."""
        return self._handle_response(self.request("GET", endpoint, params=params))

    def get_text(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Make a GET request and return the body as text."""
        return self._handle_response(self.request("GET", endpoint, params=params), as_text=True)

    def post(self, endpoint: str, data: Any = None) -> Any:
        """Make a POST request and return the decoded JSON body."""
        return self._handle_response(self.request("POST", endpoint, json=data))

    def close(self) -> None:
        """Close the session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
