"""
API Gateway
Version: 1.0

Authenticated HTTP client for the marketplace API.
Every failure comes out as NetworkError, AuthError or ApplicationError.
No caching, no retries, no queueing: callers decide what a failure means.
DEPENDS ON: config.py, errors.py, session.py (token source)
"""

from enum import Enum
from typing import Any, Awaitable, Optional, Protocol, Union

import httpx

from config import get_settings
from marketplace.errors import ApplicationError, NetworkError
from marketplace.logging_config import LogTimer, get_logger
from marketplace.sanitizer import sanitize_log

logger = get_logger(__name__)
settings = get_settings()


class HttpMethod(Enum):
    """HTTP methods."""
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"


class TokenSource(Protocol):
    def get_token(self) -> Awaitable[Optional[str]]:
        ...


class APIGateway:
    """
    Marketplace API Gateway.

    Features:
    - Bearer token from the session on every call, when signed in
    - JSON in, JSON out
    - One error shape for transport and application failures
    - Connection pooling
    """

    def __init__(
        self,
        session: Optional[TokenSource] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize API Gateway.

        Args:
            session: Token source (the session boundary); None = anonymous only
            base_url: Base URL (defaults to settings)
            timeout: Read timeout in seconds (defaults to settings)
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.session = session
        self.base_url = (base_url or settings.MARKETPLACE_API_URL).rstrip("/")

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout or settings.HTTP_TIMEOUT, connect=settings.HTTP_CONNECT_TIMEOUT),
            limits=httpx.Limits(max_keepalive_connections=10, max_connections=50),
            follow_redirects=True,
            transport=transport,
        )

        logger.debug("APIGateway initialized", base_url=self.base_url)

    async def call(
        self,
        endpoint: str,
        method: Union[HttpMethod, str] = HttpMethod.GET,
        body: Optional[Any] = None
    ) -> Any:
        """
        Execute one request.

        Args:
            endpoint: API path, e.g. "/vehicles/abc"
            method: HTTP method
            body: JSON-serializable request body

        Returns:
            Decoded JSON response (None for an empty success body)

        Raises:
            AuthError: the session could not mint a token
            NetworkError: transport failure or uninterpretable response
            ApplicationError: server returned {"error": ...} with a failure status
        """
        method = HttpMethod(method) if isinstance(method, str) else method
        url = self._build_url(endpoint)

        request_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

        token = await self.session.get_token() if self.session is not None else None
        if token:
            request_headers["Authorization"] = f"Bearer {token}"

        operation = sanitize_log(f"{method.value} {endpoint}")
        try:
            with LogTimer(logger, operation, authenticated=bool(token)):
                response = await self.client.request(
                    method.value,
                    url,
                    headers=request_headers,
                    json=body,
                )
        except httpx.TimeoutException as e:
            raise NetworkError(f"Request timed out: {e}") from e
        except httpx.RequestError as e:
            raise NetworkError(f"Network error: {e}") from e

        return self._parse_response(response, operation)

    def _build_url(self, endpoint: str) -> str:
        if endpoint.startswith("http://") or endpoint.startswith("https://"):
            return endpoint
        if not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return f"{self.base_url}{endpoint}"

    def _parse_response(self, response: httpx.Response, operation: str) -> Any:
        """
        Interpret a response.

        Failure status + {"error": str} -> ApplicationError.
        Anything else that cannot be read as JSON -> NetworkError.
        """
        if not response.content:
            if response.is_success:
                return None
            raise NetworkError(f"HTTP {response.status_code} with empty body")

        try:
            data = response.json()
        except ValueError:
            logger.warning("Non-JSON response", operation=operation, status_code=response.status_code)
            raise NetworkError(f"HTTP {response.status_code}: response is not JSON")

        if response.is_success:
            return data

        message = data.get("error") if isinstance(data, dict) else None
        if not isinstance(message, str) or not message:
            logger.warning("Unrecognized error body", operation=operation, status_code=response.status_code)
            raise NetworkError(f"HTTP {response.status_code}: unrecognized error response")

        logger.info("API error", operation=operation, status_code=response.status_code, error=message[:200])
        raise ApplicationError(message, status_code=response.status_code)

    # === CONVENIENCE METHODS ===

    async def get(self, endpoint: str) -> Any:
        """GET request."""
        return await self.call(endpoint, HttpMethod.GET)

    async def post(self, endpoint: str, body: Optional[Any] = None) -> Any:
        """POST request."""
        return await self.call(endpoint, HttpMethod.POST, body)

    async def put(self, endpoint: str, body: Optional[Any] = None) -> Any:
        """PUT request."""
        return await self.call(endpoint, HttpMethod.PUT, body)

    async def delete(self, endpoint: str) -> Any:
        """DELETE request."""
        return await self.call(endpoint, HttpMethod.DELETE)

    async def close(self) -> None:
        """Close HTTP client."""
        await self.client.aclose()
        logger.debug("APIGateway closed")

    async def __aenter__(self) -> "APIGateway":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
