"""Concrete implementation of the Transport interface using httpx.

Hides the specifics of the httpx client: connection-level failures become
TransportError, and every HTTP response, successful or not, is handed back
as a TransportResponse for the core to classify.
"""

import logging
from typing import Optional

import httpx

# Domain Layer Imports
from npilookup.domain.interfaces.transport import Transport, TransportError, TransportResponse
from npilookup.domain.models.common import RequestUrl
from npilookup.domain.models.config import DEFAULT_TIMEOUT_SECONDS, DEFAULT_USER_AGENT

logger = logging.getLogger(__name__)


class HttpxTransport(Transport):
    """Async GET transport backed by ``httpx.AsyncClient``."""

    def __init__(
        self,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        user_agent: str = DEFAULT_USER_AGENT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the transport.

        Args:
            timeout_seconds: Total per-request timeout.
            user_agent: Value of the User-Agent header.
            client: Pre-built client to use instead of creating one. A client
                passed in is not closed by ``aclose``.
        """
        self._headers = {"Accept": "application/json", "User-Agent": user_agent}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))
        logger.info(f"HttpxTransport initialized (timeout={timeout_seconds}s)")

    async def fetch(self, url: RequestUrl) -> TransportResponse:
        logger.debug(f"GET {url}")
        try:
            response = await self._client.get(url, headers=self._headers)
        except httpx.HTTPError as e:
            logger.debug(f"Transport failure for {url}: {type(e).__name__}: {e}")
            raise TransportError(f"http request failed: {type(e).__name__}: {e}", url=url) from e
        logger.debug(f"GET {url} -> {response.status_code}")
        return TransportResponse(body=response.content, status_code=response.status_code)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()
