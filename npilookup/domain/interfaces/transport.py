"""Interface for the HTTP transport used to reach the registry.

The core only needs a single GET returning the raw body and status code.
Failures below the protocol layer (DNS, refused connections, timeouts) are
raised as ``TransportError``; non-2xx statuses are returned, not raised.
"""

import abc
from dataclasses import dataclass
from typing import Optional

from ..models.common import RequestUrl


class TransportError(Exception):
    """A request that never produced an HTTP response."""

    def __init__(self, message: str, url: Optional[str] = None):
        self.url = url
        super().__init__(message)


@dataclass(frozen=True)
class TransportResponse:
    """Raw result of one GET."""
    body: bytes
    status_code: int

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class Transport(abc.ABC):
    """Abstract Base Class for registry transports."""

    @abc.abstractmethod
    async def fetch(self, url: RequestUrl) -> TransportResponse:
        """Performs one GET request asynchronously.

        Args:
            url: The fully assembled request URL.

        Returns:
            The response body and status code.

        Raises:
            TransportError: If no HTTP response was received.
        """
        pass

    async def aclose(self) -> None:
        """Releases any held connections. No-op by default."""
        return None
