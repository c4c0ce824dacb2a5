"""NPI Registry client facade.

Wires one ClientConfig into a transport, cache store, retry service and the
lookup/batch services, and owns their lifecycle::

    async with NpiRegistryClient(ClientConfig(cache_enabled=True)) as client:
        provider = await client.get_provider_by_npi("1043218118")
        result = await client.get_providers_by_npis(["1043218118", "1003000126"])
"""

import logging
from typing import Iterable, List, Optional

from npilookup.core.services.batch_service import BatchFetchService, BatchResult
from npilookup.core.services.lookup_service import ProviderLookupService
from npilookup.domain.events.api_events import EventSink, log_event
from npilookup.domain.interfaces.cache import CacheService
from npilookup.domain.interfaces.transport import Transport
from npilookup.domain.models.config import ClientConfig
from npilookup.domain.models.provider import Provider, SearchOptions
from npilookup.infrastructure.cache.caching_service import TTLCacheStore
from npilookup.infrastructure.http.httpx_transport import HttpxTransport
from npilookup.infrastructure.resilience.api_retry import ApiRetryService, Waiter
from npilookup.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class NpiRegistryClient:
    """Single entry point for lookups, searches and batch retrieval."""

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        transport: Optional[Transport] = None,
        cache_service: Optional[CacheService] = None,
        waiter: Optional[Waiter] = None,
        on_event: Optional[EventSink] = None,
    ):
        """Initializes the client.

        Args:
            config: Client configuration. Defaults to ClientConfig().
            transport: Transport to use. An HttpxTransport is created (and
                later closed by the client) when omitted.
            cache_service: Cache store to use. A TTLCacheStore enabled per
                ``config.cache_enabled`` is created when omitted.
            waiter: Backoff wait override, mainly for tests.
            on_event: Receiver for domain events. Defaults to DEBUG logging.
        """
        self.config = config or ClientConfig()
        on_event = on_event or log_event

        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(
            timeout_seconds=self.config.timeout_seconds,
            user_agent=self.config.user_agent,
        )
        self.cache_service = cache_service or TTLCacheStore(enabled=self.config.cache_enabled)
        self.retry_service = ApiRetryService(self.config.retry, waiter=waiter, on_event=on_event)
        self.lookup_service = ProviderLookupService(
            transport=self.transport,
            retry_service=self.retry_service,
            cache_service=self.cache_service,
            base_url=self.config.base_url,
            cache_ttl_seconds=self.config.cache_ttl_seconds,
            on_event=on_event,
        )
        self.batch_service = BatchFetchService(
            self.lookup_service,
            max_concurrency=self.config.max_concurrency,
            on_event=on_event,
        )
        self._closed = False
        logger.info(f"NpiRegistryClient initialized for {self.config.base_url}")

    # --- Lifecycle ---

    def start(self) -> None:
        """Starts the cache sweeper, enabled or not; the store can be enabled later."""
        self.cache_service.start(self.config.cache_sweep_interval_seconds)

    async def aclose(self) -> None:
        """Stops the cache sweeper and closes a transport created by the client."""
        if self._closed:
            return
        self._closed = True
        self.cache_service.stop()
        if self._owns_transport:
            await self.transport.aclose()

    async def __aenter__(self) -> "NpiRegistryClient":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # --- Operations ---

    async def get_provider_by_npi(self, npi: str, cancel: Optional[CancellationToken] = None) -> Provider:
        """Fetches a single provider by NPI number (cached when enabled)."""
        return await self.lookup_service.get_provider_by_npi(npi, cancel=cancel)

    async def search_providers(
        self, options: SearchOptions, cancel: Optional[CancellationToken] = None
    ) -> List[Provider]:
        """Searches for providers using the given filters."""
        return await self.lookup_service.search_providers(options, cancel=cancel)

    async def get_providers_by_npis(
        self, npis: Iterable[str], cancel: Optional[CancellationToken] = None
    ) -> BatchResult:
        """Fetches several providers concurrently; see BatchResult for failures."""
        return await self.batch_service.get_providers_by_npis(npis, cancel=cancel)
