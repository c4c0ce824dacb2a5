"""Application Service for single-provider lookups and searches.

Composes the cache, the retry service and the transport:
cache read -> retried GET -> decode -> cache write.
"""

import json
import logging
from typing import List, Optional

# Domain Layer Imports
from npilookup.domain.events.api_events import CacheLookup, EventSink, dispatch_event, log_event
from npilookup.domain.interfaces.cache import CacheService
from npilookup.domain.interfaces.transport import Transport
from npilookup.domain.models.common import CacheKey, NpiNumber, RequestUrl
from npilookup.domain.models.config import DEFAULT_BASE_URL, DEFAULT_CACHE_TTL_SECONDS
from npilookup.domain.models.errors import AttemptError, InputValidationError, NotFoundError
from npilookup.domain.models.provider import ApiResponse, Provider, SearchOptions

# Infrastructure Layer Imports
from npilookup.infrastructure.http.query_builder import build_search_url
from npilookup.infrastructure.resilience.api_retry import ApiRetryService
from npilookup.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)


def decode_response(body: bytes) -> ApiResponse:
    """Decodes a registry JSON body.

    Raises:
        ValueError: If the body is not valid JSON or not the expected shape.
    """
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValueError(f"failed to decode response: {e}") from e
    return ApiResponse.from_dict(payload)


class ProviderLookupService:
    """Looks up providers by NPI (cached) and runs filtered searches."""

    def __init__(
        self,
        transport: Transport,
        retry_service: ApiRetryService,
        cache_service: CacheService,
        base_url: str = DEFAULT_BASE_URL,
        cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS,
        on_event: Optional[EventSink] = None,
    ):
        self.transport = transport
        self.retry_service = retry_service
        self.cache_service = cache_service
        self.base_url = base_url
        self.cache_ttl_seconds = cache_ttl_seconds
        self._on_event = on_event or log_event

    async def _fetch_response(self, url: RequestUrl, key: Optional[str] = None) -> ApiResponse:
        """One attempt: GET, status check, decode.

        Non-2xx statuses become classified AttemptErrors; decode failures
        propagate as ValueError and are treated as retryable by the retry service.
        """
        response = await self.transport.fetch(url)
        if not response.ok:
            raise AttemptError.from_status(response.status_code, response.body, key=key)
        return decode_response(response.body)

    async def _execute(
        self,
        options: SearchOptions,
        key: Optional[str] = None,
        cancel: Optional[CancellationToken] = None,
    ) -> ApiResponse:
        url = build_search_url(self.base_url, options)
        return await self.retry_service.execute_with_retry(
            lambda: self._fetch_response(url, key),
            key=key,
            url=url,
            cancel=cancel,
        )

    async def search_providers(
        self,
        options: SearchOptions,
        cancel: Optional[CancellationToken] = None,
    ) -> List[Provider]:
        """Searches the registry with the given filters.

        Returns:
            The matching providers; an empty list when nothing matches.
        """
        logger.info(f"Searching providers with options: {options}")
        response = await self._execute(options, cancel=cancel)
        logger.info(f"Search returned {len(response.results)} provider(s)")
        return response.results

    async def get_provider_by_npi(
        self,
        npi: str,
        cancel: Optional[CancellationToken] = None,
    ) -> Provider:
        """Fetches a single provider, serving from the cache when possible.

        Raises:
            InputValidationError: The NPI is empty.
            NotFoundError: The registry has no record for the NPI.
            AttemptError, RetriesExhaustedError, RequestCancelledError:
                Propagated unchanged from the retry service.
        """
        if npi is None or not str(npi).strip():
            raise InputValidationError("npi cannot be empty")
        npi = NpiNumber(str(npi).strip())

        if self.cache_service.enabled:
            cached = self.cache_service.get(CacheKey(npi))
            dispatch_event(self._on_event, CacheLookup(npi=npi, hit=cached is not None))
            if cached is not None:
                logger.debug(f"Serving NPI {npi} from cache")
                return cached

        response = await self._execute(SearchOptions(number=npi, limit=1), key=npi, cancel=cancel)

        if not response.results:
            logger.info(f"No provider found with NPI {npi}")
            raise NotFoundError(npi)
        provider = response.results[0]

        if self.cache_service.enabled:
            self.cache_service.put(CacheKey(npi), provider, self.cache_ttl_seconds)
        return provider
