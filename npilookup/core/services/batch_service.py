"""Application Service for batched provider retrieval.

Fans out single-provider lookups under a concurrency ceiling and fans the
outcomes back in. Every lookup runs to completion; failures are collected
alongside the successes instead of aborting the batch.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

# Domain Layer Imports
from npilookup.domain.events.api_events import BatchCompleted, EventSink, dispatch_event, log_event
from npilookup.domain.models.config import DEFAULT_MAX_CONCURRENCY
from npilookup.domain.models.errors import (
    InputValidationError,
    NpiLookupError,
    PartialBatchFailureError,
)
from npilookup.domain.models.provider import Provider

# Core Services Imports
from npilookup.core.services.lookup_service import ProviderLookupService

# Infrastructure Layer Imports
from npilookup.infrastructure.resilience.api_retry import classify_error
from npilookup.infrastructure.resilience.cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of a batch lookup.

    ``succeeded`` is keyed by NPI in completion order; look entries up by
    key, never by position. ``failures`` keeps (npi, error) pairs in the
    order they resolved.
    """
    total: int
    succeeded: Dict[str, Provider] = field(default_factory=dict)
    failures: List[Tuple[str, NpiLookupError]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    @property
    def error(self) -> Optional[PartialBatchFailureError]:
        """Aggregate error when at least one key failed, else None."""
        if not self.failures:
            return None
        return PartialBatchFailureError(self.failures, self.total, succeeded=self.succeeded)

    def raise_for_failures(self) -> None:
        """Raises the aggregate error if any key failed."""
        error = self.error
        if error is not None:
            raise error


class BatchFetchService:
    """Retrieves many providers concurrently with bounded admission."""

    def __init__(
        self,
        lookup_service: ProviderLookupService,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        on_event: Optional[EventSink] = None,
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {max_concurrency}")
        self.lookup_service = lookup_service
        self.max_concurrency = max_concurrency
        self._on_event = on_event or log_event

    async def get_providers_by_npis(
        self,
        npis: Iterable[str],
        cancel: Optional[CancellationToken] = None,
    ) -> BatchResult:
        """Fetches every NPI, at most ``max_concurrency`` at a time.

        Duplicate NPIs are fetched once. Per-key failures (including empty
        keys) are recorded in the result rather than raised.

        Raises:
            InputValidationError: ``npis`` is empty or a bare string.
        """
        if isinstance(npis, (str, bytes)):
            raise InputValidationError("npis must be a collection of NPI numbers, not a single string")
        keys = list(dict.fromkeys(npis))
        if not keys:
            raise InputValidationError("npi list cannot be empty")

        semaphore = asyncio.Semaphore(self.max_concurrency)
        started = time.perf_counter()
        logger.info(f"Batch fetch started: {len(keys)} NPI(s), max_concurrency={self.max_concurrency}")

        async def fetch_one(npi: str) -> Tuple[str, Union[Provider, NpiLookupError]]:
            async with semaphore:
                try:
                    return npi, await self.lookup_service.get_provider_by_npi(npi, cancel=cancel)
                except NpiLookupError as e:
                    return npi, e
                except Exception as e:
                    logger.error(f"Unexpected error fetching NPI {npi}: {e}", exc_info=True)
                    return npi, classify_error(e, key=npi)

        result = BatchResult(total=len(keys))
        tasks = [asyncio.ensure_future(fetch_one(npi)) for npi in keys]
        try:
            # Single consumer: the only writer of the success map and failure list.
            for next_done in asyncio.as_completed(tasks):
                npi, outcome = await next_done
                if isinstance(outcome, NpiLookupError):
                    logger.warning(f"Failed to fetch NPI {npi}: {outcome}")
                    result.failures.append((npi, outcome))
                else:
                    result.succeeded[npi] = outcome
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        duration = time.perf_counter() - started
        dispatch_event(self._on_event, BatchCompleted(
            total=result.total,
            succeeded=len(result.succeeded),
            failed=len(result.failures),
            duration_seconds=duration,
        ))
        if result.failures:
            logger.error(
                f"Batch fetch completed with {len(result.failures)} of {result.total} failed "
                f"in {duration:.2f}s; first error: {result.failures[0][1]}"
            )
        else:
            logger.info(f"Batch fetch completed: {result.total} NPI(s) in {duration:.2f}s")
        return result
