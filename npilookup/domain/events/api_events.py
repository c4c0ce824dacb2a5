"""Domain Events related to registry calls, caching and batching.

Examples include events for when calls start, are retried, fail, succeed,
are cancelled, or when a batch completes.
"""

import logging
from dataclasses import dataclass, field
import time
from typing import Callable, Optional


# Base Event Class
@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


EventSink = Callable[[DomainEvent], None]

logger = logging.getLogger(__name__)


def log_event(event: DomainEvent) -> None:
    """Default event sink: records the event at DEBUG level."""
    logger.debug(f"EVENT: {event}")


def dispatch_event(sink: EventSink, event: DomainEvent) -> None:
    """Delivers an event to a sink; a failing sink is logged, never raised."""
    try:
        sink(event)
    except Exception as e:
        logger.warning(f"Event handler failed for {type(event).__name__}: {e}")

# --- Specific API Events ---

@dataclass
class ApiCallInitiated(DomainEvent):
    """Event triggered when an attempt is about to be made."""
    url: str
    attempt_number: int  # 1-based
    npi: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallSucceeded(DomainEvent):
    """Event triggered when an attempt succeeds."""
    url: str
    attempt_number: int
    latency_ms: float
    npi: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class ApiCallFailed(DomainEvent):
    """Event triggered when a single attempt fails."""
    url: str
    attempt_number: int
    error_kind: str
    error_message: str
    status_code: Optional[int] = None
    npi: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed attempt."""
    url: str
    attempt_number: int  # the attempt about to be waited for
    delay_seconds: float
    npi: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RetriesExhausted(DomainEvent):
    """Event triggered when the retry budget is spent."""
    url: str
    attempts: int
    error_message: str
    npi: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

@dataclass
class RequestCancelled(DomainEvent):
    """Event triggered when a cancellation signal stops a request."""
    url: str
    attempts: int
    npi: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

# --- Cache & Batch Events ---

@dataclass
class CacheLookup(DomainEvent):
    """Event triggered for every cache read on the lookup path."""
    npi: str
    hit: bool
    timestamp: float = field(default_factory=time.time)

@dataclass
class BatchCompleted(DomainEvent):
    """Event triggered when every key of a batch has resolved."""
    total: int
    succeeded: int
    failed: int
    duration_seconds: float
    timestamp: float = field(default_factory=time.time)
