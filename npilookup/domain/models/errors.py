"""Error taxonomy for NPI Registry lookups.

Every failure surfaced by the client is an ``NpiLookupError`` subclass whose
``kind`` is fixed when the error is built, so callers can branch on
``error.kind`` instead of re-inspecting concrete exception types.
"""

from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ErrorKind(str, Enum):
    """Closed set of error classifications."""
    INPUT_VALIDATION = "input_validation"
    TRANSIENT = "transient"
    FATAL = "fatal"
    TRANSPORT = "transport"
    RETRIES_EXHAUSTED = "retries_exhausted"
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    PARTIAL_BATCH_FAILURE = "partial_batch_failure"


RETRYABLE_KINDS = frozenset({ErrorKind.TRANSIENT, ErrorKind.TRANSPORT})


class NpiLookupError(Exception):
    """Base class for all client errors.

    Attributes:
        kind: Classification of the failure.
        key: The NPI number involved, when there is one.
        cause: The underlying exception, when there is one.
    """

    kind: ErrorKind = ErrorKind.FATAL

    def __init__(
        self,
        message: str,
        *,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.message = message
        self.key = key
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.key:
            return f"{self.message} (npi={self.key})"
        return self.message


class InputValidationError(NpiLookupError):
    """Raised locally for bad input (empty NPI, empty batch). Never retried."""
    kind = ErrorKind.INPUT_VALIDATION


class AttemptError(NpiLookupError):
    """One failed attempt against the registry.

    The kind is one of TRANSIENT, FATAL or TRANSPORT and is decided here,
    once, from the status code (or the lack of one).
    """

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        *,
        status_code: Optional[int] = None,
        key: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        if kind not in (ErrorKind.TRANSIENT, ErrorKind.FATAL, ErrorKind.TRANSPORT):
            raise ValueError(f"Invalid attempt error kind: {kind}")
        super().__init__(message, key=key, cause=cause)
        self.kind = kind
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    @classmethod
    def from_status(cls, status_code: int, body: bytes = b"", key: Optional[str] = None) -> "AttemptError":
        """Builds an attempt error from a non-2xx HTTP status.

        5xx and 429 are transient; every other status is fatal.
        """
        if status_code >= 500 or status_code == 429:
            kind = ErrorKind.TRANSIENT
        else:
            kind = ErrorKind.FATAL
        text = body.decode("utf-8", errors="replace").strip()
        message = f"API returned status {status_code}"
        if text:
            message = f"{message}: {text}"
        return cls(kind, message, status_code=status_code, key=key)

    @classmethod
    def from_exception(cls, error: BaseException, key: Optional[str] = None) -> "AttemptError":
        """Wraps a failure from below the protocol layer. Always retryable."""
        message = str(error) or type(error).__name__
        return cls(ErrorKind.TRANSPORT, f"request failed: {message}", key=key, cause=error)


class RetriesExhaustedError(NpiLookupError):
    """Raised when every allowed attempt failed with a retryable error."""
    kind = ErrorKind.RETRIES_EXHAUSTED

    def __init__(self, last_error: AttemptError, attempts: int, key: Optional[str] = None):
        super().__init__(
            f"max retries exceeded after {attempts} attempt(s): {last_error.message}",
            key=key if key is not None else last_error.key,
            cause=last_error,
        )
        self.last_error = last_error
        self.attempts = attempts


class RequestCancelledError(NpiLookupError):
    """Raised when the caller's cancellation signal stops a pending request."""
    kind = ErrorKind.CANCELLED

    def __init__(self, message: str = "request cancelled", *, key: Optional[str] = None, attempts: int = 0):
        super().__init__(message, key=key)
        self.attempts = attempts


class NotFoundError(NpiLookupError):
    """The registry answered successfully but had no record for the NPI."""
    kind = ErrorKind.NOT_FOUND

    def __init__(self, key: str):
        super().__init__(f"no provider found with NPI {key}", key=key)

    def __str__(self) -> str:
        return self.message


class PartialBatchFailureError(NpiLookupError):
    """A batch finished with at least one failed key.

    ``succeeded`` still holds every provider that was fetched, so callers can
    use the partial result after catching this error.
    """
    kind = ErrorKind.PARTIAL_BATCH_FAILURE

    def __init__(
        self,
        failures: List[Tuple[str, NpiLookupError]],
        total: int,
        succeeded: Optional[Dict[str, Any]] = None,
    ):
        if not failures:
            raise ValueError("PartialBatchFailureError requires at least one failure")
        first_key, first_error = failures[0]
        super().__init__(
            f"batch fetch completed with {len(failures)} of {total} failed; "
            f"first failure for NPI {first_key}: {first_error}",
            cause=first_error,
        )
        self.failures = list(failures)
        self.total = total
        self.succeeded = dict(succeeded or {})

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def failed_keys(self) -> List[str]:
        return [key for key, _ in self.failures]
