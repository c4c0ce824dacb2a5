"""Immutable configuration value objects for the registry client.

Both structs validate themselves on construction and cannot be changed
afterwards; build a new one with ``dataclasses.replace`` instead.
"""

from dataclasses import dataclass, field

DEFAULT_BASE_URL = "https://npiregistry.cms.hhs.gov/api"
DEFAULT_USER_AGENT = "npilookup/1.0"
DEFAULT_TIMEOUT_SECONDS = 30.0

DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_DELAY_SECONDS = 0.1
DEFAULT_MAX_DELAY_SECONDS = 5.0
DEFAULT_BACKOFF_MULTIPLIER = 2.0

DEFAULT_CACHE_TTL_SECONDS = 5 * 60
DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS = 60.0

DEFAULT_MAX_CONCURRENCY = 5


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings for retrying transient failures.

    Retry ``n`` (1-based) waits ``min(max_delay, initial_delay * backoff_multiplier ** (n - 1))``.
    ``max_retries = 0`` means a single attempt.
    """
    max_retries: int = DEFAULT_MAX_RETRIES
    initial_delay: float = DEFAULT_INITIAL_DELAY_SECONDS
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.initial_delay < 0:
            raise ValueError(f"initial_delay must be >= 0, got {self.initial_delay}")
        if self.max_delay < self.initial_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= initial_delay ({self.initial_delay})"
            )
        if self.backoff_multiplier < 1.0:
            raise ValueError(f"backoff_multiplier must be >= 1.0, got {self.backoff_multiplier}")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1


@dataclass(frozen=True)
class ClientConfig:
    """Everything the registry client needs at construction time."""
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    retry: RetryPolicy = field(default_factory=RetryPolicy)
    cache_enabled: bool = False
    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    cache_sweep_interval_seconds: float = DEFAULT_CACHE_SWEEP_INTERVAL_SECONDS
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    user_agent: str = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("base_url cannot be empty")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.cache_ttl_seconds <= 0:
            raise ValueError(f"cache_ttl_seconds must be > 0, got {self.cache_ttl_seconds}")
        if self.cache_sweep_interval_seconds <= 0:
            raise ValueError(
                f"cache_sweep_interval_seconds must be > 0, got {self.cache_sweep_interval_seconds}"
            )
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be >= 1, got {self.max_concurrency}")
        # Normalised so URL assembly never produces a double slash.
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))
