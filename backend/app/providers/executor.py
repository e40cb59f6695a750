"""Async provider call executor with timeouts, retries, circuit breaker, and caching.

Every external call the pipeline makes (narrative generation, place lookup,
photo search, catalog queries) goes through ProviderExecutor.execute:
- Hard timeout per attempt
- Bounded retries with jitter
- Per-provider circuit breaker (shared state via registry)
- Optional TTL cache keyed on the request
- Cooperative cancellation through a run-scoped CancelToken
- Metrics and structured logging
"""

import asyncio
import hashlib
import json
import random
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Generic, TypeVar

from backend.app.config import Settings
from backend.app.errors import (
    ProviderCallError,
    ProviderCancelledError,
    ProviderCircuitOpenError,
    ProviderTimeoutError,
)

T = TypeVar("T")


@dataclass(frozen=True)
class CallContext:
    """Context for one provider call with tracing."""

    trace_id: str
    provider: str
    operation: str = "call"


@dataclass
class CancelToken:
    """Run-scoped cancellation flag checked before every provider attempt."""

    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True

    def throw_if_cancelled(self) -> None:
        """Raise ProviderCancelledError if cancelled."""
        if self.cancelled:
            raise ProviderCancelledError("run cancelled")


@dataclass
class RunContext:
    """Per-run tracing and cancellation shared by every adapter call of one run."""

    trace_id: str
    cancel_token: CancelToken = field(default_factory=CancelToken)

    def call(self, provider: str, operation: str) -> CallContext:
        return CallContext(trace_id=self.trace_id, provider=provider, operation=operation)


@dataclass
class ProviderConfig:
    """Configuration for calls against one provider."""

    hard_timeout_ms: int
    retry_count: int
    retry_jitter_min_ms: int
    retry_jitter_max_ms: int
    breaker_failure_threshold: int = 5
    breaker_window_seconds: int = 60
    breaker_half_open_seconds: int = 30
    cache_ttl_seconds: int = 0

    @classmethod
    def from_settings(
        cls, settings: Settings, timeout_ms: int, cache_ttl_seconds: int = 0
    ) -> "ProviderConfig":
        """Build a config sharing the retry/breaker settings of the app."""
        return cls(
            hard_timeout_ms=timeout_ms,
            retry_count=settings.provider_retry_count,
            retry_jitter_min_ms=settings.retry_jitter_min_ms,
            retry_jitter_max_ms=settings.retry_jitter_max_ms,
            breaker_failure_threshold=settings.circuit_breaker_failures,
            breaker_window_seconds=settings.circuit_breaker_window_sec,
            breaker_half_open_seconds=settings.circuit_breaker_half_open_sec,
            cache_ttl_seconds=cache_ttl_seconds,
        )


class BreakerState(str, Enum):
    """Circuit breaker state."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Per-provider circuit breaker.

    Tracks failures within a time window and opens after threshold.
    """

    provider: str
    failure_threshold: int
    window_seconds: int
    half_open_seconds: int
    state: BreakerState = BreakerState.CLOSED
    failure_times: list[datetime] = field(default_factory=list)
    opened_at: datetime | None = None

    def record_success(self) -> None:
        """Record successful execution."""
        if self.state == BreakerState.HALF_OPEN:
            self.state = BreakerState.CLOSED
            self.failure_times.clear()
            self.opened_at = None

    def record_failure(self, now: datetime) -> None:
        """Record failed execution."""
        cutoff = now - timedelta(seconds=self.window_seconds)
        self.failure_times = [t for t in self.failure_times if t > cutoff]
        self.failure_times.append(now)

        if len(self.failure_times) >= self.failure_threshold:
            self.state = BreakerState.OPEN
            self.opened_at = now

    def check_and_update_state(self, now: datetime) -> BreakerState:
        """Move OPEN to HALF_OPEN once the cool-down has elapsed."""
        if self.state == BreakerState.OPEN:
            if self.opened_at and (now - self.opened_at).total_seconds() >= self.half_open_seconds:
                self.state = BreakerState.HALF_OPEN

        return self.state

    def is_open(self, now: datetime) -> bool:
        """Check if breaker is currently open (rejecting calls)."""
        return self.check_and_update_state(now) == BreakerState.OPEN


class BreakerRegistry:
    """Registry of per-provider circuit breakers with shared state."""

    def __init__(self) -> None:
        self._by_provider: dict[str, CircuitBreaker] = {}

    def get_or_create(self, provider: str, config: ProviderConfig) -> CircuitBreaker:
        """Get existing breaker for provider or create new one with given config."""
        if provider not in self._by_provider:
            self._by_provider[provider] = CircuitBreaker(
                provider=provider,
                failure_threshold=config.breaker_failure_threshold,
                window_seconds=config.breaker_window_seconds,
                half_open_seconds=config.breaker_half_open_seconds,
            )
        return self._by_provider[provider]

    def clear(self) -> None:
        """Clear all breakers (useful for testing)."""
        self._by_provider.clear()


_global_breaker_registry = BreakerRegistry()


def get_breaker_registry() -> BreakerRegistry:
    """Get the process-wide breaker registry."""
    return _global_breaker_registry


@dataclass
class CacheEntry(Generic[T]):
    """Cached provider result with metadata."""

    value: T
    cached_at: datetime
    ttl_seconds: int

    def is_fresh(self, now: datetime) -> bool:
        return (now - self.cached_at).total_seconds() < self.ttl_seconds


class ProviderCache:
    """In-memory cache for provider results."""

    def __init__(self) -> None:
        self._cache: dict[str, CacheEntry[Any]] = {}

    @staticmethod
    def make_key(provider: str, request: Mapping[str, Any]) -> str:
        """Generate deterministic cache key from request parameters."""
        sorted_json = json.dumps(dict(request), sort_keys=True, default=str)
        hash_digest = hashlib.sha256(sorted_json.encode()).hexdigest()
        return f"{provider}:{hash_digest}"

    def get(self, key: str, now: datetime) -> Any | None:
        """Get cached value if fresh, None otherwise."""
        entry = self._cache.get(key)
        if entry and entry.is_fresh(now):
            return entry.value
        elif entry:
            del self._cache[key]
        return None

    def set(self, key: str, value: Any, ttl_seconds: int, now: datetime) -> None:
        self._cache[key] = CacheEntry(value=value, cached_at=now, ttl_seconds=ttl_seconds)


class ProviderMetrics:
    """Interface for provider call metrics (no-op default)."""

    def record_latency(self, provider: str, outcome: str, latency_ms: float) -> None:
        pass

    def inc_error(self, provider: str, reason: str) -> None:
        pass

    def inc_cache_hit(self, provider: str) -> None:
        pass


class ProviderLogger:
    """Interface for structured attempt logging (no-op default)."""

    def log_attempt(
        self,
        ctx: CallContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        pass


class ProviderExecutor:
    """Runs provider calls with the full error handling pipeline."""

    def __init__(
        self,
        metrics: ProviderMetrics | None = None,
        logger: ProviderLogger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        breakers: BreakerRegistry | None = None,
        cache: ProviderCache | None = None,
    ) -> None:
        """Initialize executor.

        Args:
            metrics: Metrics recorder (optional, defaults to no-op)
            logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
            breakers: Breaker registry (default: process-wide registry)
            cache: Result cache shared by all calls through this executor
        """
        self._metrics = metrics or ProviderMetrics()
        self._logger = logger or ProviderLogger()
        self._sleep = sleep_fn or asyncio.sleep
        self._breakers = breakers or get_breaker_registry()
        self._cache = cache or ProviderCache()

    async def execute(
        self,
        ctx: CallContext,
        config: ProviderConfig,
        call: Callable[[], Awaitable[T]],
        cancel_token: CancelToken | None = None,
        *,
        cache_request: Mapping[str, Any] | None = None,
    ) -> T:
        """Execute one provider call.

        Args:
            ctx: Call context with trace id and provider name
            config: Execution configuration
            call: Zero-argument coroutine factory, invoked once per attempt
            cancel_token: Cancellation token (optional)
            cache_request: Request parameters used as cache key; caching only
                happens when given and config.cache_ttl_seconds > 0

        Raises:
            ProviderTimeoutError: Every attempt exceeded the hard timeout
            ProviderCircuitOpenError: Circuit breaker is open
            ProviderCancelledError: Run was cancelled
            ProviderCallError: Other failures after all retries
        """
        start_time = time.monotonic()
        if cancel_token is None:
            cancel_token = CancelToken()
        breaker = self._breakers.get_or_create(ctx.provider, config)

        cancel_token.throw_if_cancelled()

        # Cached results bypass the breaker
        now = datetime.now()
        cache_key: str | None = None
        if cache_request is not None and config.cache_ttl_seconds > 0:
            cache_key = ProviderCache.make_key(ctx.provider, cache_request)
            cached = self._cache.get(cache_key, now)
            if cached is not None:
                elapsed_ms = (time.monotonic() - start_time) * 1000
                self._metrics.record_latency(ctx.provider, "cache_hit", elapsed_ms)
                self._metrics.inc_cache_hit(ctx.provider)
                self._logger.log_attempt(ctx, 0, "cache_hit", elapsed_ms, cache_hit=True)
                return cached  # type: ignore[no-any-return]

        if breaker.is_open(now):
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._metrics.record_latency(ctx.provider, "breaker_open", elapsed_ms)
            self._metrics.inc_error(ctx.provider, "breaker_open")
            self._logger.log_attempt(
                ctx, 0, "breaker_open", elapsed_ms, error_reason="breaker_open"
            )
            raise ProviderCircuitOpenError(f"Circuit breaker open for {ctx.provider}")

        last_error: Exception | None = None
        for attempt in range(config.retry_count + 1):
            cancel_token.throw_if_cancelled()
            attempt_start = time.monotonic()

            try:
                result = await asyncio.wait_for(call(), timeout=config.hard_timeout_ms / 1000)

                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                breaker.record_success()
                self._metrics.record_latency(ctx.provider, "success", elapsed_ms)
                self._logger.log_attempt(ctx, attempt + 1, "success", elapsed_ms)

                if cache_key is not None:
                    self._cache.set(cache_key, result, config.cache_ttl_seconds, datetime.now())
                return result

            except TimeoutError as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                last_error = e
                self._metrics.inc_error(ctx.provider, "timeout")
                self._logger.log_attempt(
                    ctx, attempt + 1, "timeout", elapsed_ms, error_reason="timeout"
                )
                breaker.record_failure(datetime.now())

            except ProviderCancelledError:
                # Cancellation does not count towards the breaker
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                self._metrics.record_latency(ctx.provider, "cancelled", elapsed_ms)
                self._logger.log_attempt(
                    ctx, attempt + 1, "cancelled", elapsed_ms, error_reason="cancelled"
                )
                raise

            except Exception as e:
                elapsed_ms = (time.monotonic() - attempt_start) * 1000
                last_error = e
                self._metrics.inc_error(ctx.provider, "execution_error")
                self._logger.log_attempt(
                    ctx, attempt + 1, "error", elapsed_ms, error_reason=type(e).__name__
                )
                breaker.record_failure(datetime.now())

            if attempt < config.retry_count:
                cancel_token.throw_if_cancelled()
                jitter_ms = random.uniform(config.retry_jitter_min_ms, config.retry_jitter_max_ms)
                await self._sleep(jitter_ms / 1000)

        if isinstance(last_error, TimeoutError):
            raise ProviderTimeoutError(
                f"{ctx.provider}.{ctx.operation} timed out after all retries"
            )
        raise ProviderCallError(
            f"{ctx.provider}.{ctx.operation} failed after all retries"
        ) from last_error
