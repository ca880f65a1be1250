"""Priority-ordered fallback across market data providers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from portfolio_engine.providers.http import ProviderError
from portfolio_engine.services.base import ErrorEnvelope, ServiceContext, ServiceResult
from portfolio_engine.services.provider_status import ProviderStatus

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)
RATE_LIMIT_PATTERNS = (
    "rate limit",
    "too many requests",
    "limit exceeded",
    "api limit",
)
DEFAULT_RATE_LIMIT_DISABLE_SECONDS = 60 * 60
UNAVAILABLE_MESSAGE = "All market data providers are currently unavailable. Please try again later."


@dataclass(frozen=True)
class ProviderAttempt(Generic[T]):
    key: str
    label: str
    call: Callable[[], T | None]
    is_empty: Callable[[T], bool] | None = None

    def found(self, value: T | None) -> bool:
        if value is None:
            return False
        return not (self.is_empty is not None and self.is_empty(value))


class FallbackManager:
    def __init__(
        self,
        ctx: ServiceContext,
        provider_status: ProviderStatus | None = None,
        rate_limit_disable_seconds: dict[str, int] | None = None,
    ) -> None:
        self._ctx = ctx
        self._provider_status = provider_status or ProviderStatus()
        self._rate_limit_disable_seconds = rate_limit_disable_seconds or {}

    @property
    def provider_status(self) -> ProviderStatus:
        return self._provider_status

    def execute(self, operation: str, symbol: str, attempts: list[ProviderAttempt[T]]) -> ServiceResult[T]:
        """Run ``attempts`` in order and return the first non-empty result.

        Upstream error text is logged but never copied into the returned envelope.
        """
        had_fallback = False
        upstream_issue = False
        for attempt in attempts:
            if self._provider_status.is_disabled(attempt.key):
                had_fallback = True
                upstream_issue = True
                LOGGER.info(
                    "provider skipped (disabled window): op=%s symbol=%s provider=%s disabled_until=%s",
                    operation,
                    symbol,
                    attempt.key,
                    self._provider_status.get_disabled_until(attempt.key),
                )
                continue

            started = time.perf_counter()
            try:
                self._ctx.rate_limiter.wait(attempt.key)
                value = attempt.call()
                found = attempt.found(value)
                elapsed_ms = round((time.perf_counter() - started) * 1000, 2)
                LOGGER.info(
                    "provider attempt complete: op=%s symbol=%s provider=%s success=%s latency_ms=%s",
                    operation,
                    symbol,
                    attempt.key,
                    found,
                    elapsed_ms,
                )
                if found:
                    return ServiceResult(
                        data=value,
                        source=attempt.label,
                        warning="Used fallback provider due to upstream issue." if had_fallback else None,
                        fetched_at=time.time(),
                    )
                had_fallback = True
            except ProviderError as error:
                had_fallback = True
                upstream_issue = True
                LOGGER.warning(
                    "provider attempt failed: op=%s symbol=%s provider=%s code=%s status=%s latency_ms=%s message=%s",
                    operation,
                    symbol,
                    attempt.key,
                    error.code,
                    error.status,
                    round((time.perf_counter() - started) * 1000, 2),
                    error.message,
                )
                if self.is_rate_limited(error):
                    ttl_seconds = self._rate_limit_disable_seconds.get(attempt.key, DEFAULT_RATE_LIMIT_DISABLE_SECONDS)
                    disabled_until = self._provider_status.disable_provider(attempt.key, ttl_seconds)
                    LOGGER.warning(
                        "provider disabled after rate limit: provider=%s disabled_until=%s op=%s symbol=%s",
                        attempt.key,
                        disabled_until,
                        operation,
                        symbol,
                    )
            except Exception:
                had_fallback = True
                upstream_issue = True
                LOGGER.exception(
                    "provider attempt unexpected failure: op=%s symbol=%s provider=%s",
                    operation,
                    symbol,
                    attempt.key,
                )

        if attempts and not upstream_issue:
            return ServiceResult(
                data=None,
                error=ErrorEnvelope(code="NOT_FOUND", message=f"No data available for {symbol}.", retriable=False),
            )
        return ServiceResult(data=None, error=ErrorEnvelope(code="UPSTREAM", message=UNAVAILABLE_MESSAGE))

    @staticmethod
    def is_rate_limited(error: ProviderError) -> bool:
        if error.code == "RATE_LIMIT" or error.status == 429:
            return True
        message = (error.message or "").lower()
        return any(pattern in message for pattern in RATE_LIMIT_PATTERNS)
