# ABOUTME: Retry stage for the HaloPSA request pipeline
# ABOUTME: Re-issues transient failures with fixed or exponential backoff

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from halopsa.exceptions import ErrorKind
from halopsa.options import HaloClientOptions
from halopsa.pipeline import HTTP_LOGGER_NAME, Handler, RequestContext

http_logger = logging.getLogger(HTTP_LOGGER_NAME)


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to retry, and how long to wait between attempts."""

    max_attempts: int = 3
    delay: float = 1.0
    max_delay: float = 30.0
    exponential: bool = True

    @classmethod
    def from_options(cls, options: HaloClientOptions) -> "RetryPolicy":
        return cls(
            max_attempts=options.max_retry_attempts,
            delay=options.retry_delay,
            max_delay=options.max_retry_delay,
            exponential=options.use_exponential_backoff,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before retry ``attempt`` (1-indexed)."""
        if not self.exponential:
            return self.delay
        delay = self.delay
        for _ in range(attempt - 1):
            if delay >= self.max_delay:
                break
            delay *= 2
        return min(delay, self.max_delay)


def is_transient_response(response: httpx.Response) -> bool:
    kind = ErrorKind.for_status(response.status_code)
    return kind is not None and kind.retryable


class RetryStage:
    """
    Pipeline stage that retries transient failures.

    Network errors, timeouts, 429 and 5xx responses are retried up to
    ``policy.max_attempts`` additional times. Anything else returns
    immediately. When retries run out the last response is returned, or the
    last exception re-raised, unchanged. Cancellation is never retried.
    """

    def __init__(
        self,
        policy: RetryPolicy,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        logger: logging.Logger | None = None,
    ) -> None:
        self.policy = policy
        self._sleep = sleep
        self._logger = logger or http_logger

    async def __call__(self, request: httpx.Request, call_next: Handler) -> httpx.Response:
        attempt = 0
        while True:
            try:
                response = await call_next(request)
            except httpx.TransportError as exc:
                if attempt >= self.policy.max_attempts:
                    raise
                reason = f"{type(exc).__name__}: {exc}"
            else:
                if attempt >= self.policy.max_attempts or not is_transient_response(response):
                    return response
                reason = f"HTTP {response.status_code}"
                await response.aclose()

            attempt += 1
            delay = self.policy.delay_for(attempt)
            context = RequestContext.of(request)
            self._logger.warning(
                f"[{context.correlation_id}] {request.method} {request.url} failed ({reason}), "
                f"retry {attempt}/{self.policy.max_attempts} in {delay:.2f}s"
            )
            await self._sleep(delay)
