# ABOUTME: Logging stage for the HaloPSA request pipeline
# ABOUTME: Records request/response metadata and timing without touching bodies

import asyncio
import logging

import httpx

from halopsa.pipeline import HTTP_LOGGER_NAME, Handler, RequestContext

http_logger = logging.getLogger(HTTP_LOGGER_NAME)

_REDACTED_HEADERS = {"authorization", "cookie"}


def _format_headers(headers: httpx.Headers) -> str:
    return ", ".join(
        f"{name}: {'***' if name.lower() in _REDACTED_HEADERS else value}"
        for name, value in headers.multi_items()
    )


class RequestLogger:
    """
    Outermost pipeline stage. Purely an observer.

    Request and response lines are controlled by the two toggles. Failures
    raised by inner stages are always logged at ERROR and re-raised as is.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        log_requests: bool = False,
        log_responses: bool = False,
    ) -> None:
        self._logger = logger or http_logger
        self.log_requests = log_requests
        self.log_responses = log_responses

    async def __call__(self, request: httpx.Request, call_next: Handler) -> httpx.Response:
        context = RequestContext.of(request)

        if self.log_requests:
            self._logger.info(f"[{context.correlation_id}] HTTP {request.method} {request.url}")
            self._logger.debug(
                f"[{context.correlation_id}] Request Headers: {_format_headers(request.headers)}"
            )

        try:
            response = await call_next(request)
        except (Exception, asyncio.CancelledError) as exc:
            message = str(exc) or type(exc).__name__
            self._logger.error(
                f"[{context.correlation_id}] HTTP {request.method} {request.url} "
                f"failed after {context.elapsed_ms:.2f}ms: {message}",
                exc_info=not isinstance(exc, asyncio.CancelledError),
            )
            raise

        if self.log_responses:
            level = logging.INFO if response.is_success else logging.WARNING
            self._logger.log(
                level,
                f"[{context.correlation_id}] HTTP {response.status_code} {response.reason_phrase} "
                f"in {context.elapsed_ms:.2f}ms",
            )
            if not response.is_success:
                self._logger.debug(
                    f"[{context.correlation_id}] Response Headers: {_format_headers(response.headers)}"
                )
        return response
