# ABOUTME: Request pipeline built from composable middleware functions
# ABOUTME: Runs logging, retry and authentication stages inside an httpx transport

import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field

import httpx

Handler = Callable[[httpx.Request], Awaitable[httpx.Response]]
Middleware = Callable[[httpx.Request, Handler], Awaitable[httpx.Response]]

_CONTEXT_KEY = "halopsa.context"

# Logger used by the pipeline stages unless the options supply one
HTTP_LOGGER_NAME = "halopsa.http"


@dataclass
class RequestContext:
    """Per-call correlation data shared by the pipeline stages."""

    method: str
    url: str
    correlation_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    started_at: float = field(default_factory=time.perf_counter)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started_at) * 1000

    @classmethod
    def of(cls, request: httpx.Request) -> "RequestContext":
        """Get the request's context, creating it on first access."""
        context = request.extensions.get(_CONTEXT_KEY)
        if context is None:
            context = cls(method=request.method, url=str(request.url))
            request.extensions[_CONTEXT_KEY] = context
        return context


def compose(middlewares: Sequence[Middleware], endpoint: Handler) -> Handler:
    """
    Fold middleware into a single handler.

    The first middleware is the outermost; ``endpoint`` runs last.
    """
    handler = endpoint
    for middleware in reversed(middlewares):
        handler = _bind(middleware, handler)
    return handler


def _bind(middleware: Middleware, call_next: Handler) -> Handler:
    async def handler(request: httpx.Request) -> httpx.Response:
        return await middleware(request, call_next)

    return handler


class PipelineTransport(httpx.AsyncBaseTransport):
    """An httpx transport that sends every request through a middleware chain."""

    def __init__(self, inner: httpx.AsyncBaseTransport, middlewares: Sequence[Middleware]) -> None:
        self._inner = inner
        self._handler = compose(middlewares, inner.handle_async_request)

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._handler(request)

    async def aclose(self) -> None:
        await self._inner.aclose()
