# ABOUTME: Exception taxonomy for the HaloPSA client
# ABOUTME: Maps failed HTTP responses and transport errors to typed Halo errors

import email.utils
import enum
import json
import logging
from datetime import datetime, timezone
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    """Closed set of failure kinds a caller can observe."""

    AUTHENTICATION = "authentication"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    BAD_REQUEST = "bad_request"
    RATE_LIMIT = "rate_limit"
    SERVER = "server"
    GENERIC = "generic"

    @classmethod
    def for_status(cls, status_code: int) -> "ErrorKind | None":
        """
        Classify an HTTP status code. Returns None for 2xx statuses.

        Any other status is a failure: redirects are not followed, so a 3xx
        reaching the caller is GENERIC like an unmapped 4xx.
        """
        if 200 <= status_code < 300:
            return None
        if status_code in _STATUS_KINDS:
            return _STATUS_KINDS[status_code]
        if 500 <= status_code < 600:
            return cls.SERVER
        return cls.GENERIC

    @property
    def retryable(self) -> bool:
        return self in (ErrorKind.RATE_LIMIT, ErrorKind.SERVER)


_STATUS_KINDS = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.AUTHENTICATION,
    403: ErrorKind.AUTHORIZATION,
    404: ErrorKind.NOT_FOUND,
    429: ErrorKind.RATE_LIMIT,
}


class HaloError(Exception):
    """Base exception for all HaloPSA client errors."""


class ConfigurationError(HaloError, ValueError):
    """Client options failed validation."""

    def __init__(self, message: str, field: str) -> None:
        super().__init__(message)
        self.field = field


class OptionFormatError(ConfigurationError):
    """An option value does not have the required shape."""


class HaloApiError(HaloError):
    """
    A request to the HaloPSA API failed.

    Every variant carries the same request metadata. Only ``message`` is
    guaranteed; ``status_code`` is populated whenever a response reached
    the client, and ``request_url``/``request_method`` whenever the failing
    request is known.
    """

    kind = ErrorKind.GENERIC

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
        request_url: str | None = None,
        request_method: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        self.request_url = request_url
        self.request_method = request_method
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, status_code={self.status_code}, "
            f"error_code={self.error_code!r})"
        )


class HaloAuthenticationError(HaloApiError):
    """Credentials were rejected (401) or the token exchange failed."""

    kind = ErrorKind.AUTHENTICATION


class HaloAuthorizationError(HaloApiError):
    """Authenticated but not allowed (403)."""

    kind = ErrorKind.AUTHORIZATION


class HaloNotFoundError(HaloApiError):
    """The requested resource does not exist (404)."""

    kind = ErrorKind.NOT_FOUND

    def __init__(
        self,
        message: str,
        *,
        resource_type: str | None = None,
        resource_id: Any = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.resource_type = resource_type
        self.resource_id = resource_id


class HaloBadRequestError(HaloApiError):
    """The request was rejected as malformed or invalid (400)."""

    kind = ErrorKind.BAD_REQUEST

    def __init__(
        self,
        message: str,
        *,
        validation_errors: list[str] | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.validation_errors = list(validation_errors or [])


class HaloRateLimitError(HaloApiError):
    """Too many requests (429)."""

    kind = ErrorKind.RATE_LIMIT

    def __init__(
        self,
        message: str,
        *,
        retry_after_seconds: int | None = None,
        rate_limit: int | None = None,
        remaining_requests: int | None = None,
        reset_time: datetime | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.retry_after_seconds = retry_after_seconds
        self.rate_limit = rate_limit
        self.remaining_requests = remaining_requests
        self.reset_time = reset_time


class HaloServerError(HaloApiError):
    """The API failed on its side (5xx)."""

    kind = ErrorKind.SERVER


_DEFAULT_MESSAGES = {
    ErrorKind.AUTHENTICATION: "Authentication failed",
    ErrorKind.AUTHORIZATION: "Access to the requested resource is forbidden",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.BAD_REQUEST: "Request was rejected as invalid",
    ErrorKind.RATE_LIMIT: "Rate limit exceeded",
    ErrorKind.SERVER: "HaloPSA server error",
}


def _parse_body(response: httpx.Response) -> tuple[Any, str]:
    """Return (parsed JSON or None, raw text) for a response body."""
    try:
        text = response.text
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return None, ""
    if not text:
        return None, ""
    try:
        return json.loads(text), text
    except ValueError:
        return None, text


def _first(data: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def _parse_retry_after(value: str | None) -> int | None:
    """Retry-After is either delta-seconds or an HTTP-date."""
    if not value:
        return None
    seconds = _as_int(value)
    if seconds is not None:
        return seconds
    try:
        when = email.utils.parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0, int((when - datetime.now(timezone.utc)).total_seconds()))


def _parse_reset_time(value: Any) -> datetime | None:
    """X-RateLimit-Reset is epoch seconds or an ISO-8601 timestamp."""
    if value in (None, ""):
        return None
    epoch = _as_int(value)
    if epoch is not None:
        return datetime.fromtimestamp(epoch, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _request_of(response: httpx.Response) -> httpx.Request | None:
    try:
        return response.request
    except RuntimeError:
        return None


def _validation_errors(data: dict[str, Any]) -> list[str]:
    raw = _first(data, "errors", "validation_errors")
    if isinstance(raw, list):
        return [str(item) for item in raw]
    if isinstance(raw, dict):
        errors = []
        for field, messages in raw.items():
            if isinstance(messages, list):
                errors.extend(f"{field}: {msg}" for msg in messages)
            else:
                errors.append(f"{field}: {messages}")
        return errors
    if isinstance(raw, str):
        return [raw]
    return []


def error_from_response(
    response: httpx.Response,
    *,
    resource_type: str | None = None,
    resource_id: Any = None,
) -> HaloApiError | None:
    """
    Classify a completed response into the error taxonomy.

    Args:
        response: A response whose body has been read
        resource_type: Resource type of the call, attached to not-found errors
        resource_id: Resource id of the call, attached to not-found errors

    Returns:
        The matching HaloApiError, or None if the response is a success
    """
    kind = ErrorKind.for_status(response.status_code)
    if kind is None:
        return None

    data, text = _parse_body(response)
    body = data if isinstance(data, dict) else {}
    details: dict[str, Any] = dict(body) if body else {"body": text}
    if kind is ErrorKind.GENERIC:
        details.setdefault("body", text)

    message = _first(body, "message", "error_description", "detail")
    if not message:
        message = _DEFAULT_MESSAGES.get(
            kind, f"HaloPSA request failed with status {response.status_code}"
        )
    error_code = _first(body, "error", "code", "error_code")

    request = _request_of(response)
    common: dict[str, Any] = {
        "status_code": response.status_code,
        "error_code": str(error_code) if error_code is not None else None,
        "details": details,
        "request_url": str(request.url) if request is not None else None,
        "request_method": request.method if request is not None else None,
    }

    if kind is ErrorKind.NOT_FOUND:
        if resource_type is not None and message == _DEFAULT_MESSAGES[kind]:
            message = f"{resource_type} {resource_id} not found"
        return HaloNotFoundError(
            str(message), resource_type=resource_type, resource_id=resource_id, **common
        )
    if kind is ErrorKind.BAD_REQUEST:
        return HaloBadRequestError(
            str(message), validation_errors=_validation_errors(body), **common
        )
    if kind is ErrorKind.RATE_LIMIT:
        headers = response.headers
        retry_after = _parse_retry_after(headers.get("Retry-After"))
        if retry_after is None:
            retry_after = _as_int(body.get("retry_after"))
        return HaloRateLimitError(
            str(message),
            retry_after_seconds=retry_after,
            rate_limit=_as_int(headers.get("X-RateLimit-Limit")),
            remaining_requests=_as_int(headers.get("X-RateLimit-Remaining")),
            reset_time=_parse_reset_time(headers.get("X-RateLimit-Reset")),
            **common,
        )
    if kind is ErrorKind.AUTHENTICATION:
        return HaloAuthenticationError(str(message), **common)
    if kind is ErrorKind.AUTHORIZATION:
        return HaloAuthorizationError(str(message), **common)
    if kind is ErrorKind.SERVER:
        return HaloServerError(str(message), **common)
    return HaloApiError(str(message), **common)


def raise_for_response(
    response: httpx.Response,
    *,
    resource_type: str | None = None,
    resource_id: Any = None,
) -> None:
    """Raise the classified error for a non-success response."""
    error = error_from_response(
        response, resource_type=resource_type, resource_id=resource_id
    )
    if error is not None:
        logger.debug(f"Classified HTTP {response.status_code} as {error.kind.value}")
        raise error


def error_from_transport(exc: httpx.RequestError, request: httpx.Request | None = None) -> HaloApiError:
    """
    Wrap an httpx request failure.

    Covers transport errors that never produced a response and responses
    whose body could not be decoded (for example a bad Content-Encoding).
    """
    if request is None:
        try:
            request = exc.request
        except RuntimeError:
            request = None
    if isinstance(exc, httpx.DecodingError):
        message = f"Failed to decode response body: {exc}"
    elif isinstance(exc, httpx.TimeoutException):
        message = f"Request timed out: {exc}"
    else:
        message = f"Request failed: {exc}"
    return HaloApiError(
        message,
        request_url=str(request.url) if request is not None else None,
        request_method=request.method if request is not None else None,
        cause=exc,
    )
