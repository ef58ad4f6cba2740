# ABOUTME: Authentication stage for the HaloPSA request pipeline
# ABOUTME: Obtains client-credentials bearer tokens and attaches them to requests

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from halopsa.exceptions import HaloAuthenticationError
from halopsa.options import HaloClientOptions
from halopsa.pipeline import Handler

logger = logging.getLogger(__name__)

# Treat tokens as expired slightly early so they never lapse in flight.
# Short-lived tokens get a proportionally smaller margin.
EXPIRY_SKEW_SECONDS = 30.0
EXPIRY_SKEW_FRACTION = 0.5
DEFAULT_TOKEN_LIFETIME = 3600.0


@dataclass(frozen=True)
class _Credential:
    access_token: str
    expires_at: float
    skew: float = EXPIRY_SKEW_SECONDS

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at - self.skew


class TokenAuthenticator:
    """
    Pipeline stage that keeps a bearer token attached to every request.

    Tokens come from the client-credentials exchange against
    ``{base_url}/auth/token``. The exchange is sent straight to the next
    handler (the raw transport), so it never passes through logging or
    retry. Concurrent callers that find the token expired share a single
    exchange.
    """

    def __init__(self, options: HaloClientOptions, clock=time.monotonic) -> None:
        self._options = options
        self._clock = clock
        self._credential: _Credential | None = None
        self._lock = asyncio.Lock()

    @property
    def has_valid_credential(self) -> bool:
        credential = self._credential
        return credential is not None and credential.is_valid(self._clock())

    def invalidate(self) -> None:
        """Drop the held token so the next request re-authenticates."""
        if self._credential is not None:
            logger.info("Discarding HaloPSA access token")
        self._credential = None

    async def __call__(self, request: httpx.Request, call_next: Handler) -> httpx.Response:
        credential = await self._get_credential(call_next)
        request.headers["Authorization"] = f"Bearer {credential.access_token}"

        response = await call_next(request)
        if response.status_code == 401:
            logger.warning("HaloPSA rejected the access token, will re-authenticate on next attempt")
            # A concurrent caller may already hold a newer token
            if self._credential is credential:
                self.invalidate()
        return response

    async def _get_credential(self, call_next: Handler) -> _Credential:
        credential = self._credential
        if credential is not None and credential.is_valid(self._clock()):
            return credential

        async with self._lock:
            # Another caller may have refreshed while we waited
            credential = self._credential
            if credential is not None and credential.is_valid(self._clock()):
                return credential

            credential = await self._exchange(call_next)
            self._credential = credential
            return credential

    async def _exchange(self, call_next: Handler) -> _Credential:
        """
        Perform the client-credentials token exchange.

        Raises:
            HaloAuthenticationError: The token endpoint refused the credentials
                or returned no token
        """
        options = self._options
        logger.info(f"Requesting HaloPSA access token for account {options.account}")

        request = httpx.Request(
            "POST",
            options.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": options.client_id,
                "client_secret": options.client_secret,
                "scope": "all",
            },
            headers={"Accept": "application/json"},
            extensions={"timeout": httpx.Timeout(options.request_timeout).as_dict()},
        )
        response = await call_next(request)
        try:
            await response.aread()
        finally:
            await response.aclose()

        payload = _json_or_none(response)

        if not response.is_success:
            error_code = payload.get("error") if payload else None
            description = payload.get("error_description") if payload else None
            raise HaloAuthenticationError(
                description or f"Token request failed with status {response.status_code}",
                status_code=response.status_code,
                error_code=error_code,
                details=payload or {"body": response.text},
                request_url=str(request.url),
                request_method=request.method,
            )

        access_token = payload.get("access_token") if payload else None
        if not access_token:
            raise HaloAuthenticationError(
                "Token response did not contain an access_token",
                status_code=response.status_code,
                details=payload or {"body": response.text},
                request_url=str(request.url),
                request_method=request.method,
            )

        expires_in = payload.get("expires_in")
        if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
            expires_in = DEFAULT_TOKEN_LIFETIME

        lifetime = max(float(expires_in), 0.0)
        logger.info(f"Obtained HaloPSA access token (expires in {expires_in}s)")
        return _Credential(
            access_token=access_token,
            expires_at=self._clock() + lifetime,
            skew=min(EXPIRY_SKEW_SECONDS, lifetime * EXPIRY_SKEW_FRACTION),
        )


def _json_or_none(response: httpx.Response) -> dict[str, Any] | None:
    try:
        data = json.loads(response.content)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None
