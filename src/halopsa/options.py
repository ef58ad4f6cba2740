# ABOUTME: Configuration options for the HaloPSA client
# ABOUTME: Validates credentials, timeouts and retry policy before any I/O

import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Mapping
from urllib.parse import urlsplit

from halopsa.exceptions import ConfigurationError, OptionFormatError

logger = logging.getLogger(__name__)

# HaloPSA-hosted instances live under {account}.halopsa.com
HALO_DOMAIN = "halopsa.com"

_GUID = r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
GUID_PATTERN = re.compile(_GUID)
CLIENT_SECRET_PATTERN = re.compile(rf"{_GUID}-{_GUID}")


@dataclass(frozen=True)
class HaloClientOptions:
    """
    Options for a HaloClient.

    Durations are in seconds. Instances are immutable; ``validate()`` is
    called by the client before any network resource is created.
    """

    account: str
    client_id: str
    client_secret: str
    base_url: str | None = None
    request_timeout: float = 30.0
    max_retry_attempts: int = 3
    retry_delay: float = 1.0
    max_retry_delay: float = 30.0
    use_exponential_backoff: bool = True
    enable_request_logging: bool = False
    enable_response_logging: bool = False
    default_headers: Mapping[str, str] = field(default_factory=dict)
    logger: logging.Logger | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Keep our own copy so later mutation of the caller's dict has no effect
        object.__setattr__(self, "default_headers", dict(self.default_headers))

    @classmethod
    def from_env(cls, prefix: str = "HALO_", **overrides: Any) -> "HaloClientOptions":
        """
        Build options from environment variables.

        Reads ``{prefix}ACCOUNT``, ``{prefix}CLIENT_ID``, ``{prefix}CLIENT_SECRET``
        and optionally ``{prefix}BASE_URL``. Missing values are left empty so
        that ``validate()`` reports them.
        """
        values: dict[str, Any] = {
            "account": os.environ.get(f"{prefix}ACCOUNT", ""),
            "client_id": os.environ.get(f"{prefix}CLIENT_ID", ""),
            "client_secret": os.environ.get(f"{prefix}CLIENT_SECRET", ""),
            "base_url": os.environ.get(f"{prefix}BASE_URL") or None,
        }
        values.update(overrides)
        logger.debug(f"Loaded HaloPSA options from environment (prefix {prefix})")
        return cls(**values)

    @property
    def effective_base_url(self) -> str:
        """The override verbatim, or the account's hosted URL."""
        if self.base_url:
            return self.base_url
        return f"https://{self.account}.{HALO_DOMAIN}"

    @property
    def token_url(self) -> str:
        return f"{self.effective_base_url.rstrip('/')}/auth/token"

    def validate(self) -> None:
        """
        Check every option, raising on the first violation.

        Rules are checked in this order: empty account, empty client_id,
        empty client_secret, client_id format, client_secret format,
        request_timeout, max_retry_attempts, retry_delay, max_retry_delay,
        base_url.

        Raises:
            ConfigurationError: A value is empty or out of range
            OptionFormatError: A value does not have the required shape
        """
        if not self.account or not self.account.strip():
            raise ConfigurationError("account cannot be null or empty.", "account")
        if not self.client_id or not self.client_id.strip():
            raise ConfigurationError("client_id cannot be null or empty.", "client_id")
        if not self.client_secret or not self.client_secret.strip():
            raise ConfigurationError("client_secret cannot be null or empty.", "client_secret")

        if not GUID_PATTERN.fullmatch(self.client_id):
            raise OptionFormatError(
                "client_id must be a valid GUID format (xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx).",
                "client_id",
            )
        if not CLIENT_SECRET_PATTERN.fullmatch(self.client_secret):
            raise OptionFormatError(
                "client_secret must be in the format of two concatenated GUIDs "
                "(xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx-xxxxxxxx-xxxx-xxxx-xxxx-xxxxxxxxxxxx).",
                "client_secret",
            )

        if self.request_timeout <= 0:
            raise ConfigurationError("request_timeout must be greater than zero.", "request_timeout")
        if self.max_retry_attempts < 0:
            raise ConfigurationError("max_retry_attempts cannot be negative.", "max_retry_attempts")
        if self.retry_delay < 0:
            raise ConfigurationError("retry_delay cannot be negative.", "retry_delay")
        if self.max_retry_delay < self.retry_delay:
            raise ConfigurationError(
                "max_retry_delay must be greater than or equal to retry_delay.", "max_retry_delay"
            )

        if self.base_url is not None and not _is_absolute_url(self.base_url):
            raise OptionFormatError("base_url must be an absolute URI.", "base_url")


def _is_absolute_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)
