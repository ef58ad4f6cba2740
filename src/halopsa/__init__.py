# ABOUTME: halopsa package, an async client for the HaloPSA REST API
# ABOUTME: Exports the client, its options and the error taxonomy

__version__ = "0.1.0"

from halopsa.client import HaloClient, PsaApi
from halopsa.exceptions import (
    ConfigurationError,
    ErrorKind,
    HaloApiError,
    HaloAuthenticationError,
    HaloAuthorizationError,
    HaloBadRequestError,
    HaloError,
    HaloNotFoundError,
    HaloRateLimitError,
    HaloServerError,
    OptionFormatError,
)
from halopsa.options import HaloClientOptions

__all__ = [
    "HaloClient",
    "HaloClientOptions",
    "PsaApi",
    "ErrorKind",
    "HaloError",
    "ConfigurationError",
    "OptionFormatError",
    "HaloApiError",
    "HaloAuthenticationError",
    "HaloAuthorizationError",
    "HaloNotFoundError",
    "HaloBadRequestError",
    "HaloRateLimitError",
    "HaloServerError",
    "__version__",
]
