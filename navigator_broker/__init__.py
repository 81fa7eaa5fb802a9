"""Navigator Broker — session-scoped credential broker and authenticated proxy.

Security Note (Threat Model):
    Secrets are sealed in process memory for the lifetime of their session
    and opened only to build an upstream Authorization header or to answer
    a presence query. A memory dump of the process together with the
    process seed could expose them; this is an accepted limitation.
"""
from .version import __version__
from .conf import BrokerConfig
from .exceptions import (
    BrokerError,
    ValidationError,
    AuthError,
    UpstreamError,
    InternalError,
)
from .data import SessionData, is_expired
from .storage import SessionStore
from .upstream import PROVIDERS, Provider, UpstreamClient, UpstreamResponse
from .dispatcher import TokenDispatcher, VaultDispatcher
from .handlers import setup_broker
from .app import create_app

__all__ = [
    "__version__",
    "BrokerConfig",
    "BrokerError",
    "ValidationError",
    "AuthError",
    "UpstreamError",
    "InternalError",
    "SessionData",
    "is_expired",
    "SessionStore",
    "PROVIDERS",
    "Provider",
    "UpstreamClient",
    "UpstreamResponse",
    "TokenDispatcher",
    "VaultDispatcher",
    "setup_broker",
    "create_app",
]
