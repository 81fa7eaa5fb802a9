"""
Broker Configuration — validated settings read from the environment.

Reads settings from environment variables:
    BROKER_HOST, BROKER_PORT
    BROKER_TOKEN_TTL = <seconds, bearer-token sessions>
    BROKER_VAULT_TTL = <seconds, multi-key vault sessions>
    BROKER_UPSTREAM_TIMEOUT = <seconds>
    BROKER_MAX_KEYS_PER_SESSION = <integer>

The AEAD cipher (BROKER_CIPHER_BACKEND = aesgcm | chacha20) is not part of
this model: navigator_broker.crypto reads it once at import.

Security Note:
    Never log secret material. Only log provider names and session id prefixes.
"""
import os
import logging

from pydantic import BaseModel, Field

logger = logging.getLogger("navigator.broker")

# secret name holding the bearer token of single-credential sessions
TOKEN_KEY = 'token'

# expiry policies
TOKEN_SESSION_TTL = 3600  # full account access: 1 hour
VAULT_SESSION_TTL = 86400  # scoped API keys: 24 hours

DEFAULT_TOKEN_TYPE = 'classic'

CORS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': (
        'authorization, x-client-info, apikey, content-type'
    ),
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    return float(raw)


class BrokerConfig(BaseModel):
    """Validated broker configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)
    token_ttl: int = Field(default=TOKEN_SESSION_TTL, ge=60)
    vault_ttl: int = Field(default=VAULT_SESSION_TTL, ge=60)
    upstream_timeout: float = Field(default=30.0, gt=0)
    max_keys_per_session: int = Field(default=50, ge=1, le=1000)
    user_agent: str = Field(default="navigator-broker")

    @classmethod
    def from_env(cls) -> "BrokerConfig":
        """Create BrokerConfig by loading values from environment.

        Returns:
            Populated BrokerConfig instance.
        """
        config = cls(
            host=os.environ.get("BROKER_HOST", "0.0.0.0"),
            port=_env_int("BROKER_PORT", 8080),
            token_ttl=_env_int("BROKER_TOKEN_TTL", TOKEN_SESSION_TTL),
            vault_ttl=_env_int("BROKER_VAULT_TTL", VAULT_SESSION_TTL),
            upstream_timeout=_env_float("BROKER_UPSTREAM_TIMEOUT", 30.0),
            max_keys_per_session=_env_int("BROKER_MAX_KEYS_PER_SESSION", 50),
            user_agent=os.environ.get("BROKER_USER_AGENT", "navigator-broker"),
        )
        logger.debug(
            "Broker config loaded: token_ttl=%d vault_ttl=%d",
            config.token_ttl, config.vault_ttl,
        )
        return config
