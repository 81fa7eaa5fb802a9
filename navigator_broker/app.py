"""Application factory: one aiohttp app serving every broker."""
import logging
from typing import Optional, Iterable

from aiohttp import web

from .conf import BrokerConfig
from .dispatcher import TokenDispatcher, VaultDispatcher
from .handlers import setup_broker
from .storage import SessionStore
from .upstream import PROVIDERS, Provider, UpstreamClient

logger = logging.getLogger("navigator.broker")


def token_broker(
    provider: Provider,
    config: BrokerConfig,
    store: Optional[SessionStore] = None,
) -> TokenDispatcher:
    """Bearer-token broker for ``provider`` with its own session table."""
    client = UpstreamClient(
        provider,
        timeout=config.upstream_timeout,
        user_agent=config.user_agent,
    )
    return TokenDispatcher(
        store or SessionStore(ttl=config.token_ttl),
        client,
    )


def vault_broker(
    config: BrokerConfig,
    store: Optional[SessionStore] = None,
) -> VaultDispatcher:
    """Multi-provider key vault with its own session table."""
    return VaultDispatcher(
        store or SessionStore(ttl=config.vault_ttl),
        max_keys=config.max_keys_per_session,
    )


def create_app(
    config: Optional[BrokerConfig] = None,
    providers: Optional[Iterable[Provider]] = None,
    vault: bool = True,
) -> web.Application:
    """Build the broker application.

    Every provider gets its own token broker on ``/<name>-proxy`` and the
    key vault is served on ``/llm-proxy``.
    """
    config = config or BrokerConfig.from_env()
    if providers is None:
        providers = PROVIDERS.values()
    app = web.Application()
    for provider in providers:
        setup_broker(
            app, token_broker(provider, config), f"/{provider.name}-proxy"
        )
    if vault:
        setup_broker(app, vault_broker(config), "/llm-proxy")
    return app
