"""Tests for configuration loading and the application factory."""
import pytest
from pydantic import ValidationError
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305

from navigator_broker import crypto
from navigator_broker.app import create_app, token_broker, vault_broker
from navigator_broker.conf import BrokerConfig
from navigator_broker.dispatcher import TokenDispatcher, VaultDispatcher
from navigator_broker.handlers import BROKERS
from navigator_broker.upstream import PROVIDERS


class TestBrokerConfig:

    def test_defaults(self, monkeypatch):
        for name in (
            'BROKER_TOKEN_TTL', 'BROKER_VAULT_TTL', 'BROKER_PORT',
            'BROKER_MAX_KEYS_PER_SESSION',
        ):
            monkeypatch.delenv(name, raising=False)
        config = BrokerConfig.from_env()
        assert config.token_ttl == 3600
        assert config.vault_ttl == 86400
        assert config.port == 8080
        assert config.max_keys_per_session == 50

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv('BROKER_TOKEN_TTL', '600')
        monkeypatch.setenv('BROKER_VAULT_TTL', '7200')
        monkeypatch.setenv('BROKER_UPSTREAM_TIMEOUT', '2.5')
        config = BrokerConfig.from_env()
        assert config.token_ttl == 600
        assert config.vault_ttl == 7200
        assert config.upstream_timeout == 2.5

    def test_cipher_is_chosen_by_crypto_module(self, monkeypatch):
        # the cipher is fixed at import; the config model does not carry it
        monkeypatch.setenv('BROKER_CIPHER_BACKEND', 'ChaCha20')
        assert 'cipher_backend' not in BrokerConfig.model_fields
        assert crypto._get_cipher_cls() is ChaCha20Poly1305
        monkeypatch.setenv('BROKER_CIPHER_BACKEND', 'aesgcm')
        assert crypto._get_cipher_cls() is AESGCM

    def test_ttl_floor(self):
        with pytest.raises(ValidationError):
            BrokerConfig(token_ttl=10)


class TestFactory:

    def test_token_broker_uses_token_ttl(self):
        dispatcher = token_broker(PROVIDERS['github'], BrokerConfig(token_ttl=900))
        assert isinstance(dispatcher, TokenDispatcher)
        assert dispatcher.store.ttl == 900
        assert dispatcher.name == 'github'

    def test_vault_broker_uses_vault_ttl(self):
        dispatcher = vault_broker(BrokerConfig(max_keys_per_session=5))
        assert isinstance(dispatcher, VaultDispatcher)
        assert dispatcher.store.ttl == 86400
        assert dispatcher.max_keys == 5

    def test_routes(self):
        app = create_app(BrokerConfig())
        assert set(app[BROKERS]) == {
            '/github-proxy', '/netlify-proxy', '/llm-proxy',
        }
        # every broker owns a separate session table
        stores = {id(d.store) for d in app[BROKERS].values()}
        assert len(stores) == 3

    async def test_served_endpoints(self, aiohttp_client):
        client = await aiohttp_client(create_app(BrokerConfig()))
        response = await client.post('/llm-proxy', json={'action': 'get_session'})
        assert response.status == 200
        response = await client.options('/github-proxy')
        assert response.status == 200
        assert response.headers['Access-Control-Allow-Origin'] == '*'
        response = await client.post(
            '/netlify-proxy', json={'action': 'destroy_session'}
        )
        assert await response.json() == {'success': True}
