"""Shared fixtures: a fake clock, a fake upstream API and broker clients."""
import asyncio
import pytest
from aiohttp import web

from navigator_broker.dispatcher import TokenDispatcher, VaultDispatcher
from navigator_broker.handlers import setup_broker
from navigator_broker.storage import SessionStore
from navigator_broker.upstream import Provider, UpstreamClient

GOOD_TOKEN = 'ghp_good-token-0123456789'
PROFILE = {'login': 'octocat', 'id': 1, 'name': 'The Octocat'}

TOKEN_PATH = '/test-proxy'
VAULT_PATH = '/llm-proxy'

SEEN = web.AppKey('seen', list)


class FakeClock:
    """Mutable clock for expiry tests."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _authorized(request: web.Request) -> bool:
    return request.headers.get('Authorization') == f"Bearer {GOOD_TOKEN}"


def _rate_headers() -> dict:
    return {
        'X-RateLimit-Limit': '5000',
        'X-RateLimit-Remaining': '4999',
        'X-RateLimit-Reset': '1700003600',
    }


def make_upstream_app() -> web.Application:
    """Minimal bearer-token API recording every request it receives."""
    seen = []

    @web.middleware
    async def record(request, handler):
        body = await request.read()
        seen.append({
            'method': request.method,
            'path': request.path,
            'query': dict(request.query),
            'headers': dict(request.headers),
            'body': body,
        })
        return await handler(request)

    async def user(request):
        if not _authorized(request):
            return web.json_response({'message': 'Bad credentials'}, status=401)
        return web.json_response(PROFILE, headers=_rate_headers())

    async def repos(request):
        if not _authorized(request):
            return web.json_response({'message': 'Bad credentials'}, status=401)
        return web.json_response(
            [{'name': 'hello-world'}], headers=_rate_headers()
        )

    async def missing(request):
        return web.json_response({'message': 'Not Found'}, status=404)

    async def echo(request):
        return web.json_response(
            {'received': await request.json()}, status=201
        )

    async def empty(request):
        return web.Response(status=204)

    async def not_json(request):
        return web.Response(text='<html>oops</html>', status=502)

    async def slow(request):
        await asyncio.sleep(2)
        return web.json_response({})

    app = web.Application(middlewares=[record])
    app[SEEN] = seen
    app.router.add_get('/user', user)
    app.router.add_get('/user/repos', repos)
    app.router.add_get('/repos/octocat/missing', missing)
    app.router.add_route('*', '/echo', echo)
    app.router.add_delete('/empty', empty)
    app.router.add_get('/not-json', not_json)
    app.router.add_get('/slow', slow)
    return app


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def upstream(aiohttp_server):
    return await aiohttp_server(make_upstream_app())


@pytest.fixture
def provider(upstream):
    return Provider(
        name='test',
        label='Test',
        base_url=str(upstream.make_url('/')),
    )


@pytest.fixture
def token_store(clock):
    return SessionStore(ttl=3600, clock=clock)


@pytest.fixture
def vault_store(clock):
    return SessionStore(ttl=86400, clock=clock)


@pytest.fixture
async def upstream_client(provider):
    client = UpstreamClient(provider, timeout=0.5)
    yield client
    await client.close()


@pytest.fixture
def token_dispatcher(token_store, upstream_client):
    return TokenDispatcher(token_store, upstream_client)


@pytest.fixture
def vault_dispatcher(vault_store):
    return VaultDispatcher(vault_store, max_keys=3)


@pytest.fixture
async def token_broker(aiohttp_client, token_dispatcher):
    app = web.Application()
    setup_broker(app, token_dispatcher, TOKEN_PATH)
    return await aiohttp_client(app)


@pytest.fixture
async def vault_broker(aiohttp_client, vault_dispatcher):
    app = web.Application()
    setup_broker(app, vault_dispatcher, VAULT_PATH)
    return await aiohttp_client(app)
