"""
Upstream — authenticated calls to third-party HTTP APIs.

A :class:`Provider` describes one upstream API family (base URL, identity
endpoint, default headers, rate-limit headers). :class:`UpstreamClient`
pins every outgoing request to the provider's host before the bearer
token is attached, and normalizes answers into :class:`UpstreamResponse`.

Security Note:
    Never log the bearer token or the upstream error body, only the
    method, URL and status.
"""
import asyncio
import logging
from typing import Any, Optional
from dataclasses import dataclass, field

import orjson
import aiohttp
from yarl import URL
from pydantic import BaseModel, Field

from .exceptions import AuthError, UpstreamError, ValidationError

logger = logging.getLogger("navigator.broker.upstream")

HTTP_METHODS = frozenset({'GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE'})

_DEFAULT_RATE_LIMIT_HEADERS = {
    'limit': 'x-ratelimit-limit',
    'remaining': 'x-ratelimit-remaining',
    'reset': 'x-ratelimit-reset',
}


class Provider(BaseModel):
    """Upstream API family served by one bearer-token broker."""

    name: str
    label: str
    base_url: str
    identity_endpoint: str = Field(default="/user")
    headers: dict[str, str] = Field(default_factory=dict)
    rate_limit_headers: dict[str, str] = Field(
        default_factory=lambda: dict(_DEFAULT_RATE_LIMIT_HEADERS)
    )


PROVIDERS: dict[str, Provider] = {
    'github': Provider(
        name='github',
        label='GitHub',
        base_url='https://api.github.com',
        headers={'Accept': 'application/vnd.github.v3+json'},
    ),
    'netlify': Provider(
        name='netlify',
        label='Netlify',
        base_url='https://api.netlify.com/api/v1',
    ),
}


@dataclass
class UpstreamResponse:
    """Normalized upstream answer."""

    status: int
    data: Any = field(default_factory=dict)
    rate_limit: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def decode_body(raw: bytes) -> Any:
    """Decode an upstream body as JSON, falling back to an empty object."""
    if not raw:
        return {}
    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return {}


class UpstreamClient:
    """HTTP client bound to a single upstream provider.

    Args:
        provider: the upstream API family.
        timeout: total seconds allowed for one upstream call.
        user_agent: value of the ``User-Agent`` header.
    """

    def __init__(
        self,
        provider: Provider,
        timeout: float = 30.0,
        user_agent: str = 'navigator-broker',
    ):
        self.provider = provider
        self._base = URL(provider.base_url)
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._user_agent = user_agent
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def base_url(self) -> URL:
        return self._base

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _same_origin(self, url: URL) -> bool:
        return (
            url.scheme == self._base.scheme
            and url.host is not None
            and url.host.lower() == (self._base.host or '').lower()
            and url.port == self._base.port
        )

    def resolve_url(self, endpoint: str) -> URL:
        """Turn ``endpoint`` into a full URL on the provider's host.

        Bare paths are joined onto the base URL. Absolute URLs must share
        the base URL's scheme, host and port.

        Raises:
            ValidationError: if the endpoint points anywhere else.
        """
        try:
            url = URL(endpoint)
            # a URL inside the query string does not make the endpoint absolute
            if not (url.is_absolute() or url.scheme):
                path = endpoint if endpoint.startswith('/') else f"/{endpoint}"
                url = URL(f"{str(self._base).rstrip('/')}{path}")
        except (ValueError, TypeError) as err:
            raise ValidationError(f"Invalid endpoint: {err}") from err
        if not self._same_origin(url):
            logger.warning(
                "%s: rejected endpoint outside %s (host=%s)",
                self.provider.label, self._base.host, url.host,
            )
            raise ValidationError("Endpoint host is not allowed")
        return url

    def _headers(self, token: str) -> dict[str, str]:
        headers = {
            'Authorization': f"Bearer {token}",
            'User-Agent': self._user_agent,
        }
        headers.update(self.provider.headers)
        return headers

    def rate_limit(self, headers: Any) -> dict:
        return {
            name: headers.get(header)
            for name, header in self.provider.rate_limit_headers.items()
        }

    async def request(
        self,
        token: str,
        endpoint: str,
        method: str = 'GET',
        body: Any = None,
    ) -> UpstreamResponse:
        """Perform an authenticated call against the provider.

        The target is resolved (and pinned to the provider host) before
        the token is attached. Non-2xx answers are returned, not raised.

        Raises:
            ValidationError: endpoint outside the provider host.
            UpstreamError: the upstream could not be reached in time.
        """
        url = self.resolve_url(endpoint)
        method = method.upper()
        headers = self._headers(token)
        data = None
        if body is not None:
            headers['Content-Type'] = 'application/json'
            data = orjson.dumps(body)
        logger.info("%s: %s %s", self.provider.label, method, url.path)
        try:
            async with self._client().request(
                method,
                url,
                headers=headers,
                data=data,
                allow_redirects=False,
            ) as response:
                raw = await response.read()
                result = UpstreamResponse(
                    status=response.status,
                    data=decode_body(raw),
                    rate_limit=self.rate_limit(response.headers),
                )
        except asyncio.TimeoutError as err:
            logger.error(
                "%s: %s %s timed out", self.provider.label, method, url.path
            )
            raise UpstreamError(
                f"{self.provider.label} API request timed out"
            ) from err
        except aiohttp.ClientError as err:
            logger.error(
                "%s: %s %s failed: %s",
                self.provider.label, method, url.path, type(err).__name__,
            )
            raise UpstreamError(
                f"{self.provider.label} API is unreachable"
            ) from err
        logger.debug(
            "%s: %s %s -> %d",
            self.provider.label, method, url.path, result.status,
        )
        return result

    async def identity(self, token: str) -> Any:
        """Validate ``token`` against the identity endpoint.

        Returns:
            The upstream-reported profile object.

        Raises:
            AuthError: if the upstream rejects the token.
        """
        response = await self.request(token, self.provider.identity_endpoint)
        if not response.ok:
            logger.error(
                "%s token verification failed with status %d",
                self.provider.label, response.status,
            )
            raise AuthError(f"Invalid {self.provider.label} token")
        return response.data
