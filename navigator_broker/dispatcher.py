"""
Proxy Dispatcher — the caller-facing action surface of a broker.

Two flavors share the same request pipeline (sweep, decode, validate,
dispatch):

- :class:`TokenDispatcher` holds one bearer token per session and
  performs authenticated upstream calls (``create_session``, ``proxy``,
  ``destroy_session``).
- :class:`VaultDispatcher` holds several named provider keys per session
  and never calls upstream (``get_session``, ``set_key``, ``remove_key``,
  ``check_key``, ``destroy_session``).

Security Note:
    Responses carry only derived facts (provider names, presence flags,
    upstream profile, rate-limit counters, remaining lifetime); secret
    values never leave this module except as an upstream Authorization
    header.
"""
import logging
from typing import Any, Awaitable, Callable

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .conf import DEFAULT_TOKEN_TYPE, TOKEN_KEY
from .data import SessionData
from .exceptions import AuthError, ValidationError
from .models import (
    BrokerRequest,
    CheckKey,
    CreateSession,
    DestroySession,
    GetSession,
    ProxyRequest,
    RemoveKey,
    SetKey,
    required_message,
    token_request,
    vault_request,
)
from .storage import SessionStore, short_id
from .upstream import HTTP_METHODS, UpstreamClient

logger = logging.getLogger("navigator.broker")

Result = tuple[dict, int]

_INVALID_ACTION_ERRORS = frozenset({'union_tag_invalid', 'union_tag_not_found'})


class BaseDispatcher:
    """Request pipeline shared by both broker flavors.

    Args:
        store: the session table this broker owns.
        name: label used in log lines.
    """

    adapter: TypeAdapter = None

    def __init__(self, store: SessionStore, name: str = 'broker'):
        self.store = store
        self.name = name
        self._handlers: dict[type, Callable[[Any], Awaitable[Result]]] = {
            DestroySession: self.destroy_session,
        }

    def decode(self, payload: Any) -> BrokerRequest:
        """Decode a JSON payload into one request variant.

        Raises:
            ValidationError: unknown action or wrongly-typed fields.
        """
        if not isinstance(payload, dict):
            raise ValidationError('Invalid action')
        try:
            return self.adapter.validate_python(payload)
        except PydanticValidationError as err:
            errors = err.errors()
            if any(e['type'] in _INVALID_ACTION_ERRORS for e in errors):
                raise ValidationError('Invalid action') from None
            fields = sorted({
                str(e['loc'][-1]) for e in errors if e.get('loc')
            })
            raise ValidationError(
                f"Invalid field(s): {', '.join(fields)}"
            ) from None

    async def dispatch(self, payload: Any) -> Result:
        """Run one inbound request.

        Returns:
            ``(body, status)`` tuple for the response envelope.
        """
        await self.store.sweep()
        request = self.decode(payload)
        logger.info(
            "%s: action=%s, hasSessionId=%s",
            self.name,
            request.action,
            bool(getattr(request, 'session_id', None)),
        )
        missing = request.missing()
        if missing:
            raise ValidationError(required_message(missing))
        handler = self._handlers[type(request)]
        return await handler(request)

    async def destroy_session(self, request: DestroySession) -> Result:
        """Forget a session; unknown or omitted ids are a no-op."""
        if request.session_id:
            await self.store.delete(request.session_id)
        return {'success': True}, 200


class TokenDispatcher(BaseDispatcher):
    """Single bearer-token broker in front of one upstream provider."""

    adapter = token_request

    def __init__(
        self,
        store: SessionStore,
        client: UpstreamClient,
        name: str = None,
    ):
        super().__init__(store, name or client.provider.name)
        self.client = client
        self._handlers.update({
            CreateSession: self.create_session,
            ProxyRequest: self.proxy,
        })

    async def create_session(self, request: CreateSession) -> Result:
        """Validate a token upstream, then bind it to a new session.

        Nothing is stored unless the identity call succeeds.
        """
        profile = await self.client.identity(request.token)
        session = SessionData(
            id=self.store.generate_id(),
            created=self.store.now(),
            attributes={'token_type': request.token_type or DEFAULT_TOKEN_TYPE},
        )
        session[TOKEN_KEY] = request.token
        await self.store.insert(session)
        logger.info(
            "%s: session %s created",
            self.name, short_id(session.session_id),
        )
        return {
            'sessionId': session.session_id,
            'user': profile,
            'expiresIn': self.store.ttl,
        }, 200

    async def proxy(self, request: ProxyRequest) -> Result:
        """Relay one call to the upstream with the stored token injected.

        The outer status is 200 for a 2xx upstream answer and mirrors the
        upstream status otherwise. An upstream 401 does not end the session.
        """
        if not request.session_id:
            raise AuthError('Session ID is required')
        session = await self.store.get(request.session_id)
        if session is None or TOKEN_KEY not in session:
            raise AuthError('Invalid or expired session')
        if not request.endpoint:
            raise ValidationError('Endpoint is required')
        method = (request.method or 'GET').upper()
        if method not in HTTP_METHODS:
            raise ValidationError(f"Unsupported method: {method}")
        response = await self.client.request(
            session[TOKEN_KEY],
            request.endpoint,
            method=method,
            body=request.body,
        )
        body = {
            'data': response.data,
            'status': response.status,
            'rateLimit': response.rate_limit,
        }
        return body, 200 if response.ok else response.status


class VaultDispatcher(BaseDispatcher):
    """Multi-provider key vault; never calls an upstream.

    Args:
        store: the session table this vault owns.
        max_keys: maximum providers held by one session.
    """

    adapter = vault_request

    def __init__(
        self,
        store: SessionStore,
        max_keys: int = 50,
        name: str = 'vault',
    ):
        super().__init__(store, name)
        self.max_keys = max_keys
        self._handlers.update({
            GetSession: self.get_session,
            SetKey: self.set_key,
            RemoveKey: self.remove_key,
            CheckKey: self.check_key,
        })

    @staticmethod
    def validate_provider(provider: str) -> None:
        """Validate a provider name.

        Raises:
            ValueError: If name is too long or contains ':'.
        """
        if len(provider) > 255:
            raise ValueError("Provider name cannot exceed 255 characters")
        if ":" in provider:
            raise ValueError("Provider name cannot contain ':'")

    async def get_session(self, request: GetSession) -> Result:
        session = await self.store.get(request.session_id)
        if session is None:
            _, session = await self.store.create()
        return {
            'sessionId': session.session_id,
            'providers': session.secret_names(),
            'expiresIn': self.store.remaining(session),
        }, 200

    async def set_key(self, request: SetKey) -> Result:
        try:
            self.validate_provider(request.provider)
        except ValueError as err:
            raise ValidationError(str(err)) from err

        def _set(session: SessionData) -> None:
            if (
                request.provider not in session
                and len(session) >= self.max_keys
            ):
                raise ValidationError(
                    f"Max keys per session ({self.max_keys}) exceeded"
                )
            session[request.provider] = request.api_key

        session = await self.store.mutate(request.session_id, _set)
        logger.info("%s: API key set for provider %s", self.name, request.provider)
        return {'success': True, 'providers': session.secret_names()}, 200

    async def remove_key(self, request: RemoveKey) -> Result:
        def _remove(session: SessionData) -> None:
            if request.provider in session:
                del session[request.provider]

        session = await self.store.mutate(
            request.session_id, _remove, create=False
        )
        providers = session.secret_names() if session is not None else []
        return {'success': True, 'providers': providers}, 200

    async def check_key(self, request: CheckKey) -> Result:
        session = await self.store.get(request.session_id)
        has_key = session is not None and request.provider in session
        return {'hasKey': has_key}, 200
