"""
aiohttp transport for brokers.

Each broker is mounted on its own path and answers ``POST`` (JSON action
requests) and ``OPTIONS`` (CORS preflight). The handler is the single
error boundary: every failure is turned into ``{"error": ...}`` with the
status carried by the exception.
"""
import logging
from typing import Any

import orjson
from aiohttp import web

from .conf import CORS_HEADERS
from .dispatcher import BaseDispatcher, TokenDispatcher
from .exceptions import BrokerError, InternalError

logger = logging.getLogger("navigator.broker")

BROKERS = web.AppKey("navigator_brokers", dict)


def _dumps(obj: Any) -> str:
    return orjson.dumps(obj).decode("utf-8")


def json_response(data: Any, status: int = 200) -> web.Response:
    return web.json_response(
        data,
        status=status,
        headers=CORS_HEADERS,
        dumps=_dumps,
    )


class BrokerHandler:
    """HTTP entry point of one broker instance."""

    def __init__(self, dispatcher: BaseDispatcher):
        self.dispatcher = dispatcher

    async def options(self, request: web.Request) -> web.Response:
        return web.Response(headers=CORS_HEADERS)

    async def _payload(self, request: web.Request) -> Any:
        raw = await request.read()
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as err:
            raise InternalError("Malformed JSON body") from err

    async def post(self, request: web.Request) -> web.Response:
        name = self.dispatcher.name
        try:
            payload = await self._payload(request)
            body, status = await self.dispatcher.dispatch(payload)
        except BrokerError as err:
            if err.status >= 500:
                logger.error("%s: %s", name, err.message)
            else:
                logger.warning("%s: %s (%d)", name, err.message, err.status)
            return json_response({'error': err.message}, status=err.status)
        except Exception as err:
            logger.exception("%s: unhandled error", name)
            return json_response(
                {'error': str(err) or 'Unknown error'}, status=500
            )
        return json_response(body, status=status)


async def _close_upstreams(app: web.Application) -> None:
    for dispatcher in app[BROKERS].values():
        if isinstance(dispatcher, TokenDispatcher):
            await dispatcher.client.close()


def setup_broker(
    app: web.Application,
    dispatcher: BaseDispatcher,
    path: str,
) -> BrokerHandler:
    """Mount ``dispatcher`` on ``path`` of an aiohttp application.

    Upstream HTTP sessions are closed on application cleanup.
    """
    if BROKERS not in app:
        app[BROKERS] = {}
        app.on_cleanup.append(_close_upstreams)
    app[BROKERS][path] = dispatcher
    handler = BrokerHandler(dispatcher)
    app.router.add_route('POST', path, handler.post)
    app.router.add_route('OPTIONS', path, handler.options)
    logger.debug("Broker %s mounted on %s", dispatcher.name, path)
    return handler
