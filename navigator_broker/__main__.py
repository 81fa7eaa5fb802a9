"""Run the broker server: ``python -m navigator_broker``."""
import logging

from aiohttp import web

from .app import create_app
from .conf import BrokerConfig


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = BrokerConfig.from_env()
    web.run_app(
        create_app(config),
        host=config.host,
        port=config.port,
        handler_cancellation=True,
    )


if __name__ == "__main__":
    main()
