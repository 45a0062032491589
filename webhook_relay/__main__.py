"""Run the relay: python -m webhook_relay."""

import sys

import structlog
import uvicorn

from webhook_relay.api.routes import create_app
from webhook_relay.config import Settings, load_config
from webhook_relay.errors import ConfigFault
from webhook_relay.observability.logging import configure_logging

logger = structlog.get_logger(__name__)


def main() -> None:
    configure_logging("info")

    try:
        settings = Settings.from_env()
        config = load_config(settings=settings)
    except ConfigFault as e:
        logger.error("config_invalid", field=e.field, error=e.message)
        sys.exit(1)

    configure_logging(config.log_level, json_output=settings.LOG_JSON)
    app = create_app(config)
    logger.info("relay_listening", host=config.host, port=config.port)
    uvicorn.run(app, host=config.host, port=config.port, log_level=config.log_level.stdlib_level)


if __name__ == "__main__":
    main()
