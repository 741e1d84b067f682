import os
import sys
from aiohttp import web
import logging
from logging.config import dictConfig
import json

logger = logging.getLogger(__name__)


def configure_logging():
    logging_config_file = os.getenv("LOGGING_CONFIG_FILE", "")

    if len(logging_config_file) > 0:
        with open(logging_config_file) as fl:
            dictConfig(json.load(fl))
        return

    logging.basicConfig()
    debug = os.getenv("DEBUG", "").lower() in ("1", "true", "yes")
    logging.getLogger().setLevel(logging.DEBUG if debug else logging.INFO)


def invoke():
    configure_logging()

    from social.graze.userdb.app.config import Settings
    from social.graze.userdb.app.server import start_web_server
    from social.graze.userdb.database.lifecycle import SchemaInitError
    from social.graze.userdb.vault.credentials import CredentialsUnavailable

    settings = Settings()

    try:
        web.run_app(
            start_web_server(settings),
            host="0.0.0.0",
            port=settings.http_port,
            shutdown_timeout=settings.shutdown_timeout,
        )
    except (CredentialsUnavailable, SchemaInitError) as e:
        logger.critical("Failed to start application: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    invoke()
