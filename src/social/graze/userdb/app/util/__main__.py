import argparse
import asyncio
import logging
import sys
import aiohttp

from social.graze.userdb.app.config import Settings
from social.graze.userdb.database.lifecycle import (
    DatabaseLifecycleManager,
    SchemaInitError,
    create_database_engine,
)
from social.graze.userdb.vault.credentials import (
    CredentialsUnavailable,
    VaultCredentialSource,
    load_credentials,
    select_credential_source,
)

logger = logging.getLogger(__name__)


async def build_lifecycle(
    settings: Settings, http_session: aiohttp.ClientSession
) -> DatabaseLifecycleManager:
    credentials = await load_credentials(settings, http_session)
    engine = create_database_engine(
        settings.database_url(
            credentials.username, credentials.password.get_secret_value()
        ),
        max_connections=1,
        idle_timeout=settings.db_pool_idle_timeout,
        acquire_timeout=settings.db_pool_acquire_timeout,
    )
    return DatabaseLifecycleManager(
        engine, acquire_timeout=settings.db_pool_acquire_timeout
    )


async def resolveCredentials(settings: Settings) -> int:
    source = select_credential_source(settings)
    configured = "vault" if isinstance(source, VaultCredentialSource) else "static"
    async with aiohttp.ClientSession() as http_session:
        credentials = await load_credentials(settings, http_session)
    print(f"configured source: {configured}")
    print(f"username: {credentials.username}")
    return 0


async def initDatabase(settings: Settings) -> int:
    async with aiohttp.ClientSession() as http_session:
        lifecycle = await build_lifecycle(settings, http_session)
    try:
        await lifecycle.initialize()
    finally:
        await lifecycle.dispose()
    print("database initialized")
    return 0


async def checkDatabase(settings: Settings) -> int:
    async with aiohttp.ClientSession() as http_session:
        lifecycle = await build_lifecycle(settings, http_session)
    try:
        health = await lifecycle.health()
    finally:
        await lifecycle.dispose()
    print(health.model_dump_json())
    return 0 if health.healthy else 1


async def realMain() -> int:
    parser = argparse.ArgumentParser(prog="userdbutil", description="userdb utilities")

    subparsers = parser.add_subparsers(dest="command", required=True)

    _ = subparsers.add_parser(
        "resolve", help="Resolve database credentials and print their source"
    )
    _ = subparsers.add_parser("init-db", help="Create the users schema if absent")
    _ = subparsers.add_parser("check", help="Probe the database connection")

    args = vars(parser.parse_args())
    command = args.get("command", None)

    settings = Settings()

    try:
        if command == "resolve":
            return await resolveCredentials(settings)
        elif command == "init-db":
            return await initDatabase(settings)
        elif command == "check":
            return await checkDatabase(settings)
    except (CredentialsUnavailable, SchemaInitError) as e:
        logger.error("%s: %s", command, e)
        return 1
    return 2


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(realMain()))


if __name__ == "__main__":
    main()
