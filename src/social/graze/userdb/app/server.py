import logging
from time import time
from typing import Optional
from aiohttp import web
import aiohttp
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from social.graze.userdb.app.config import (
    DatabaseLifecycleAppKey,
    MetricsClientAppKey,
    SessionAppKey,
    Settings,
    SettingsAppKey,
)
from social.graze.userdb.app.handlers.internal import (
    handle_health,
    handle_internal_alive,
    handle_internal_ready,
)
from social.graze.userdb.app.handlers.users import (
    handle_create_user,
    handle_list_users,
)
from social.graze.userdb.app.metrics import create_metrics_client
from social.graze.userdb.database.lifecycle import (
    DatabaseLifecycleManager,
    create_database_engine,
)
from social.graze.userdb.vault.credentials import load_credentials

logger = logging.getLogger(__name__)


async def database_lifecycle(app):
    """
    Resolve credentials, build the pool and bootstrap the schema before the server accepts requests.

    Any failure here aborts startup. On shutdown the pool is disposed after in-flight requests have finished.
    """
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    metrics_client = create_metrics_client(
        settings.metrics_backend,
        host=settings.statsd_host,
        port=settings.statsd_port,
        debug=settings.debug,
    )
    await metrics_client.connect()
    app[MetricsClientAppKey] = metrics_client

    trace_config = aiohttp.TraceConfig()

    if settings.debug:

        async def on_request_start(
            session, trace_config_ctx, params: aiohttp.TraceRequestStartParams
        ):
            logging.info("Starting request: %s %s", params.method, params.url)

        async def on_request_end(
            session, trace_config_ctx, params: aiohttp.TraceRequestEndParams
        ):
            logging.info(
                "Ending request: %s %s %s",
                params.method,
                params.url,
                params.response.status,
            )

        trace_config.on_request_start.append(on_request_start)
        trace_config.on_request_end.append(on_request_end)

    http_session = aiohttp.ClientSession(trace_configs=[trace_config])
    app[SessionAppKey] = http_session

    lifecycle: Optional[DatabaseLifecycleManager] = None
    try:
        credentials = await load_credentials(settings, http_session, metrics_client)

        engine = create_database_engine(
            settings.database_url(
                credentials.username, credentials.password.get_secret_value()
            ),
            max_connections=settings.db_pool_max,
            idle_timeout=settings.db_pool_idle_timeout,
            acquire_timeout=settings.db_pool_acquire_timeout,
        )
        lifecycle = DatabaseLifecycleManager(
            engine, acquire_timeout=settings.db_pool_acquire_timeout
        )
        await lifecycle.initialize()
    except Exception:
        if lifecycle is not None:
            await lifecycle.dispose()
        await http_session.close()
        await metrics_client.close()
        raise

    app[DatabaseLifecycleAppKey] = lifecycle

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[DatabaseLifecycleAppKey].dispose()
    await app[SessionAppKey].close()
    await app[MetricsClientAppKey].close()


@web.middleware
async def sentry_middleware(request: web.Request, handler):
    try:
        response = await handler(request)
        return response
    except web.HTTPException:
        raise
    except Exception as e:
        sentry_sdk.capture_exception(e)
        raise e


@web.middleware
async def error_middleware(request: web.Request, handler):
    try:
        return await handler(request)
    except web.HTTPNotFound:
        return web.json_response(
            status=404, data={"success": False, "error": "Endpoint not found"}
        )
    except web.HTTPException:
        raise
    except Exception:
        logger.exception("Unhandled error: %s %s", request.method, request.path)
        return web.json_response(
            status=500, data={"success": False, "error": "Internal server error"}
        )


@web.middleware
async def statsd_middleware(request: web.Request, handler):
    metrics_client = request.app[MetricsClientAppKey]
    request_method: str = request.method
    request_path = request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except Exception as e:
        metrics_client.increment(
            "userdb.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        metrics_client.timer(
            "userdb.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        metrics_client.increment(
            "userdb.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


def add_routes(app: web.Application) -> None:
    app.add_routes(
        [
            web.get("/api/health", handle_health),
            web.get("/api/users", handle_list_users),
            web.post("/api/users", handle_create_user),
        ]
    )

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
        ]
    )


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=False,
            integrations=[AioHttpIntegration()],
        )
    app = web.Application(
        middlewares=[error_middleware, statsd_middleware, sentry_middleware]
    )

    app[SettingsAppKey] = settings

    add_routes(app)

    app.cleanup_ctx.append(database_lifecycle)

    return app
