from aiohttp import web

from social.graze.userdb.app.config import DatabaseLifecycleAppKey, MetricsClientAppKey


async def handle_health(request: web.Request):
    lifecycle = request.app[DatabaseLifecycleAppKey]
    health = await lifecycle.health()
    request.app[MetricsClientAppKey].gauge(
        "userdb.database.healthy", 1 if health.healthy else 0
    )
    return web.json_response(
        health.to_response(), status=200 if health.healthy else 503
    )


async def handle_internal_ready(request: web.Request):
    lifecycle = request.app[DatabaseLifecycleAppKey]
    if await lifecycle.check_connection():
        return web.Response(status=200)
    return web.Response(status=503)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)
