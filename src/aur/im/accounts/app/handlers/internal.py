import logging

from aiohttp import web
from redis.exceptions import RedisError

from aur.im.accounts.app.config import RedisClientAppKey

logger = logging.getLogger(__name__)


async def handle_internal_ready(request: web.Request):
    redis_client = request.app[RedisClientAppKey]
    try:
        if await redis_client.ping():
            return web.Response(status=200)
    except (RedisError, OSError) as e:
        logger.warning("Readiness check failed: %s", e)
    return web.Response(status=503)


async def handle_internal_alive(request: web.Request):
    return web.Response(status=200)
