import logging
from datetime import timedelta
from time import time
from typing import Optional

from aio_statsd import TelegrafStatsdClient
from aiohttp import web
import redis.asyncio as redis
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    async_sessionmaker,
    AsyncSession,
)
import sentry_sdk
from sentry_sdk.integrations.aiohttp import AioHttpIntegration

from aur.im.accounts.app.config import (
    AccountServiceAppKey,
    AvatarResolverAppKey,
    CaptchaCounterAppKey,
    DatabaseAppKey,
    DatabaseSessionMakerAppKey,
    RedisClientAppKey,
    RedisPoolAppKey,
    RequestCounterAppKey,
    Settings,
    SettingsAppKey,
    TelegrafStatsdClientAppKey,
)
from aur.im.accounts.app.handlers.auth import handle_login, handle_register
from aur.im.accounts.app.handlers.avatar import handle_get_avatar, handle_upload_avatar
from aur.im.accounts.app.handlers.captcha import handle_get_captcha
from aur.im.accounts.app.handlers.internal import (
    handle_internal_alive,
    handle_internal_ready,
)
from aur.im.accounts.image.avatar import AvatarResolver
from aur.im.accounts.model.users import SqlUserRepository, UserRepository
from aur.im.accounts.security.accounts import AccountService
from aur.im.accounts.security.jwt import TokenCodec
from aur.im.accounts.store.rate import (
    CAPTCHA_COLLECTION,
    REQUEST_COUNT_COLLECTION,
    RateCounter,
)
from aur.im.accounts.store.sessions import SessionStore

logger = logging.getLogger(__name__)


def configure_services(app: web.Application, redis_client, users: UserRepository):
    """
    Build the account collaborators from settings and store them on the app.
    """
    settings: Settings = app[SettingsAppKey]

    app[RedisClientAppKey] = redis_client

    tokens = TokenCodec(
        settings.token_secret, timedelta(days=settings.token_lifetime_days)
    )
    sessions = SessionStore(redis_client)

    app[CaptchaCounterAppKey] = RateCounter(
        redis_client,
        CAPTCHA_COLLECTION,
        ttl_seconds=settings.rate_window_seconds,
        code_length=settings.captcha_length,
    )
    app[RequestCounterAppKey] = RateCounter(
        redis_client,
        REQUEST_COUNT_COLLECTION,
        ttl_seconds=settings.rate_window_seconds,
    )

    app[AvatarResolverAppKey] = AvatarResolver(
        settings.avatar_directory, settings.avatar_quality
    )
    app[AccountServiceAppKey] = AccountService(
        users, sessions, tokens, settings.hash_parameters()
    )


async def background_tasks(app):
    logger.info("Starting up")
    settings: Settings = app[SettingsAppKey]

    engine = create_async_engine(str(settings.pg_dsn))
    app[DatabaseAppKey] = engine
    database_session = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )
    app[DatabaseSessionMakerAppKey] = database_session

    app[RedisPoolAppKey] = redis.ConnectionPool.from_url(str(settings.redis_dsn))
    redis_client = redis.Redis(connection_pool=app[RedisPoolAppKey])

    statsd_client = TelegrafStatsdClient(
        host=settings.statsd_host, port=settings.statsd_port, debug=settings.debug
    )
    await statsd_client.connect()
    app[TelegrafStatsdClientAppKey] = statsd_client

    configure_services(app, redis_client, SqlUserRepository(database_session))

    logger.info("Startup complete")

    yield

    logger.info("Shutting down")

    await app[DatabaseAppKey].dispose()
    await redis_client.aclose()
    await app[RedisPoolAppKey].aclose()
    await app[TelegrafStatsdClientAppKey].close()


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
async def statsd_middleware(request: web.Request, handler):
    statsd_client = request.app[TelegrafStatsdClientAppKey]
    prefix = request.app[SettingsAppKey].statsd_prefix
    request_method: str = request.method
    # Route pattern, so per-user avatar paths share one series.
    resource = request.match_info.route.resource
    request_path = resource.canonical if resource is not None else request.path

    start_time: float = time()
    response_status_code = 0

    try:
        response = await handler(request)
        response_status_code = response.status
        return response
    except web.HTTPException as e:
        response_status_code = e.status
        raise e
    except Exception as e:
        statsd_client.increment(
            f"{prefix}.server.request.exception",
            1,
            tag_dict={
                "exception": type(e).__name__,
                "path": request_path,
                "method": request_method,
            },
        )
        raise e
    finally:
        statsd_client.timer(
            f"{prefix}.server.request.time",
            time() - start_time,
            tag_dict={"path": request_path, "method": request_method},
        )
        statsd_client.increment(
            f"{prefix}.server.request.count",
            1,
            tag_dict={
                "path": request_path,
                "method": request_method,
                "status": response_status_code,
            },
        )


def add_routes(app: web.Application):
    app.add_routes(
        [
            web.post("/auth/login", handle_login),
            web.post("/auth/register", handle_register),
        ]
    )

    app.add_routes(
        [
            web.get("/avatar/get/{user_id}", handle_get_avatar),
            web.post("/avatar/upload", handle_upload_avatar),
        ]
    )

    app.add_routes([web.get("/captcha/getCaptcha", handle_get_captcha)])

    app.add_routes(
        [
            web.get("/internal/alive", handle_internal_alive),
            web.get("/internal/ready", handle_internal_ready),
        ]
    )


def create_app(settings: Settings, middlewares=()) -> web.Application:
    app = web.Application(
        middlewares=list(middlewares), client_max_size=settings.max_upload_bytes
    )
    app[SettingsAppKey] = settings
    add_routes(app)
    return app


async def start_web_server(settings: Optional[Settings] = None):

    if settings is None:
        settings = Settings()  # type: ignore
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            send_default_pii=True,
            integrations=[AioHttpIntegration()],
        )

    app = create_app(settings, [statsd_middleware, sentry_middleware])
    app.cleanup_ctx.append(background_tasks)

    return app
