import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy import text

from tokenbot.src import schemas
from tokenbot.src.api import messages, webhook
from tokenbot.src.config import settings
from tokenbot.src.core.dispatcher import EASTER_EGG_ODDS, create_dispatcher
from tokenbot.src.core.locks import AccountLocks, LocalAccountLocks, RedisAccountLocks
from tokenbot.src.core.telegram_client import TelegramBotClient
from tokenbot.src.locale.loader import get_locale
from tokenbot.src.storage.database import async_session, engine, init_db
from tokenbot.src.storage.redis_client import close_redis, get_redis, redis_in_use

logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


async def _build_locks() -> AccountLocks:
    if settings.lock_backend == "redis":
        return RedisAccountLocks(await get_redis(), blocking_timeout=settings.lock_timeout)
    return LocalAccountLocks(timeout=settings.lock_timeout)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage server lifecycle: startup and shutdown."""
    # Startup
    await init_db()
    bot = TelegramBotClient(settings.bot_token, sticker_id=settings.easter_egg_sticker)
    app.state.sender = bot
    app.state.dispatcher = create_dispatcher(
        get_locale(settings.locale),
        async_session,
        await _build_locks(),
        registration_enabled=lambda: settings.registration_enabled,
        api_endpoint_url=settings.api_endpoint_url,
        easter_egg_odds=EASTER_EGG_ODDS if settings.easter_egg_sticker else 0,
    )
    if settings.webhook_url:
        await bot.set_webhook(settings.webhook_url, settings.webhook_secret)
    logger.info("tokenbot started (registration %s)", "open" if settings.registration_enabled else "closed")

    yield

    # Shutdown
    await bot.close()
    await close_redis()


app = FastAPI(
    title="tokenbot",
    description="Telegram bot that issues tokens for relaying web messages",
    version="0.1.0",
    lifespan=lifespan,
    redirect_slashes=False,
)


@app.get("/health", response_model=schemas.HealthResponse)
async def health():
    return {"status": "healthy", "version": "0.1.0"}


@app.get("/health/deps", response_model=schemas.DepsHealthResponse)
async def health_deps():
    db_status = "disconnected"
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
            db_status = "connected"
    except Exception:
        logger.warning("Database health check failed", exc_info=True)

    redis_status = "unused"
    if settings.lock_backend == "redis" or redis_in_use():
        redis_status = "disconnected"
        try:
            redis = await get_redis()
            await redis.ping()  # type: ignore[misc]
            redis_status = "connected"
        except Exception:
            logger.warning("Redis health check failed", exc_info=True)

    return {
        "database": db_status,
        "redis": redis_status,
    }


# API routers
app.include_router(webhook.router)
app.include_router(messages.router)
