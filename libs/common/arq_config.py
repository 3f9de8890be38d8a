"""arq worker plumbing shared by every service worker."""

from arq.connections import RedisSettings
from libs.common.config import get_settings
from libs.common.logging import configure_logging, get_logger

logger = get_logger(__name__)


def get_redis_settings() -> RedisSettings:
    """Parse REDIS_URL from application settings into arq RedisSettings."""
    return RedisSettings.from_dsn(get_settings().REDIS_URL)


async def on_worker_startup(ctx: dict) -> None:
    configure_logging("worker")
    logger.info("Worker starting (redis=%s)", get_settings().REDIS_URL)


async def on_worker_shutdown(ctx: dict) -> None:
    logger.info("Worker stopped")
