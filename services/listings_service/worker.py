"""ARQ worker for listings background sweeps.

Run with: arq services.listings_service.worker.WorkerSettings
"""

from arq import cron
from libs.common.arq_config import (
    get_redis_settings,
    on_worker_shutdown,
    on_worker_startup,
)
from libs.common.logging import get_logger

logger = get_logger(__name__)


# ── Wrapper functions (ARQ requires top-level async callables) ──


async def task_expire_listings(ctx: dict):
    from services.listings_service.tasks import expire_listings_sweep

    logger.info("Running: expire_listings_sweep")
    return await expire_listings_sweep()


async def task_refresh_listing_prices(ctx: dict):
    from services.listings_service.tasks import refresh_listing_prices

    logger.info("Running: refresh_listing_prices")
    return await refresh_listing_prices()


async def task_remind_expiring_listings(ctx: dict):
    from services.listings_service.tasks import remind_expiring_listings

    logger.info("Running: remind_expiring_listings")
    return await remind_expiring_listings()


# ── Worker configuration ──


class WorkerSettings:
    """ARQ worker settings with cron job schedules."""

    redis_settings = get_redis_settings()
    on_startup = on_worker_startup
    on_shutdown = on_worker_shutdown

    functions = [
        task_expire_listings,
        task_refresh_listing_prices,
        task_remind_expiring_listings,
    ]

    cron_jobs = [
        # Expire listings every 5 minutes
        cron(
            task_expire_listings,
            minute=set(range(0, 60, 5)),
            run_at_startup=True,
        ),
        # Re-price every 10 minutes so the time-decay ceilings take effect
        cron(
            task_refresh_listing_prices,
            minute=set(range(0, 60, 10)),
            run_at_startup=False,
        ),
        # Ending-soon reminders every 15 minutes
        cron(
            task_remind_expiring_listings,
            minute={0, 15, 30, 45},
            run_at_startup=False,
        ),
    ]
