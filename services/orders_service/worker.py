"""ARQ worker for order reconciliation.

Run with: arq services.orders_service.worker.WorkerSettings
"""

from arq import cron
from libs.common.arq_config import (
    get_redis_settings,
    on_worker_shutdown,
    on_worker_startup,
)
from libs.common.logging import get_logger

logger = get_logger(__name__)


async def task_expire_unpaid_orders(ctx: dict):
    from services.orders_service.tasks import expire_unpaid_orders

    logger.info("Running: expire_unpaid_orders")
    return await expire_unpaid_orders()


class WorkerSettings:
    redis_settings = get_redis_settings()
    on_startup = on_worker_startup
    on_shutdown = on_worker_shutdown

    functions = [task_expire_unpaid_orders]

    cron_jobs = [
        cron(
            task_expire_unpaid_orders,
            minute={1, 6, 11, 16, 21, 26, 31, 36, 41, 46, 51, 56},
            run_at_startup=True,
        ),
    ]
