"""Enqueue billing jobs on the arq worker from outside the cron schedule."""

from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from billing_engine.core.config import settings

redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job:
    """Enqueue ``task_name`` with the given arguments.

    The pool is opened for this one job and closed again, even when the
    enqueue fails.
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        return job  # type: ignore[return-value]
    finally:
        await pool.close()


async def enqueue_invoice_sweep() -> Job:
    """Run promote, finalize, refresh and issue once, right away."""
    return await enqueue_task("run_invoice_sweep_task")


async def enqueue_issue_invoices() -> Job:
    return await enqueue_task("issue_invoices_task")
