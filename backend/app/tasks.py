from typing import Any

from arq import create_pool
from arq.connections import ArqRedis, RedisSettings
from arq.jobs import Job

from app.core.config import settings
from app.services.notification_service import Notification

# Redis connection settings
redis_settings = RedisSettings.from_dsn(settings.REDIS_URL)


async def get_redis_pool() -> ArqRedis:
    """Get or create Redis pool for arq"""
    return await create_pool(redis_settings)


async def enqueue_task(task_name: str, *args: Any, **kwargs: Any) -> Job:
    """
    Enqueue a task to the arq worker.

    Args:
        task_name: Name of the task function
        *args: Positional arguments for the task
        **kwargs: Keyword arguments for the task

    Returns:
        Job object from arq
    """
    pool = await get_redis_pool()
    try:
        job = await pool.enqueue_job(task_name, *args, **kwargs)
        return job  # type: ignore[return-value]
    finally:
        await pool.close()


async def enqueue_notification(notification: Notification) -> Job:
    """Queue delivery of a notice produced by a committed state change."""
    return await enqueue_task("deliver_notification_task", **notification.to_dict())


async def enqueue_webhook_event(event: dict[str, Any]) -> Job:
    """Queue a verified provider event for reconciliation."""
    return await enqueue_task("process_webhook_event_task", event)
