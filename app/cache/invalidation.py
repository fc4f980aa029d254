import logging

from app.cache.keys import task_key, task_list_pattern
from app.cache.layer import cache_layer

logger = logging.getLogger(__name__)


async def invalidate_task_cache(task_id: int | None = None) -> None:
    """Drop every cached task listing and, when given, the single task entry."""
    if task_id is not None:
        await cache_layer.delete(task_key(task_id))
    await cache_layer.delete_pattern(task_list_pattern())
    logger.info(
        "cache.invalidate",
        extra={"event": "cache.invalidate", "task_id": task_id},
    )
