from functools import wraps
from typing import Callable

from pydantic import BaseModel

from app.cache.layer import cache_layer


def async_cached(
    key_builder: Callable[..., str],
    l2_ttl: int = None,
    model: type[BaseModel] | None = None,
):
    """
    Decorator for async functions. key_builder receives same args/kwargs.
    Cached values are stored in their JSON form; when ``model`` is given the
    wrapper rebuilds an instance of it on the way out.
    Example:
      @async_cached(lambda task_id, *_, **__: f"task:{task_id}", model=TaskRead)
      async def get_task(task_id, db): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            key = key_builder(*args, **kwargs)

            # loader closure calls the original function
            async def loader():
                value = await fn(*args, **kwargs)
                if value is None:
                    return None
                if hasattr(value, "model_dump"):
                    return value.model_dump(mode="json")
                return value

            value = await cache_layer.get(key, loader=loader, l2_ttl=l2_ttl)
            if value is not None and model is not None:
                return model.model_validate(value)
            return value

        return wrapper

    return decorator


def async_cached_expire(key_builder: Callable[..., str]):
    """Drop the key built from the call arguments once the call succeeds."""

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            key = key_builder(*args, **kwargs)
            result = await fn(*args, **kwargs)
            await cache_layer.delete(key)
            return result

        return wrapper

    return decorator
