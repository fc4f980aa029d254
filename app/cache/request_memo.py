"""Request-scoped memoization.

Identical calls to a memoized function inside one ``request_scope()`` share a
single execution and receive the same result object. The memo table lives in
a context variable, so each request (and each asyncio task it spawns after
entering the scope) sees only its own table. Outside a scope every call runs.
"""

import asyncio
from contextlib import contextmanager
from contextvars import ContextVar
from functools import wraps
from typing import Callable

_memo: ContextVar[dict[str, asyncio.Future] | None] = ContextVar(
    "request_memo", default=None
)


@contextmanager
def request_scope():
    token = _memo.set({})
    try:
        yield
    finally:
        _memo.reset(token)


def in_request_scope() -> bool:
    return _memo.get() is not None


def request_memoized(key_builder: Callable[..., str]):
    """
    Decorator for async functions; key_builder receives same args/kwargs.
    Example:
      @request_memoized(lambda serialized, *_, **__: serialized)
      async def load(serialized, client): ...
    """

    def decorator(fn: Callable):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            table = _memo.get()
            if table is None:
                return await fn(*args, **kwargs)

            key = f"{fn.__module__}.{fn.__qualname__}:{key_builder(*args, **kwargs)}"
            pending = table.get(key)
            if pending is None:
                pending = asyncio.ensure_future(fn(*args, **kwargs))
                table[key] = pending
            return await pending

        return wrapper

    return decorator
