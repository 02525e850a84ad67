import asyncio
from typing import Callable, TypeVar

T = TypeVar("T")


async def run_blocking(func: Callable[..., T], *args, **kwargs) -> T:
    """Run blocking function (file I/O, JSON encoding) in the default executor."""
    return await asyncio.to_thread(func, *args, **kwargs)
