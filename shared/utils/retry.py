import asyncio
import inspect
import random
from typing import Awaitable, Callable, Iterable, Iterator, Optional, TypeVar

from shared.logging.logger import get_logger

T = TypeVar("T")
OnRetry = Callable[[int, BaseException, float], Optional[Awaitable[None]]]

logger = get_logger(__name__, auto_configure=False)


def backoff_delays(
    base_delay: float = 0.5, max_delay: float = 10.0, jitter: float = 0.1
) -> Iterator[float]:
    """Doubling delays capped at ``max_delay``, each with up to ``jitter`` added."""
    delay = base_delay
    while True:
        yield min(delay, max_delay) + random.uniform(0, delay * jitter)
        delay = min(delay * 2, max_delay)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    retries: int = 5,
    base_delay: float = 0.5,
    max_delay: float = 10.0,
    jitter: float = 0.1,
    retry_on: Iterable[type[BaseException]] = (Exception,),
    on_retry: Optional[OnRetry] = None,
) -> T:
    """Await ``func`` up to ``retries`` times; the last failure is re-raised.

    ``on_retry(attempt, exc, sleep_for)`` may be sync or async. A failing
    callback is logged and does not stop the retries.
    """
    if retries < 1:
        raise ValueError("retries must be at least 1")
    retry_on = tuple(retry_on)
    delays = backoff_delays(base_delay, max_delay, jitter)
    attempt = 0
    while True:
        attempt += 1
        try:
            return await func()
        except retry_on as exc:  # type: ignore[misc]
            if attempt >= retries:
                raise
            sleep_for = next(delays)
            if on_retry is not None:
                await _notify(on_retry, attempt, exc, sleep_for)
            await asyncio.sleep(sleep_for)


async def _notify(
    on_retry: OnRetry, attempt: int, exc: BaseException, sleep_for: float
) -> None:
    try:
        result = on_retry(attempt, exc, sleep_for)
        if inspect.isawaitable(result):
            await result
    except Exception:
        logger.debug("retry_callback_failed", exc_info=True)
