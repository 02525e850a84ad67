"""Transport retrieving the remote exposition text."""

from __future__ import annotations

import asyncio
from typing import Optional, Protocol

import aiohttp

from metrics_bus.core.errors import FetchError


class ExpositionFetcher(Protocol):
    async def fetch(self) -> str:
        """Body of one exposition response; raises FetchError on failure."""
        ...

    async def close(self) -> None: ...


class HttpExpositionFetcher:
    """GETs ``url`` with a lazily created aiohttp session.

    Without ``timeout_seconds`` the request waits as long as the transport
    does, which delays the next poll accordingly.
    """

    def __init__(
        self,
        url: str,
        timeout_seconds: Optional[float] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.url = url
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Accept": "text/plain", "Cache-Control": "no-cache"},
            )
            self._owns_session = True
        return self.session

    async def fetch(self) -> str:
        session = await self._ensure_session()
        try:
            async with session.get(self.url) as resp:
                if not 200 <= resp.status < 300:
                    raise FetchError(self.url, f"status {resp.status}", resp.status)
                # bad bytes become U+FFFD so only the affected lines are dropped
                return await resp.text(errors="replace")
        except asyncio.TimeoutError as e:
            raise FetchError(self.url, "timeout") from e
        except aiohttp.ClientError as e:
            raise FetchError(self.url, str(e) or type(e).__name__) from e

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
        self.session = None
