from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

OnlineListener = Callable[[], Awaitable[None]]


class ConnectivityMonitor:
    """Tracks whether the document store is reachable.

    Listeners registered with :meth:`add_online_listener` run on every
    offline -> online transition.
    """

    def __init__(self, initial_online: bool = True):
        self._online = initial_online
        self._listeners: list[OnlineListener] = []

    @property
    def is_online(self) -> bool:
        return self._online

    def add_online_listener(self, listener: OnlineListener) -> None:
        self._listeners.append(listener)

    async def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online
        if was_online == online:
            return
        logger.info("connectivity changed: online=%s", online)
        if online:
            for listener in list(self._listeners):
                await listener()

    async def probe(self, url: str, timeout: float = 5.0) -> bool:
        try:
            async with httpx.AsyncClient(timeout=httpx.Timeout(timeout)) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.info("connectivity probe failed: %s", exc)
            await self.set_online(False)
            return False
        await self.set_online(True)
        return True
