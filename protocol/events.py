"""
In-process broadcast streams between the registrar and voter clients.

Each subscriber gets its own asyncio.Queue per stream, so delivery order
within a stream is the publish order. Nothing is ordered across streams.
"""

import asyncio
import logging
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

NETWORK_STATE = "networkState"
ELECTIONS = "elections"
VOTES = "votes"

STREAMS = (NETWORK_STATE, ELECTIONS, VOTES)


class EventBus:
    """Named event streams with per-subscriber FIFO queues"""

    def __init__(self, streams=STREAMS):
        self._subscribers: Dict[str, List[asyncio.Queue]] = {name: [] for name in streams}

    def _stream(self, name: str) -> List[asyncio.Queue]:
        try:
            return self._subscribers[name]
        except KeyError:
            raise KeyError(f"unknown event stream: {name}")

    def subscribe(self, name: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._stream(name).append(queue)
        logger.debug(f"New subscriber on {name} ({len(self._subscribers[name])} total)")
        return queue

    def unsubscribe(self, name: str, queue: asyncio.Queue):
        subscribers = self._stream(name)
        if queue in subscribers:
            subscribers.remove(queue)

    def publish(self, name: str, payload: Any):
        subscribers = list(self._stream(name))
        for queue in subscribers:
            queue.put_nowait(payload)
        logger.debug(f"Published {name} event to {len(subscribers)} subscribers")

    def subscriber_count(self, name: str) -> int:
        return len(self._stream(name))
