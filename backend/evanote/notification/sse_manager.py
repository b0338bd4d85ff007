import asyncio
from typing import Any, Dict, Set
from loguru import logger


class SSEManager:
    """Manages Server-Sent Event subscriptions, one channel per visit."""

    def __init__(self):
        # channel (visit id) -> queues of the connected clients
        self.connections: Dict[str, Set[asyncio.Queue]] = {}
        logger.info("SSEManager initialized.")

    async def connect(self, channel: str) -> asyncio.Queue:
        """Registers a new subscriber on channel and returns its message queue."""
        queue = asyncio.Queue()
        self.connections.setdefault(channel, set()).add(queue)
        logger.info(f"Client subscribed to {channel}. Subscribers: {len(self.connections[channel])}")
        return queue

    async def disconnect(self, channel: str, queue: asyncio.Queue):
        """Removes a subscriber."""
        subscribers = self.connections.get(channel)
        if not subscribers or queue not in subscribers:
            logger.warning(f"Attempted to disconnect unknown subscriber from {channel}")
            return

        subscribers.discard(queue)
        if not subscribers:
            del self.connections[channel]
        logger.info(f"Client unsubscribed from {channel}.")

    def subscriber_count(self, channel: str) -> int:
        return len(self.connections.get(channel, ()))

    async def send(self, channel: str, data: Any):
        """Sends data to every subscriber of channel."""
        subscribers = self.connections.get(channel)
        if not subscribers:
            logger.debug(f"No subscribers on {channel}, message dropped.")
            return
        for queue in list(subscribers):
            await queue.put(data)
        logger.debug(f"Message queued for {len(subscribers)} subscriber(s) of {channel}.")


# Singleton instance
sse_manager = SSEManager()
