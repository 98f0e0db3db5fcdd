import json
import asyncio
import logging
from typing import Dict, List, Iterable, Optional, Set
from fastapi import WebSocket
from redis.exceptions import RedisError

from minichat.database import get_redis
from minichat.models.user import User

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "minichat:conversation:"


class ConnectionManager:
    """Per-process registry of live sockets plus conversation-keyed event fan-out.

    Events are published on a channel named after the conversation they belong
    to and delivered only to that conversation's participants. When Redis is
    configured every worker listens on the channel pattern and delivers to its
    own sockets; otherwise delivery stays in-process.
    """

    def __init__(self):
        self.active_connections: Dict[int, List[WebSocket]] = {}
        self.redis_client = None
        self._listener: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self.retry_delay = 5.0

    async def connect(self, websocket: WebSocket, user: User):
        await websocket.accept()

        if user.id not in self.active_connections:
            self.active_connections[user.id] = []

        self.active_connections[user.id].append(websocket)
        logger.info("User %s connected (%d sockets)", user.id, len(self.active_connections[user.id]))

    async def disconnect(self, websocket: WebSocket, user: User):
        self._forget(websocket, user.id)
        logger.info("User %s disconnected", user.id)

    async def send_personal_message(self, message: str, user_id: int):
        for connection in list(self.active_connections.get(user_id, [])):
            try:
                await connection.send_text(message)
            except Exception:
                logger.warning("Dropping dead socket of user %s", user_id)
                self._forget(connection, user_id)

    def _forget(self, websocket: WebSocket, user_id: int):
        connections = self.active_connections.get(user_id)
        if connections is None:
            return
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            del self.active_connections[user_id]

    async def publish(self, event_type: str, conversation: str, recipients: Iterable[int], data: dict):
        """Publish an event on a conversation channel for the given participants.

        Returns once the event is handed off; socket writes happen in the background.
        """
        envelope = {
            "type": event_type,
            "conversation": conversation,
            "recipients": sorted(set(recipients)),
            "data": data
        }
        if self.redis_client is not None:
            await self.redis_client.publish(CHANNEL_PREFIX + conversation, json.dumps(envelope, default=str))
        else:
            self._spawn(self.deliver(envelope))

    async def deliver(self, envelope: dict):
        """Push an event to the locally connected participants of its conversation."""
        message = json.dumps({
            "type": envelope["type"],
            "conversation": envelope["conversation"],
            "data": envelope["data"]
        }, default=str)
        for user_id in envelope["recipients"]:
            await self.send_personal_message(message, user_id)

    def _spawn(self, coro):
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._delivery_done)

    def _delivery_done(self, task: asyncio.Task):
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Event delivery failed", exc_info=task.exception())

    async def flush(self):
        """Wait for deliveries already handed off to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def start(self):
        """Connect to Redis, if configured, and start relaying conversation channels."""
        self.redis_client = await get_redis()
        if self.redis_client is None:
            logger.info("Redis disabled, real-time delivery is in-process only")
            return
        self._listener = asyncio.create_task(self._listen())

    async def stop(self):
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None
        await self.flush()
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None

    async def _listen(self):
        while True:
            try:
                await self._relay()
            except RedisError:
                logger.exception("Lost subscription to %s*, retrying in %ss", CHANNEL_PREFIX, self.retry_delay)
                await asyncio.sleep(self.retry_delay)

    async def _relay(self):
        pubsub = self.redis_client.pubsub()
        await pubsub.psubscribe(CHANNEL_PREFIX + "*")
        logger.info("Subscribed to %s*", CHANNEL_PREFIX)
        try:
            async for raw in pubsub.listen():
                if raw.get("type") != "pmessage":
                    continue
                try:
                    envelope = json.loads(raw["data"])
                except (ValueError, KeyError):
                    logger.warning("Ignoring malformed event on %s", raw.get("channel"))
                    continue
                self._spawn(self.deliver(envelope))
        finally:
            try:
                await pubsub.punsubscribe()
                await pubsub.aclose()
            except RedisError:
                logger.warning("Could not close subscription cleanly")

    def get_connected_users(self) -> List[int]:
        return list(self.active_connections.keys())

    def is_user_online(self, user_id: int) -> bool:
        return user_id in self.active_connections

manager = ConnectionManager()
