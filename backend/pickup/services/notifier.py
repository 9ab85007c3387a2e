"""
Change notifier: topic fan-out of game and chat changes to live subscribers.

DELIVERY CONTRACT
=================

Best-effort, at-least-once, ordered within a topic. Producers never wait on
subscribers: publish() only enqueues. Each subscription owns an asyncio.Queue
drained by its own task, so a slow or failing subscriber delays nobody else
and sees its topic's messages in publish order.

Live updates are a latency optimisation, not a consistency path. A client
that misses one re-fetches the game.

Topics:
  "games"             - global active list (any game created/changed)
  "game:{id}"         - one game's detail (roster and status)
  "game:{id}:chat"    - one game's chat

Cross-process fan-out:
  With Redis available, publish() goes to Redis pub/sub and a relay task
  delivers every "<prefix>:*" message to local subscribers, so an API worker
  sees changes made by another worker or the background sweep. Without Redis
  (or after the relay fails) delivery is in-process only.
"""

import asyncio
import inspect
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pickup.core.logging import get_logger

logger = get_logger(__name__)

ACTIVE_GAMES_TOPIC = "games"

Callback = Callable[[dict], Union[Awaitable[None], None]]


def game_topic(game_id: int) -> str:
    return f"game:{game_id}"


def chat_topic(game_id: int) -> str:
    return f"game:{game_id}:chat"


@dataclass(eq=False)
class Subscription:
    id: int
    topic: str
    callback: Callback
    queue: asyncio.Queue = field(default_factory=asyncio.Queue)
    task: Optional[asyncio.Task] = None


class ChangeNotifier:
    """Topic registry with per-subscriber ordered delivery."""

    def __init__(self, redis_client=None, channel_prefix: str = "pickup"):
        self._subscriptions: Dict[str, Dict[int, Subscription]] = {}
        self._ids = itertools.count(1)
        self._redis = redis_client
        self._prefix = channel_prefix
        self._pubsub = None
        self._relay_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Attach to the Redis change feed, if a client was provided."""
        if self._redis is None or self._relay_task is not None:
            return
        try:
            self._pubsub = self._redis.pubsub()
            await self._pubsub.psubscribe(f"{self._prefix}:*")
        except Exception as e:
            logger.warning("change_feed_unavailable", error=str(e))
            self._redis = None
            self._pubsub = None
            return
        self._relay_task = asyncio.create_task(self._relay_loop())
        logger.info("change_feed_attached", prefix=self._prefix)

    async def stop(self) -> None:
        if self._relay_task is not None:
            self._relay_task.cancel()
            self._relay_task = None
        if self._pubsub is not None:
            try:
                await self._pubsub.aclose()
            except Exception as e:
                logger.warning("change_feed_close_failed", error=str(e))
            self._pubsub = None
        for topic_subs in list(self._subscriptions.values()):
            for subscription in list(topic_subs.values()):
                self._discard(subscription)
        self._subscriptions.clear()

    async def subscribe(self, topic: str, callback: Callback) -> Subscription:
        subscription = Subscription(id=next(self._ids), topic=topic, callback=callback)
        subscription.task = asyncio.create_task(self._pump(subscription))
        self._subscriptions.setdefault(topic, {})[subscription.id] = subscription
        logger.debug("topic_subscribed", topic=topic, subscription_id=subscription.id)
        return subscription

    async def unsubscribe(self, subscription: Subscription) -> None:
        topic_subs = self._subscriptions.get(subscription.topic)
        if topic_subs is not None:
            topic_subs.pop(subscription.id, None)
            if not topic_subs:
                del self._subscriptions[subscription.topic]
        self._discard(subscription)
        logger.debug("topic_unsubscribed", topic=subscription.topic, subscription_id=subscription.id)

    def subscriber_count(self, topic: str) -> int:
        return len(self._subscriptions.get(topic, {}))

    async def publish(self, topic: str, message: dict) -> None:
        """Fire-and-forget publish. Never raises for delivery problems."""
        if self._redis is not None and self._relay_task is not None:
            try:
                await self._redis.publish(f"{self._prefix}:{topic}", json.dumps(message, default=str))
                return
            except Exception as e:
                logger.warning("change_feed_publish_failed", topic=topic, error=str(e))
        self.deliver_local(topic, message)

    def deliver_local(self, topic: str, message: dict) -> int:
        """Enqueue `message` for every local subscriber of `topic`."""
        subscriptions = list(self._subscriptions.get(topic, {}).values())
        for subscription in subscriptions:
            subscription.queue.put_nowait(message)
        return len(subscriptions)

    async def _pump(self, subscription: Subscription) -> None:
        while True:
            message = await subscription.queue.get()
            try:
                result = subscription.callback(message)
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(
                    "subscriber_callback_failed",
                    topic=subscription.topic,
                    subscription_id=subscription.id,
                    error=str(e),
                )

    async def _relay_loop(self) -> None:
        prefix_len = len(self._prefix) + 1
        try:
            while True:
                raw = await self._pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if raw is None or raw.get("type") != "pmessage":
                    continue
                channel = raw["channel"]
                try:
                    message = json.loads(raw["data"])
                except (TypeError, ValueError):
                    logger.warning("change_feed_bad_message", channel=channel)
                    continue
                self.deliver_local(channel[prefix_len:], message)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # Fall back to in-process delivery rather than dropping every update
            logger.error("change_feed_relay_failed", error=str(e))
            self._redis = None
            self._relay_task = None

    @staticmethod
    def _discard(subscription: Subscription) -> None:
        if subscription.task is not None and not subscription.task.done():
            subscription.task.cancel()
        subscription.task = None


_notifier: Optional[ChangeNotifier] = None


def get_change_notifier() -> ChangeNotifier:
    global _notifier
    if _notifier is None:
        _notifier = ChangeNotifier()
    return _notifier


def set_change_notifier(notifier: Optional[ChangeNotifier]) -> None:
    global _notifier
    _notifier = notifier


async def publish_game_update(
    game,
    current_players: int,
    reason: str,
    notifier: Optional[ChangeNotifier] = None,
) -> None:
    """Announce a roster/status change on the game's topic and the active list topic."""
    notifier = notifier or get_change_notifier()
    message: dict[str, Any] = {
        "type": "game_updated",
        "game_id": game.id,
        "status": game.status,
        "current_players": current_players,
        "reason": reason,
    }
    try:
        await notifier.publish(game_topic(game.id), message)
        await notifier.publish(ACTIVE_GAMES_TOPIC, message)
    except Exception as e:
        logger.warning("game_update_publish_failed", game_id=game.id, error=str(e))


async def publish_chat_message(message: dict, notifier: Optional[ChangeNotifier] = None) -> None:
    notifier = notifier or get_change_notifier()
    try:
        await notifier.publish(chat_topic(message["game_id"]), {"type": "chat_message", "message": message})
    except Exception as e:
        logger.warning("chat_publish_failed", game_id=message.get("game_id"), error=str(e))
