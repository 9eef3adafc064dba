#!/usr/bin/env python3
"""
Real-time notification module for the Yemzo backend.

Order changes are published to named topics:

- customer:<customerId>
- owner:<ownerId>
- courier:<courierId>
- courier-pool (every courier looking for work)

Delivery is best effort. A subscriber that is not connected misses the event
and recovers by re-fetching the order. Publishing never fails the operation
that triggered it.
"""

import asyncio
import json
import threading
import time
from collections import defaultdict
from typing import Any, Dict, Optional, Set

import redis
import redis.asyncio as aioredis
from redis.backoff import NoBackoff
from redis.retry import Retry

from .config import Config
from .errors import NotificationFailure
from ..utils.logger import get_logger

log = get_logger("realtime")

COURIER_POOL = "courier-pool"

# Event names are part of the wire contract with existing clients
ORDER_CREATED = "order-created"
NEW_ORDER = "new-order"
AVAILABLE_ORDER = "available-order"
ORDER_UPDATED = "order-updated"
ORDER_ASSIGNED = "order-assigned"


def customer_topic(customer_id) -> str:
    return f"customer:{customer_id}"


def owner_topic(owner_id) -> str:
    return f"owner:{owner_id}"


def courier_topic(courier_id) -> str:
    return f"courier:{courier_id}"


def encode(event: str, payload: Any) -> str:
    return json.dumps({"event": event, "data": payload}, default=str)


# ----- in-process transport -----

class LocalSubscription:
    """One connected session on the local hub."""

    def __init__(self, hub: "LocalHub", loop: asyncio.AbstractEventLoop):
        self.hub = hub
        self.loop = loop
        self.queue: asyncio.Queue = asyncio.Queue()
        self.topics: Set[str] = set()

    async def join(self, topic: str):
        self.hub.join(self, topic)

    async def leave(self, topic: str):
        self.hub.leave(self, topic)

    def deliver(self, message: Dict[str, Any]):
        # safe from any thread; never blocks the publisher
        self.loop.call_soon_threadsafe(self.queue.put_nowait, message)

    async def receive(self) -> Dict[str, Any]:
        return await self.queue.get()

    async def close(self):
        self.hub.disconnect(self)


class LocalHub:
    """Room-based fan-out inside one process."""

    name = "local"

    def __init__(self):
        self._rooms: Dict[str, Set[LocalSubscription]] = defaultdict(set)
        self._lock = threading.Lock()

    def connect(self) -> LocalSubscription:
        return LocalSubscription(self, asyncio.get_running_loop())

    def join(self, sub: LocalSubscription, topic: str):
        with self._lock:
            self._rooms[topic].add(sub)
            sub.topics.add(topic)

    def leave(self, sub: LocalSubscription, topic: str):
        with self._lock:
            self._rooms.get(topic, set()).discard(sub)
            sub.topics.discard(topic)
            if not self._rooms.get(topic):
                self._rooms.pop(topic, None)

    def disconnect(self, sub: LocalSubscription):
        for topic in list(sub.topics):
            self.leave(sub, topic)

    def members(self, topic: str) -> int:
        with self._lock:
            return len(self._rooms.get(topic, ()))

    def publish(self, topic: str, event: str, payload: Any):
        with self._lock:
            subscribers = list(self._rooms.get(topic, ()))
        message = json.loads(encode(event, payload))
        for sub in subscribers:
            try:
                sub.deliver(message)
            except RuntimeError:
                # event loop of that session is gone
                self.disconnect(sub)


# ----- Redis transport -----

class RedisSubscription:
    def __init__(self, transport: "RedisTransport"):
        self.transport = transport
        self.client = aioredis.Redis.from_url(transport.url, decode_responses=True)
        self.pubsub = self.client.pubsub(ignore_subscribe_messages=True)

    async def join(self, topic: str):
        await self.pubsub.subscribe(self.transport.channel(topic))

    async def leave(self, topic: str):
        await self.pubsub.unsubscribe(self.transport.channel(topic))

    async def receive(self) -> Dict[str, Any]:
        while True:
            if not self.pubsub.subscribed:
                await asyncio.sleep(0.2)
                continue
            message = await self.pubsub.get_message(timeout=1.0)
            if message and message.get("type") == "message":
                return json.loads(message["data"])

    async def close(self):
        await self.pubsub.aclose()
        await self.client.aclose()


class RedisTransport:
    """Fan-out through Redis pub/sub so every worker process sees every event."""

    name = "redis"
    prefix = "yemzo:"

    def __init__(self, url: str = None, timeout: float = None):
        timeout = timeout or Config.NOTIFY_TIMEOUT
        self.url = url or Config.REDIS_URL or f"redis://{Config.REDIS_HOST}:{Config.REDIS_PORT}/{Config.REDIS_DB}"
        self.client = redis.Redis.from_url(
            self.url,
            decode_responses=True,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            retry=Retry(NoBackoff(), 0),
        )

    def channel(self, topic: str) -> str:
        return f"{self.prefix}{topic}"

    def ping(self) -> bool:
        return self.client.ping()

    def connect(self) -> RedisSubscription:
        return RedisSubscription(self)

    def publish(self, topic: str, event: str, payload: Any):
        try:
            self.client.publish(self.channel(topic), encode(event, payload))
        except redis.RedisError as e:
            raise NotificationFailure(f"redis publish to {topic} failed: {e}") from e


def build_transport(backend: str = None):
    """Use Redis when reachable, otherwise keep fan-out inside this process."""
    backend = (backend or Config.REALTIME_BACKEND).lower()
    if backend == "local":
        return LocalHub()
    try:
        transport = RedisTransport()
        transport.ping()
        log.info("Using Redis for real-time fan-out")
        return transport
    except redis.RedisError as e:
        if backend == "redis":
            raise
        log.info("Redis not available (%s), using in-process real-time hub", e)
        return LocalHub()


# ----- notifier -----

class FanOut:
    """Publishes of one lifecycle event, sharing a single NOTIFY_TIMEOUT budget.

    After the first failure or once the budget is spent the remaining
    topics are skipped, so a dead transport costs at most one timeout.
    """

    def __init__(self, notifier: "Notifier", budget: float):
        self.notifier = notifier
        self.deadline = time.monotonic() + budget
        self.failed = False

    def publish(self, topic: str, event: str, payload: Any) -> bool:
        if self.failed or time.monotonic() >= self.deadline:
            log.warning("Skipped %s to %s: notification budget spent", event, topic)
            return False
        ok = self.notifier._publish(topic, event, payload)
        self.failed = not ok
        return ok


class Notifier:
    """Publishes order lifecycle events to the interested topics."""

    def __init__(self, transport=None, budget: float = None):
        self.transport = transport
        self.budget = budget or Config.NOTIFY_TIMEOUT

    def _publish(self, topic: str, event: str, payload: Any) -> bool:
        if self.transport is None:
            log.warning("Real-time transport not initialized; dropped %s for %s", event, topic)
            return False
        try:
            self.transport.publish(topic, event, payload)
            return True
        except Exception as e:
            # the persisted order is the source of truth; clients re-fetch on demand
            log.warning("Publish of %s to %s failed: %s", event, topic, e)
            return False

    def fan_out(self) -> FanOut:
        return FanOut(self, self.budget)

    @staticmethod
    def pool_projection(order: Dict[str, Any]) -> Dict[str, Any]:
        """What couriers see before accepting: no customer details."""
        return {
            "orderId": order["id"],
            "hotel": order["ownerId"],
            "hotelName": (order.get("owner") or {}).get("hotelName"),
            "totalAmount": order["totalAmount"],
            "items": [{"name": i["name"], "quantity": i["quantity"]} for i in order.get("items", [])],
        }

    def order_created(self, order: Dict[str, Any], message: str = None):
        fan = self.fan_out()
        fan.publish(
            customer_topic(order["customerId"]),
            ORDER_CREATED,
            {"success": True, "message": message or f"Order placed for ₹{order['totalAmount']}.", "order": order},
        )
        fan.publish(owner_topic(order["ownerId"]), NEW_ORDER, order)
        fan.publish(COURIER_POOL, AVAILABLE_ORDER, self.pool_projection(order))

    def order_updated(self, order: Dict[str, Any], fan: FanOut = None):
        fan = fan or self.fan_out()
        fan.publish(customer_topic(order["customerId"]), ORDER_UPDATED, order)
        fan.publish(owner_topic(order["ownerId"]), ORDER_UPDATED, order)
        courier_id: Optional[int] = order.get("deliveryBoyId")
        if courier_id is not None:
            fan.publish(courier_topic(courier_id), ORDER_UPDATED, order)

    def order_assigned(self, order: Dict[str, Any]):
        fan = self.fan_out()
        self.order_updated(order, fan)
        fan.publish(courier_topic(order["deliveryBoyId"]), ORDER_ASSIGNED, order)
