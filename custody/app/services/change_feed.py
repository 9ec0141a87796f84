"""
Change Feed Service.

Publishes a small change record after every committed custody transition so
external listeners can refresh their views. Publishing is best-effort: the
transition is already durable when the feed is called.
"""

import json
import logging
from typing import Any, Dict

from custody.app.core.config import settings
from custody.app.core.reliability import CircuitBreaker, CircuitOpenError, change_feed_circuit_breaker

logger = logging.getLogger(__name__)


class ChangeFeed:
    """Sink for post-commit change records."""

    async def publish(self, change: Dict[str, Any]) -> bool:
        raise NotImplementedError


class NullChangeFeed(ChangeFeed):

    async def publish(self, change: Dict[str, Any]) -> bool:
        return False


class RedisChangeFeed(ChangeFeed):
    """Redis pub/sub publisher guarded by a circuit breaker."""

    def __init__(self, redis_client, channel: str = None, breaker: CircuitBreaker = None):
        self.redis = redis_client
        self.channel = channel or settings.change_feed_channel
        self.breaker = breaker or change_feed_circuit_breaker

    async def publish(self, change: Dict[str, Any]) -> bool:
        """
        Publish one change record as JSON.

        Returns:
            True if handed to redis, False if the broker was unreachable
            or the circuit is open
        """
        payload = json.dumps(change, default=str)
        try:
            await self.breaker.call(self.redis.publish, self.channel, payload)
        except CircuitOpenError:
            logger.warning(
                "Change feed circuit open, dropped %s for package %s",
                change.get("event"), change.get("package_id"),
            )
            return False
        except Exception as e:
            logger.warning(
                "Change feed publish failed for package %s: %s",
                change.get("package_id"), e,
            )
            return False
        return True
