# SPDX-License-Identifier: Apache-2.0

"""
Redis markers for deadline alert cool-down.

Uses the Upstash HTTP client, which needs no persistent connection. One key
per case records that a deadline alert went out; scans inside the cool-down
window skip the case.
"""

import os
import time
from typing import Optional, Dict, Any
from upstash_redis import Redis
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ALERT_KEY_PREFIX = "pqrs:alerts"


class RedisService:
    """
    Thin wrapper over the Upstash client.

    Nothing here raises: without configuration, or when a call fails, the
    operation answers "not done" and the caller decides what that means.
    """

    def __init__(self, redis_url: Optional[str] = None, redis_token: Optional[str] = None):
        self.redis_url = redis_url or os.getenv("REDIS_URL")
        self.redis_token = redis_token or os.getenv("REDIS_TOKEN")
        self.client: Optional[Redis] = None

        if not self.redis_url:
            logger.warning("REDIS_URL not set, deadline alerts will not be de-duplicated")
            return

        try:
            client = Redis(url=self.redis_url, token=self.redis_token) if self.redis_token else Redis.from_env()
            if client.ping() != "PONG":
                logger.error("Redis ping did not answer PONG, cool-down disabled")
                return
            self.client = client
            logger.info("Redis cool-down store connected")
        except Exception as e:
            logger.error(f"Redis unavailable, cool-down disabled: {e}")

    def is_available(self) -> bool:
        return self.client is not None

    def set_if_absent(self, key: str, value: str, ttl_seconds: int) -> Optional[bool]:
        """
        ``SET key value NX EX ttl``.

        Returns:
            True when the key was created, False when it already existed,
            None when Redis is unavailable or the call failed
        """
        if not self.is_available():
            return None

        with tracer.start_as_current_span("redis.set_if_absent") as span:
            span.set_attributes({"redis.key": key, "redis.ttl": ttl_seconds})
            try:
                created = bool(self.client.set(key, value, nx=True, ex=ttl_seconds))
            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis SET NX failed for {key}: {e}")
                return None

            span.set_attribute("redis.result", "created" if created else "exists")
            return created

    def delete(self, key: str) -> bool:
        """True when a key was removed."""
        if not self.is_available():
            return False

        with tracer.start_as_current_span("redis.delete") as span:
            span.set_attribute("redis.key", key)
            try:
                return self.client.delete(key) > 0
            except Exception as e:
                span.set_attribute("redis.result", "error")
                logger.error(f"Redis DEL failed for {key}: {e}")
                return False

    def health_check(self) -> Dict[str, Any]:
        if not self.is_available():
            return {"status": "unavailable", "message": "Redis not configured"}

        started = time.time()
        try:
            healthy = self.client.ping() == "PONG"
            error = None
        except Exception as e:
            healthy, error = False, str(e)

        result = {
            "status": "healthy" if healthy else "unhealthy",
            "response_time_ms": round((time.time() - started) * 1000, 2)
        }
        if error:
            result["error"] = error
        return result


class AlertCooldown:
    """
    Per-case deadline alert markers kept in Redis.

    A cool-down of zero hours, or an unavailable Redis, disables suppression:
    every claim succeeds.
    """

    def __init__(self, redis_service: Optional[RedisService], cooldown_hours: float = 0):
        self.redis_service = redis_service
        self.ttl_seconds = int(cooldown_hours * 3600)

    @property
    def enabled(self) -> bool:
        return (
            self.ttl_seconds > 0
            and self.redis_service is not None
            and self.redis_service.is_available()
        )

    @staticmethod
    def key_for(case_id: str) -> str:
        return f"{ALERT_KEY_PREFIX}:{case_id}"

    def claim(self, case_id: str) -> bool:
        """
        Claim the right to alert for a case.

        Returns False only when a marker from an earlier alert still exists.
        """
        if not self.enabled:
            return True

        result = self.redis_service.set_if_absent(self.key_for(case_id), "1", self.ttl_seconds)
        if result is None:
            # Redis error: alert rather than risk a silent miss
            return True
        return result

    def release(self, case_id: str) -> None:
        """Drop the marker so the next scan alerts again."""
        if self.enabled:
            self.redis_service.delete(self.key_for(case_id))


def create_alert_cooldown(cooldown_hours: float) -> AlertCooldown:
    """Build the cool-down helper; Redis is only contacted when it is enabled."""
    if cooldown_hours <= 0:
        return AlertCooldown(None, 0)
    return AlertCooldown(RedisService(), cooldown_hours)
