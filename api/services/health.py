"""
Health Check Service

Reports the state of the case tracker's dependencies: MongoDB (required),
the AMQP broker and Redis (optional).
"""

import os
import time
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from opentelemetry import trace

from services.mongodb import MongoDBService
from services.redis import RedisService
from services.amqp import AMQPService

tracer = trace.get_tracer(__name__)

SERVICE_NAME = "pqrs-tracker-api"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthCheckService:
    """Service for dependency health monitoring."""

    def __init__(
        self,
        mongodb_service: Optional[MongoDBService],
        redis_service: Optional[RedisService] = None,
        amqp_service: Optional[AMQPService] = None
    ):
        self.mongodb_service = mongodb_service
        self.redis_service = redis_service
        self.amqp_service = amqp_service
        self.service_version = "1.0.0"

    def get_health(self) -> Dict[str, Any]:
        """Health status of every configured dependency."""
        with tracer.start_as_current_span("health.check") as span:
            start_time = time.time()

            dependencies = {"mongodb": self._check_mongodb_health()}
            if self.amqp_service is not None:
                dependencies["amqp"] = self._check_amqp_health()
            if self.redis_service is not None:
                dependencies["redis"] = self.redis_service.health_check()

            overall_status = self._determine_overall_status(dependencies)
            response_time_ms = round((time.time() - start_time) * 1000, 2)

            span.set_attributes({
                "health.overall_status": overall_status,
                "health.response_time_ms": response_time_ms
            })

            return {
                "status": overall_status,
                "service": SERVICE_NAME,
                "version": self.service_version,
                "environment": os.getenv('ENVIRONMENT', 'development'),
                "timestamp": _now_iso(),
                "response_time_ms": response_time_ms,
                "dependencies": dependencies
            }

    def _check_mongodb_health(self) -> Dict[str, Any]:
        if self.mongodb_service is None:
            return {"status": "unavailable", "message": "MongoDB not configured"}

        with tracer.start_as_current_span("health.mongodb_check") as span:
            result = self.mongodb_service.health_check()
            span.set_attribute("mongodb.status", result.get("status", "unknown"))
            result["last_check"] = _now_iso()
            return result

    def _check_amqp_health(self) -> Dict[str, Any]:
        with tracer.start_as_current_span("health.amqp_check") as span:
            start_time = time.time()
            is_healthy = self.amqp_service.health_check()
            response_time = round((time.time() - start_time) * 1000, 2)

            span.set_attribute("amqp.status", "healthy" if is_healthy else "unhealthy")
            return {
                "status": "healthy" if is_healthy else "unhealthy",
                "response_time_ms": response_time,
                "last_check": _now_iso()
            }

    def _determine_overall_status(self, dependencies: Dict[str, Dict[str, Any]]) -> str:
        """Unhealthy when MongoDB is down, degraded when an optional dependency is."""
        if dependencies["mongodb"].get("status") != "healthy":
            return "unhealthy"
        optional = [d.get("status") for name, d in dependencies.items() if name != "mongodb"]
        if any(status != "healthy" for status in optional):
            return "degraded"
        return "healthy"
