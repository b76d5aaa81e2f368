# SPDX-License-Identifier: Apache-2.0

"""
Notification requests for case transitions and deadline alerts.

Notifications are handed to the AMQP broker; delivery (email) happens in a
downstream consumer.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry import trace

from domain.errors import NotificationError
from .amqp import AMQPService, PublishResult, create_amqp_service

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

TRANSITION_ROUTING_KEY = "case.transition"
DEADLINE_ROUTING_KEY = "case.deadline"


class NotificationService:
    """Publishes notification messages for a fixed recipient."""

    def __init__(self, amqp_service: AMQPService, recipient: str):
        self.amqp_service = amqp_service
        self.recipient = recipient

    def send(
        self,
        subject: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None,
        routing_key: str = TRANSITION_ROUTING_KEY
    ) -> PublishResult:
        """
        Request delivery of one notification.

        Raises:
            NotificationError: If no recipient is configured or the broker rejects the message
        """
        with tracer.start_as_current_span("notifications.send") as span:
            span.set_attribute("notification.routing_key", routing_key)

            if not self.recipient:
                raise NotificationError("No notification recipient configured")

            message = {
                "recipient": self.recipient,
                "subject": subject,
                "body": body,
                "metadata": metadata or {}
            }
            result = self.amqp_service.publish_message(message, routing_key)

            span.set_attribute("notification.correlation_id", result.correlation_id)
            if not result.success:
                raise NotificationError(f"Failed to queue notification: {result.error}")

            logger.info(
                "Notification queued",
                extra={
                    "extra_fields": {
                        "routing_key": routing_key,
                        "correlation_id": result.correlation_id
                    }
                }
            )
            return result


def create_notification_service(recipient: str) -> NotificationService:
    """Factory wiring the AMQP publisher from environment configuration."""
    return NotificationService(create_amqp_service(), recipient)
