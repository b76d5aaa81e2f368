# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Deadline monitor: alerts on cases whose response deadline is close.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

from opentelemetry import trace

from domain.deadlines import build_alert_message
from domain.errors import NotificationError
from models.enums import DEFAULT_DEADLINE_THRESHOLD_DAYS, RESOLVED_STATE
from .case_store import CaseStore
from .notifications import NotificationService, DEADLINE_ROUTING_KEY
from .redis import AlertCooldown

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class DeadlineScanResult:
    reference_date: date
    threshold_days: int
    matched: int = 0
    sent: int = 0
    failed: int = 0
    suppressed: int = 0
    case_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "referenceDate": self.reference_date.isoformat(),
            "thresholdDays": self.threshold_days,
            "matched": self.matched,
            "sent": self.sent,
            "failed": self.failed,
            "suppressed": self.suppressed,
            "caseIds": self.case_ids
        }


class DeadlineMonitor:
    """Scans open cases and requests one alert per case near its deadline."""

    def __init__(
        self,
        case_store: CaseStore,
        notifier: Optional[NotificationService],
        threshold_days: int = DEFAULT_DEADLINE_THRESHOLD_DAYS,
        excluded_state: str = RESOLVED_STATE,
        cooldown: Optional[AlertCooldown] = None
    ):
        self.case_store = case_store
        self.notifier = notifier
        self.threshold_days = threshold_days
        self.excluded_state = excluded_state
        self.cooldown = cooldown

    def scan_and_alert(self, reference_date: date) -> DeadlineScanResult:
        """
        Alert on every case near its deadline.

        A failed alert is logged and counted; the scan always continues.

        Raises:
            PersistenceError: If the case query fails
        """
        with tracer.start_as_current_span("deadlines.scan_and_alert") as span:
            cases = self.case_store.find_cases_near_deadline(
                reference_date, self.threshold_days, self.excluded_state
            )
            result = DeadlineScanResult(
                reference_date=reference_date,
                threshold_days=self.threshold_days,
                matched=len(cases),
                case_ids=[case.id for case in cases]
            )

            for case in cases:
                if self.cooldown is not None and not self.cooldown.claim(case.id):
                    result.suppressed += 1
                    continue

                if self._send_alert(case, reference_date):
                    result.sent += 1
                else:
                    result.failed += 1
                    if self.cooldown is not None:
                        self.cooldown.release(case.id)

            span.set_attributes({
                "deadline.reference_date": reference_date.isoformat(),
                "deadline.matched": result.matched,
                "deadline.sent": result.sent,
                "deadline.failed": result.failed,
                "deadline.suppressed": result.suppressed
            })
            logger.info("Deadline scan completed", extra={"extra_fields": result.to_dict()})
            return result

    def _send_alert(self, case, reference_date: date) -> bool:
        if self.notifier is None:
            logger.warning(f"No notifier configured, deadline alert for case {case.id} not sent")
            return False

        message = build_alert_message(case, reference_date)
        try:
            self.notifier.send(
                message["subject"],
                message["body"],
                metadata={
                    "caseId": case.id,
                    "radicado": case.radicado,
                    "subject": case.subject,
                    "responseDeadline": case.response_deadline.isoformat() if case.response_deadline else None,
                    "state": case.state
                },
                routing_key=DEADLINE_ROUTING_KEY
            )
            return True
        except NotificationError as e:
            logger.warning(
                "Deadline alert not sent",
                extra={"extra_fields": {"case_id": case.id, "error": str(e)}}
            )
            return False
