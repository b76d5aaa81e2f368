# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Lifecycle engine: applies validated state transitions with their audit entry.
"""

import logging
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Callable, ContextManager, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from domain.errors import InvalidInputError, NotificationError
from domain.lifecycle import TransitionPolicy, build_transition_message, validate_transition
from models.entities import Case, HistoryEntry
from .case_store import CaseStore
from .history import HistoryLedger
from .notifications import NotificationService, TRANSITION_ROUTING_KEY

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class TransitionResult:
    case: Case
    history_entry: HistoryEntry
    notification_queued: bool


class LifecycleEngine:
    """
    Validates and applies case state transitions.

    The case update and the history append run inside ``unit_of_work``, a
    callable returning a context manager that yields a database session (or
    None). With a transactional unit of work both writes commit together;
    without one the case update is written before the history entry.
    """

    def __init__(
        self,
        case_store: CaseStore,
        history_ledger: HistoryLedger,
        notifier: Optional[NotificationService] = None,
        policy: Optional[TransitionPolicy] = None,
        unit_of_work: Optional[Callable[[], ContextManager]] = None
    ):
        self.case_store = case_store
        self.history_ledger = history_ledger
        self.notifier = notifier
        self.policy = policy or TransitionPolicy()
        self.unit_of_work = unit_of_work or nullcontext

    def apply_transition(self, case_id: str, new_state: Optional[str], comments: Optional[str]) -> TransitionResult:
        """
        Move a case to a new state and record the change.

        Args:
            case_id: Case identifier
            new_state: Requested state
            comments: Free text stored on the case and in the history entry

        Returns:
            TransitionResult with the updated case, the new history entry and
            whether the notification was queued

        Raises:
            InvalidInputError: If the new state is blank or the transition is not allowed
            NotFoundError: If the case does not exist
            PersistenceError: If a write fails
        """
        if new_state is None or not str(new_state).strip():
            raise InvalidInputError("State is required")

        with tracer.start_as_current_span("lifecycle.apply_transition") as span:
            span.set_attribute("case.id", case_id)

            with self.unit_of_work() as session:
                case = self.case_store.get_case(case_id, session=session)
                previous_state = case.state
                new_state = validate_transition(previous_state, new_state, self.policy)

                updated = self.case_store.update_case_state(case_id, new_state, comments, session=session)
                entry = self.history_ledger.append(case_id, previous_state, new_state, comments, session=session)

            span.set_attributes({
                "case.previous_state": previous_state,
                "case.new_state": new_state,
                "history.entry_id": entry.id
            })
            logger.info(
                "Case state changed",
                extra={
                    "extra_fields": {
                        "case_id": case_id,
                        "previous_state": previous_state,
                        "new_state": new_state,
                        "history_entry_id": entry.id
                    }
                }
            )

            queued = self._notify(updated, previous_state, comments)
            span.set_attribute("notification.queued", queued)
            span.set_status(Status(StatusCode.OK))

            return TransitionResult(case=updated, history_entry=entry, notification_queued=queued)

    def _notify(self, case: Case, previous_state: str, comments: Optional[str]) -> bool:
        if self.notifier is None:
            return False

        message = build_transition_message(case, previous_state, comments)
        try:
            self.notifier.send(
                message["subject"],
                message["body"],
                metadata={
                    "caseId": case.id,
                    "radicado": case.radicado,
                    "previousState": previous_state,
                    "newState": case.state,
                    "comments": comments
                },
                routing_key=TRANSITION_ROUTING_KEY
            )
            return True
        except NotificationError as e:
            logger.warning(
                "Transition notification not queued",
                extra={"extra_fields": {"case_id": case.id, "error": str(e)}}
            )
            return False
