# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.

The case store, history ledger and notifier are replaced by in-memory
doubles that keep the production interfaces, so service and endpoint tests
run without MongoDB or a broker.
"""

import os
import pytest
from datetime import date
from typing import Dict, List, Optional

# Set test environment before the app module configures observability
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['MONGODB_DATABASE'] = 'pqrs_test'

from domain.classifier import ClassificationRuleSet, DEFAULT_RULES
from domain.deadlines import select_near_deadline
from domain.errors import ConflictError, NotFoundError, NotificationError, PersistenceError
from models.base import utc_now
from models.entities import Case, HistoryEntry
from services.amqp import PublishResult
from services.case_store import CaseStore
from services.history import HistoryLedger
from services.redis import AlertCooldown


class InMemoryCaseStore(CaseStore):
    """Case store keeping cases in a dict; radicados in ``fail_on`` raise PersistenceError."""

    def __init__(self, fail_on: Optional[set] = None):
        self._cases: Dict[str, Case] = {}
        self.fail_on = fail_on or set()
        self.update_calls = 0

    def create_case(self, case: Case) -> str:
        if case.radicado in self.fail_on:
            raise PersistenceError(f"Simulated storage failure for {case.radicado}")
        if any(c.radicado == case.radicado for c in self._cases.values()):
            raise ConflictError(f"A case with radicado {case.radicado} already exists")
        self._cases[case.id] = case.model_copy()
        return case.id

    def get_case(self, case_id: str, session=None) -> Case:
        if case_id not in self._cases:
            raise NotFoundError(f"Case not found: {case_id}")
        return self._cases[case_id].model_copy()

    def list_cases(self) -> List[Case]:
        return [c.model_copy() for c in self._cases.values()]

    def update_case_state(self, case_id: str, new_state: str, comments: Optional[str], session=None) -> Case:
        self.update_calls += 1
        if case_id not in self._cases:
            raise NotFoundError(f"Case not found: {case_id}")
        case = self._cases[case_id].model_copy(update={
            "state": new_state,
            "comments": comments,
            "updated_at": utc_now()
        })
        self._cases[case_id] = case
        return case.model_copy()

    def find_cases_near_deadline(self, reference_date: date, threshold_days: int, excluded_state: str) -> List[Case]:
        return select_near_deadline(self._cases.values(), reference_date, threshold_days, excluded_state)


class InMemoryHistoryLedger(HistoryLedger):
    """History ledger keeping entries in insertion order."""

    def __init__(self):
        self._entries: List[HistoryEntry] = []

    def append(self, case_id, previous_state, new_state, comments, session=None) -> HistoryEntry:
        entry = HistoryEntry(
            case_id=case_id,
            previous_state=previous_state,
            new_state=new_state,
            comments=comments
        )
        self._entries.append(entry)
        return entry

    def list_for(self, case_id: str) -> List[HistoryEntry]:
        indexed = [(i, e) for i, e in enumerate(self._entries) if e.case_id == case_id]
        indexed.sort(key=lambda item: (item[1].changed_at, item[0]), reverse=True)
        return [e for _, e in indexed]

    @property
    def all_entries(self) -> List[HistoryEntry]:
        return list(self._entries)


class RecordingNotifier:
    """Notifier double recording every request; ``fail_for`` case ids raise NotificationError."""

    def __init__(self, fail_all: bool = False, fail_for: Optional[set] = None):
        self.sent = []
        self.fail_all = fail_all
        self.fail_for = fail_for or set()

    def send(self, subject, body, metadata=None, routing_key="case.transition") -> PublishResult:
        metadata = metadata or {}
        if self.fail_all or metadata.get("caseId") in self.fail_for:
            raise NotificationError("Simulated broker failure")
        self.sent.append({
            "subject": subject,
            "body": body,
            "metadata": metadata,
            "routing_key": routing_key
        })
        return PublishResult(success=True, correlation_id="test", exchange="pqrs.notifications", routing_key=routing_key)


@pytest.fixture
def rule_set():
    return ClassificationRuleSet.from_pairs(DEFAULT_RULES)


@pytest.fixture
def case_store():
    return InMemoryCaseStore()


@pytest.fixture
def history_ledger():
    return InMemoryHistoryLedger()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def make_case():
    """Factory for valid cases."""
    counter = {"n": 0}

    def _make(**overrides) -> Case:
        counter["n"] += 1
        data = {
            "radicado": f"2024-{counter['n']:05d}",
            "subject": "Solicitud de informacion",
            "category": "PETICION"
        }
        data.update(overrides)
        return Case(**data)

    return _make


@pytest.fixture
def test_config():
    return {
        'TESTING': True,
        'ENVIRONMENT': 'test',
        'OTEL_ENABLED': False,
        'BASE_URL': 'http://localhost:5000',
        'PQRS_RULES_FILE': '',
        'ALERT_COOLDOWN_HOURS': 0
    }


@pytest.fixture
def app(test_config, case_store, history_ledger, notifier):
    """Application wired to the in-memory doubles."""
    from app import create_app

    application = create_app(
        config=test_config,
        case_store=case_store,
        history_ledger=history_ledger,
        notifier=notifier,
        alert_cooldown=AlertCooldown(None, 0)
    )
    return application


@pytest.fixture
def client(app):
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def failing_notifier():
    return RecordingNotifier(fail_all=True)


@pytest.fixture
def make_notifier():
    """Factory for notifiers failing for selected case ids."""
    return RecordingNotifier


@pytest.fixture
def make_case_store():
    """Factory for case stores failing for selected radicados."""
    return InMemoryCaseStore
