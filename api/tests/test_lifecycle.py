# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for transition rules and the lifecycle engine.
"""

import pytest
from contextlib import contextmanager
from unittest.mock import MagicMock

from domain.errors import InvalidInputError, NotFoundError, PersistenceError
from domain.lifecycle import (
    TransitionPolicy, validate_transition, find_chain_breaks, history_matches_case,
    build_transition_message
)
from models.entities import HistoryEntry
from services.lifecycle import LifecycleEngine


CONSTRAINED = TransitionPolicy.from_config({
    "initial_state": "Pendiente",
    "transitions": {
        "Pendiente": ["En tramite", "Resuelta"],
        "En tramite": ["Resuelta"],
        "Resuelta": []
    }
})


class TestTransitionPolicy:

    def test_unconstrained_allows_anything(self):
        policy = TransitionPolicy()
        assert not policy.is_constrained
        assert validate_transition("Abierto", "Cualquier cosa", policy) == "Cualquier cosa"
        assert policy.allowed_next_states("Abierto") is None

    def test_constrained_allows_listed_successor(self):
        assert validate_transition("Pendiente", "En tramite", CONSTRAINED) == "En tramite"

    def test_constrained_rejects_illegal_transition(self):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_transition("Resuelta", "Pendiente", CONSTRAINED)
        assert "Resuelta" in exc_info.value.message

    def test_constrained_rejects_unknown_state(self):
        with pytest.raises(InvalidInputError):
            validate_transition("Pendiente", "Archivada", CONSTRAINED)

    def test_blank_state_rejected(self):
        with pytest.raises(InvalidInputError):
            validate_transition("Pendiente", "  ", TransitionPolicy())

    def test_new_state_is_stripped(self):
        assert validate_transition("Pendiente", " Resuelta ", CONSTRAINED) == "Resuelta"

    def test_allowed_next_states_sorted(self):
        assert CONSTRAINED.allowed_next_states("Pendiente") == ["En tramite", "Resuelta"]
        assert CONSTRAINED.allowed_next_states("Resuelta") == []

    def test_initial_state_must_be_in_table(self):
        with pytest.raises(ValueError):
            TransitionPolicy.from_config({"initial_state": "Nuevo", "transitions": {"A": ["B"]}})


class TestChainChecks:

    def _entry(self, previous, new):
        return HistoryEntry(case_id="c1", previous_state=previous, new_state=new)

    def test_consistent_chain(self):
        entries = [self._entry("B", "C"), self._entry("A", "B")]
        assert find_chain_breaks(entries) == []

    def test_broken_chain_reported(self):
        entries = [self._entry("X", "C"), self._entry("A", "B")]
        assert find_chain_breaks(entries) == [0]

    def test_history_matches_case(self, make_case):
        case = make_case(state="C")
        assert history_matches_case(case, [self._entry("B", "C")])
        assert not history_matches_case(case, [self._entry("A", "B")])
        assert history_matches_case(case, [])

    def test_history_must_start_from_creation_state(self, make_case):
        case = make_case(state="C", initial_state="A")
        assert history_matches_case(case, [self._entry("B", "C"), self._entry("A", "B")])
        assert not history_matches_case(case, [self._entry("B", "C")])

    def test_changed_case_without_history_is_flagged(self, make_case):
        assert not history_matches_case(make_case(state="Resuelta", initial_state="Pendiente"), [])
        assert history_matches_case(make_case(state="Pendiente", initial_state="Pendiente"), [])

    def test_history_entry_is_frozen(self):
        entry = self._entry("A", "B")
        with pytest.raises(Exception):
            entry.new_state = "Z"


class TestLifecycleEngine:
    """Transition orchestration with in-memory collaborators."""

    @pytest.fixture
    def engine(self, case_store, history_ledger, notifier):
        return LifecycleEngine(case_store, history_ledger, notifier=notifier)

    def test_transition_updates_case_and_appends_entry(self, engine, case_store, history_ledger, make_case):
        case = make_case(state="Abierto")
        case_store.create_case(case)

        result = engine.apply_transition(case.id, "Resuelta", "closed")

        assert result.case.state == "Resuelta"
        assert result.case.comments == "closed"
        assert case_store.get_case(case.id).state == "Resuelta"

        entries = history_ledger.list_for(case.id)
        assert len(entries) == 1
        assert entries[0].previous_state == "Abierto"
        assert entries[0].new_state == "Resuelta"
        assert entries[0].comments == "closed"
        assert result.history_entry == entries[0]

    def test_unknown_case_raises_without_history(self, engine, history_ledger):
        with pytest.raises(NotFoundError):
            engine.apply_transition("000000000000000000000000", "Resuelta", None)
        assert history_ledger.all_entries == []

    def test_blank_state_has_no_side_effects(self, engine, case_store, history_ledger, make_case):
        case = make_case()
        case_store.create_case(case)

        for bad in (None, "", "   "):
            with pytest.raises(InvalidInputError):
                engine.apply_transition(case.id, bad, "x")

        assert case_store.update_calls == 0
        assert history_ledger.all_entries == []

    def test_sequential_transitions_form_chain(self, engine, case_store, history_ledger, make_case):
        case = make_case(state="S0")
        case_store.create_case(case)

        for i in range(1, 6):
            engine.apply_transition(case.id, f"S{i}", f"paso {i}")

        entries = history_ledger.list_for(case.id)
        assert len(entries) == 5
        assert [e.new_state for e in entries] == ["S5", "S4", "S3", "S2", "S1"]
        assert find_chain_breaks(entries) == []
        assert history_matches_case(case_store.get_case(case.id), entries)

    def test_illegal_transition_rejected_before_mutation(self, case_store, history_ledger, notifier, make_case):
        engine = LifecycleEngine(case_store, history_ledger, notifier=notifier, policy=CONSTRAINED)
        case = make_case(state="Resuelta")
        case_store.create_case(case)

        with pytest.raises(InvalidInputError):
            engine.apply_transition(case.id, "Pendiente", None)

        assert case_store.get_case(case.id).state == "Resuelta"
        assert history_ledger.all_entries == []
        assert notifier.sent == []

    def test_notification_requested_after_commit(self, engine, case_store, notifier, make_case):
        case = make_case(state="Pendiente")
        case_store.create_case(case)

        result = engine.apply_transition(case.id, "En tramite", "asignado")

        assert result.notification_queued is True
        assert len(notifier.sent) == 1
        metadata = notifier.sent[0]["metadata"]
        assert metadata["caseId"] == case.id
        assert metadata["previousState"] == "Pendiente"
        assert metadata["newState"] == "En tramite"
        assert metadata["comments"] == "asignado"

    def test_notification_failure_does_not_fail_transition(self, case_store, history_ledger, failing_notifier, make_case):
        engine = LifecycleEngine(case_store, history_ledger, notifier=failing_notifier)
        case = make_case(state="Pendiente")
        case_store.create_case(case)

        result = engine.apply_transition(case.id, "Resuelta", None)

        assert result.notification_queued is False
        assert case_store.get_case(case.id).state == "Resuelta"
        assert len(history_ledger.list_for(case.id)) == 1

    def test_no_notifier_reports_not_queued(self, case_store, history_ledger, make_case):
        engine = LifecycleEngine(case_store, history_ledger)
        case = make_case()
        case_store.create_case(case)

        assert engine.apply_transition(case.id, "Resuelta", None).notification_queued is False

    def test_writes_share_unit_of_work_session(self, case_store, make_case):
        session = object()
        calls = []

        @contextmanager
        def unit_of_work():
            calls.append("begin")
            yield session
            calls.append("commit")

        ledger = MagicMock()
        ledger.append.return_value = HistoryEntry(case_id="x", previous_state="A", new_state="B")
        engine = LifecycleEngine(case_store, ledger, unit_of_work=unit_of_work)
        case = make_case(state="A")
        case_store.create_case(case)

        engine.apply_transition(case.id, "B", None)

        assert calls == ["begin", "commit"]
        assert ledger.append.call_args.kwargs["session"] is session

    def test_history_failure_propagates(self, case_store, make_case):
        ledger = MagicMock()
        ledger.append.side_effect = PersistenceError("down")
        engine = LifecycleEngine(case_store, ledger)
        case = make_case(state="A")
        case_store.create_case(case)

        with pytest.raises(PersistenceError):
            engine.apply_transition(case.id, "B", None)

    def test_lost_first_entry_is_detected_by_reconcile(self, case_store, history_ledger, make_case):
        failing_ledger = MagicMock()
        failing_ledger.append.side_effect = PersistenceError("down")
        engine = LifecycleEngine(case_store, failing_ledger)
        case = make_case(state="Pendiente", initial_state="Pendiente")
        case_store.create_case(case)

        with pytest.raises(PersistenceError):
            engine.apply_transition(case.id, "Resuelta", "x")

        stored = case_store.get_case(case.id)
        report = history_ledger.reconcile(stored)

        assert stored.state == "Resuelta"
        assert report.entry_count == 0
        assert not report.consistent
        assert report.to_dict()["initialState"] == "Pendiente"


def test_transition_message_mentions_both_states(make_case):
    case = make_case(state="Resuelta", radicado="RAD-1")
    message = build_transition_message(case, "Pendiente", "listo")
    assert "RAD-1" in message["subject"]
    assert "Pendiente" in message["body"] and "Resuelta" in message["body"]
    assert "listo" in message["body"]
