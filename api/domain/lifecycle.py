# SPDX-License-Identifier: Apache-2.0

"""
Case lifecycle domain logic.

Pure functions for transition validation, history chain checks and the
notification content produced by a transition.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence

from models.entities import Case, HistoryEntry
from models.enums import DEFAULT_INITIAL_STATE
from .errors import InvalidInputError


@dataclass(frozen=True)
class TransitionPolicy:
    """
    Allowed successor states per current state.

    An empty table leaves transitions unconstrained: any non-blank state may
    follow any other. A configured table closes the state vocabulary to the
    states it names.
    """

    transitions: Mapping[str, FrozenSet[str]] = field(default_factory=dict)
    initial_state: str = DEFAULT_INITIAL_STATE

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "TransitionPolicy":
        """
        Build a policy from the ``lifecycle`` section of the rule file.

        Expected shape::

            lifecycle:
              initial_state: Pendiente
              transitions:
                Pendiente: [En tramite, Resuelta]
                En tramite: [Resuelta]
                Resuelta: []
        """
        config = config or {}
        initial_state = config.get("initial_state") or DEFAULT_INITIAL_STATE
        table = {
            str(state): frozenset(str(s) for s in (successors or []))
            for state, successors in (config.get("transitions") or {}).items()
        }
        policy = cls(transitions=table, initial_state=initial_state)
        if table and initial_state not in policy.known_states:
            raise ValueError(f"Initial state '{initial_state}' is not part of the transition table")
        return policy

    @property
    def is_constrained(self) -> bool:
        return bool(self.transitions)

    @property
    def known_states(self) -> FrozenSet[str]:
        states = set(self.transitions)
        for successors in self.transitions.values():
            states.update(successors)
        return frozenset(states)

    def allowed_next_states(self, current_state: str) -> Optional[List[str]]:
        """Allowed successors, or None when transitions are unconstrained."""
        if not self.is_constrained:
            return None
        return sorted(self.transitions.get(current_state, frozenset()))


def validate_state(state: Optional[str], policy: TransitionPolicy) -> str:
    """Validate a state value against the policy vocabulary."""
    if state is None or not str(state).strip():
        raise InvalidInputError("State is required")
    state = str(state).strip()
    if policy.is_constrained and state not in policy.known_states:
        raise InvalidInputError(
            f"Unknown state: {state}",
            [f"Allowed states: {', '.join(sorted(policy.known_states))}"]
        )
    return state


def validate_transition(current_state: str, new_state: Optional[str], policy: TransitionPolicy) -> str:
    """
    Validate a state transition.

    Args:
        current_state: State the case is in
        new_state: Requested state
        policy: Transition policy

    Returns:
        The normalized new state

    Raises:
        InvalidInputError: If the new state is blank, unknown or not an allowed successor
    """
    new_state = validate_state(new_state, policy)

    allowed = policy.allowed_next_states(current_state)
    if allowed is not None and new_state not in allowed:
        raise InvalidInputError(
            f"Invalid state transition from {current_state} to {new_state}",
            [f"Allowed next states: {', '.join(allowed) or 'none'}"]
        )

    return new_state


def find_chain_breaks(entries: Sequence[HistoryEntry]) -> List[int]:
    """
    Positions where the history chain is broken.

    Entries are given newest first, as the ledger lists them. Position ``i`` is
    reported when the older entry ``i + 1`` does not end in the state entry
    ``i`` started from.
    """
    breaks = []
    for i in range(len(entries) - 1):
        newer, older = entries[i], entries[i + 1]
        if older.new_state != newer.previous_state:
            breaks.append(i)
    return breaks


def history_matches_case(case: Case, entries: Sequence[HistoryEntry]) -> bool:
    """
    Check that the history accounts for the case's current state.

    The newest entry must end in the current state. When the creation state is
    known, the oldest entry must start from it, and a case without entries must
    still be in it.
    """
    if not entries:
        return case.initial_state is None or case.state == case.initial_state
    if case.initial_state is not None and entries[-1].previous_state != case.initial_state:
        return False
    return entries[0].new_state == case.state


def build_transition_message(case: Case, previous_state: str, comments: Optional[str]) -> Dict[str, str]:
    """Subject and body of the notification requested after a transition."""
    subject = f"Caso {case.radicado}: {previous_state} -> {case.state}"
    body = "\n".join([
        f"El caso {case.radicado} (id {case.id}) cambio de estado.",
        f"Estado anterior: {previous_state}",
        f"Estado nuevo: {case.state}",
        f"Comentarios: {comments or '-'}"
    ])
    return {"subject": subject, "body": body}
