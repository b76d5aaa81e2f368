# SPDX-License-Identifier: Apache-2.0

"""
Rule file loading.

The rule file is a YAML document with an optional ``classification`` section
(category keywords) and an optional ``lifecycle`` section (transition table).
It is read once at startup.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

from domain.classifier import ClassificationRuleSet, DEFAULT_RULES
from domain.lifecycle import TransitionPolicy

logger = logging.getLogger(__name__)


class RulesConfigError(ValueError):
    """Raised when the rule file cannot be read or is malformed."""
    pass


@dataclass(frozen=True)
class RuleBook:
    rule_set: ClassificationRuleSet = field(
        default_factory=lambda: ClassificationRuleSet.from_pairs(DEFAULT_RULES)
    )
    policy: TransitionPolicy = field(default_factory=TransitionPolicy)


def load_rules(path: Optional[str] = None, initial_state: Optional[str] = None) -> RuleBook:
    """
    Load classification rules and the transition policy.

    Args:
        path: YAML rule file; built-in rules are used when empty
        initial_state: Initial state used when the file does not name one

    Raises:
        RulesConfigError: If the file is missing or malformed
    """
    if not path:
        logger.info("No rule file configured, using built-in classification rules")
        policy = TransitionPolicy(initial_state=initial_state) if initial_state else TransitionPolicy()
        return RuleBook(policy=policy)

    if not os.path.exists(path):
        raise RulesConfigError(f"Rule file not found: {path}")

    try:
        with open(path, "r", encoding="utf-8") as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise RulesConfigError(f"Invalid YAML in rule file {path}: {e}")

    if not isinstance(document, dict):
        raise RulesConfigError(f"Rule file {path} must contain a mapping")

    lifecycle = dict(document.get("lifecycle") or {})
    if initial_state and not lifecycle.get("initial_state"):
        lifecycle["initial_state"] = initial_state

    try:
        rule_set = ClassificationRuleSet.from_config(document.get("classification"))
        policy = TransitionPolicy.from_config(lifecycle)
    except ValueError as e:
        raise RulesConfigError(f"Invalid rule file {path}: {e}")

    logger.info(
        f"Loaded rule file {path}: {len(rule_set.categories)} categories, "
        f"{'constrained' if policy.is_constrained else 'unconstrained'} transitions"
    )
    return RuleBook(rule_set=rule_set, policy=policy)
