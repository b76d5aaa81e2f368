# SPDX-License-Identifier: Apache-2.0

"""
Deadline domain logic.

Pure helpers deciding whether a case is close to its response deadline and
what the resulting alert says.
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from models.entities import Case


def deadline_limit(reference_date: date, threshold_days: int) -> date:
    """Latest deadline that still counts as near for the reference date."""
    return reference_date + timedelta(days=threshold_days)


def days_until_deadline(case: Case, reference_date: date) -> Optional[int]:
    """Days between the reference date and the deadline; negative when overdue."""
    if case.response_deadline is None:
        return None
    return (case.response_deadline - reference_date).days


def is_near_deadline(case: Case, reference_date: date, threshold_days: int, excluded_state: str) -> bool:
    """
    Check whether a case must be alerted.

    Overdue cases count as near. Cases without a deadline or in the excluded
    state never do.
    """
    if case.state == excluded_state:
        return False
    remaining = days_until_deadline(case, reference_date)
    return remaining is not None and remaining <= threshold_days


def select_near_deadline(
    cases: Iterable[Case],
    reference_date: date,
    threshold_days: int,
    excluded_state: str
) -> List[Case]:
    return [c for c in cases if is_near_deadline(c, reference_date, threshold_days, excluded_state)]


def build_alert_message(case: Case, reference_date: date) -> Dict[str, str]:
    """Subject and body of a deadline alert."""
    remaining = days_until_deadline(case, reference_date)
    if remaining is not None and remaining < 0:
        when = f"vencido hace {-remaining} dia(s)"
    elif remaining == 0:
        when = "vence hoy"
    else:
        when = f"vence en {remaining} dia(s)"

    subject = f"Alerta de vencimiento: caso {case.radicado} ({when})"
    body = "\n".join([
        f"Caso: {case.radicado} (id {case.id})",
        f"Asunto: {case.subject}",
        f"Fecha limite de respuesta: {case.response_deadline.isoformat() if case.response_deadline else '-'}",
        f"Estado actual: {case.state}"
    ])
    return {"subject": subject, "body": body}
