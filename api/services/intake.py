# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Case intake: manual entry, auto-classification and bulk import.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from opentelemetry import trace

from domain.cases import build_case, row_to_case_fields
from domain.classifier import ClassificationRuleSet, classify
from domain.errors import PQRSError
from domain.lifecycle import TransitionPolicy, validate_state
from models.entities import Case
from models.enums import IntakeSource
from .case_store import CaseStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class RowError:
    row: int
    error: str
    details: List[str] = field(default_factory=list)


@dataclass
class ImportReport:
    """Per-row outcome of a bulk import. Rows are numbered from 1."""
    total: int = 0
    created_ids: List[str] = field(default_factory=list)
    errors: List[RowError] = field(default_factory=list)

    @property
    def created(self) -> int:
        return len(self.created_ids)

    @property
    def failed(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "created": self.created,
            "failed": self.failed,
            "caseIds": self.created_ids,
            "errors": [
                {"row": e.row, "error": e.error, "details": e.details}
                for e in self.errors
            ]
        }


class CaseIntakeService:
    """Creates cases, deriving the category from the subject when needed."""

    def __init__(
        self,
        case_store: CaseStore,
        rule_set: ClassificationRuleSet,
        policy: Optional[TransitionPolicy] = None
    ):
        self.case_store = case_store
        self.rule_set = rule_set
        self.policy = policy or TransitionPolicy()

    def _build(self, fields: Mapping[str, Any], category: str, intake_source: IntakeSource) -> Case:
        """Build the case; a supplied state must belong to the policy vocabulary."""
        if str(fields.get("state") or "").strip():
            fields = dict(fields, state=validate_state(fields["state"], self.policy))
        return build_case(fields, category, self.policy.initial_state, intake_source)

    def classify(self, subject: Optional[str]) -> str:
        """Classification only; raises InvalidInputError when subject is None."""
        return classify(subject, self.rule_set)

    def create_case(
        self,
        fields: Mapping[str, Any],
        intake_source: IntakeSource = IntakeSource.MANUAL
    ) -> Case:
        """
        Create a case from snake_case fields.

        The supplied category is kept; a missing one is derived from the subject.

        Raises:
            InvalidInputError: If radicado or subject is missing, or the state is unknown
            ConflictError: If the radicado is already used
            PersistenceError: If the write fails
        """
        category = str(fields.get("category") or "").strip()
        if not category:
            category = classify(fields.get("subject") or "", self.rule_set)

        case = self._build(fields, category, intake_source)
        self.case_store.create_case(case)
        return case

    def classify_and_create(self, fields: Mapping[str, Any]) -> Case:
        """Create a case whose category always comes from the classifier."""
        with tracer.start_as_current_span("intake.classify_and_create") as span:
            category = classify(fields.get("subject") or "", self.rule_set)
            span.set_attribute("case.category", category)

            case = self._build(fields, category, IntakeSource.AUTO_CLASSIFIED)
            self.case_store.create_case(case)
            return case

    def bulk_create(self, rows: List[Mapping[str, Any]]) -> ImportReport:
        """
        Create one case per spreadsheet row.

        A failing row is logged and reported; it never stops the batch.
        """
        report = ImportReport(total=len(rows))

        with tracer.start_as_current_span("intake.bulk_create") as span:
            span.set_attribute("import.rows", len(rows))

            for index, row in enumerate(rows, start=1):
                try:
                    fields = row_to_case_fields(row)
                    case = self.create_case(fields, IntakeSource.BULK_IMPORT)
                    report.created_ids.append(case.id)
                except PQRSError as e:
                    report.errors.append(RowError(row=index, error=e.message, details=e.errors))
                    logger.warning(
                        "Import row failed",
                        extra={
                            "extra_fields": {
                                "row": index,
                                "error_type": e.error_type,
                                "error": e.message
                            }
                        }
                    )

            span.set_attributes({"import.created": report.created, "import.failed": report.failed})
            logger.info(
                "Bulk import completed",
                extra={"extra_fields": {"total": report.total, "created": report.created, "failed": report.failed}}
            )
            return report
