# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Append-only history ledger for case state transitions.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bson import ObjectId
from opentelemetry import trace
from pymongo import DESCENDING
from pymongo.client_session import ClientSession
from pymongo.errors import PyMongoError

from domain.errors import PersistenceError
from domain.lifecycle import find_chain_breaks, history_matches_case
from models.entities import Case, HistoryEntry
from .mongodb import MongoDBService, HISTORY_COLLECTION

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class LedgerReconciliation:
    """Outcome of comparing a case with its history."""
    case_id: str
    case_state: str
    initial_state: Optional[str]
    latest_state: Optional[str]
    entry_count: int
    chain_breaks: List[int] = field(default_factory=list)
    matches_case: bool = True

    @property
    def consistent(self) -> bool:
        return self.matches_case and not self.chain_breaks

    def to_dict(self) -> Dict[str, Any]:
        return {
            "caseId": self.case_id,
            "caseState": self.case_state,
            "initialState": self.initial_state,
            "latestState": self.latest_state,
            "entryCount": self.entry_count,
            "chainBreaks": self.chain_breaks,
            "consistent": self.consistent
        }


class HistoryLedger:
    """
    History ledger in the ``case_history`` collection.

    Entries are only ever inserted; there is no update or delete path.
    """

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        self.collection_name = HISTORY_COLLECTION

    @property
    def collection(self):
        return self.mongo_service.get_collection(self.collection_name)

    def append(
        self,
        case_id: str,
        previous_state: str,
        new_state: str,
        comments: Optional[str],
        session: Optional[ClientSession] = None
    ) -> HistoryEntry:
        """
        Record one transition; the timestamp is assigned here.

        Raises:
            PersistenceError: If the insert fails
        """
        entry = HistoryEntry(
            case_id=case_id,
            previous_state=previous_state,
            new_state=new_state,
            comments=comments
        )

        with tracer.start_as_current_span("history.append") as span:
            span.set_attributes({
                "case.id": case_id,
                "history.previous_state": previous_state,
                "history.new_state": new_state
            })

            doc = entry.model_dump(by_alias=True)
            doc["_id"] = ObjectId(doc.pop("id"))
            try:
                self.collection.insert_one(doc, session=session)
            except PyMongoError as e:
                logger.error(
                    "Failed to append history entry",
                    extra={"extra_fields": {"case_id": case_id, "error": str(e)}}
                )
                raise PersistenceError(f"Failed to append history entry: {e}")

            logger.debug(f"History entry {entry.id} appended for case {case_id}")
            return entry

    def list_for(self, case_id: str) -> List[HistoryEntry]:
        """Entries of a case, newest first; same-instant entries by insertion order."""
        try:
            docs = list(
                self.collection.find({"caseId": case_id})
                .sort([("changedAt", DESCENDING), ("_id", DESCENDING)])
            )
        except PyMongoError as e:
            raise PersistenceError(f"Failed to read case history: {e}")

        entries = []
        for doc in docs:
            data = dict(doc)
            data["id"] = str(data.pop("_id"))
            entries.append(HistoryEntry.model_validate(data))
        return entries

    def reconcile(self, case: Case, entries: Optional[List[HistoryEntry]] = None) -> LedgerReconciliation:
        """Detect a state change without a matching entry, or a broken chain."""
        if entries is None:
            entries = self.list_for(case.id)
        report = LedgerReconciliation(
            case_id=case.id,
            case_state=case.state,
            initial_state=case.initial_state,
            latest_state=entries[0].new_state if entries else None,
            entry_count=len(entries),
            chain_breaks=find_chain_breaks(entries),
            matches_case=history_matches_case(case, entries)
        )

        if not report.consistent:
            logger.warning(
                "Case history is inconsistent",
                extra={"extra_fields": report.to_dict()}
            )
        return report
