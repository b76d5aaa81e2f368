# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB-backed case store.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace
from pymongo import DESCENDING, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError, PyMongoError

from domain.deadlines import deadline_limit
from domain.errors import ConflictError, NotFoundError, PersistenceError
from models.entities import Case
from .mongodb import MongoDBService, CASES_COLLECTION

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DATE_FIELDS = ("filingDate", "responseDeadline", "responseDate")


def to_storage_date(value: Optional[date]) -> Optional[datetime]:
    """BSON has no date type; store calendar dates as UTC midnight."""
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def parse_object_id(case_id: str) -> ObjectId:
    """Convert a case id to ObjectId; malformed ids cannot exist."""
    try:
        return ObjectId(case_id)
    except (InvalidId, TypeError):
        raise NotFoundError(f"Case not found: {case_id}")


def case_to_document(case: Case) -> Dict[str, Any]:
    doc = case.model_dump(by_alias=True)
    doc["_id"] = ObjectId(doc.pop("id"))
    for name in DATE_FIELDS:
        doc[name] = to_storage_date(doc.get(name))
    return doc


def document_to_case(doc: Dict[str, Any]) -> Case:
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    for name in DATE_FIELDS:
        if isinstance(data.get(name), datetime):
            data[name] = data[name].date()
    return Case.model_validate(data)


class CaseStore:
    """Owns case records in the ``cases`` collection."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service
        self.collection_name = CASES_COLLECTION

    @property
    def collection(self):
        return self.mongo_service.get_collection(self.collection_name)

    def create_case(self, case: Case) -> str:
        """
        Persist a new case.

        Args:
            case: Validated case entity

        Returns:
            The case id

        Raises:
            ConflictError: If another case already uses the radicado
            PersistenceError: If the write fails
        """
        with tracer.start_as_current_span("case_store.create_case") as span:
            span.set_attributes({"case.id": case.id, "case.radicado": case.radicado})
            try:
                self.collection.insert_one(case_to_document(case))
            except DuplicateKeyError:
                raise ConflictError(f"A case with radicado {case.radicado} already exists")
            except PyMongoError as e:
                logger.error(
                    "Failed to create case",
                    extra={"extra_fields": {"radicado": case.radicado, "error": str(e)}}
                )
                raise PersistenceError(f"Failed to create case: {e}")

            logger.info(
                "Case created",
                extra={"extra_fields": {"case_id": case.id, "radicado": case.radicado, "category": case.category}}
            )
            return case.id

    def get_case(self, case_id: str, session: Optional[ClientSession] = None) -> Case:
        """Raises NotFoundError for unknown or malformed ids."""
        object_id = parse_object_id(case_id)
        try:
            doc = self.collection.find_one({"_id": object_id}, session=session)
        except PyMongoError as e:
            raise PersistenceError(f"Failed to read case: {e}")

        if doc is None:
            raise NotFoundError(f"Case not found: {case_id}")
        return document_to_case(doc)

    def list_cases(self) -> List[Case]:
        try:
            docs = list(self.collection.find({}).sort("createdAt", DESCENDING))
        except PyMongoError as e:
            raise PersistenceError(f"Failed to list cases: {e}")
        return [document_to_case(doc) for doc in docs]

    def update_case_state(
        self,
        case_id: str,
        new_state: str,
        comments: Optional[str],
        session: Optional[ClientSession] = None
    ) -> Case:
        """
        Overwrite state and comments of a case.

        No transition rules are applied here.
        """
        object_id = parse_object_id(case_id)
        with tracer.start_as_current_span("case_store.update_case_state") as span:
            span.set_attributes({"case.id": case_id, "case.new_state": new_state})
            try:
                doc = self.collection.find_one_and_update(
                    {"_id": object_id},
                    {"$set": {
                        "state": new_state,
                        "comments": comments,
                        "updatedAt": datetime.now(timezone.utc)
                    }},
                    return_document=ReturnDocument.AFTER,
                    session=session
                )
            except PyMongoError as e:
                logger.error(
                    "Failed to update case state",
                    extra={"extra_fields": {"case_id": case_id, "error": str(e)}}
                )
                raise PersistenceError(f"Failed to update case: {e}")

            if doc is None:
                raise NotFoundError(f"Case not found: {case_id}")
            return document_to_case(doc)

    def find_cases_near_deadline(
        self,
        reference_date: date,
        threshold_days: int,
        excluded_state: str
    ) -> List[Case]:
        """
        Cases whose response deadline is at most ``threshold_days`` after the
        reference date, overdue ones included, that are not in the excluded
        state.
        """
        limit = to_storage_date(deadline_limit(reference_date, threshold_days))
        query = {
            "responseDeadline": {"$ne": None, "$lte": limit},
            "state": {"$ne": excluded_state}
        }
        with tracer.start_as_current_span("case_store.find_cases_near_deadline") as span:
            span.set_attributes({
                "deadline.reference_date": reference_date.isoformat(),
                "deadline.threshold_days": threshold_days
            })
            try:
                docs = list(self.collection.find(query).sort("responseDeadline", 1))
            except PyMongoError as e:
                raise PersistenceError(f"Failed to query cases near deadline: {e}")

            span.set_attribute("deadline.matched", len(docs))
            return [document_to_case(doc) for doc in docs]
