# SPDX-License-Identifier: Apache-2.0

"""
Case endpoints.

Intake (manual, bulk import, auto-classification), lookup, state transitions
and history of PQRS cases.
"""

from flask import request, jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging
from typing import Any, Dict

from domain.cases import (
    build_case_hal_response,
    build_case_collection_hal_response,
    build_history_hal_response
)
from domain.errors import InvalidInputError
from models.enums import IntakeSource
from models.requests import CreateCaseRequest, UpdateCaseStateRequest, ClassifyRequest, CasePath
from models.responses import ClassificationResponse
from services.spreadsheet import read_rows

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

cases_tag = Tag(name="Cases", description="PQRS case intake, lifecycle and history")
cases_bp = APIBlueprint(
    'cases',
    __name__,
    url_prefix='/api/cases',
    abp_tags=[cases_tag]
)


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidInputError("Missing or invalid JSON request body")
    return body


def _case_response(case) -> Dict[str, Any]:
    return build_case_hal_response(
        case,
        current_app.config['BASE_URL'],
        current_app.transition_policy.allowed_next_states(case.state)
    )


@cases_bp.post('')
def create_case():
    """
    Create a case manually.

    The category is derived from the subject when not supplied.
    """
    with tracer.start_as_current_span("cases.create") as span:
        case_request = CreateCaseRequest(**_json_body())
        case = current_app.intake_service.create_case(case_request.model_dump(), IntakeSource.MANUAL)
        span.set_attributes({"case.id": case.id, "case.category": case.category})
        return jsonify(_case_response(case)), 201


@cases_bp.post('/import')
def import_cases():
    """
    Bulk create cases from an uploaded ``.xlsx`` or ``.csv`` file.

    Every row is attempted; failed rows are listed in the report.
    """
    with tracer.start_as_current_span("cases.import") as span:
        upload = request.files.get('file')
        if upload is None or not upload.filename:
            raise InvalidInputError("A spreadsheet must be uploaded in the 'file' field")

        rows = read_rows(upload.read(), upload.filename)
        report = current_app.intake_service.bulk_create(rows)
        span.set_attributes({"import.created": report.created, "import.failed": report.failed})

        base_url = current_app.config['BASE_URL']
        response = report.to_dict()
        response["_links"] = {
            "self": {"href": f"{base_url}/api/cases/import"},
            "collection": {"href": f"{base_url}/api/cases"}
        }
        return jsonify(response), 200


@cases_bp.post('/classify')
def classify_subject():
    """Classify a subject without creating a case."""
    classify_request = ClassifyRequest(**_json_body())
    category = current_app.intake_service.classify(classify_request.subject)
    response = ClassificationResponse(subject=classify_request.subject, category=category)
    return jsonify(response.model_dump()), 200


@cases_bp.post('/classify-and-create')
def classify_and_create_case():
    """Create a case whose category is always derived from its subject."""
    with tracer.start_as_current_span("cases.classify_and_create") as span:
        case_request = CreateCaseRequest(**_json_body())
        case = current_app.intake_service.classify_and_create(case_request.model_dump())
        span.set_attributes({"case.id": case.id, "case.category": case.category})
        return jsonify(_case_response(case)), 201


@cases_bp.get('')
def list_cases():
    cases = current_app.case_store.list_cases()
    return jsonify(build_case_collection_hal_response(cases, current_app.config['BASE_URL'])), 200


@cases_bp.get('/<case_id>')
def get_case(path: CasePath):
    case = current_app.case_store.get_case(path.case_id)
    return jsonify(_case_response(case)), 200


@cases_bp.put('/<case_id>/state')
def update_case_state(path: CasePath):
    """
    Move a case to a new state.

    The response reflects the persisted transition; ``notificationQueued``
    tells whether the notification request reached the broker.
    """
    with tracer.start_as_current_span("cases.update_state") as span:
        span.set_attribute("case.id", path.case_id)
        update_request = UpdateCaseStateRequest(**_json_body())

        result = current_app.lifecycle_engine.apply_transition(
            path.case_id,
            update_request.state,
            update_request.comments
        )

        response = _case_response(result.case)
        response["historyEntry"] = result.history_entry.model_dump(mode="json", by_alias=True)
        response["notificationQueued"] = result.notification_queued
        return jsonify(response), 200


@cases_bp.get('/<case_id>/history')
def get_case_history(path: CasePath):
    """Transition history of a case, newest first."""
    case = current_app.case_store.get_case(path.case_id)
    ledger = current_app.history_ledger
    entries = ledger.list_for(case.id)
    reconciliation = ledger.reconcile(case, entries)

    response = build_history_hal_response(case.id, entries, current_app.config['BASE_URL'])
    response["consistent"] = reconciliation.consistent
    return jsonify(response), 200
