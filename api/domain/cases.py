# SPDX-License-Identifier: Apache-2.0

"""
Case intake domain logic.

Pure functions that turn intake payloads and spreadsheet rows into Case
entities, and Case entities into HAL responses.
"""

import unicodedata
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from models.entities import Case, HistoryEntry
from models.enums import IntakeSource
from .errors import InvalidInputError


CASE_TEXT_FIELDS = [
    "radicado", "subject", "category", "state", "channel", "requester_name",
    "requested_entity", "assigned_unit", "sector", "traceability", "comments"
]
CASE_DATE_FIELDS = ["filing_date", "response_deadline", "response_date"]

# Normalized spreadsheet header -> case field
HEADER_ALIASES: Dict[str, str] = {
    "radicado": "radicado",
    "numero de radicado": "radicado",
    "no radicado": "radicado",
    "asunto": "subject",
    "subject": "subject",
    "tipo": "category",
    "tipo de solicitud": "category",
    "categoria": "category",
    "category": "category",
    "estado": "state",
    "state": "state",
    "canal": "channel",
    "canal de recepcion": "channel",
    "channel": "channel",
    "fecha de radicacion": "filing_date",
    "fecha radicacion": "filing_date",
    "filingdate": "filing_date",
    "filing date": "filing_date",
    "fecha limite": "response_deadline",
    "fecha limite de respuesta": "response_deadline",
    "fecha de vencimiento": "response_deadline",
    "responsedeadline": "response_deadline",
    "response deadline": "response_deadline",
    "fecha de respuesta": "response_date",
    "responsedate": "response_date",
    "response date": "response_date",
    "nombre del peticionario": "requester_name",
    "peticionario": "requester_name",
    "solicitante": "requester_name",
    "requestername": "requester_name",
    "requester name": "requester_name",
    "entidad": "requested_entity",
    "entidad requerida": "requested_entity",
    "requestedentity": "requested_entity",
    "requested entity": "requested_entity",
    "dependencia": "assigned_unit",
    "dependencia asignada": "assigned_unit",
    "assignedunit": "assigned_unit",
    "assigned unit": "assigned_unit",
    "sector": "sector",
    "trazabilidad": "traceability",
    "traceability": "traceability",
    "comentarios": "comments",
    "observaciones": "comments",
    "comments": "comments",
}

DATE_FORMATS = ["%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d"]


def normalize_header(header: Any) -> str:
    """Lowercase, accent-free, single-spaced header text."""
    text = unicodedata.normalize("NFKD", str(header or ""))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = text.replace("_", " ").replace(".", " ").lower()
    return " ".join(text.split())


def parse_date(value: Any) -> Optional[date]:
    """Parse a spreadsheet or JSON date value."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text[:10], fmt).date()
        except ValueError:
            continue
    raise InvalidInputError(f"Invalid date value: {text}")


def row_to_case_fields(row: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Map a spreadsheet row keyed by column header to case fields.

    Unknown columns are ignored; blank cells become None.
    """
    fields: Dict[str, Any] = {}
    for header, value in row.items():
        field_name = HEADER_ALIASES.get(normalize_header(header))
        if field_name is None or field_name in fields:
            continue
        if field_name in CASE_DATE_FIELDS:
            fields[field_name] = parse_date(value)
        elif value is None or str(value).strip() == "":
            fields[field_name] = None
        else:
            fields[field_name] = str(value).strip()
    return fields


def build_case(
    fields: Mapping[str, Any],
    category: str,
    initial_state: str,
    intake_source: IntakeSource
) -> Case:
    """
    Build a new Case entity from intake fields.

    Args:
        fields: Case fields in snake_case
        category: Supplied or derived category
        initial_state: State for cases created without one
        intake_source: Intake channel

    Returns:
        Validated Case entity

    Raises:
        InvalidInputError: If a required field is missing or invalid
    """
    missing = [name for name in ("radicado", "subject") if not str(fields.get(name) or "").strip()]
    if missing:
        raise InvalidInputError(
            "Missing required fields",
            [f"Missing required field: {name}" for name in missing]
        )

    data = {name: fields.get(name) for name in CASE_TEXT_FIELDS + CASE_DATE_FIELDS if fields.get(name) is not None}
    data["category"] = category
    data["state"] = str(data.get("state") or "").strip() or initial_state
    data["initial_state"] = data["state"]
    data["intake_source"] = intake_source

    try:
        return Case(**data)
    except ValidationError as e:
        raise InvalidInputError(
            "Invalid case fields",
            [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        )


def case_to_json(case: Case) -> Dict[str, Any]:
    """JSON-ready camelCase representation of a case."""
    return case.model_dump(mode="json", by_alias=True)


def build_case_hal_response(
    case: Case,
    base_url: str,
    allowed_next_states: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Build HAL response for a case with affordance links.

    Args:
        case: Case entity
        base_url: Base URL for link generation
        allowed_next_states: Successor states when transitions are constrained

    Returns:
        HAL-formatted response dictionary
    """
    response = case_to_json(case)
    case_url = f"{base_url}/api/cases/{case.id}"

    links = {
        "self": {"href": case_url},
        "history": {"href": f"{case_url}/history"},
        "collection": {"href": f"{base_url}/api/cases"}
    }

    # No transition link for a case with no legal successor
    if allowed_next_states is None or allowed_next_states:
        links["update_state"] = {
            "href": f"{case_url}/state",
            "method": "PUT",
            "type": "application/json"
        }

    if allowed_next_states is not None:
        response["allowedNextStates"] = allowed_next_states

    response["_links"] = links
    return response


def build_case_collection_hal_response(cases: List[Case], base_url: str) -> Dict[str, Any]:
    """Build HAL collection response for cases."""
    return {
        "total": len(cases),
        "_embedded": {
            "cases": [build_case_hal_response(case, base_url) for case in cases]
        },
        "_links": {
            "self": {"href": f"{base_url}/api/cases"},
            "create": {"href": f"{base_url}/api/cases", "method": "POST", "type": "application/json"},
            "import": {"href": f"{base_url}/api/cases/import", "method": "POST", "type": "multipart/form-data"}
        }
    }


def build_history_hal_response(case_id: str, entries: List[HistoryEntry], base_url: str) -> Dict[str, Any]:
    """Build HAL collection response for a case history, newest first."""
    case_url = f"{base_url}/api/cases/{case_id}"
    return {
        "caseId": case_id,
        "total": len(entries),
        "_embedded": {
            "history": [entry.model_dump(mode="json", by_alias=True) for entry in entries]
        },
        "_links": {
            "self": {"href": f"{case_url}/history"},
            "case": {"href": case_url}
        }
    }
