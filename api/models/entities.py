# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the PQRS case tracker.
"""

from datetime import date, datetime
from typing import Optional
from pydantic import ConfigDict, Field, field_validator
from .base import BaseEntity, utc_now
from .enums import IntakeSource, DEFAULT_INITIAL_STATE


class Case(BaseEntity):
    """A tracked citizen request (peticion, queja, reclamo, sugerencia or denuncia)."""

    radicado: str = Field(..., min_length=1, max_length=100, description="External case number")
    filing_date: Optional[date] = Field(None, description="Date the case was filed")
    response_deadline: Optional[date] = Field(None, description="Date a response is due")
    response_date: Optional[date] = Field(None, description="Date the case was answered")
    channel: Optional[str] = Field(None, description="Intake channel")
    category: str = Field(..., min_length=1, description="Case category label")
    subject: str = Field(..., min_length=1, description="Free-text subject")
    requester_name: Optional[str] = Field(None, description="Citizen who filed the case")
    requested_entity: Optional[str] = Field(None, description="Entity the case is addressed to")
    assigned_unit: Optional[str] = Field(None, description="Unit responsible for the answer")
    sector: Optional[str] = Field(None, description="Sector")
    traceability: Optional[str] = Field(None, description="Traceability notes")
    state: str = Field(default=DEFAULT_INITIAL_STATE, min_length=1, description="Lifecycle state")
    initial_state: Optional[str] = Field(None, description="State the case was created in")
    comments: Optional[str] = Field(None, description="Comments of the most recent transition")
    intake_source: IntakeSource = Field(default=IntakeSource.MANUAL, description="How the case was created")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    @field_validator('radicado', 'subject', 'state')
    @classmethod
    def validate_required_text(cls, v):
        """Reject blank required text fields."""
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()


class HistoryEntry(BaseEntity):
    """Immutable audit record of one state transition."""

    model_config = ConfigDict(frozen=True)

    case_id: str = Field(..., description="Case the transition belongs to")
    previous_state: str = Field(..., description="State before the transition")
    new_state: str = Field(..., description="State after the transition")
    comments: Optional[str] = Field(None, description="Comments supplied with the transition")
    changed_at: datetime = Field(default_factory=utc_now, description="Ledger-assigned timestamp")
