# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from datetime import date
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request model accepting camelCase or snake_case keys."""

    model_config = ConfigDict(
        populate_by_name=True,
        alias_generator=to_camel,
        str_strip_whitespace=True
    )


class CreateCaseRequest(CamelModel):
    """Request model for manual case intake."""

    radicado: str = Field(..., min_length=1, max_length=100, description="External case number")
    subject: str = Field(..., min_length=1, description="Free-text subject")
    category: Optional[str] = Field(None, description="Category; derived from the subject when absent")
    state: Optional[str] = Field(None, description="Initial state; defaults to the configured initial state")
    filing_date: Optional[date] = Field(None, description="Filing date (YYYY-MM-DD)")
    response_deadline: Optional[date] = Field(None, description="Response deadline (YYYY-MM-DD)")
    response_date: Optional[date] = Field(None, description="Response date (YYYY-MM-DD)")
    channel: Optional[str] = Field(None, description="Intake channel")
    requester_name: Optional[str] = Field(None, description="Citizen who filed the case")
    requested_entity: Optional[str] = Field(None, description="Entity the case is addressed to")
    assigned_unit: Optional[str] = Field(None, description="Responsible unit")
    sector: Optional[str] = Field(None, description="Sector")
    traceability: Optional[str] = Field(None, description="Traceability notes")
    comments: Optional[str] = Field(None, description="Initial comments")


class UpdateCaseStateRequest(CamelModel):
    """Request model for a state transition."""

    state: str = Field(..., min_length=1, description="New state")
    comments: Optional[str] = Field(None, max_length=2000, description="Comments for the transition")


class ClassifyRequest(CamelModel):
    """Request model for subject classification without persistence."""

    subject: Optional[str] = Field(None, description="Subject to classify")


class DeadlineScanRequest(CamelModel):
    """Request model for triggering a deadline scan."""

    reference_date: Optional[date] = Field(None, description="Reference date; defaults to today")


class CasePath(BaseModel):
    """Path parameters for single-case endpoints."""

    case_id: str = Field(..., description="Case identifier")

    @field_validator('case_id')
    @classmethod
    def validate_case_id(cls, v):
        if not v.strip():
            raise ValueError('case_id cannot be empty')
        return v.strip()
