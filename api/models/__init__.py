# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the PQRS case tracker.
"""

# Base models
from .base import BaseEntity, generate_object_id, utc_now

# Enumerations
from .enums import (
    IntakeSource,
    ImportFormat,
    DEFAULT_CATEGORY,
    DEFAULT_INITIAL_STATE,
    RESOLVED_STATE,
    DEFAULT_DEADLINE_THRESHOLD_DAYS
)

# Core entities
from .entities import Case, HistoryEntry

# Request models
from .requests import (
    CreateCaseRequest,
    UpdateCaseStateRequest,
    ClassifyRequest,
    DeadlineScanRequest,
    CasePath
)

# Response models
from .responses import HalLink, ClassificationResponse

__all__ = [
    "BaseEntity",
    "generate_object_id",
    "utc_now",

    "IntakeSource",
    "ImportFormat",
    "DEFAULT_CATEGORY",
    "DEFAULT_INITIAL_STATE",
    "RESOLVED_STATE",
    "DEFAULT_DEADLINE_THRESHOLD_DAYS",

    "Case",
    "HistoryEntry",

    "CreateCaseRequest",
    "UpdateCaseStateRequest",
    "ClassifyRequest",
    "DeadlineScanRequest",
    "CasePath",

    "HalLink",
    "ClassificationResponse"
]
