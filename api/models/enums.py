# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types and well-known values for the PQRS case tracker.
"""

from enum import Enum


class IntakeSource(str, Enum):
    """How a case entered the system."""
    MANUAL = "manual"
    BULK_IMPORT = "bulk_import"
    AUTO_CLASSIFIED = "auto_classified"


class ImportFormat(str, Enum):
    """Spreadsheet formats accepted by bulk import."""
    XLSX = "xlsx"
    CSV = "csv"


DEFAULT_CATEGORY = "OTROS"
DEFAULT_INITIAL_STATE = "Pendiente"
RESOLVED_STATE = "Resuelta"
DEFAULT_DEADLINE_THRESHOLD_DAYS = 2
