# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and validation.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class BaseEntity(BaseModel):
    """Base entity with common fields for all stored records.

    Fields are snake_case in Python and camelCase in MongoDB documents and
    JSON payloads.
    """

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=True,
        validate_assignment=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    schema_version: int = Field(default=1, description="Schema version for migrations")
