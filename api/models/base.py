# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and validation.
"""

from datetime import datetime, timezone
from pydantic import BaseModel, Field, ConfigDict
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new ObjectId as string."""
    return str(ObjectId())


def utc_now() -> datetime:
    """Current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


class SatcomModel(BaseModel):
    """Base model for nested value objects."""

    model_config = ConfigDict(
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Run defaults through validation so enum defaults are stored as values
        validate_default=True,
        # Validate assignment
        validate_assignment=True
    )


class BaseEntity(SatcomModel):
    """Base entity with the fields shared by every identifiable record."""

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=utc_now, description="Creation timestamp")
    schema_version: int = Field(default=1, description="Schema version for migrations")
