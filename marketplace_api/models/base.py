# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Base entity models with common fields and validation.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from bson import ObjectId


def generate_object_id() -> str:
    """Generate a new MongoDB ObjectId as string."""
    return str(ObjectId())


class BaseEntity(BaseModel):
    """Base entity with common fields for all persisted domain objects."""
    
    model_config = ConfigDict(
        # Stored documents use camelCase keys
        alias_generator=to_camel,
        # Allow population by field name or alias
        populate_by_name=True,
        # Use enum values instead of enum objects
        use_enum_values=True,
        # Validate assignment
        validate_assignment=True,
        arbitrary_types_allowed=True
    )
    
    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")
    updated_at: datetime = Field(default_factory=datetime.utcnow, description="Last update timestamp")
    updated_by: Optional[str] = Field(None, description="Account ID that last changed this entity")
    schema_version: int = Field(default=1, description="Schema version for migrations")
    
    def to_document(self) -> dict:
        """Serialize to a MongoDB document keyed by ``_id``."""
        document = self.model_dump(by_alias=True, exclude={"id"})
        document["_id"] = self.id
        return document
    
    @classmethod
    def from_document(cls, document: dict):
        """Build an entity from a stored MongoDB document."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)
