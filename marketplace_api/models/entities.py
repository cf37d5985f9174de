# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the marketplace moderation core.
"""

from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from pydantic.alias_generators import to_camel
from .base import BaseEntity, generate_object_id
from .enums import (
    BusinessStatus,
    RequestType,
    RequestStatus,
    AccountRole
)


class BusinessRecord(BaseEntity):
    """A business and its current moderation standing."""

    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    owner_id: str = Field(..., description="Owning account ID, immutable")
    status: BusinessStatus = Field(default=BusinessStatus.PENDING, description="Authoritative standing")
    # Projected from the latest pending unsuspension request, never stored
    unsuspension_requested_at: Optional[datetime] = Field(None, description="Latest pending appeal timestamp")
    unsuspension_request_reason: Optional[str] = Field(None, description="Latest pending appeal reason")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate business name."""
        if not v.strip():
            raise ValueError('Business name cannot be empty')
        return v.strip()

    def is_suspended(self) -> bool:
        """Check if business is currently suspended."""
        return self.status == BusinessStatus.SUSPENDED

    def to_document(self) -> dict:
        """Serialize without the projected mirror fields."""
        document = super().to_document()
        document.pop("unsuspensionRequestedAt", None)
        document.pop("unsuspensionRequestReason", None)
        return document


class RequestMetadata(BaseModel):
    """Snapshot of business and owner identity taken when a request is created."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra='allow'
    )

    business_name: Optional[str] = None
    owner_id: Optional[str] = None
    owner_email: Optional[str] = None
    owner_first_name: Optional[str] = None
    owner_last_name: Optional[str] = None
    action: Optional[str] = None


class ModerationRequest(BaseEntity):
    """Ledger entry: a suspension audit record or an owner-submitted request."""

    business_id: str = Field(..., description="Target business ID")
    request_type: RequestType = Field(..., description="Request kind")
    status: RequestStatus = Field(default=RequestStatus.PENDING, description="Lifecycle status")
    reason: Optional[str] = Field(None, description="Reason given by the requester")
    admin_response: Optional[str] = Field(None, description="Response recorded when leaving pending")
    requested_at: datetime = Field(default_factory=datetime.utcnow, description="Submission timestamp")
    responded_at: Optional[datetime] = Field(None, description="Response timestamp")
    responded_by: Optional[str] = Field(None, description="Account ID that responded")
    metadata: RequestMetadata = Field(default_factory=RequestMetadata, description="Identity snapshot")

    @model_validator(mode='after')
    def validate_response_fields(self):
        """Response fields are set together, exactly when the request leaves pending."""
        responded = self.responded_at is not None or self.responded_by is not None

        if self.status == RequestStatus.PENDING and responded:
            raise ValueError('Pending requests cannot carry response fields')

        if self.status != RequestStatus.PENDING and (self.responded_at is None or self.responded_by is None):
            raise ValueError('responded_at and responded_by are required once a request leaves pending')

        return self

    def is_pending(self) -> bool:
        """Check if request still awaits a response."""
        return self.status == RequestStatus.PENDING

    def is_terminal(self) -> bool:
        """Approved, rejected and cancelled requests are immutable."""
        return not self.is_pending()

    def with_response(
        self,
        status: RequestStatus,
        responder_id: str,
        response: Optional[str],
        at: Optional[datetime] = None
    ) -> "ModerationRequest":
        """Return a copy of this request moved out of pending."""
        if self.is_terminal():
            raise ValueError(f'Request cannot be answered in current state ({self.status})')
        if status == RequestStatus.PENDING:
            raise ValueError('A response must move the request out of pending')

        now = at or datetime.utcnow()
        data = self.model_dump()
        data.update(
            status=status,
            responded_at=now,
            responded_by=responder_id,
            admin_response=response,
            updated_at=now,
            updated_by=responder_id
        )
        return ModerationRequest.model_validate(data)


class Account(BaseModel):
    """Read-only view of an account from the account directory."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra='ignore'
    )

    id: str = Field(..., description="Account ID")
    email: str = Field(..., description="Email address")
    first_name: Optional[str] = Field(None, description="Given name")
    last_name: Optional[str] = Field(None, description="Family name")
    role: AccountRole = Field(default=AccountRole.CUSTOMER, description="Account role")

    @property
    def display_name(self) -> str:
        """Name used in notification payloads."""
        return self.first_name or self.email

    @classmethod
    def from_document(cls, document: dict) -> "Account":
        """Build an account from a stored MongoDB document."""
        data = dict(document)
        data["id"] = str(data.pop("_id"))
        return cls.model_validate(data)


class SystemNotification(BaseModel):
    """In-app notification shown to one account."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True
    )

    id: str = Field(default_factory=generate_object_id, description="Unique identifier")
    recipient_id: str = Field(..., description="Recipient account ID")
    subject: str = Field(..., min_length=1, max_length=200, description="Notification subject")
    body: str = Field(..., min_length=1, description="Notification body")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Client action data")
    read_at: Optional[datetime] = Field(None, description="Read timestamp")
    created_at: datetime = Field(default_factory=datetime.utcnow, description="Creation timestamp")

    def to_document(self) -> dict:
        """Serialize to a MongoDB document keyed by ``_id``."""
        document = self.model_dump(by_alias=True, exclude={"id"})
        document["_id"] = self.id
        return document


class UserContext(BaseModel):
    """Authenticated actor for request processing."""

    user_id: str = Field(..., description="Authenticated account ID")
    role: AccountRole = Field(..., description="Account role")
    email: Optional[str] = Field(None, description="Account email")
    name: Optional[str] = Field(None, description="Display name")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def is_admin(self) -> bool:
        """Check if actor is a platform administrator."""
        return self.role == AccountRole.SUPER_ADMIN
