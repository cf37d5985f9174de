# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from typing import Optional
from pydantic import BaseModel, Field

from .enums import BusinessStatus, RequestType


class BusinessPath(BaseModel):
    """Path parameters for business routes."""
    
    business_id: str = Field(..., description="Business ID")


class ModerationRequestPath(BaseModel):
    """Path parameters for moderation request routes."""
    
    request_id: str = Field(..., description="Moderation request ID")


class BusinessListQuery(BaseModel):
    """Query parameters for the admin business listing."""
    
    status: Optional[BusinessStatus] = Field(None, description="Filter by standing")


class PendingRequestsQuery(BaseModel):
    """Query parameters for the pending request queue."""
    
    type: Optional[RequestType] = Field(None, description="Filter by request type")


class RejectBusinessRequest(BaseModel):
    """Body for rejecting a business registration."""
    
    reason: Optional[str] = Field(None, max_length=1000, description="Rejection reason shown to the owner")


class SuspendBusinessRequest(BaseModel):
    """Body for suspending a business."""
    
    reason: str = Field(..., max_length=1000, description="Suspension reason")


class UnsuspensionAppealRequest(BaseModel):
    """Body for an owner's reinstatement appeal."""
    
    reason: str = Field(..., max_length=2000, description="Why the business should be reinstated")


class ApproveModerationRequest(BaseModel):
    """Body for approving a moderation request."""
    
    response: Optional[str] = Field(None, max_length=1000, description="Optional admin response")


class RejectModerationRequest(BaseModel):
    """Body for rejecting a moderation request."""
    
    response: str = Field(..., max_length=1000, description="Admin response explaining the rejection")
