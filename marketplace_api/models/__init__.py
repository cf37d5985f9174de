# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the moderation core.
"""

# Base models
from .base import BaseEntity, generate_object_id

# Enumerations
from .enums import (
    BusinessStatus,
    RequestType,
    RequestStatus,
    AccountRole,
    ModerationAction,
    EmailKind
)

# Core entities
from .entities import (
    BusinessRecord,
    RequestMetadata,
    ModerationRequest,
    Account,
    SystemNotification,
    UserContext
)

# Request models
from .requests import (
    BusinessPath,
    ModerationRequestPath,
    BusinessListQuery,
    PendingRequestsQuery,
    RejectBusinessRequest,
    SuspendBusinessRequest,
    UnsuspensionAppealRequest,
    ApproveModerationRequest,
    RejectModerationRequest
)

# Response models
from .responses import HalLink

__all__ = [
    "BaseEntity",
    "generate_object_id",
    "BusinessStatus",
    "RequestType",
    "RequestStatus",
    "AccountRole",
    "ModerationAction",
    "EmailKind",
    "BusinessRecord",
    "RequestMetadata",
    "ModerationRequest",
    "Account",
    "SystemNotification",
    "UserContext",
    "BusinessPath",
    "ModerationRequestPath",
    "BusinessListQuery",
    "PendingRequestsQuery",
    "RejectBusinessRequest",
    "SuspendBusinessRequest",
    "UnsuspensionAppealRequest",
    "ApproveModerationRequest",
    "RejectModerationRequest",
    "HalLink"
]
