# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the marketplace moderation core.
"""

from enum import Enum


class BusinessStatus(str, Enum):
    """Business standing on the marketplace."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SUSPENDED = "suspended"


class RequestType(str, Enum):
    """Kinds of moderation requests recorded in the ledger."""
    SUSPENSION = "suspension"
    UNSUSPENSION = "unsuspension"
    VERIFICATION = "verification"
    APPEAL = "appeal"
    FEATURE_REQUEST = "feature_request"
    OTHER = "other"


class RequestStatus(str, Enum):
    """Moderation request lifecycle status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AccountRole(str, Enum):
    """Account roles known to the caller gateway."""
    CUSTOMER = "customer"
    BUSINESS_OWNER = "business_owner"
    EMPLOYEE = "employee"
    SUPER_ADMIN = "super_admin"


class ModerationAction(str, Enum):
    """Actions subject to capability checks."""
    LIST_BUSINESSES = "business:list"
    VIEW_BUSINESS = "business:read"
    APPROVE_BUSINESS = "business:approve"
    FORCE_APPROVE_BUSINESS = "business:force_approve"
    REJECT_BUSINESS = "business:reject"
    SUSPEND_BUSINESS = "business:suspend"
    UNSUSPEND_BUSINESS = "business:unsuspend"
    REQUEST_UNSUSPENSION = "business:request_unsuspension"
    LIST_PENDING_REQUESTS = "request:list_pending"
    VIEW_REQUEST = "request:read"
    RESPOND_TO_REQUEST = "request:respond"


class EmailKind(str, Enum):
    """Owner-facing email templates the notification worker knows how to render."""
    BUSINESS_APPROVED = "business_approved"
    BUSINESS_REJECTED = "business_rejected"
    BUSINESS_SUSPENDED = "business_suspended"
    BUSINESS_REACTIVATED = "business_reactivated"
