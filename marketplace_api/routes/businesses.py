# SPDX-License-Identifier: Apache-2.0

"""
Business moderation endpoints.

Administrators list, approve, reject, suspend and reinstate businesses;
owners view their own business and appeal a suspension.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.auth import ensure_capability, require_auth, require_capability
from ..models.enums import ModerationAction
from ..models.requests import (
    BusinessListQuery,
    BusinessPath,
    RejectBusinessRequest,
    SuspendBusinessRequest,
    UnsuspensionAppealRequest
)
from ..utils.request import parse_body

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

businesses_tag = Tag(name="Businesses", description="Business moderation")
businesses_bp = APIBlueprint(
    'businesses',
    __name__,
    url_prefix='/api/businesses',
    abp_tags=[businesses_tag]
)


def _business_response(business, user_context, status: int = 200):
    return jsonify(current_app.hal_formatter.format_business(business, user_context)), status


@businesses_bp.get('')
@require_capability(ModerationAction.LIST_BUSINESSES)
def list_businesses(user_context, query: BusinessListQuery):
    """
    List businesses.

    Administrators only; optionally filtered by standing.
    """
    with tracer.start_as_current_span("businesses.list") as span:
        status = query.status.value if query.status else None
        span.set_attribute("filter.status", status or "all")

        businesses = current_app.lifecycle.list_businesses(query.status)
        response = current_app.hal_formatter.format_business_collection(
            businesses,
            user_context,
            {"status": status}
        )
        return jsonify(response), 200


@businesses_bp.get('/<business_id>')
@require_auth()
def get_business(user_context, path: BusinessPath):
    """Get a business. Visible to its owner and to administrators."""
    with tracer.start_as_current_span("businesses.get") as span:
        span.set_attribute("business.id", path.business_id)

        business = current_app.lifecycle.get_business(path.business_id)
        ensure_capability(user_context, business, ModerationAction.VIEW_BUSINESS)
        return _business_response(business, user_context)


@businesses_bp.post('/<business_id>/approve')
@require_capability(ModerationAction.APPROVE_BUSINESS)
def approve_business(user_context, path: BusinessPath):
    """Approve a pending business registration."""
    business = current_app.lifecycle.approve(path.business_id, user_context.user_id)
    return _business_response(business, user_context)


@businesses_bp.post('/<business_id>/force-approve')
@require_capability(ModerationAction.FORCE_APPROVE_BUSINESS)
def force_approve_business(user_context, path: BusinessPath):
    """Approve a business regardless of its current standing."""
    business = current_app.lifecycle.force_approve(path.business_id, user_context.user_id)
    return _business_response(business, user_context)


@businesses_bp.post('/<business_id>/reject')
@require_capability(ModerationAction.REJECT_BUSINESS)
def reject_business(user_context, path: BusinessPath):
    """Reject a pending business registration."""
    body = parse_body(RejectBusinessRequest)
    business = current_app.lifecycle.reject(path.business_id, body.reason, user_context.user_id)
    return _business_response(business, user_context)


@businesses_bp.post('/<business_id>/suspend')
@require_capability(ModerationAction.SUSPEND_BUSINESS)
def suspend_business(user_context, path: BusinessPath):
    """
    Suspend a business.

    Writes an auto-approved suspension record to the moderation ledger and
    notifies the owner, who may then appeal.
    """
    body = parse_body(SuspendBusinessRequest)
    business = current_app.lifecycle.suspend(path.business_id, body.reason, user_context.user_id)
    return _business_response(business, user_context)


@businesses_bp.post('/<business_id>/unsuspend')
@require_capability(ModerationAction.UNSUSPEND_BUSINESS)
def unsuspend_business(user_context, path: BusinessPath):
    """Reinstate a suspended business and close its pending appeals."""
    business = current_app.lifecycle.unsuspend(path.business_id, user_context.user_id)
    return _business_response(business, user_context)


@businesses_bp.post('/<business_id>/unsuspension-request')
@require_auth()
def request_unsuspension(user_context, path: BusinessPath):
    """
    Appeal a suspension.

    Only the owner may appeal, at most once per cooldown window while an
    earlier appeal is still pending.
    """
    body = parse_body(UnsuspensionAppealRequest)
    business = current_app.lifecycle.request_unsuspension(path.business_id, user_context.user_id, body.reason)

    logger.info(
        "Unsuspension appeal submitted",
        extra={"business_id": path.business_id, "owner_id": user_context.user_id}
    )
    return _business_response(business, user_context, 201)
