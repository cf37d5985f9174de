# SPDX-License-Identifier: Apache-2.0

"""
Moderation request endpoints.

Administrators work the pending queue and answer requests; owners read the
request history of their own business.
"""

from flask import current_app, jsonify
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.auth import ensure_capability, require_auth, require_capability
from ..models.enums import ModerationAction
from ..models.requests import (
    ApproveModerationRequest,
    BusinessPath,
    ModerationRequestPath,
    PendingRequestsQuery,
    RejectModerationRequest
)
from ..utils.request import parse_body

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

requests_tag = Tag(name="Moderation Requests", description="Suspension records and owner appeals")
requests_bp = APIBlueprint(
    'moderation_requests',
    __name__,
    url_prefix='/api/requests',
    abp_tags=[requests_tag]
)


@requests_bp.get('/pending')
@require_capability(ModerationAction.LIST_PENDING_REQUESTS)
def list_pending_requests(user_context, query: PendingRequestsQuery):
    """List pending requests across all businesses, newest first."""
    with tracer.start_as_current_span("requests.list_pending") as span:
        request_type = query.type.value if query.type else None
        span.set_attribute("filter.type", request_type or "all")

        pending = current_app.request_ledger.get_pending_requests(query.type)
        response = current_app.hal_formatter.format_request_collection(
            pending,
            user_context,
            "/api/requests/pending",
            {"type": request_type}
        )
        return jsonify(response), 200


@requests_bp.get('/business/<business_id>')
@require_auth()
def list_business_requests(user_context, path: BusinessPath):
    """Full request history of one business."""
    with tracer.start_as_current_span("requests.list_for_business") as span:
        span.set_attribute("business.id", path.business_id)

        # Ownership is decided on the business, so a missing business is a 404
        business = current_app.lifecycle.get_business(path.business_id)
        ensure_capability(user_context, business, ModerationAction.VIEW_BUSINESS)

        history = current_app.request_ledger.get_business_requests(path.business_id)
        response = current_app.hal_formatter.format_request_collection(
            history,
            user_context,
            f"/api/requests/business/{path.business_id}"
        )
        return jsonify(response), 200


@requests_bp.get('/<request_id>')
@require_auth()
def get_request(user_context, path: ModerationRequestPath):
    """Get one moderation request."""
    moderation_request = current_app.request_ledger.get_request_by_id(path.request_id)
    ensure_capability(user_context, moderation_request, ModerationAction.VIEW_REQUEST)
    return jsonify(current_app.hal_formatter.format_request(moderation_request, user_context)), 200


@requests_bp.patch('/<request_id>/approve')
@require_capability(ModerationAction.RESPOND_TO_REQUEST)
def approve_request(user_context, path: ModerationRequestPath):
    """
    Approve a pending request.

    Approving an unsuspension request also reinstates the business; the
    ``reinstatement`` field of the response reports whether that succeeded.
    """
    body = parse_body(ApproveModerationRequest)
    result = current_app.request_ledger.approve_request(path.request_id, user_context.user_id, body.response)
    return jsonify(current_app.hal_formatter.format_approval(result, user_context)), 200


@requests_bp.patch('/<request_id>/reject')
@require_capability(ModerationAction.RESPOND_TO_REQUEST)
def reject_request(user_context, path: ModerationRequestPath):
    """Reject a pending request. The business is left as it is."""
    body = parse_body(RejectModerationRequest)
    moderation_request = current_app.request_ledger.reject_request(
        path.request_id,
        user_context.user_id,
        body.response
    )
    return jsonify(current_app.hal_formatter.format_request(moderation_request, user_context)), 200
