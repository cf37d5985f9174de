# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for HAL response formatting and capability-driven affordances.
"""

from datetime import datetime

from marketplace_api.models.entities import BusinessRecord, ModerationRequest, RequestMetadata
from marketplace_api.models.enums import BusinessStatus, RequestStatus, RequestType
from marketplace_api.services.hal import HalLinkBuilder, create_hal_formatter
from marketplace_api.services.request_ledger import ApprovalResult

from .fakes import OWNER_ID

BASE_URL = "https://api.example.com/"


def _business(status):
    return BusinessRecord(id="biz-1", name="Salon Aurora", owner_id=OWNER_ID, status=status)


def _appeal(status=RequestStatus.PENDING):
    request = ModerationRequest(
        id="req-1",
        business_id="biz-1",
        request_type=RequestType.UNSUSPENSION,
        reason="Listing fixed",
        metadata=RequestMetadata(owner_id=OWNER_ID)
    )
    if status != RequestStatus.PENDING:
        request = request.with_response(status, "admin-1", None, datetime(2024, 3, 2))
    return request


class TestHalLinkBuilder:
    """Test HAL link builder functionality."""

    def test_base_url_normalization(self):
        link = HalLinkBuilder(BASE_URL).build_link("/api/businesses")

        assert link.href == "https://api.example.com/api/businesses"
        assert link.method == "GET"

    def test_build_action_link(self):
        link = HalLinkBuilder(BASE_URL).build_action_link("/api/businesses/biz-1", "force-approve")

        assert link.href == "https://api.example.com/api/businesses/biz-1/force-approve"
        assert link.method == "POST"
        assert link.type == "application/json"
        assert link.title == "Force Approve"


class TestBusinessAffordances:

    def test_admin_on_pending_business(self, admin_context):
        links = create_hal_formatter(BASE_URL).format_business(_business(BusinessStatus.PENDING), admin_context)["_links"]

        assert {"self", "requests", "approve", "reject", "suspend", "force-approve"} <= set(links)
        assert "unsuspend" not in links
        assert "request-unsuspension" not in links

    def test_owner_sees_only_appeal_link(self, owner_context):
        links = create_hal_formatter(BASE_URL).format_business(_business(BusinessStatus.SUSPENDED), owner_context)["_links"]

        assert set(links) == {"self", "requests", "request-unsuspension"}
        assert links["request-unsuspension"]["href"].endswith("/api/businesses/biz-1/unsuspension-request")

    def test_pending_appeal_hides_appeal_link(self, owner_context):
        business = _business(BusinessStatus.SUSPENDED).model_copy(update={
            "unsuspension_requested_at": datetime(2024, 3, 1),
            "unsuspension_request_reason": "Listing fixed"
        })

        formatted = create_hal_formatter(BASE_URL).format_business(business, owner_context)

        assert "request-unsuspension" not in formatted["_links"]
        assert formatted["unsuspensionRequestReason"] == "Listing fixed"
        assert formatted["ownerId"] == OWNER_ID


class TestRequestAffordances:

    def test_admin_can_answer_pending_request(self, admin_context):
        links = create_hal_formatter(BASE_URL).format_request(_appeal(), admin_context)["_links"]

        assert links["approve"]["method"] == "PATCH"
        assert links["reject"]["href"] == "https://api.example.com/api/requests/req-1/reject"

    def test_terminal_request_has_no_actions(self, admin_context):
        links = create_hal_formatter(BASE_URL).format_request(_appeal(RequestStatus.REJECTED), admin_context)["_links"]

        assert set(links) == {"self", "business"}

    def test_approval_with_failed_reinstatement(self, admin_context):
        result = ApprovalResult(
            request=_appeal(RequestStatus.APPROVED),
            reinstatement="failed",
            reinstatement_error=RuntimeError("business store unavailable")
        )

        formatted = create_hal_formatter(BASE_URL).format_approval(result, admin_context)

        assert formatted["status"] == "approved"
        assert formatted["reinstatement"] == {"status": "failed", "error": "business store unavailable"}


class TestProblemDocuments:

    def test_rate_limited(self):
        problem = create_hal_formatter(BASE_URL).format_problem(
            "rate-limit-exceeded", "Please wait", "/api/x", hours_remaining=5
        )

        assert problem["type"] == "https://api.example.com/problems/rate-limit-exceeded"
        assert problem["status"] == 429
        assert problem["hours_remaining"] == 5
        assert "help" in problem["_links"]

    def test_validation_error_links_schema(self):
        problem = create_hal_formatter(BASE_URL).format_validation_error(
            "Request body is invalid", "/api/x", [{"field": "reason", "message": "required"}]
        )

        assert problem["errors"] == [{"field": "reason", "message": "required"}]
        assert "schema" in problem["_links"]
