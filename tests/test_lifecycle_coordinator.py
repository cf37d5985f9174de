# SPDX-License-Identifier: Apache-2.0

"""
Tests for the business lifecycle coordinator against in-memory stores.
"""

import pytest
from unittest.mock import MagicMock
from pymongo.errors import PyMongoError

from marketplace_api.domain.errors import (
    ConflictException,
    InvalidStateException,
    NotFoundException,
    RateLimitedException,
    ValidationException
)
from marketplace_api.domain.events import UnsuspensionApproved
from marketplace_api.domain.lifecycle import CLOSED_BY_REINSTATEMENT_RESPONSE
from marketplace_api.models.entities import Account, BusinessRecord
from marketplace_api.models.enums import BusinessStatus, RequestStatus, RequestType
from marketplace_api.services.lifecycle import LifecycleCoordinator
from marketplace_api.services.notifications import NotificationService

from .fakes import ADMIN_ID, OWNER_ID


def _approved(coordinator, businesses):
    business = businesses.create(BusinessRecord(name="Salon Aurora", owner_id=OWNER_ID))
    return coordinator.approve(business.id, ADMIN_ID)


class TestModerationWorkflow:
    """Suspension, appeal and reinstatement end to end."""

    def test_suspend_appeal_approve(self, coordinator, ledger, businesses, request_store, clock):
        business = _approved(coordinator, businesses)

        suspended = coordinator.suspend(business.id, "policy violation", ADMIN_ID)

        assert suspended.status == BusinessStatus.SUSPENDED
        history = ledger.get_business_requests(business.id)
        assert len(history) == 1
        assert history[0].request_type == RequestType.SUSPENSION
        assert history[0].status == RequestStatus.APPROVED
        assert history[0].reason == "policy violation"

        clock.advance(minutes=30)
        appealed = coordinator.request_unsuspension(business.id, OWNER_ID, "fixed issue")
        assert appealed.unsuspension_request_reason == "fixed issue"
        pending = ledger.get_pending_requests(RequestType.UNSUSPENSION)
        assert len(pending) == 1

        clock.advance(hours=1)
        with pytest.raises(RateLimitedException) as exc_info:
            coordinator.request_unsuspension(business.id, OWNER_ID, "fixed issue again")
        assert exc_info.value.hours_remaining == 23

        result = ledger.approve_request(pending[0].id, ADMIN_ID)

        assert result.request.status == RequestStatus.APPROVED
        reinstated = businesses.get(business.id)
        assert reinstated.status == BusinessStatus.APPROVED
        assert reinstated.unsuspension_requested_at is None
        assert reinstated.unsuspension_request_reason is None

    def test_rejected_appeal_keeps_suspension(self, coordinator, ledger, businesses):
        business = _approved(coordinator, businesses)
        coordinator.suspend(business.id, "policy violation", ADMIN_ID)
        coordinator.request_unsuspension(business.id, OWNER_ID, "fixed issue")
        appeal = ledger.get_pending_requests(RequestType.UNSUSPENSION)[0]

        rejected = ledger.reject_request(appeal.id, ADMIN_ID, "insufficient evidence")

        assert rejected.status == RequestStatus.REJECTED
        assert businesses.get(business.id).status == BusinessStatus.SUSPENDED


class TestApproveAndReject:

    def test_approve_pending(self, coordinator, make_business, notifications):
        business = make_business()

        approved = coordinator.approve(business.id, ADMIN_ID)

        assert approved.status == BusinessStatus.APPROVED
        assert approved.updated_by == ADMIN_ID
        assert notifications.email_kinds() == ["business_approved"]
        assert notifications.emails[0]["owner"].email == "owner@example.com"

    @pytest.mark.parametrize("status", [BusinessStatus.APPROVED, BusinessStatus.REJECTED, BusinessStatus.SUSPENDED])
    def test_approve_requires_pending(self, coordinator, make_business, notifications, status):
        business = make_business(status)

        with pytest.raises(InvalidStateException):
            coordinator.approve(business.id, ADMIN_ID)

        assert notifications.emails == []

    def test_approve_missing(self, coordinator):
        with pytest.raises(NotFoundException):
            coordinator.approve("missing", ADMIN_ID)

    def test_reject_with_reason(self, coordinator, make_business, notifications):
        business = make_business()

        rejected = coordinator.reject(business.id, "  Incomplete documents ", ADMIN_ID)

        assert rejected.status == BusinessStatus.REJECTED
        assert notifications.emails[0]["kind"] == "business_rejected"
        assert notifications.emails[0]["details"] == {"reason": "Incomplete documents"}

    def test_reject_without_reason(self, coordinator, make_business, notifications):
        business = make_business()

        coordinator.reject(business.id, "   ", ADMIN_ID)

        assert notifications.emails[0]["details"] == {"reason": None}

    def test_reject_approved_business(self, coordinator, make_business):
        business = make_business(BusinessStatus.APPROVED)

        with pytest.raises(InvalidStateException):
            coordinator.reject(business.id, "late", ADMIN_ID)

    def test_lost_race_is_a_conflict(self, coordinator, make_business, businesses, monkeypatch):
        business = make_business()
        monkeypatch.setattr(businesses, "update_status", lambda *args, **kwargs: None)

        with pytest.raises(ConflictException):
            coordinator.approve(business.id, ADMIN_ID)

    def test_reload_failure_returns_written_record(self, coordinator, make_business, businesses, notifications, monkeypatch):
        business = make_business()
        read = businesses.get
        reads = []

        def flaky_get(business_id, session=None):
            reads.append(business_id)
            if len(reads) > 1:
                raise PyMongoError("secondary unreachable")
            return read(business_id, session=session)

        monkeypatch.setattr(businesses, "get", flaky_get)

        approved = coordinator.approve(business.id, ADMIN_ID)

        assert approved.status == BusinessStatus.APPROVED
        assert approved.updated_by == ADMIN_ID
        assert notifications.email_kinds() == ["business_approved"]


class TestSuspend:

    def test_writes_audit_record_and_notifies_owner(self, coordinator, ledger, make_business, notifications, clock):
        business = make_business(BusinessStatus.APPROVED)

        suspended = coordinator.suspend(business.id, "  Fake reviews ", ADMIN_ID)

        audit = ledger.get_business_requests(business.id)[0]
        assert suspended.status == BusinessStatus.SUSPENDED
        assert audit.status == RequestStatus.APPROVED
        assert audit.reason == "Fake reviews"
        assert audit.admin_response == "Business suspended. Reason: Fake reviews"
        assert audit.responded_by == ADMIN_ID
        assert audit.responded_at == clock()
        assert audit.metadata.action == "suspend"

        assert notifications.emails[0]["kind"] == "business_suspended"
        assert notifications.emails[0]["details"] == {"reason": "Fake reviews"}
        owner_alert = notifications.system_notifications[0]
        assert owner_alert["recipient_id"] == OWNER_ID
        assert owner_alert["metadata"] == {
            "type": "business_suspended",
            "businessId": business.id,
            "requestId": audit.id,
            "action": "request_unsuspension"
        }

    @pytest.mark.parametrize("status", [BusinessStatus.PENDING, BusinessStatus.REJECTED])
    def test_suspend_from_other_states(self, coordinator, make_business, status):
        business = make_business(status)
        assert coordinator.suspend(business.id, "Fraud", ADMIN_ID).status == BusinessStatus.SUSPENDED

    def test_already_suspended(self, coordinator, make_business, request_store):
        business = make_business(BusinessStatus.SUSPENDED)

        with pytest.raises(InvalidStateException) as exc_info:
            coordinator.suspend(business.id, "again", ADMIN_ID)

        assert exc_info.value.current_state == "suspended"
        assert request_store.list_for_business(business.id) == []

    @pytest.mark.parametrize("reason", [None, "", "  \t "])
    def test_blank_reason(self, coordinator, make_business, businesses, request_store, notifications, reason):
        business = make_business(BusinessStatus.APPROVED)

        with pytest.raises(ValidationException):
            coordinator.suspend(business.id, reason, ADMIN_ID)

        assert businesses.get(business.id).status == BusinessStatus.APPROVED
        assert request_store.list_for_business(business.id) == []
        assert notifications.emails == []

    def test_ledger_failure_rolls_back_status(self, coordinator, make_business, businesses, request_store, monkeypatch):
        business = make_business(BusinessStatus.APPROVED)

        def failing_insert(*args, **kwargs):
            raise RuntimeError("write concern timeout")

        monkeypatch.setattr(request_store, "insert", failing_insert)

        with pytest.raises(RuntimeError):
            coordinator.suspend(business.id, "Fraud", ADMIN_ID)

        assert businesses.get(business.id).status == BusinessStatus.APPROVED

    def test_notification_failure_does_not_abort(self, database, businesses, accounts, ledger, make_business, clock):
        amqp = MagicMock()
        amqp.publish_email.side_effect = ConnectionError("broker down")
        mongodb = MagicMock()
        notifications = NotificationService(amqp, mongodb, "http://localhost:3000")
        coordinator = LifecycleCoordinator(database, businesses, accounts, ledger, notifications, clock=clock)
        business = make_business(BusinessStatus.APPROVED)

        suspended = coordinator.suspend(business.id, "Fraud", ADMIN_ID)

        assert suspended.status == BusinessStatus.SUSPENDED
        amqp.publish_email.assert_called_once()
        mongodb.get_collection.return_value.insert_one.assert_called_once()

    def test_owner_lookup_failure_after_commit(self, coordinator, accounts, make_business, notifications, monkeypatch):
        business = make_business(BusinessStatus.APPROVED)
        lookup = accounts.get
        calls = []

        def flaky_get(account_id):
            calls.append(account_id)
            # The audit snapshot reads the owner first; the owner email reads it again
            if len(calls) > 1:
                raise PyMongoError("users down")
            return lookup(account_id)

        monkeypatch.setattr(accounts, "get", flaky_get)

        suspended = coordinator.suspend(business.id, "Fraud", ADMIN_ID)

        assert suspended.status == BusinessStatus.SUSPENDED
        assert len(calls) == 2
        assert notifications.emails == []
        assert notifications.system_notifications[0]["metadata"]["action"] == "request_unsuspension"


class TestUnsuspend:

    def test_reinstates_and_closes_pending_appeal(
        self, coordinator, ledger, make_business, request_store, notifications, clock
    ):
        business = make_business(BusinessStatus.SUSPENDED)
        appeal = ledger.create_unsuspension_request(business.id, OWNER_ID, "please")
        clock.advance(hours=2)

        reinstated = coordinator.unsuspend(business.id, ADMIN_ID)

        assert reinstated.status == BusinessStatus.APPROVED
        assert reinstated.unsuspension_requested_at is None
        closed = request_store.get(appeal.id)
        assert closed.status == RequestStatus.APPROVED
        assert closed.responded_by == ADMIN_ID
        assert closed.admin_response == CLOSED_BY_REINSTATEMENT_RESPONSE
        assert notifications.email_kinds() == ["business_reactivated"]
        assert notifications.system_notifications[-1]["metadata"]["type"] == "business_reactivated"

    def test_approving_closed_appeal_conflicts(self, coordinator, ledger, make_business):
        business = make_business(BusinessStatus.SUSPENDED)
        appeal = ledger.create_unsuspension_request(business.id, OWNER_ID, "please")
        coordinator.unsuspend(business.id, ADMIN_ID)

        with pytest.raises(ConflictException):
            ledger.approve_request(appeal.id, ADMIN_ID)

    @pytest.mark.parametrize("status", [BusinessStatus.APPROVED, BusinessStatus.PENDING, BusinessStatus.REJECTED])
    def test_requires_suspension(self, coordinator, make_business, status):
        business = make_business(status)

        with pytest.raises(InvalidStateException):
            coordinator.unsuspend(business.id, ADMIN_ID)

    def test_cascade_tolerates_reinstated_business(self, coordinator, events, make_business, notifications):
        business = make_business(BusinessStatus.APPROVED)

        outcome = events.publish(UnsuspensionApproved(request_id="r-1", business_id=business.id, admin_id=ADMIN_ID))

        assert outcome.success
        assert notifications.emails == []


class TestForceApprove:

    def test_from_rejected(self, coordinator, make_business, notifications):
        business = make_business(BusinessStatus.REJECTED)

        approved = coordinator.force_approve(business.id, ADMIN_ID)

        assert approved.status == BusinessStatus.APPROVED
        assert notifications.email_kinds() == ["business_approved"]

    def test_from_suspended_closes_appeals(self, coordinator, ledger, make_business, request_store, notifications):
        business = make_business(BusinessStatus.SUSPENDED)
        appeal = ledger.create_unsuspension_request(business.id, OWNER_ID, "please")

        approved = coordinator.force_approve(business.id, ADMIN_ID)

        assert approved.status == BusinessStatus.APPROVED
        assert request_store.get(appeal.id).status == RequestStatus.APPROVED
        assert notifications.email_kinds() == ["business_reactivated"]

    def test_missing(self, coordinator):
        with pytest.raises(NotFoundException):
            coordinator.force_approve("missing", ADMIN_ID)


class TestRequestUnsuspension:

    def test_alerts_every_admin(self, coordinator, accounts, make_business, notifications):
        accounts.add(Account(id="admin-2", email="admin2@example.com", role="super_admin"))
        business = make_business(BusinessStatus.SUSPENDED)

        result = coordinator.request_unsuspension(business.id, OWNER_ID, "  fixed issue ")

        assert result.unsuspension_request_reason == "fixed issue"
        recipients = sorted(n["recipient_id"] for n in notifications.system_notifications)
        assert recipients == [ADMIN_ID, "admin-2"]
        metadata = notifications.system_notifications[0]["metadata"]
        assert metadata["type"] == "unsuspension_request"
        assert metadata["businessId"] == business.id
        assert metadata["reason"] == "fixed issue"

    def test_rate_limited_appeal_sends_nothing(self, coordinator, make_business, notifications, clock):
        business = make_business(BusinessStatus.SUSPENDED)
        coordinator.request_unsuspension(business.id, OWNER_ID, "first")
        sent = len(notifications.system_notifications)
        clock.advance(hours=5)

        with pytest.raises(RateLimitedException):
            coordinator.request_unsuspension(business.id, OWNER_ID, "second")

        assert len(notifications.system_notifications) == sent

    def test_admin_lookup_failure_keeps_appeal(self, coordinator, ledger, accounts, make_business, monkeypatch):
        business = make_business(BusinessStatus.SUSPENDED)

        def admins_down():
            raise PyMongoError("users down")

        monkeypatch.setattr(accounts, "list_admins", admins_down)

        result = coordinator.request_unsuspension(business.id, OWNER_ID, "fixed issue")

        assert result.unsuspension_request_reason == "fixed issue"
        assert len(ledger.get_pending_requests(RequestType.UNSUSPENSION)) == 1


class TestQueries:

    def test_list_by_status(self, coordinator, make_business):
        make_business(BusinessStatus.PENDING)
        suspended = make_business(BusinessStatus.SUSPENDED, name="Barber Bruno")

        listed = coordinator.list_businesses(BusinessStatus.SUSPENDED)

        assert [b.id for b in listed] == [suspended.id]
        assert len(coordinator.list_businesses()) == 2

    def test_get_missing(self, coordinator):
        with pytest.raises(NotFoundException):
            coordinator.get_business("missing")
