# SPDX-License-Identifier: Apache-2.0

"""
Business lifecycle coordinator.

Owns every change to a business's standing. Status changes that also touch the
moderation ledger run in one transaction; owner emails and in-app
notifications are sent only after commit and never abort the operation.
"""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Callable, Iterator, List, Optional

from opentelemetry import trace
from pymongo.errors import PyMongoError

from ..domain.errors import ConflictException, NotFoundException
from ..domain.events import EventBus, UnsuspensionApproved
from ..domain.lifecycle import ensure_transition, optional_text, require_text
from ..models.entities import BusinessRecord
from ..models.enums import BusinessStatus, EmailKind
from .request_ledger import RequestLedger

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class LifecycleCoordinator:
    """State machine over business standing."""

    def __init__(
        self,
        database,
        businesses,
        accounts,
        ledger: RequestLedger,
        notifications,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.database = database
        self.businesses = businesses
        self.accounts = accounts
        self.ledger = ledger
        self.notifications = notifications
        self.clock = clock
        if events is not None:
            events.subscribe(UnsuspensionApproved, self.on_unsuspension_approved)

    def _load(self, business_id: str, session=None) -> BusinessRecord:
        business = self.businesses.get(business_id, session=session)
        if business is None:
            raise NotFoundException(f"Business {business_id} not found")
        return business

    def _set_status(
        self,
        business: BusinessRecord,
        new_status: BusinessStatus,
        actor_id: Optional[str],
        conditional: bool = True,
        session=None
    ) -> BusinessRecord:
        """Write the new status, failing if another caller changed it first."""
        updated = self.businesses.update_status(
            business.id,
            new_status,
            actor_id,
            expected_status=business.status if conditional else None,
            at=self.clock(),
            session=session
        )
        if updated is None:
            raise ConflictException(f"Business {business.id} was modified concurrently")
        return updated

    @contextmanager
    def _after_commit(self, step: str, business_id: str) -> Iterator[None]:
        """Log and contain store failures in work that follows a committed change."""
        try:
            yield
        except PyMongoError as e:
            logger.warning(
                f"Post-commit {step} failed",
                extra={"business_id": business_id, "step": step, "error": str(e)}
            )

    def _reload(self, committed: BusinessRecord) -> BusinessRecord:
        """Re-read a business after commit, falling back to the record written in the transaction."""
        with self._after_commit("reload", committed.id):
            return self._load(committed.id)
        return committed

    def _email_owner(self, kind: EmailKind, business: BusinessRecord, **details) -> None:
        with self._after_commit(f"{kind.value} email", business.id):
            owner = self.accounts.get(business.owner_id)
            self.notifications.send_owner_email(kind, business, owner, details)

    # Queries

    def get_business(self, business_id: str) -> BusinessRecord:
        """Business with appeal mirror fields projected from the ledger."""
        return self._load(business_id)

    def list_businesses(self, status: Optional[BusinessStatus] = None) -> List[BusinessRecord]:
        return self.businesses.list_by_status(status)

    # Transitions

    def approve(self, business_id: str, admin_id: Optional[str] = None) -> BusinessRecord:
        """Approve a pending business registration."""
        with tracer.start_as_current_span("lifecycle.approve") as span:
            span.set_attribute("business.id", business_id)

            business = self._load(business_id)
            ensure_transition(business, BusinessStatus.APPROVED, "approve")
            updated = self._set_status(business, BusinessStatus.APPROVED, admin_id)

            logger.info("Business approved", extra={"business_id": business_id, "admin_id": admin_id})
            result = self._reload(updated)
            self._email_owner(EmailKind.BUSINESS_APPROVED, result)
            return result

    def force_approve(self, business_id: str, admin_id: str) -> BusinessRecord:
        """
        Approve a business from any state, bypassing the request ledger.

        Reinstating a suspended business this way also closes its pending
        appeals, as ``unsuspend`` does.
        """
        with tracer.start_as_current_span("lifecycle.force_approve") as span:
            span.set_attributes({"business.id": business_id, "admin.id": admin_id})

            with self.database.transaction() as session:
                business = self._load(business_id, session=session)
                previous = BusinessStatus(business.status)
                updated = self._set_status(business, BusinessStatus.APPROVED, admin_id, conditional=False, session=session)
                if previous == BusinessStatus.SUSPENDED:
                    self.ledger.close_pending_unsuspensions(business_id, admin_id, session=session)

            logger.warning(
                "Business force-approved",
                extra={"business_id": business_id, "admin_id": admin_id, "previous_status": previous.value}
            )
            result = self._reload(updated)
            kind = EmailKind.BUSINESS_REACTIVATED if previous == BusinessStatus.SUSPENDED else EmailKind.BUSINESS_APPROVED
            self._email_owner(kind, result)
            return result

    def reject(self, business_id: str, reason: Optional[str] = None, admin_id: Optional[str] = None) -> BusinessRecord:
        """Reject a pending business registration."""
        with tracer.start_as_current_span("lifecycle.reject") as span:
            span.set_attribute("business.id", business_id)

            reason = optional_text(reason)
            business = self._load(business_id)
            ensure_transition(business, BusinessStatus.REJECTED, "reject")
            updated = self._set_status(business, BusinessStatus.REJECTED, admin_id)

            logger.info("Business rejected", extra={"business_id": business_id, "admin_id": admin_id})
            result = self._reload(updated)
            self._email_owner(EmailKind.BUSINESS_REJECTED, result, reason=reason)
            return result

    def suspend(self, business_id: str, reason: Optional[str], admin_id: str) -> BusinessRecord:
        """
        Suspend a business and write the suspension audit record.

        The status flip and the audit record commit together. The owner email
        and the in-app notification offering an appeal follow, best-effort.

        Raises:
            ValidationException: Reason is blank
            NotFoundException: Business does not exist
            InvalidStateException: Business is already suspended
        """
        with tracer.start_as_current_span("lifecycle.suspend") as span:
            span.set_attributes({"business.id": business_id, "admin.id": admin_id})

            reason = require_text(reason, "reason")
            with self.database.transaction() as session:
                business = self._load(business_id, session=session)
                ensure_transition(business, BusinessStatus.SUSPENDED, "suspend")
                updated = self._set_status(business, BusinessStatus.SUSPENDED, admin_id, session=session)
                audit = self.ledger.create_suspension_request(business_id, admin_id, reason, session=session)

            span.set_attribute("moderation_request.id", audit.id)
            logger.info(
                "Business suspended",
                extra={"business_id": business_id, "admin_id": admin_id, "moderation_request_id": audit.id}
            )

            result = self._reload(updated)
            self._email_owner(EmailKind.BUSINESS_SUSPENDED, result, reason=reason)
            self.notifications.create_system_notification(
                result.owner_id,
                "Business suspended",
                f"{result.name} has been suspended. Reason: {reason}",
                {
                    "type": "business_suspended",
                    "businessId": business_id,
                    "requestId": audit.id,
                    "action": "request_unsuspension"
                }
            )
            return result

    def unsuspend(self, business_id: str, admin_id: str) -> BusinessRecord:
        """
        Reinstate a suspended business.

        Any appeal still pending is closed as approved in the same transaction,
        so no stale request outlives a direct reinstatement.

        Raises:
            NotFoundException: Business does not exist
            InvalidStateException: Business is not suspended
        """
        with tracer.start_as_current_span("lifecycle.unsuspend") as span:
            span.set_attributes({"business.id": business_id, "admin.id": admin_id})

            with self.database.transaction() as session:
                business = self._load(business_id, session=session)
                ensure_transition(business, BusinessStatus.APPROVED, "unsuspend")
                updated = self._set_status(business, BusinessStatus.APPROVED, admin_id, session=session)
                self.ledger.close_pending_unsuspensions(business_id, admin_id, session=session)

            logger.info("Business unsuspended", extra={"business_id": business_id, "admin_id": admin_id})

            result = self._reload(updated)
            self._email_owner(EmailKind.BUSINESS_REACTIVATED, result)
            self.notifications.create_system_notification(
                result.owner_id,
                "Business reactivated",
                f"{result.name} is active again.",
                {"type": "business_reactivated", "businessId": business_id}
            )
            return result

    def request_unsuspension(self, business_id: str, user_id: str, reason: Optional[str]) -> BusinessRecord:
        """Submit an owner's appeal and alert every administrator."""
        with tracer.start_as_current_span("lifecycle.request_unsuspension") as span:
            span.set_attributes({"business.id": business_id, "user.id": user_id})

            business = self._load(business_id)
            request = self.ledger.create_unsuspension_request(business_id, user_id, reason)
            business = self._reload(business.model_copy(update={
                "unsuspension_requested_at": request.requested_at,
                "unsuspension_request_reason": request.reason
            }))

            with self._after_commit("admin alert", business_id):
                for admin in self.accounts.list_admins():
                    self.notifications.create_system_notification(
                        admin.id,
                        "Unsuspension request",
                        f"{business.name} has requested to be reinstated.",
                        {
                            "type": "unsuspension_request",
                            "businessId": business_id,
                            "requestId": request.id,
                            "reason": request.reason
                        }
                    )
            return business

    def on_unsuspension_approved(self, event: UnsuspensionApproved) -> None:
        """Reinstate the business behind an approved appeal."""
        business = self._load(event.business_id)
        if business.status == BusinessStatus.APPROVED:
            logger.info(
                "Business already reinstated",
                extra={"business_id": event.business_id, "moderation_request_id": event.request_id}
            )
            return
        self.unsuspend(event.business_id, event.admin_id)
