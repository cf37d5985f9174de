# SPDX-License-Identifier: Apache-2.0

"""
Moderation request ledger.

Creates, queries and answers moderation requests. Approving an unsuspension
request publishes UnsuspensionApproved; whoever reinstates the business
subscribes to it, so the ledger never calls the lifecycle coordinator
directly.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from opentelemetry import trace

from ..domain.errors import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    NotFoundException,
    PendingRequestExistsError,
    RateLimitedException,
    SchemaMissingException
)
from ..domain.events import EventBus, UnsuspensionApproved
from ..domain.lifecycle import (
    CLOSED_BY_REINSTATEMENT_RESPONSE,
    DEFAULT_APPROVAL_RESPONSE,
    SUPERSEDED_RESPONSE,
    build_request_metadata,
    check_appeal_cooldown,
    optional_text,
    require_text,
    suspension_summary
)
from ..models.entities import ModerationRequest
from ..models.enums import BusinessStatus, RequestStatus, RequestType

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


REINSTATEMENT_COMPLETED = "completed"
REINSTATEMENT_FAILED = "failed"
REINSTATEMENT_NOT_APPLICABLE = "not_applicable"


@dataclass
class ModerationConfig:
    """Moderation policy settings."""
    unsuspension_cooldown_hours: int = 24

    @classmethod
    def from_env(cls) -> "ModerationConfig":
        return cls(
            unsuspension_cooldown_hours=int(os.getenv('UNSUSPENSION_COOLDOWN_HOURS', '24'))
        )


@dataclass
class ApprovalResult:
    """Outcome of approving a request, including any cascaded reinstatement."""
    request: ModerationRequest
    reinstatement: str = REINSTATEMENT_NOT_APPLICABLE
    reinstatement_error: Optional[Exception] = None

    @property
    def reconciliation_required(self) -> bool:
        return self.reinstatement == REINSTATEMENT_FAILED


class RequestLedger:
    """Authoritative store of suspension audit records and owner requests."""

    def __init__(
        self,
        database,
        businesses,
        requests,
        accounts,
        events: EventBus,
        config: ModerationConfig = None,
        clock: Callable[[], datetime] = datetime.utcnow
    ):
        self.database = database
        self.businesses = businesses
        self.requests = requests
        self.accounts = accounts
        self.events = events
        self.config = config or ModerationConfig()
        self.clock = clock
        self._schema_verified = False

    def _ensure_schema(self) -> None:
        """Fail loudly when the pending-appeal uniqueness index is missing."""
        if self._schema_verified:
            return

        missing = self.database.verify_schema()
        if missing:
            raise SchemaMissingException(
                "Moderation request storage is not provisioned, run marketplace-create-indexes",
                missing=missing
            )
        self._schema_verified = True

    def create_unsuspension_request(
        self,
        business_id: str,
        requesting_user_id: str,
        reason: Optional[str]
    ) -> ModerationRequest:
        """
        Record an owner's appeal against a suspension.

        A pending appeal younger than the cooldown blocks the new one. An older
        pending appeal is cancelled as superseded in the same transaction that
        inserts the new request.

        Raises:
            NotFoundException: Business does not exist
            AuthorizationException: Requester is not the owner
            InvalidStateException: Business is not suspended
            ValidationException: Reason is blank
            RateLimitedException: A recent appeal is still pending
            SchemaMissingException: Ledger indexes are not provisioned
        """
        with tracer.start_as_current_span("ledger.create_unsuspension_request") as span:
            span.set_attributes({"business.id": business_id, "user.id": requesting_user_id})

            business = self.businesses.get(business_id)
            if business is None:
                raise NotFoundException(f"Business {business_id} not found")
            if business.owner_id != requesting_user_id:
                raise AuthorizationException("Only the business owner can request unsuspension")
            if business.status != BusinessStatus.SUSPENDED:
                raise InvalidStateException(
                    "Business is not suspended",
                    current_state=BusinessStatus(business.status).value
                )
            reason = require_text(reason, "reason")

            self._ensure_schema()
            owner = self.accounts.get(business.owner_id)
            cooldown = self.config.unsuspension_cooldown_hours
            now = self.clock()

            request = ModerationRequest(
                business_id=business_id,
                request_type=RequestType.UNSUSPENSION,
                status=RequestStatus.PENDING,
                reason=reason,
                requested_at=now,
                created_at=now,
                updated_at=now,
                updated_by=requesting_user_id,
                metadata=build_request_metadata(business, owner, action="unsuspension_request")
            )

            with self.database.transaction() as session:
                latest = self.requests.find_latest_pending(business_id, RequestType.UNSUSPENSION, session=session)
                check_appeal_cooldown(latest, now, cooldown)

                if latest is not None:
                    superseded = self.requests.respond_if_pending(
                        latest.id,
                        RequestStatus.CANCELLED,
                        requesting_user_id,
                        SUPERSEDED_RESPONSE,
                        now,
                        session=session
                    )
                    if superseded is None:
                        raise ConflictException(f"Request {latest.id} was answered concurrently")
                    logger.info(
                        "Superseded stale unsuspension request",
                        extra={"moderation_request_id": latest.id, "business_id": business_id}
                    )

                try:
                    self.requests.insert(request, session=session)
                except PendingRequestExistsError as e:
                    # A concurrent appeal won the uniqueness constraint just now
                    raise RateLimitedException.for_elapsed(0, cooldown) from e

            span.set_attribute("moderation_request.id", request.id)
            logger.info(
                "Unsuspension request created",
                extra={"moderation_request_id": request.id, "business_id": business_id, "owner_id": requesting_user_id}
            )
            return request

    def create_suspension_request(
        self,
        business_id: str,
        admin_id: str,
        reason: str,
        session=None
    ) -> ModerationRequest:
        """
        Write the auto-approved audit record for a suspension.

        Called by the lifecycle coordinator inside its suspend transaction.
        """
        with tracer.start_as_current_span("ledger.create_suspension_request") as span:
            span.set_attributes({"business.id": business_id, "admin.id": admin_id})

            business = self.businesses.get(business_id, session=session)
            if business is None:
                raise NotFoundException(f"Business {business_id} not found")

            owner = self.accounts.get(business.owner_id)
            now = self.clock()
            request = ModerationRequest(
                business_id=business_id,
                request_type=RequestType.SUSPENSION,
                status=RequestStatus.APPROVED,
                reason=reason,
                admin_response=suspension_summary(reason),
                requested_at=now,
                responded_at=now,
                responded_by=admin_id,
                created_at=now,
                updated_at=now,
                updated_by=admin_id,
                metadata=build_request_metadata(business, owner, action="suspend")
            )
            self.requests.insert(request, session=session)

            span.set_attribute("moderation_request.id", request.id)
            return request

    def get_pending_requests(self, request_type: Optional[RequestType] = None) -> List[ModerationRequest]:
        """Pending requests across all businesses, newest first."""
        return self.requests.list_pending(request_type)

    def get_business_requests(self, business_id: str) -> List[ModerationRequest]:
        """Full request history for one business, newest first."""
        return self.requests.list_for_business(business_id)

    def get_request_by_id(self, request_id: str) -> ModerationRequest:
        request = self.requests.get(request_id)
        if request is None:
            raise NotFoundException(f"Moderation request {request_id} not found")
        return request

    def _answer(
        self,
        request_id: str,
        status: RequestStatus,
        admin_id: str,
        response: Optional[str]
    ) -> ModerationRequest:
        """Move a pending request to ``status``; exactly one concurrent caller wins."""
        updated = self.requests.respond_if_pending(request_id, status, admin_id, response, self.clock())
        if updated is not None:
            return updated

        existing = self.requests.get(request_id)
        if existing is None:
            raise NotFoundException(f"Moderation request {request_id} not found")
        raise ConflictException(
            f"Moderation request {request_id} is already {RequestStatus(existing.status).value}"
        )

    def approve_request(
        self,
        request_id: str,
        admin_id: str,
        response: Optional[str] = None
    ) -> ApprovalResult:
        """
        Approve a pending request.

        Approving an unsuspension request also reinstates the business. The
        approval persists even if reinstatement fails; the failure is returned
        on the result and logged for manual reconciliation.

        Raises:
            NotFoundException: Request does not exist
            ConflictException: Request is no longer pending
        """
        with tracer.start_as_current_span("ledger.approve_request") as span:
            span.set_attributes({"moderation_request.id": request_id, "admin.id": admin_id})

            response = optional_text(response) or DEFAULT_APPROVAL_RESPONSE
            request = self._answer(request_id, RequestStatus.APPROVED, admin_id, response)
            logger.info(
                "Moderation request approved",
                extra={"moderation_request_id": request_id, "business_id": request.business_id, "admin_id": admin_id}
            )

            if request.request_type != RequestType.UNSUSPENSION:
                return ApprovalResult(request=request)

            outcome = self.events.publish(UnsuspensionApproved(
                request_id=request.id,
                business_id=request.business_id,
                admin_id=admin_id
            ))
            if outcome.success:
                span.set_attribute("moderation_request.reinstatement", REINSTATEMENT_COMPLETED)
                return ApprovalResult(request=request, reinstatement=REINSTATEMENT_COMPLETED)

            span.set_attribute("moderation_request.reinstatement", REINSTATEMENT_FAILED)
            logger.error(
                "Unsuspension request approved but business reinstatement failed",
                extra={
                    "moderation_request_id": request.id,
                    "business_id": request.business_id,
                    "admin_id": admin_id,
                    "error": str(outcome.first_error),
                    "reconciliation_required": True
                }
            )
            return ApprovalResult(
                request=request,
                reinstatement=REINSTATEMENT_FAILED,
                reinstatement_error=outcome.first_error
            )

    def reject_request(self, request_id: str, admin_id: str, response: Optional[str]) -> ModerationRequest:
        """
        Reject a pending request. The business is left untouched.

        Raises:
            ValidationException: Response is blank
            NotFoundException: Request does not exist
            ConflictException: Request is no longer pending
        """
        with tracer.start_as_current_span("ledger.reject_request") as span:
            span.set_attributes({"moderation_request.id": request_id, "admin.id": admin_id})

            response = require_text(response, "response")
            request = self._answer(request_id, RequestStatus.REJECTED, admin_id, response)
            logger.info(
                "Moderation request rejected",
                extra={"moderation_request_id": request_id, "business_id": request.business_id, "admin_id": admin_id}
            )
            return request

    def close_pending_unsuspensions(self, business_id: str, admin_id: str, session=None) -> int:
        """Approve every still-pending appeal of a business that is being reinstated."""
        closed = self.requests.close_pending(
            business_id,
            RequestType.UNSUSPENSION,
            RequestStatus.APPROVED,
            admin_id,
            CLOSED_BY_REINSTATEMENT_RESPONSE,
            self.clock(),
            session=session
        )
        if closed:
            logger.info(
                "Closed pending unsuspension requests on reinstatement",
                extra={"business_id": business_id, "admin_id": admin_id, "closed_count": closed}
            )
        return closed
