# SPDX-License-Identifier: Apache-2.0

"""
Business lifecycle domain logic.

Pure functions for the business standing state machine, reason validation,
the appeal cooldown window and the read-side projection of appeal mirror
fields. Nothing here touches storage or the network.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..models.entities import Account, BusinessRecord, ModerationRequest, RequestMetadata
from ..models.enums import BusinessStatus, RequestStatus, RequestType
from .errors import InvalidStateException, RateLimitedException, ValidationException


# Ordinary transitions; force-approve does not consult this table
BUSINESS_TRANSITIONS: Dict[BusinessStatus, Dict[BusinessStatus, str]] = {
    BusinessStatus.PENDING: {
        BusinessStatus.APPROVED: "approve",
        BusinessStatus.REJECTED: "reject",
        BusinessStatus.SUSPENDED: "suspend",
    },
    BusinessStatus.APPROVED: {
        BusinessStatus.SUSPENDED: "suspend",
    },
    BusinessStatus.SUSPENDED: {
        BusinessStatus.APPROVED: "unsuspend",
    },
    BusinessStatus.REJECTED: {
        BusinessStatus.SUSPENDED: "suspend",
    },
}

SUPERSEDED_RESPONSE = "Superseded by a newer unsuspension request"
CLOSED_BY_REINSTATEMENT_RESPONSE = "Closed: business reinstated by an administrator"
DEFAULT_APPROVAL_RESPONSE = "Request approved"


@dataclass
class ValidationResult:
    """Result of a lifecycle validation."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def validate_status_transition(
    current_status: BusinessStatus,
    new_status: BusinessStatus,
    operation: str
) -> ValidationResult:
    """
    Validate a business status transition against the ordinary state machine.

    Args:
        current_status: Current business status
        new_status: Desired new status
        operation: Operation attempting the transition

    Returns:
        ValidationResult with validation status and errors
    """
    current = BusinessStatus(current_status)
    target = BusinessStatus(new_status)

    if BUSINESS_TRANSITIONS.get(current, {}).get(target) != operation:
        return ValidationResult(
            is_valid=False,
            errors=[f"Cannot {operation} from {current.value} to {target.value}"]
        )

    return ValidationResult(is_valid=True)


def available_operations(status: BusinessStatus) -> List[str]:
    """Ordinary operations that can be applied to a business in ``status``."""
    return sorted(BUSINESS_TRANSITIONS.get(BusinessStatus(status), {}).values())


def ensure_transition(business: BusinessRecord, new_status: BusinessStatus, operation: str) -> None:
    """Raise InvalidStateException unless ``operation`` may move the business to ``new_status``."""
    result = validate_status_transition(business.status, new_status, operation)
    if not result.is_valid:
        current = BusinessStatus(business.status).value
        raise InvalidStateException(
            f"Cannot {operation} business {business.id} while it is {current}",
            current_state=current
        )


def require_text(value: Optional[str], field_name: str) -> str:
    """Return ``value`` stripped, or raise ValidationException when blank."""
    if value is None or not value.strip():
        raise ValidationException(
            f"{field_name.capitalize()} is required",
            validation_errors=[{"field": field_name, "message": "must not be blank"}]
        )
    return value.strip()


def optional_text(value: Optional[str]) -> Optional[str]:
    """Strip ``value``, mapping blank strings to None."""
    if value is None or not value.strip():
        return None
    return value.strip()


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from ``earlier`` to ``later``."""
    return (later - earlier).total_seconds() / 3600


def check_appeal_cooldown(
    latest_pending: Optional[ModerationRequest],
    now: datetime,
    cooldown_hours: int
) -> None:
    """
    Enforce the resubmission window for unsuspension appeals.

    Args:
        latest_pending: Most recent pending unsuspension request, if any
        now: Current time
        cooldown_hours: Window length in hours

    Raises:
        RateLimitedException: If the pending request is younger than the window
    """
    if latest_pending is None:
        return

    elapsed = hours_between(latest_pending.requested_at, now)
    if elapsed < cooldown_hours:
        raise RateLimitedException.for_elapsed(elapsed, cooldown_hours)


def build_request_metadata(
    business: BusinessRecord,
    owner: Optional[Account],
    action: Optional[str] = None
) -> RequestMetadata:
    """Snapshot business and owner identity at request time."""
    return RequestMetadata(
        business_name=business.name,
        owner_id=business.owner_id,
        owner_email=owner.email if owner else None,
        owner_first_name=owner.first_name if owner else None,
        owner_last_name=owner.last_name if owner else None,
        action=action
    )


def suspension_summary(reason: str) -> str:
    """Admin response stored on suspension audit records."""
    return f"Business suspended. Reason: {reason}"


def project_appeal_mirror(
    business: BusinessRecord,
    latest_pending: Optional[ModerationRequest]
) -> BusinessRecord:
    """
    Fill the appeal mirror fields from the latest pending unsuspension request.

    The ledger is authoritative; the mirror is recomputed on every read and
    cleared as soon as no pending appeal remains.
    """
    if (
        latest_pending is None
        or latest_pending.business_id != business.id
        or latest_pending.request_type != RequestType.UNSUSPENSION
        or latest_pending.status != RequestStatus.PENDING
    ):
        return business.model_copy(update={
            "unsuspension_requested_at": None,
            "unsuspension_request_reason": None
        })

    return business.model_copy(update={
        "unsuspension_requested_at": latest_pending.requested_at,
        "unsuspension_request_reason": latest_pending.reason
    })
