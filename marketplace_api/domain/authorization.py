# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for moderation actions.

A single capability check decides whether an actor may perform an action on a
business or moderation request. Route handlers and services both call it, so
role rules are defined here and nowhere else.
"""

from typing import List, Optional, Set, Union
from dataclasses import dataclass
from ..models.entities import BusinessRecord, ModerationRequest, UserContext
from ..models.enums import AccountRole, ModerationAction


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    allowed: bool
    reason: Optional[str] = None
    missing_permissions: List[str] = None


ADMIN_ACTIONS: Set[ModerationAction] = {
    ModerationAction.LIST_BUSINESSES,
    ModerationAction.VIEW_BUSINESS,
    ModerationAction.APPROVE_BUSINESS,
    ModerationAction.FORCE_APPROVE_BUSINESS,
    ModerationAction.REJECT_BUSINESS,
    ModerationAction.SUSPEND_BUSINESS,
    ModerationAction.UNSUSPEND_BUSINESS,
    ModerationAction.LIST_PENDING_REQUESTS,
    ModerationAction.VIEW_REQUEST,
    ModerationAction.RESPOND_TO_REQUEST,
}

# Only the owning account may perform these, and only on its own business
OWNER_ACTIONS: Set[ModerationAction] = {
    ModerationAction.VIEW_BUSINESS,
    ModerationAction.REQUEST_UNSUSPENSION,
    ModerationAction.VIEW_REQUEST,
}


def _owner_of(resource: Union[BusinessRecord, ModerationRequest, None]) -> Optional[str]:
    if isinstance(resource, BusinessRecord):
        return resource.owner_id
    if isinstance(resource, ModerationRequest):
        return resource.metadata.owner_id
    return None


def check_capability(
    actor: UserContext,
    resource: Union[BusinessRecord, ModerationRequest, None],
    action: Union[ModerationAction, str]
) -> AuthorizationResult:
    """
    Check whether ``actor`` may perform ``action`` on ``resource``.

    Args:
        actor: Authenticated user context
        resource: Business or moderation request the action targets, or None
            for collection-level actions
        action: Action being attempted

    Returns:
        AuthorizationResult indicating if the action is allowed
    """
    action = ModerationAction(action)

    if AccountRole(actor.role) == AccountRole.SUPER_ADMIN and action in ADMIN_ACTIONS:
        return AuthorizationResult(allowed=True)

    if action in OWNER_ACTIONS:
        owner_id = _owner_of(resource)
        if owner_id is not None and owner_id == actor.user_id:
            return AuthorizationResult(allowed=True)

        return AuthorizationResult(
            allowed=False,
            reason="Only the business owner may perform this action",
            missing_permissions=[action.value]
        )

    return AuthorizationResult(
        allowed=False,
        reason=f"Administrator role required for {action.value}",
        missing_permissions=[action.value]
    )
