# SPDX-License-Identifier: Apache-2.0

"""
In-memory doubles for the storage and notification ports.

They keep the contracts of the MongoDB-backed implementations: the unique
pending-unsuspension constraint, conditional updates, projected appeal mirror
fields and rollback of everything written inside a failed transaction.
"""

from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from marketplace_api.domain.errors import PendingRequestExistsError
from marketplace_api.domain.lifecycle import project_appeal_mirror
from marketplace_api.models.entities import Account, BusinessRecord, ModerationRequest
from marketplace_api.models.enums import BusinessStatus, RequestStatus, RequestType
from marketplace_api.services.notifications import DispatchResult


OWNER_ID = "owner-1"
OTHER_OWNER_ID = "owner-2"
ADMIN_ID = "admin-1"


class FakeClock:
    """Settable clock injected wherever services read the current time."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 9, 0, 0)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeDatabase:
    """Shared state for the fake stores plus the transaction and schema hooks."""

    def __init__(self):
        self.businesses: Dict[str, BusinessRecord] = {}
        self.requests: Dict[str, ModerationRequest] = {}
        self.missing_indexes: List[str] = []
        self.schema_checks = 0
        self.committed = 0
        self.rolled_back = 0

    @contextmanager
    def transaction(self):
        snapshot = (dict(self.businesses), dict(self.requests))
        try:
            yield "fake-session"
        except Exception:
            self.businesses, self.requests = snapshot
            self.rolled_back += 1
            raise
        self.committed += 1

    def verify_schema(self) -> List[str]:
        self.schema_checks += 1
        return list(self.missing_indexes)

    def health_check(self) -> dict:
        return {"status": "healthy", "database": "fake"}

    def latest_pending_unsuspension(self, business_id: str) -> Optional[ModerationRequest]:
        pending = [
            r for r in self.requests.values()
            if r.business_id == business_id
            and r.request_type == RequestType.UNSUSPENSION
            and r.status == RequestStatus.PENDING
        ]
        return max(pending, key=lambda r: r.requested_at) if pending else None


class FakeBusinessStore:
    def __init__(self, database: FakeDatabase):
        self.database = database

    def create(self, business: BusinessRecord, session=None) -> BusinessRecord:
        stored = business.model_copy(update={
            "unsuspension_requested_at": None,
            "unsuspension_request_reason": None
        })
        self.database.businesses[business.id] = stored
        return stored

    def get(self, business_id: str, session=None) -> Optional[BusinessRecord]:
        business = self.database.businesses.get(business_id)
        if business is None:
            return None
        return project_appeal_mirror(business, self.database.latest_pending_unsuspension(business_id))

    def list_by_status(self, status: Optional[BusinessStatus] = None) -> List[BusinessRecord]:
        businesses = [
            b for b in self.database.businesses.values()
            if status is None or b.status == BusinessStatus(status)
        ]
        businesses.sort(key=lambda b: b.created_at, reverse=True)
        return [self.get(b.id) for b in businesses]

    def update_status(
        self,
        business_id: str,
        new_status: BusinessStatus,
        actor_id: Optional[str],
        expected_status: Optional[BusinessStatus] = None,
        at: Optional[datetime] = None,
        session=None
    ) -> Optional[BusinessRecord]:
        business = self.database.businesses.get(business_id)
        if business is None:
            return None
        if expected_status is not None and business.status != BusinessStatus(expected_status):
            return None

        updated = business.model_copy(update={
            "status": BusinessStatus(new_status).value,
            "updated_at": at or datetime.utcnow(),
            "updated_by": actor_id
        })
        self.database.businesses[business_id] = updated
        return updated


class FakeModerationRequestStore:
    def __init__(self, database: FakeDatabase):
        self.database = database

    def insert(self, request: ModerationRequest, session=None) -> ModerationRequest:
        if (
            request.request_type == RequestType.UNSUSPENSION
            and request.status == RequestStatus.PENDING
            and self.database.latest_pending_unsuspension(request.business_id) is not None
        ):
            raise PendingRequestExistsError(request.business_id)
        self.database.requests[request.id] = request
        return request

    def get(self, request_id: str, session=None) -> Optional[ModerationRequest]:
        return self.database.requests.get(request_id)

    def find_latest_pending(self, business_id: str, request_type: RequestType, session=None):
        pending = [
            r for r in self.database.requests.values()
            if r.business_id == business_id
            and r.request_type == RequestType(request_type)
            and r.status == RequestStatus.PENDING
        ]
        return max(pending, key=lambda r: r.requested_at) if pending else None

    def list_pending(self, request_type: Optional[RequestType] = None) -> List[ModerationRequest]:
        pending = [
            r for r in self.database.requests.values()
            if r.status == RequestStatus.PENDING
            and (request_type is None or r.request_type == RequestType(request_type))
        ]
        return sorted(pending, key=lambda r: r.requested_at, reverse=True)

    def list_for_business(self, business_id: str) -> List[ModerationRequest]:
        history = [r for r in self.database.requests.values() if r.business_id == business_id]
        return sorted(history, key=lambda r: r.requested_at, reverse=True)

    def respond_if_pending(self, request_id, status, responder_id, response, at, session=None):
        request = self.database.requests.get(request_id)
        if request is None or not request.is_pending():
            return None
        updated = request.with_response(status, responder_id, response, at)
        self.database.requests[request_id] = updated
        return updated

    def close_pending(self, business_id, request_type, status, responder_id, response, at, session=None) -> int:
        closed = 0
        for request in list(self.database.requests.values()):
            if (
                request.business_id == business_id
                and request.request_type == RequestType(request_type)
                and request.is_pending()
            ):
                self.database.requests[request.id] = request.with_response(status, responder_id, response, at)
                closed += 1
        return closed


class FakeAccountDirectory:
    def __init__(self, accounts: List[Account] = None):
        self.accounts = {account.id: account for account in accounts or []}

    def add(self, account: Account) -> Account:
        self.accounts[account.id] = account
        return account

    def get(self, account_id: str) -> Optional[Account]:
        return self.accounts.get(account_id)

    def list_admins(self) -> List[Account]:
        return [a for a in self.accounts.values() if a.role == "super_admin"]


class RecordingNotifications:
    """Notification port that records every dispatch."""

    def __init__(self):
        self.emails = []
        self.system_notifications = []

    def send_owner_email(self, kind, business, owner, details=None) -> DispatchResult:
        self.emails.append({"kind": kind, "business_id": business.id, "owner": owner, "details": details or {}})
        return DispatchResult(success=True, channel="email", recipient_id=business.owner_id)

    def create_system_notification(self, recipient_id, subject, body, metadata=None) -> DispatchResult:
        self.system_notifications.append({
            "recipient_id": recipient_id,
            "subject": subject,
            "body": body,
            "metadata": metadata or {}
        })
        return DispatchResult(success=True, channel="system", recipient_id=recipient_id)

    def email_kinds(self) -> List[str]:
        return [entry["kind"].value if hasattr(entry["kind"], "value") else entry["kind"] for entry in self.emails]
