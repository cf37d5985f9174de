# SPDX-License-Identifier: Apache-2.0

"""
Moderation request ledger storage.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.errors import DuplicateKeyError

from ..domain.errors import PendingRequestExistsError
from ..models.entities import ModerationRequest
from ..models.enums import RequestStatus, RequestType
from .mongodb import MODERATION_REQUESTS, MongoDBService

logger = logging.getLogger(__name__)


class ModerationRequestStore:
    """Data access for the ``moderation_requests`` collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    @property
    def collection(self):
        return self.mongodb.get_collection(MODERATION_REQUESTS)

    def insert(self, request: ModerationRequest, session: Optional[ClientSession] = None) -> ModerationRequest:
        """
        Append a request to the ledger.

        Raises:
            PendingRequestExistsError: If the unique pending-unsuspension
                constraint rejects the insert
        """
        try:
            self.collection.insert_one(request.to_document(), session=session)
        except DuplicateKeyError:
            logger.warning(
                "Rejected duplicate pending unsuspension request",
                extra={"business_id": request.business_id, "moderation_request_id": request.id}
            )
            raise PendingRequestExistsError(request.business_id)
        return request

    def get(self, request_id: str, session: Optional[ClientSession] = None) -> Optional[ModerationRequest]:
        document = self.collection.find_one({"_id": request_id}, session=session)
        return ModerationRequest.from_document(document) if document else None

    def find_latest_pending(
        self,
        business_id: str,
        request_type: RequestType,
        session: Optional[ClientSession] = None
    ) -> Optional[ModerationRequest]:
        """Most recent pending request of ``request_type`` for a business."""
        document = self.collection.find_one(
            {
                "businessId": business_id,
                "requestType": RequestType(request_type).value,
                "status": RequestStatus.PENDING.value
            },
            sort=[("requestedAt", DESCENDING)],
            session=session
        )
        return ModerationRequest.from_document(document) if document else None

    def list_pending(self, request_type: Optional[RequestType] = None) -> List[ModerationRequest]:
        """Pending requests across all businesses, newest first."""
        query = {"status": RequestStatus.PENDING.value}
        if request_type:
            query["requestType"] = RequestType(request_type).value

        cursor = self.collection.find(query).sort("requestedAt", DESCENDING)
        return [ModerationRequest.from_document(doc) for doc in cursor]

    def list_for_business(self, business_id: str) -> List[ModerationRequest]:
        """Full request history for one business, newest first."""
        cursor = self.collection.find({"businessId": business_id}).sort("requestedAt", DESCENDING)
        return [ModerationRequest.from_document(doc) for doc in cursor]

    def respond_if_pending(
        self,
        request_id: str,
        status: RequestStatus,
        responder_id: str,
        response: Optional[str],
        at: datetime,
        session: Optional[ClientSession] = None
    ) -> Optional[ModerationRequest]:
        """
        Move a request out of pending in one atomic conditional update.

        Returns:
            The updated request, or None if it is missing or no longer pending
        """
        document = self.collection.find_one_and_update(
            {"_id": request_id, "status": RequestStatus.PENDING.value},
            {"$set": {
                "status": RequestStatus(status).value,
                "adminResponse": response,
                "respondedAt": at,
                "respondedBy": responder_id,
                "updatedAt": at,
                "updatedBy": responder_id
            }},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        return ModerationRequest.from_document(document) if document else None

    def close_pending(
        self,
        business_id: str,
        request_type: RequestType,
        status: RequestStatus,
        responder_id: str,
        response: Optional[str],
        at: datetime,
        session: Optional[ClientSession] = None
    ) -> int:
        """Respond to every pending request of ``request_type`` for a business."""
        result = self.collection.update_many(
            {
                "businessId": business_id,
                "requestType": RequestType(request_type).value,
                "status": RequestStatus.PENDING.value
            },
            {"$set": {
                "status": RequestStatus(status).value,
                "adminResponse": response,
                "respondedAt": at,
                "respondedBy": responder_id,
                "updatedAt": at,
                "updatedBy": responder_id
            }},
            session=session
        )
        return result.modified_count
