# SPDX-License-Identifier: Apache-2.0

"""
Business record storage.

Reads project the appeal mirror fields from the moderation request ledger with
an aggregation ``$lookup``; the mirror is never written to the business
document itself.
"""

import logging
from datetime import datetime
from typing import List, Optional

from pymongo import DESCENDING, ReturnDocument
from pymongo.client_session import ClientSession

from ..domain.lifecycle import project_appeal_mirror
from ..models.entities import BusinessRecord, ModerationRequest
from ..models.enums import BusinessStatus, RequestStatus, RequestType
from .mongodb import BUSINESSES, MODERATION_REQUESTS, MongoDBService

logger = logging.getLogger(__name__)


def _appeal_lookup_stage() -> dict:
    """``$lookup`` joining the latest pending unsuspension request."""
    return {
        "$lookup": {
            "from": MODERATION_REQUESTS,
            "let": {"businessId": "$_id"},
            "pipeline": [
                {"$match": {
                    "$expr": {"$eq": ["$businessId", "$$businessId"]},
                    "status": RequestStatus.PENDING.value,
                    "requestType": RequestType.UNSUSPENSION.value
                }},
                {"$sort": {"requestedAt": DESCENDING}},
                {"$limit": 1}
            ],
            "as": "pendingAppeal"
        }
    }


def _from_projected(document: dict) -> BusinessRecord:
    appeals = document.pop("pendingAppeal", [])
    business = BusinessRecord.from_document(document)
    latest = ModerationRequest.from_document(appeals[0]) if appeals else None
    return project_appeal_mirror(business, latest)


class BusinessStore:
    """Data access for the ``businesses`` collection."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    @property
    def collection(self):
        return self.mongodb.get_collection(BUSINESSES)

    def create(self, business: BusinessRecord, session: Optional[ClientSession] = None) -> BusinessRecord:
        """Insert a newly registered business."""
        self.collection.insert_one(business.to_document(), session=session)
        logger.info(f"Registered business {business.id}", extra={"business_id": business.id})
        return business

    def get(self, business_id: str, session: Optional[ClientSession] = None) -> Optional[BusinessRecord]:
        """Load a business with its appeal mirror fields projected from the ledger."""
        pipeline = [{"$match": {"_id": business_id}}, _appeal_lookup_stage()]
        documents = list(self.collection.aggregate(pipeline, session=session))
        if not documents:
            return None
        return _from_projected(documents[0])

    def list_by_status(self, status: Optional[BusinessStatus] = None) -> List[BusinessRecord]:
        """List businesses, newest first, optionally filtered by status."""
        match = {"status": BusinessStatus(status).value} if status else {}
        pipeline = [
            {"$match": match},
            {"$sort": {"createdAt": DESCENDING}},
            _appeal_lookup_stage()
        ]
        return [_from_projected(doc) for doc in self.collection.aggregate(pipeline)]

    def update_status(
        self,
        business_id: str,
        new_status: BusinessStatus,
        actor_id: Optional[str],
        expected_status: Optional[BusinessStatus] = None,
        at: Optional[datetime] = None,
        session: Optional[ClientSession] = None
    ) -> Optional[BusinessRecord]:
        """
        Set the business status, optionally only if it is still ``expected_status``.

        Returns:
            The updated record, or None when the business is missing or its
            status no longer matches ``expected_status``
        """
        query = {"_id": business_id}
        if expected_status is not None:
            query["status"] = BusinessStatus(expected_status).value

        document = self.collection.find_one_and_update(
            query,
            {"$set": {
                "status": BusinessStatus(new_status).value,
                "updatedAt": at or datetime.utcnow(),
                "updatedBy": actor_id
            }},
            return_document=ReturnDocument.AFTER,
            session=session
        )
        if document is None:
            return None
        return BusinessRecord.from_document(document)
