# SPDX-License-Identifier: Apache-2.0

"""
Read-only account directory over the ``users`` collection.
"""

import logging
from typing import List, Optional

from bson import ObjectId

from ..models.entities import Account
from ..models.enums import AccountRole
from .mongodb import USERS, MongoDBService

logger = logging.getLogger(__name__)


class AccountDirectory:
    """Owner and administrator lookup."""

    def __init__(self, mongodb: MongoDBService):
        self.mongodb = mongodb

    @property
    def collection(self):
        return self.mongodb.get_collection(USERS)

    def get(self, account_id: str) -> Optional[Account]:
        """Look up an account by ID; accepts string or ObjectId keyed documents."""
        candidates = [account_id]
        if ObjectId.is_valid(account_id):
            candidates.append(ObjectId(account_id))

        document = self.collection.find_one({"_id": {"$in": candidates}})
        if document is None:
            logger.debug(f"Account {account_id} not found")
            return None
        return Account.from_document(document)

    def list_admins(self) -> List[Account]:
        """Every platform administrator account."""
        cursor = self.collection.find({"role": AccountRole.SUPER_ADMIN.value})
        return [Account.from_document(doc) for doc in cursor]
