# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB service layer with connection pooling, transactions and index management.
"""

import os
import logging
from contextlib import contextmanager
from typing import List, Dict, Optional, Any, Generator, Tuple
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    OperationFailure,
    PyMongoError
)
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from ..domain.errors import ConflictException

logger = logging.getLogger(__name__)


BUSINESSES = "businesses"
MODERATION_REQUESTS = "moderation_requests"
SYSTEM_NOTIFICATIONS = "system_notifications"
USERS = "users"

PENDING_UNSUSPENSION_INDEX = "uniq_pending_unsuspension"

# (keys, create_index options) per collection
INDEX_SPECS: Dict[str, List[Tuple[list, dict]]] = {
    BUSINESSES: [
        ([("ownerId", ASCENDING)], {}),
        ([("status", ASCENDING), ("createdAt", DESCENDING)], {}),
    ],
    MODERATION_REQUESTS: [
        ([("businessId", ASCENDING), ("requestedAt", DESCENDING)], {}),
        ([("status", ASCENDING), ("requestType", ASCENDING), ("requestedAt", DESCENDING)], {}),
        # At most one pending unsuspension request per business
        ([("businessId", ASCENDING), ("requestType", ASCENDING)], {
            "name": PENDING_UNSUSPENSION_INDEX,
            "unique": True,
            "partialFilterExpression": {"status": "pending", "requestType": "unsuspension"},
        }),
    ],
    SYSTEM_NOTIFICATIONS: [
        ([("recipientId", ASCENDING), ("createdAt", DESCENDING)], {}),
    ],
}

# Indexes the moderation core cannot run without
REQUIRED_INDEXES: Dict[str, List[str]] = {
    MODERATION_REQUESTS: [PENDING_UNSUSPENSION_INDEX],
}


def _pool_options_from_env() -> Dict[str, Any]:
    return {
        "maxPoolSize": int(os.getenv('MONGODB_MAX_POOL_SIZE', '10')),
        "minPoolSize": int(os.getenv('MONGODB_MIN_POOL_SIZE', '1')),
        "maxIdleTimeMS": int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000')),
        "serverSelectionTimeoutMS": int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000')),
    }


class MongoDBService:
    """
    Shared access to the moderation database.

    The client is created lazily on first use. Transactions need a replica
    set or sharded cluster; a standalone server fails on the first write.
    """

    def __init__(self, connection_string: str = None, database_name: str = None):
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/marketplace_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'marketplace_dev')
        self.pool_options = _pool_options_from_env()
        self._client: Optional[MongoClient] = None

    @property
    def client(self) -> MongoClient:
        if self._client is None:
            client = MongoClient(self.connection_string, retryWrites=True, retryReads=True, **self.pool_options)
            try:
                client.admin.command('ping')
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                client.close()
                raise
            logger.info(f"Connected to MongoDB database {self.database_name}")
            self._client = client
        return self._client

    @property
    def database(self) -> Database:
        return self.client[self.database_name]

    def get_collection(self, collection_name: str) -> Collection:
        return self.database[collection_name]

    def close_connection(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Ping the server and report its version, or the error that stopped the ping."""
        report: Dict[str, Any] = {'database': self.database_name}
        try:
            ping = self.client.admin.command('ping')
            report.update(
                status='healthy',
                ping=ping.get('ok') == 1,
                version=self.client.server_info().get('version'),
                connection_pool_size=self.pool_options["maxPoolSize"]
            )
        except PyMongoError as e:
            logger.error(f"MongoDB health check failed: {e}")
            report.update(status='unhealthy', error=str(e))
        return report

    @contextmanager
    def transaction(self) -> Generator[ClientSession, None, None]:
        """
        Run the enclosed block in one multi-document transaction.

        Commits when the block exits normally and aborts when it raises. A
        transient write conflict with a concurrent transaction is surfaced as
        ConflictException so the losing caller never overwrites the winner.
        """
        with self.client.start_session() as session:
            try:
                with session.start_transaction(
                    read_concern=ReadConcern("snapshot"),
                    write_concern=WriteConcern("majority")
                ):
                    yield session
            except OperationFailure as e:
                if e.has_error_label("TransientTransactionError"):
                    logger.warning(f"Transaction aborted by concurrent write: {e}")
                    raise ConflictException("The resource was modified concurrently, retry the operation")
                raise

    def create_indexes(self) -> None:
        """Create the indexes and uniqueness constraints used by the moderation core."""
        for collection, specs in INDEX_SPECS.items():
            target = self.get_collection(collection)
            for keys, options in specs:
                name = target.create_index(keys, **options)
                logger.info(f"Ensured index {collection}.{name}")

    def verify_schema(self) -> List[str]:
        """
        Check that every required index has been provisioned.

        Returns:
            List of missing indexes as ``collection.index`` names, empty when
            the schema is complete
        """
        missing = []
        for collection, index_names in REQUIRED_INDEXES.items():
            existing = set(self.get_collection(collection).index_information().keys())
            missing.extend(f"{collection}.{name}" for name in index_names if name not in existing)

        if missing:
            logger.error(f"MongoDB schema incomplete, missing indexes: {missing}")
        return missing


# Singleton instance for application use
_mongodb_service: Optional[MongoDBService] = None


def get_mongodb_service() -> MongoDBService:
    """Get singleton MongoDB service instance."""
    global _mongodb_service
    if _mongodb_service is None:
        _mongodb_service = MongoDBService()
    return _mongodb_service


def close_mongodb_connection() -> None:
    """Close MongoDB connection (for cleanup)."""
    global _mongodb_service
    if _mongodb_service:
        _mongodb_service.close_connection()
        _mongodb_service = None
