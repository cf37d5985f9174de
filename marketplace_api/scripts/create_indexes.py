#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Provision the MongoDB indexes the moderation core depends on.

The API refuses to create unsuspension requests until the pending-appeal
uniqueness index exists, so run this once per environment before serving.
Exits non-zero when the database is unreachable or an index is still missing.
"""

import sys
import logging

from pymongo.errors import PyMongoError

from ..services.mongodb import close_mongodb_connection, get_mongodb_service

logger = logging.getLogger(__name__)


def provision() -> int:
    """Create the indexes and return the process exit code."""
    mongodb_service = get_mongodb_service()

    health = mongodb_service.health_check()
    if health['status'] != 'healthy':
        logger.error(f"MongoDB unreachable: {health.get('error')}")
        return 1
    logger.info(f"Provisioning {health['database']} on MongoDB {health['version']}")

    try:
        mongodb_service.create_indexes()
    except PyMongoError as e:
        # e.g. existing duplicate pending appeals block the unique index
        logger.error(f"Index creation failed: {e}")
        return 1

    missing = mongodb_service.verify_schema()
    if missing:
        logger.error(f"Indexes still missing after creation: {missing}")
        return 1

    logger.info("Moderation schema is complete")
    return 0


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        code = provision()
    finally:
        close_mongodb_connection()
    sys.exit(code)


if __name__ == "__main__":
    main()
