# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, messaging and the moderation workflow services.
"""

from .mongodb import MongoDBService, get_mongodb_service, close_mongodb_connection
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service
from .notifications import NotificationService, DispatchResult
from .request_ledger import RequestLedger, ModerationConfig, ApprovalResult
from .lifecycle import LifecycleCoordinator

__all__ = [
    "MongoDBService",
    "get_mongodb_service",
    "close_mongodb_connection",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service",
    "NotificationService",
    "DispatchResult",
    "RequestLedger",
    "ModerationConfig",
    "ApprovalResult",
    "LifecycleCoordinator"
]
