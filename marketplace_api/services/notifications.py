# SPDX-License-Identifier: Apache-2.0

"""
Owner and administrator notifications.

Emails are published as jobs to the mail worker over AMQP; in-app system
notifications are stored in MongoDB. Every dispatch is best-effort: failures
are logged and returned as a failed DispatchResult, never raised.
"""

import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pymongo.errors import PyMongoError

from ..domain.errors import NotificationDispatchError
from ..models.entities import Account, BusinessRecord, SystemNotification
from ..models.enums import EmailKind
from .amqp import AMQPService
from .mongodb import SYSTEM_NOTIFICATIONS, MongoDBService

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


EMAIL_TEMPLATES: Dict[EmailKind, Dict[str, str]] = {
    EmailKind.BUSINESS_APPROVED: {"subject": "Business Approved", "path": "/business-dashboard"},
    EmailKind.BUSINESS_REJECTED: {"subject": "Business Application Update", "path": "/contact"},
    EmailKind.BUSINESS_SUSPENDED: {"subject": "Business Suspended", "path": "/business-settings"},
    EmailKind.BUSINESS_REACTIVATED: {"subject": "Business Reactivated", "path": "/business-dashboard"},
}


@dataclass
class DispatchResult:
    """Result of one notification dispatch."""
    success: bool
    channel: str
    recipient_id: Optional[str] = None
    reference: Optional[str] = None
    error: Optional[str] = None


class NotificationService:
    """Notification port used by the lifecycle coordinator."""

    def __init__(self, amqp: AMQPService, mongodb: MongoDBService, frontend_url: str = None):
        self.amqp = amqp
        self.mongodb = mongodb
        self.frontend_url = (frontend_url or os.getenv('FRONTEND_URL', 'http://localhost:3000')).rstrip('/')

    def send_owner_email(
        self,
        kind: EmailKind,
        business: BusinessRecord,
        owner: Optional[Account],
        details: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """
        Queue a templated email to the business owner.

        Args:
            kind: Email template
            business: Business the email is about
            owner: Owner account, None if it could not be resolved
            details: Extra template variables such as ``reason``

        Returns:
            DispatchResult describing whether the job was queued
        """
        kind = EmailKind(kind)
        with tracer.start_as_current_span("notification.email.send") as span:
            span.set_attributes({"business.id": business.id, "notification.kind": kind.value})
            try:
                reference = self._dispatch_email(kind, business, owner, details or {})
                return DispatchResult(
                    success=True,
                    channel="email",
                    recipient_id=business.owner_id,
                    reference=reference
                )
            except NotificationDispatchError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.warning(
                    "Owner email dispatch failed",
                    extra={
                        "notification_kind": kind.value,
                        "business_id": business.id,
                        "recipient_id": business.owner_id,
                        "error": str(e)
                    }
                )
                return DispatchResult(
                    success=False,
                    channel="email",
                    recipient_id=business.owner_id,
                    error=str(e)
                )

    def _dispatch_email(
        self,
        kind: EmailKind,
        business: BusinessRecord,
        owner: Optional[Account],
        details: Dict[str, Any]
    ) -> str:
        if owner is None or not owner.email:
            raise NotificationDispatchError(f"No email address on record for owner of business {business.id}")

        template = EMAIL_TEMPLATES[kind]
        payload = {
            "template": kind.value,
            "to": owner.email,
            "subject": template["subject"],
            "firstName": owner.display_name,
            "businessName": business.name,
            "actionUrl": f"{self.frontend_url}{template['path']}",
        }
        payload.update({k: v for k, v in details.items() if v is not None})

        try:
            result = self.amqp.publish_email(f"email.{kind.value}", payload)
        except Exception as e:
            raise NotificationDispatchError(f"Email broker unavailable: {e}") from e

        if not result.success:
            raise NotificationDispatchError(result.error or "Email job was not published")
        return result.correlation_id

    def create_system_notification(
        self,
        recipient_id: str,
        subject: str,
        body: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> DispatchResult:
        """Store an in-app notification for ``recipient_id``."""
        with tracer.start_as_current_span("notification.system.create") as span:
            span.set_attribute("notification.recipient_id", recipient_id)
            notification = SystemNotification(
                recipient_id=recipient_id,
                subject=subject,
                body=body,
                metadata=metadata or {}
            )
            try:
                self._store_system_notification(notification)
            except NotificationDispatchError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                logger.warning(
                    "System notification dispatch failed",
                    extra={"notification_subject": subject, "recipient_id": recipient_id, "error": str(e)}
                )
                return DispatchResult(success=False, channel="system", recipient_id=recipient_id, error=str(e))

            return DispatchResult(
                success=True,
                channel="system",
                recipient_id=recipient_id,
                reference=notification.id
            )

    def _store_system_notification(self, notification: SystemNotification) -> None:
        try:
            self.mongodb.get_collection(SYSTEM_NOTIFICATIONS).insert_one(notification.to_document())
        except PyMongoError as e:
            raise NotificationDispatchError(f"Failed to store system notification: {e}") from e
