# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Implements HATEOAS responses whose action links depend on the actor's
capabilities and the resource's current state.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from ..domain.authorization import check_capability
from ..domain.lifecycle import available_operations
from ..models.entities import BusinessRecord, ModerationRequest, UserContext
from ..models.enums import ModerationAction, RequestStatus
from ..models.responses import HalLink


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(f"{self.base_url}/", path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")

    def build_action_link(
        self,
        resource_path: str,
        action: str,
        method: str = "POST",
        title: Optional[str] = None
    ) -> HalLink:
        """Build action link for a resource."""
        action_path = f"{resource_path}/{action}"
        return self.build_link(
            action_path,
            method=method,
            content_type="application/json",
            title=title or action.replace('-', ' ').title()
        )


# Ordinary business operations and the capability each one needs
BUSINESS_ACTIONS = {
    "approve": (ModerationAction.APPROVE_BUSINESS, "approve", "Approve business"),
    "reject": (ModerationAction.REJECT_BUSINESS, "reject", "Reject business"),
    "suspend": (ModerationAction.SUSPEND_BUSINESS, "suspend", "Suspend business"),
    "unsuspend": (ModerationAction.UNSUSPEND_BUSINESS, "unsuspend", "Reinstate business"),
}


# Problem type slug -> (title, default HTTP status)
PROBLEM_TYPES = {
    "validation-error": ("Validation Error", 400),
    "authentication-required": ("Authentication Required", 401),
    "insufficient-permissions": ("Insufficient Permissions", 403),
    "resource-not-found": ("Resource Not Found", 404),
    "invalid-state": ("Invalid State", 409),
    "resource-conflict": ("Resource Conflict", 409),
    "rate-limit-exceeded": ("Rate Limit Exceeded", 429),
    "schema-missing": ("Storage Not Provisioned", 503),
    "internal-server-error": ("Internal Server Error", 500),
}


class AffordanceLinkBuilder:
    """Builder for conditional affordance links based on capabilities and state."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def build_business_affordances(
        self,
        business: BusinessRecord,
        user_context: UserContext
    ) -> Dict[str, HalLink]:
        """Build conditional affordance links for a business."""
        links = {}
        base_path = f"/api/businesses/{business.id}"

        links['self'] = self.link_builder.build_self_link(base_path)
        links['requests'] = self.link_builder.build_link(
            f"/api/requests/business/{business.id}",
            title="Moderation requests"
        )

        for operation in available_operations(business.status):
            action, rel, title = BUSINESS_ACTIONS[operation]
            if check_capability(user_context, business, action).allowed:
                links[rel] = self.link_builder.build_action_link(base_path, operation, title=title)

        if check_capability(user_context, business, ModerationAction.FORCE_APPROVE_BUSINESS).allowed:
            links['force-approve'] = self.link_builder.build_action_link(
                base_path, "force-approve", title="Force approve business"
            )

        if (
            business.is_suspended()
            and business.unsuspension_requested_at is None
            and check_capability(user_context, business, ModerationAction.REQUEST_UNSUSPENSION).allowed
        ):
            links['request-unsuspension'] = self.link_builder.build_action_link(
                base_path, "unsuspension-request", title="Request reinstatement"
            )

        return links

    def build_request_affordances(
        self,
        moderation_request: ModerationRequest,
        user_context: UserContext
    ) -> Dict[str, HalLink]:
        """Build conditional affordance links for a moderation request."""
        links = {}
        base_path = f"/api/requests/{moderation_request.id}"

        links['self'] = self.link_builder.build_self_link(base_path)
        links['business'] = self.link_builder.build_link(
            f"/api/businesses/{moderation_request.business_id}",
            title="Business"
        )

        if (
            moderation_request.status == RequestStatus.PENDING
            and check_capability(user_context, moderation_request, ModerationAction.RESPOND_TO_REQUEST).allowed
        ):
            links['approve'] = self.link_builder.build_action_link(
                base_path, "approve", method="PATCH", title="Approve request"
            )
            links['reject'] = self.link_builder.build_action_link(
                base_path, "reject", method="PATCH", title="Reject request"
            )

        return links


class HalResponseBuilder:
    """Main HAL response builder."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.affordance_builder = AffordanceLinkBuilder(base_url)

    def build_resource_response(self, data: Dict[str, Any], links: Dict[str, HalLink]) -> Dict[str, Any]:
        """Attach ``_links`` to a resource representation."""
        response = dict(data)
        response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return response

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        collection_path: str,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a HAL collection response."""
        params = {k: v for k, v in (query_params or {}).items() if v is not None}
        self_path = f"{collection_path}?{urlencode(params)}" if params else collection_path

        return {
            'total': len(items),
            '_links': {'self': self.link_builder.build_self_link(self_path).model_dump(exclude_none=True)},
            '_embedded': {
                'items': items
            }
        }

    def build_error_response(
        self,
        error_type: str,
        title: str,
        status: int,
        detail: str,
        instance: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        extensions: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build RFC 7807 compliant error response with HAL links."""
        error_response = {
            'type': f"{self.base_url}/problems/{error_type}",
            'title': title,
            'status': status,
            'detail': detail,
            'instance': instance
        }

        if validation_errors:
            error_response['errors'] = validation_errors

        if extensions:
            error_response.update(extensions)

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if error_type == "validation-error":
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )

        error_response['_links'] = {rel: link.model_dump(exclude_none=True) for rel, link in links.items()}
        return error_response


class HalFormatter:
    """High-level HAL formatter with convenience methods."""

    def __init__(self, base_url: str):
        self.builder = HalResponseBuilder(base_url)

    def format_business(self, business: BusinessRecord, user_context: UserContext) -> Dict[str, Any]:
        """Format a business with HAL links."""
        return self.builder.build_resource_response(
            business.model_dump(mode="json", by_alias=True),
            self.builder.affordance_builder.build_business_affordances(business, user_context)
        )

    def format_business_collection(
        self,
        businesses: List[BusinessRecord],
        user_context: UserContext,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a collection of businesses with HAL links."""
        return self.builder.build_collection_response(
            [self.format_business(business, user_context) for business in businesses],
            "/api/businesses",
            filters
        )

    def format_request(self, moderation_request: ModerationRequest, user_context: UserContext) -> Dict[str, Any]:
        """Format a moderation request with HAL links."""
        return self.builder.build_resource_response(
            moderation_request.model_dump(mode="json", by_alias=True),
            self.builder.affordance_builder.build_request_affordances(moderation_request, user_context)
        )

    def format_request_collection(
        self,
        requests: List[ModerationRequest],
        user_context: UserContext,
        collection_path: str,
        filters: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Format a collection of moderation requests with HAL links."""
        return self.builder.build_collection_response(
            [self.format_request(item, user_context) for item in requests],
            collection_path,
            filters
        )

    def format_approval(self, result, user_context: UserContext) -> Dict[str, Any]:
        """Format an approved request together with its reinstatement outcome."""
        response = self.format_request(result.request, user_context)
        response['reinstatement'] = {
            'status': result.reinstatement,
            'error': str(result.reinstatement_error) if result.reinstatement_error else None
        }
        return response

    def format_problem(
        self,
        error_type: str,
        detail: str,
        instance: str,
        status: Optional[int] = None,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        **extensions
    ) -> Dict[str, Any]:
        """
        Format an RFC 7807 problem document.

        Args:
            error_type: Problem type slug, e.g. ``invalid-state``
            detail: Human readable explanation
            instance: Request path the problem occurred on
            status: HTTP status, defaulting to the one registered for the type
            validation_errors: Field errors for ``validation-error`` problems
            **extensions: Extra members such as ``hours_remaining``
        """
        title, default_status = PROBLEM_TYPES.get(
            error_type,
            (error_type.replace('-', ' ').title(), 500)
        )
        return self.builder.build_error_response(
            error_type,
            title,
            status or default_status,
            detail,
            instance,
            validation_errors,
            extensions or None
        )

    def format_validation_error(
        self,
        detail: str,
        instance: str,
        validation_errors: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        return self.format_problem("validation-error", detail, instance, validation_errors=validation_errors)

    def format_server_error(self, detail: str, instance: str) -> Dict[str, Any]:
        return self.format_problem("internal-server-error", detail, instance)


# Convenience function for creating HAL formatter
def create_hal_formatter(base_url: str) -> HalFormatter:
    """Create a HAL formatter instance."""
    return HalFormatter(base_url)
