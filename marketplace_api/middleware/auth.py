# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for JWT token validation and user context extraction.

Routes decorated with ``require_auth`` receive the authenticated UserContext as
their first argument; ``require_capability`` additionally runs a collection
level capability check before the route body.
"""

from functools import wraps
from flask import current_app, request, g
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
from pydantic import ValidationError
import logging

from ..domain.authorization import check_capability
from ..domain.errors import AuthenticationException, AuthorizationException
from ..models.entities import UserContext
from ..models.enums import ModerationAction
from ..services.auth import TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    JWT authentication middleware for Flask applications.

    Handles token extraction, validation and user context building for
    protected endpoints.
    """

    def __init__(self, auth_service):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: JWT authentication service
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract JWT token from request headers.

        Returns:
            JWT token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header.startswith('Bearer '):
            return None

        return auth_header[7:].strip() or None

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build user context from validated token payload and request information.

        Args:
            token_payload: Decoded JWT payload
            request_info: Request metadata (IP, user agent)

        Returns:
            UserContext object for request processing
        """
        return UserContext(
            user_id=str(token_payload["sub"]),
            role=token_payload["role"],
            email=token_payload.get("email"),
            name=token_payload.get("name"),
            token_payload=token_payload,
            ip_address=request_info.get("ip_address"),
            user_agent=request_info.get("user_agent")
        )

    def get_request_info(self) -> Dict[str, Any]:
        """Extract request metadata for user context."""
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', '')
        }

    def authenticate(self) -> UserContext:
        """
        Authenticate the current request.

        Raises:
            AuthenticationException: Token missing, invalid or carrying an unknown role
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token")
                raise AuthenticationException("Missing authorization token")

            try:
                token_payload = self.auth_service.validate_token(token, "access")
                user_context = self.build_user_context(token_payload, self.get_request_info())
            except (TokenValidationError, ValidationError) as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}")
                raise AuthenticationException(f"Invalid token: {str(e)}")

            g.user_context = user_context
            span.set_attributes({
                "auth.result": "success",
                "user.id": user_context.user_id,
                "user.role": user_context.role
            })
            return user_context


def _resolve(auth_middleware: Optional[AuthMiddleware]) -> AuthMiddleware:
    return auth_middleware or current_app.auth_middleware


def require_auth(auth_middleware: Optional[AuthMiddleware] = None) -> Callable:
    """
    Decorator to require JWT authentication for Flask routes.

    Args:
        auth_middleware: AuthMiddleware instance; defaults to the one the
            application factory attached to ``current_app``

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = _resolve(auth_middleware).authenticate()
            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def require_capability(action: ModerationAction, auth_middleware: Optional[AuthMiddleware] = None) -> Callable:
    """
    Decorator to require a collection-level capability for Flask routes.

    Args:
        action: Action the route performs
        auth_middleware: AuthMiddleware instance; defaults to ``current_app``'s

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = _resolve(auth_middleware).authenticate()
            ensure_capability(user_context, None, action)
            return f(user_context, *args, **kwargs)

        return decorated_function
    return decorator


def ensure_capability(user_context: UserContext, resource, action: ModerationAction) -> None:
    """
    Raise AuthorizationException unless ``user_context`` may perform ``action`` on ``resource``.
    """
    result = check_capability(user_context, resource, action)
    if not result.allowed:
        logger.warning(
            "Authorization failed",
            extra={"user_id": user_context.user_id, "role": user_context.role, "action": ModerationAction(action).value}
        )
        raise AuthorizationException(result.reason)
