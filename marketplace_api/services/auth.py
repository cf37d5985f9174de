# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for bearer token verification.

Tokens are issued by the account subsystem and signed with a shared HS256
secret; this service only verifies them.
"""

import os
import jwt
from typing import Optional, Dict, Any
from opentelemetry import trace
import logging

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """JWT verification for the caller gateway."""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        """
        Initialize the authentication service.

        Args:
            secret: Shared signing secret
            algorithm: JWT signing algorithm
        """
        self.secret = secret or os.getenv("JWT_SECRET", "dev-secret-key")
        self.algorithm = algorithm or os.getenv("JWT_ALGORITHM", "HS256")

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid or expired
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.secret,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True, "require": ["sub"]}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type", token_type) != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            if not payload.get("role"):
                span.set_attribute("auth.validation_result", "missing_role")
                raise TokenValidationError("Token carries no role claim")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.id": str(payload.get("sub")),
                "user.role": str(payload.get("role"))
            })
            logger.debug(
                "Token validated successfully",
                extra={"user_id": payload.get("sub"), "role": payload.get("role")}
            )
            return payload
