"""
Bearer-token authentication for storefront routes.

Tokens are issued elsewhere; this module only verifies them.
"""

from dataclasses import dataclass
from typing import Any, Dict, Iterable

from fastapi import Request
from jose import JWTError, jwt

from shared.errors import AuthenticationError, AuthorizationError
from shared.logging import get_logger, set_user_context


@dataclass(frozen=True)
class AuthContext:
    """Authenticated caller derived from a verified JWT."""

    user_id: str
    email: str
    is_admin: bool
    claims: Dict[str, Any]


class JWTAuthenticator:
    """Validates HS256 bearer tokens carrying ``id`` and ``email`` claims."""

    def __init__(self, secret: str, admin_emails: Iterable[str] = (), algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm
        self.admin_emails = {email.lower() for email in admin_emails}
        self.logger = get_logger("storefront.auth")

    async def authenticate(self, request: Request) -> AuthContext:
        """Authenticate the request using the Authorization bearer token."""
        authorization = request.headers.get("Authorization")
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthenticationError("No token, authorization denied")

        token = authorization[7:].strip()
        if not token:
            raise AuthenticationError("No token, authorization denied")

        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            self.logger.info("Token rejected", error=str(exc))
            raise AuthenticationError("Token is not valid") from exc

        email = claims.get("email")
        if not isinstance(email, str) or not email:
            raise AuthenticationError("Token missing email claim")

        context = AuthContext(
            user_id=str(claims.get("id") or claims.get("sub") or ""),
            email=email,
            is_admin=email.lower() in self.admin_emails,
            claims=claims,
        )
        request.state.auth_context = context
        set_user_context(email)
        return context

    async def require_admin(self, request: Request) -> AuthContext:
        """Authenticate and require an admin email."""
        context = await self.authenticate(request)
        if not context.is_admin:
            self.logger.warning("Admin access denied", email=context.email)
            raise AuthorizationError("Admin access required")
        return context
