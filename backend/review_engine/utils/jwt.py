"""JWT Token Validation for portal-issued access tokens"""
import jwt
from typing import Any, Dict, List, Optional

from ..config.settings import settings
from ..domain.errors import AuthenticationError
from ..domain.models import ActorContext
from .logger import get_logger

logger = get_logger(__name__)


class JWTValidator:
    """Portal JWT validator (HS256 shared secret)"""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        self.secret = secret or settings.jwt_secret
        self.algorithm = algorithm or settings.jwt_algorithm

    def validate_token(self, token: str) -> Dict[str, Any]:
        """
        Validate a JWT and return its claims.

        Signatures are checked unless JWT_VERIFY_SIGNATURE=false outside
        production; expiry is always enforced.

        Raises:
            AuthenticationError: If token is invalid
        """
        if not token:
            raise AuthenticationError("Token is missing")

        if token.startswith("Bearer "):
            token = token[7:]

        try:
            if not settings.verify_token_signature:
                return jwt.decode(
                    token,
                    options={
                        "verify_signature": False,
                        "verify_exp": True,
                        "verify_aud": False,
                    }
                )

            return jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"verify_exp": True, "verify_aud": False}
            )

        except jwt.ExpiredSignatureError:
            logger.warning("Token expired")
            raise AuthenticationError("Token has expired")
        except jwt.PyJWTError as e:
            logger.warning(f"JWT validation error: {e}")
            raise AuthenticationError(f"Invalid token: {str(e)}")

    def get_actor_context(self, token: str) -> ActorContext:
        """Extract actor context from a validated token"""
        claims = self.validate_token(token)

        user_id = claims.get("sub") or claims.get("user_id") or ""
        if not user_id:
            logger.warning(f"No subject in token claims. Available claims: {list(claims.keys())}")
            raise AuthenticationError("Unable to determine user from token")

        return ActorContext(
            user_id=user_id,
            email=claims.get("email") or None,
            display_name=claims.get("name", user_id),
            roles=self._extract_roles(claims)
        )

    @staticmethod
    def _extract_roles(claims: Dict[str, Any]) -> List[str]:
        roles = claims.get("roles") or []
        if isinstance(roles, str):
            roles = [roles]
        role = claims.get("role")
        if isinstance(role, str) and role not in roles:
            roles = list(roles) + [role]
        return [r for r in roles if isinstance(r, str)]


# Global validator instance
_jwt_validator: Optional[JWTValidator] = None


def get_jwt_validator() -> JWTValidator:
    """Get global JWT validator instance"""
    global _jwt_validator
    if _jwt_validator is None:
        _jwt_validator = JWTValidator()
    return _jwt_validator


def get_current_user(authorization: str) -> ActorContext:
    """
    Get current user from authorization header

    Raises:
        AuthenticationError: header missing or token invalid
    """
    if not authorization:
        raise AuthenticationError("Authorization header is missing")

    return get_jwt_validator().get_actor_context(authorization)
