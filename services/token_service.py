from datetime import datetime, timezone, timedelta
from typing import Optional
from jose import jwt, JWTError
from core.config import settings
from schemas.order_schemas import Identity
from utils.logger import get_logger

logger = get_logger(__name__)


class TokenService:
    """
    Bearer token handling.

    Sessions are issued by the identity provider; the storefront only needs
    to verify them and turn them into an ``Identity``. ``create_access_token``
    mints tokens with the same shared secret for tooling and tests.
    """

    @staticmethod
    def create_access_token(user_id: str, email: Optional[str] = None, expires_delta: timedelta = None):
        """
        Creates a JWT access token.

        Args:
            user_id: Identity id (becomes the ``sub`` claim)
            email: Identity email
            expires_delta: Token lifetime (default: ACCESS_TOKEN_EXPIRE_MINUTES)

        Returns:
            JWT access token string
        """
        if expires_delta is None:
            expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

        payload = {
            "sub": user_id,
            "email": email,
            "type": "access",
            "exp": datetime.now(timezone.utc) + expires_delta
        }

        return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    @staticmethod
    def decode_identity(token: Optional[str]) -> Optional[Identity]:
        """
        Returns the identity carried by ``token``, or None when the token is
        missing, malformed, expired, or not an access token.
        """
        if not token:
            return None

        try:
            payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        except JWTError:
            logger.debug("Ignoring invalid bearer token")
            return None

        user_id = payload.get("sub")
        if user_id is None or payload.get("type") != "access":
            return None

        return Identity(id=str(user_id), email=payload.get("email"))
