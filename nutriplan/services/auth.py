from jose import JWTError
from supabase import AsyncClient
from nutriplan.core.config import settings
from nutriplan.core.exceptions import AuthenticationError
from nutriplan.core.security import decode_access_token
from nutriplan.schemas.user import AuthenticatedUser
import logging

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: AsyncClient):
        self.db = db

    async def verify_token(self, token: str) -> AuthenticatedUser:
        """
        Resolve the user behind a Supabase access token.

        Uses the project JWT secret when configured, otherwise asks
        Supabase Auth to validate the token.

        Raises:
            AuthenticationError: If the token is invalid, expired or unknown
        """
        if settings.SUPABASE_JWT_SECRET:
            return self._verify_locally(token)
        return await self._verify_remotely(token)

    def _verify_locally(self, token: str) -> AuthenticatedUser:
        try:
            payload = decode_access_token(token)
        except JWTError as e:
            logger.warning(f"Rejected access token: {e}")
            raise AuthenticationError()

        user_id = payload.get("sub")
        if not user_id:
            raise AuthenticationError()

        return AuthenticatedUser(
            id=user_id,
            email=payload.get("email"),
            role=payload.get("role")
        )

    async def _verify_remotely(self, token: str) -> AuthenticatedUser:
        try:
            response = await self.db.auth.get_user(token)
        except Exception as e:
            logger.warning(f"Supabase rejected access token: {e}")
            raise AuthenticationError()

        user = getattr(response, "user", None)
        if user is None:
            raise AuthenticationError()

        logger.info(f"User verified: {user.id}")
        return AuthenticatedUser(
            id=str(user.id),
            email=user.email,
            role=getattr(user, "role", None)
        )
