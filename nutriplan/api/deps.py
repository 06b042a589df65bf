from typing import Optional
from fastapi import Depends, Header
from nutriplan.core.exceptions import MissingAuthorizationError, AuthenticationError
from nutriplan.core.security import extract_bearer_token
from nutriplan.services.auth import AuthService
from nutriplan.services.mercadopago import MercadoPagoService
from nutriplan.services.recipe_ai import RecipeAIService
from nutriplan.schemas.user import AuthenticatedUser

def get_auth_service() -> AuthService:
    from nutriplan.main import app  # Local import to avoid circular dependency
    return AuthService(app.supabase)

def get_mercadopago_service() -> MercadoPagoService:
    from nutriplan.main import app  # Local import to avoid circular dependency
    return MercadoPagoService(app.supabase)

def get_recipe_ai_service() -> RecipeAIService:
    return RecipeAIService()

async def get_current_user(
    authorization: Optional[str] = Header(None),
    auth_service: AuthService = Depends(get_auth_service)
) -> AuthenticatedUser:
    if not authorization:
        raise MissingAuthorizationError()

    token = extract_bearer_token(authorization)
    if token is None:
        raise AuthenticationError()

    return await auth_service.verify_token(token)
