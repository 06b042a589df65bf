from pydantic_settings import BaseSettings
from typing import Optional
from functools import lru_cache

class Settings(BaseSettings):
    # Supabase Settings
    SUPABASE_URL: str
    SUPABASE_ANON_KEY: Optional[str] = None
    SUPABASE_SERVICE_ROLE_KEY: str
    # When set, access tokens are verified locally instead of calling Supabase Auth
    SUPABASE_JWT_SECRET: Optional[str] = None
    SUPABASE_JWT_ALGORITHM: str = "HS256"
    SUPABASE_JWT_AUDIENCE: str = "authenticated"

    # Mercado Pago Settings
    MERCADOPAGO_ACCESS_TOKEN: Optional[str] = None
    MERCADOPAGO_WEBHOOK_SECRET: Optional[str] = None
    SUBSCRIPTION_CURRENCY: str = "BRL"

    # AI Settings
    RECIPE_AI_PROVIDER: str = "openai"  # "openai" or "gemini"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_IMAGE_API_KEY: Optional[str] = None
    OPENAI_TEXT_MODEL: str = "gpt-5-nano"
    OPENAI_IMAGE_MODEL: str = "gpt-image-1"
    OPENAI_IMAGE_SIZE: str = "1024x1024"
    GEMINI_API_KEY: Optional[str] = None
    GEMINI_MODEL: str = "gemini-1.5-flash"

    # CORS Settings
    CORS_ORIGINS: str = "*"

    # Frontend URL used for redirects back from checkout
    APP_URL: str = "https://nutriplan-pro-six.vercel.app"

    # Scheduler Settings
    ENABLE_SCHEDULER: bool = True
    SUBSCRIPTION_CHECK_HOUR: int = 3  # UTC hour for the daily expiry check

    LOG_LEVEL: str = "INFO"

    @property
    def CORS_ORIGINS_LIST(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def THANK_YOU_URL(self) -> str:
        return f"{self.APP_URL.rstrip('/')}/#/thank-you"

    @property
    def IMAGE_API_KEY(self) -> Optional[str]:
        return self.OPENAI_IMAGE_API_KEY or self.OPENAI_API_KEY

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings():
    return Settings()

settings = get_settings()
