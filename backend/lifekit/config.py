from __future__ import annotations
import os
from pydantic import BaseModel

class Settings(BaseModel):
    environment: str = os.getenv("ENVIRONMENT", "dev")
    app_name: str = os.getenv("APP_NAME", "lifekit-api")
    app_display_name: str = os.getenv("APP_DISPLAY_NAME", "Lifekit")
    app_version: str = os.getenv("APP_VERSION", "0.1.0")
    git_sha: str = os.getenv("GIT_SHA", "dev")
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
    database_url: str = os.getenv("DATABASE_URL", "postgresql+asyncpg://postgres:postgres@db:5432/lifekit_dev")

    # Identity provider (bearer tokens are issued elsewhere, we only verify them)
    auth_jwt_secret: str = os.getenv("AUTH_JWT_SECRET", "dev-secret-change-me")
    auth_jwt_audience: str = os.getenv("AUTH_JWT_AUDIENCE", "authenticated")

    # Stripe configuration
    stripe_secret_key: str = os.getenv("STRIPE_SECRET_KEY", "")
    stripe_webhook_secret: str = os.getenv("STRIPE_WEBHOOK_SECRET", "")

    # Wallet
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")
    wallet_history_limit: int = int(os.getenv("WALLET_HISTORY_LIMIT", "10"))
    max_deposit_amount: int = int(os.getenv("MAX_DEPOSIT_AMOUNT", "10000"))  # whole currency units per request

settings = Settings()
