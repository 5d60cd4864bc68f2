from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from typing import List
import re


SHA256_HEX_RE = re.compile(r"^[0-9a-f]{64}$")


class Settings(BaseSettings):
    # Project Info
    PROJECT_NAME: str = "Haafiz Perfumes Storefront API"
    API_V1_STR: str = "/api/v1"
    BUSINESS_NAME: str = "Haafiz Perfumes"

    # Database (Supabase Postgres connection string)
    DATABASE_URL: str

    # Security
    SECRET_KEY: str
    ALGORITHM: str = "HS256"

    # Admin panel
    ADMIN_PASSWORD_HASH: str = ""  # hex SHA-256 of the admin password
    ADMIN_SESSION_COOKIE: str = "admin_session"
    ADMIN_SESSION_EXPIRE_HOURS: int = 24

    # Razorpay
    RAZORPAY_KEY_ID: str
    RAZORPAY_KEY_SECRET: str
    RAZORPAY_WEBHOOK_SECRET: str
    CURRENCY: str = "INR"

    # Cart & checkout
    MAX_CART_ITEMS: int = 10
    CART_SESSION_COOKIE: str = "cart_session"
    CART_SESSION_MAX_AGE_DAYS: int = 30
    FREE_SHIPPING_THRESHOLD: float = 2000.0
    SHIPPING_CHARGES_ENABLED: bool = False
    ORDER_PAYMENT_WINDOW_MINUTES: int = 30

    # WhatsApp notifications
    BUSINESS_PHONE: str = ""
    SUPPORT_PHONE: str = "+91 98765 43210"
    WHATSAPP_PROVIDER_URL: str = ""  # empty: relay only logs the message
    WHATSAPP_PROVIDER_TOKEN: str = ""
    WHATSAPP_TIMEOUT_SECONDS: float = 10.0

    # CORS
    BACKEND_CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "https://haafizperfumes.com",
        "https://www.haafizperfumes.com",
    ]

    # Environment
    ENVIRONMENT: str = "development"

    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Frontend
    FRONTEND_URL: str = "https://haafizperfumes.com"
    ALLOWED_HOSTS: List[str] = [
        "haafizperfumes.com",
        "www.haafizperfumes.com",
        "api.haafizperfumes.com",
    ]

    # Monitoring (Optional - Add to .env for production)
    SENTRY_DSN: str = ""

    # Celery & Redis (Task Queue)
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    @field_validator("ENVIRONMENT")
    @classmethod
    def normalize_environment(cls, value: str) -> str:
        return value.lower().strip()

    @field_validator("ADMIN_PASSWORD_HASH")
    @classmethod
    def validate_admin_password_hash(cls, value: str) -> str:
        normalized = (value or "").strip().lower()
        if normalized and not SHA256_HEX_RE.match(normalized):
            raise ValueError("ADMIN_PASSWORD_HASH must be a hex encoded SHA-256 digest")
        return normalized

    @model_validator(mode="after")
    def validate_production_secrets(self):
        if self.ENVIRONMENT == "production":
            normalized_secret = (self.SECRET_KEY or "").strip()
            if len(normalized_secret) < 32 or "your-secret-key-here" in normalized_secret.lower():
                raise ValueError("SECRET_KEY must be at least 32 chars and not use placeholders in production")
            if (self.RAZORPAY_KEY_ID or "").startswith("rzp_test_"):
                raise ValueError("RAZORPAY_KEY_ID must use live key in production")
            if not self.ADMIN_PASSWORD_HASH:
                raise ValueError("ADMIN_PASSWORD_HASH must be set in production")
        return self

    model_config = {
        "env_file": ".env",
        "case_sensitive": True,
        "extra": "ignore",
    }


settings = Settings()
