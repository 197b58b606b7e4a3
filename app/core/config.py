import os
from typing import Optional
from dotenv import load_dotenv

load_dotenv()

class Settings:
    ENV: str = os.getenv("ENV", "local")
    EMAIL_BACKEND: str = os.getenv("EMAIL_BACKEND", "console")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Database
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")
    DATABASE_ECHO: bool = os.getenv("DATABASE_ECHO", "False").lower() == "true"
    DATABASE_POOL_SIZE: int = int(os.getenv("DATABASE_POOL_SIZE", 20))
    DATABASE_MAX_OVERFLOW: int = int(os.getenv("DATABASE_MAX_OVERFLOW", 10))

    # JWT / Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60))
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))
    PASSWORD_RESET_EXPIRE_MINUTES: int = int(os.getenv("PASSWORD_RESET_EXPIRE_MINUTES", 60))
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = int(os.getenv("EMAIL_VERIFICATION_EXPIRE_HOURS", 24))
    ACCESS_TOKEN_COOKIE: str = os.getenv("ACCESS_TOKEN_COOKIE", "access_token")

    # PESEL lookup key (HMAC-SHA256)
    PESEL_HMAC_KEY: str = os.getenv("PESEL_HMAC_KEY", "change-me-pesel")
    # Optional AES-256-GCM key (base64, 32 bytes) for PESEL at rest
    PESEL_ENC_KEY: Optional[str] = os.getenv("PESEL_ENC_KEY")

    # App identity / email
    APP_NAME: str = os.getenv("APP_NAME", "Przychodnia")
    SENDER_NAME: str = os.getenv("SENDER_NAME", "Przychodnia")

    SMTP_HOST: Optional[str] = os.getenv("SMTP_HOST")
    SMTP_PORT: Optional[int] = int(os.getenv("SMTP_PORT", 587))
    SMTP_USER: Optional[str] = os.getenv("SMTP_USER")
    SMTP_PASSWORD: Optional[str] = os.getenv("SMTP_PASSWORD")
    SMTP_FROM: Optional[str] = os.getenv("SMTP_FROM")

    # Frontend URLs
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Clinic wall-clock timezone
    TIMEZONE: str = os.getenv("TIMEZONE", "Europe/Warsaw")

    # CORS
    BACKEND_CORS_ORIGINS: Optional[str] = os.getenv("BACKEND_CORS_ORIGINS")

    # Rate Limiting
    RATE_LIMIT_ENABLED: bool = os.getenv("RATE_LIMIT_ENABLED", "True").lower() == "true"
    RATE_LIMIT_REQUESTS: int = int(os.getenv("RATE_LIMIT_REQUESTS", 100))
    RATE_LIMIT_PERIOD_SECONDS: int = int(os.getenv("RATE_LIMIT_PERIOD_SECONDS", 60))

    # Admin bootstrap
    ADMIN_EMAIL: Optional[str] = os.getenv("ADMIN_EMAIL")
    BOOTSTRAP_ON_STARTUP: bool = os.getenv("BOOTSTRAP_ON_STARTUP", "True").lower() == "true"
    DEMO_MODE: bool = os.getenv("DEMO_MODE", "False").lower() == "true"
    DEMO_PASSWORD: str = os.getenv("DEMO_PASSWORD", "Demo!Password123")
    DEMO_ADMIN_EMAIL: str = os.getenv("DEMO_ADMIN_EMAIL", "admin@przychodnia-demo.pl")
    DEMO_DOCTOR_EMAIL: str = os.getenv("DEMO_DOCTOR_EMAIL", "lekarz@przychodnia-demo.pl")
    DEMO_DOCTOR_LICENSE: str = os.getenv("DEMO_DOCTOR_LICENSE", "DEMO-0001")
    DEMO_RECEPTIONIST_EMAIL: str = os.getenv("DEMO_RECEPTIONIST_EMAIL", "rejestracja@przychodnia-demo.pl")

    # Redis / Celery
    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    CELERY_TASK_ALWAYS_EAGER: bool = os.getenv("CELERY_TASK_ALWAYS_EAGER", "False").lower() == "true"
    EMAIL_JOB_HISTORY: int = int(os.getenv("EMAIL_JOB_HISTORY", 100))

    # Cache TTLs (seconds)
    SLOTS_CACHE_TTL: int = int(os.getenv("SLOTS_CACHE_TTL", 300))
    LANDING_CACHE_TTL: int = int(os.getenv("LANDING_CACHE_TTL", 60))


settings = Settings()
