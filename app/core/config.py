from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "production"  # development | production
    APP_NAME: str = "tour-booking"
    API_PREFIX: str = "/api/v1"

    DATABASE_URL: str
    REDIS_URL: str

    JWT_SECRET: str = "change_me_jwt_secret_at_least_32_chars"
    JWT_EXPIRES_IN_DAYS: int = 90
    JWT_COOKIE_NAME: str = "jwt"
    JWT_COOKIE_EXPIRES_IN_DAYS: int = 90
    PASSWORD_RESET_TTL_MINUTES: int = 10

    CORS_ORIGINS: str = "*"

    API_RATE_LIMIT: int = 100
    API_RATE_LIMIT_WINDOW_SECONDS: int = 3600

    # Query parameters allowed to repeat, e.g. ?duration=5&duration=9
    HPP_WHITELIST: str = "duration,ratingsQuantity,ratingsAverage,maxGroupSize,difficulty,price"
    DEFAULT_PAGE_LIMIT: int = 100

    EMAIL_PROVIDER: str = "dummy"  # dummy | smtp
    EMAIL_FROM: str = "Tour Booking <hello@tour-booking.local>"
    SMTP_HOST: str = ""
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def hpp_whitelist(self) -> set[str]:
        return {f.strip() for f in self.HPP_WHITELIST.split(",") if f.strip()}

    @property
    def is_development(self) -> bool:
        return self.APP_ENV.strip().lower() == "development"

settings = Settings()
