# dropo/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict
from typing import List, Optional
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "Dropo Auth API"
    APP_VERSION: str = "1.0.0"
    ENV: str = "production"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 4000))

    # Database Settings
    DATABASE_URL: str = "sqlite:///./dropo.db"

    # Access / refresh tokens. TTLs accept "900", "900s", "15m", "1h", "30d".
    JWT_ACCESS_SECRET: str = ""
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TTL: str = "900s"
    JWT_REFRESH_TTL: str = "30d"
    BCRYPT_ROUNDS: int = 10

    # OTP
    OTP_TTL: str = "300s"
    OTP_CODE_LENGTH: int = 6
    # Self-issued codes (returned as devCode) are only ever enabled by this flag
    OTP_DEV_MODE: bool = False

    # Twilio Verify
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_VERIFY_SERVICE_SID: str = ""

    # Rate Limiting (OTP requests per phone number)
    OTP_RATE_LIMIT_MAX_REQUESTS: int = 3
    OTP_RATE_LIMIT_WINDOW_SEC: int = 3600
    REDIS_URL: Optional[str] = None

    # CORS Settings
    ALLOWED_ORIGINS: str = "*"

    # Middleware settings
    MAX_REQUEST_SIZE: int = 64 * 1024

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def twilio_enabled(self) -> bool:
        return bool(self.TWILIO_ACCOUNT_SID and self.TWILIO_AUTH_TOKEN and self.TWILIO_VERIFY_SERVICE_SID)

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"


@lru_cache()
def get_settings() -> Settings:
    s = Settings()
    # CORS_ORIGIN is the name the mobile client's deployment uses
    cors_env = os.environ.get("CORS_ORIGIN")
    if cors_env:
        s.ALLOWED_ORIGINS = cors_env
    return s


settings: Settings = get_settings()
