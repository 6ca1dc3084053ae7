from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str = Field(..., alias="DATABASE_URL")

    jwt_secret_key: str = Field(..., alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field("HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(15, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    # Scheduled fee reminder sweep
    fee_reminders_enabled: bool = Field(True, alias="FEE_REMINDERS_ENABLED")
    fee_reminder_interval_hours: float = Field(6, gt=0, alias="FEE_REMINDER_INTERVAL_HOURS")
    fee_reminder_upcoming_days: int = Field(7, ge=0, alias="FEE_REMINDER_UPCOMING_DAYS")

    currency_symbol: str = Field("₹", alias="CURRENCY_SYMBOL")
    school_name: str = Field("School ERP", alias="SCHOOL_NAME")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
