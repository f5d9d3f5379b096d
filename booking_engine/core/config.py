from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    API_BASE_URL: str | None = None
    API_TOKEN: str | None = None
    TENANT_ID: str | None = None
    HTTP_TIMEOUT_SECONDS: float = 15.0

    BUSINESS_TIMEZONE: str = "America/Argentina/Buenos_Aires"

    AVAILABILITY_STEP_MINUTES: int = 20
    CALENDAR_POLL_SECONDS: float = 15.0
    CALENDAR_RANGE_DEBOUNCE_SECONDS: float = 0.15
    CALENDAR_RANGE_DAYS: int = 30
    CUSTOMER_SEARCH_DEBOUNCE_SECONDS: float = 0.2
    SAVE_STATE_RESET_SECONDS: float = 3.0

    CLASSES_ENABLED: bool = False

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"


settings = Settings()
