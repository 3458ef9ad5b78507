from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


REPLACEMENT_STRATEGIES = {"replace_in_place", "create_and_delete", "disabled"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_env: str = Field(default="development", validation_alias="APP_ENV")

    datocms_api_token: str | None = Field(default=None, validation_alias="DATOCMS_API_TOKEN")
    datocms_api_base_url: str = Field(default="https://site-api.datocms.com", validation_alias="DATOCMS_API_BASE_URL")
    datocms_api_version: str = Field(default="3", validation_alias="DATOCMS_API_VERSION")
    datocms_environment: str | None = Field(default=None, validation_alias="DATOCMS_ENVIRONMENT")

    replacement_strategy: str = Field(default="replace_in_place", validation_alias="REPLACEMENT_STRATEGY")
    delete_original_upload: bool = Field(default=False, validation_alias="DELETE_ORIGINAL_UPLOAD")
    default_upload_filename: str = Field(default="optimized-image.jpg", validation_alias="DEFAULT_UPLOAD_FILENAME")

    http_timeout_connect: float = Field(default=3.0, validation_alias="HTTP_TIMEOUT_CONNECT")
    http_timeout_read: float = Field(default=30.0, validation_alias="HTTP_TIMEOUT_READ")
    http_timeout_write: float = Field(default=60.0, validation_alias="HTTP_TIMEOUT_WRITE")

    job_poll_interval_seconds: float = Field(default=1.0, validation_alias="JOB_POLL_INTERVAL_SECONDS")
    job_poll_max_attempts: int = Field(default=30, validation_alias="JOB_POLL_MAX_ATTEMPTS")

    def strategy_name(self) -> str:
        return (self.replacement_strategy or "").strip().lower() or "replace_in_place"

    def is_prod(self) -> bool:
        return (self.app_env or "").strip().lower() in {"prod", "production"}


settings = Settings()


if settings.strategy_name() not in REPLACEMENT_STRATEGIES:
    raise RuntimeError(f"REPLACEMENT_STRATEGY must be one of {sorted(REPLACEMENT_STRATEGIES)}")

if settings.is_prod():
    if settings.strategy_name() != "disabled" and not (settings.datocms_api_token or "").strip():
        raise RuntimeError("DATOCMS_API_TOKEN must be set in production")
    if not settings.datocms_api_base_url.strip().startswith("https://"):
        raise RuntimeError("DATOCMS_API_BASE_URL must use https in production")
