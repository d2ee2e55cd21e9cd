from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    # Application settings
    app_name: str = "ContentFlow"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = "development"
    log_level: str = "INFO"
    json_logs: bool = True

    # Database settings
    database_url: str

    # Security settings
    secret_key: str
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # CORS settings
    allowed_origins: list[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Publishing settings
    publish_max_attempts: int = 3
    publish_base_delay_seconds: float = 0.5
    publish_backoff_multiplier: float = 2.0
    publish_max_delay_seconds: float = 8.0
    default_publish_channels: list[str] = ["linkedin"]
    http_timeout_seconds: float = 30.0

    # LinkedIn settings
    linkedin_api_base_url: str = "https://api.linkedin.com"
    linkedin_max_post_length: int = 3000

    # Email settings
    enable_email_notifications: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    smtp_from: str = "no-reply@contentflow.local"

    # Scheduler settings
    enable_scheduler: bool = False

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
