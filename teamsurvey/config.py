from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_SECRET_KEY = "change_me"


class Settings(BaseSettings):
    """Runtime configuration, read from the environment and ``.env``."""

    secret_key: str = Field(default=DEFAULT_SECRET_KEY, alias="SECRET_KEY")
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    app_host: str = Field(default="0.0.0.0", alias="APP_HOST")
    app_port: int = Field(default=8000, alias="APP_PORT")
    # public base URL used in emailed links; blank falls back to the request URL
    site_url: str = Field(default="", alias="SITE_URL")

    database_url: str = Field(
        default="postgresql+asyncpg://postgres:postgres@db:5432/teamsurvey", alias="DATABASE_URL"
    )
    sync_database_url: str = Field(
        default="postgresql+psycopg2://postgres:postgres@db:5432/teamsurvey", alias="SYNC_DATABASE_URL"
    )

    # first company and admin, created when the profiles table is empty
    company_name: str = Field(default="Example Co", alias="COMPANY_NAME")
    admin_email: str = Field(default="admin@example.com", alias="ADMIN_EMAIL")
    admin_password: str = Field(default="changeme123", alias="ADMIN_PASSWORD")

    guest_invite_ttl_days: int = Field(default=7, ge=1, alias="GUEST_INVITE_TTL_DAYS")
    notify_employees: bool = Field(default=True, alias="NOTIFY_EMPLOYEES")

    # defaults copied into each company's SMTP row on first use
    smtp_host: str = Field(default="localhost", alias="SMTP_HOST")
    smtp_port: int = Field(default=1025, alias="SMTP_PORT")
    smtp_username: str | None = Field(default=None, alias="SMTP_USERNAME")
    smtp_password: str | None = Field(default=None, alias="SMTP_PASSWORD")
    smtp_use_tls: bool = Field(default=False, alias="SMTP_USE_TLS")
    smtp_from_email: str = Field(default="surveys@example.com", alias="SMTP_FROM_EMAIL")
    smtp_from_name: str = Field(default="Team Survey", alias="SMTP_FROM_NAME")

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def has_secret_key(self) -> bool:
        return self.secret_key != DEFAULT_SECRET_KEY


settings = Settings()
