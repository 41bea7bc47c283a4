from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application configuration loaded from environment variables / .env file."""

    app_name: str = Field(default="Insurance Services API", alias="APP_NAME")
    app_env: str = Field(default="development", alias="APP_ENV")
    host: str = Field(default="0.0.0.0", alias="HOST")
    port: int = Field(default=3000, alias="PORT")

    # Database. DATABASE_URL wins over the discrete POSTGRES_* parts.
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    postgres_user: Optional[str] = Field(default=None, alias="POSTGRES_USER")
    postgres_password: Optional[str] = Field(default=None, alias="POSTGRES_PASSWORD")
    postgres_db: Optional[str] = Field(default=None, alias="POSTGRES_DB")
    postgres_port: Optional[str] = Field(default=None, alias="POSTGRES_PORT")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    db_ssl: bool = Field(default=False, alias="DB_SSL")
    db_pool_min: int = Field(default=1, alias="DB_POOL_MIN")
    db_pool_max: int = Field(default=10, alias="DB_POOL_MAX")

    cors_allow_origins: str = Field(default="*", alias="CORS_ALLOW_ORIGINS")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    @property
    def sslmode(self) -> Optional[str]:
        # "require" encrypts without verifying the server certificate. When
        # unset, whatever the DSN says (or the libpq default) applies.
        return "require" if self.db_ssl else None

    @property
    def allow_origins(self) -> List[str]:
        origins = [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]
        return origins or ["*"]

    # PUBLIC_INTERFACE
    def build_dsn(self) -> str:
        """
        Build the libpq DSN.

        Uses:
          - DATABASE_URL (optional full DSN; if provided, it wins)
          - POSTGRES_USER, POSTGRES_PASSWORD, POSTGRES_DB, POSTGRES_PORT, POSTGRES_HOST
        """
        if self.database_url:
            return self.database_url

        parts = {
            "POSTGRES_USER": self.postgres_user,
            "POSTGRES_PASSWORD": self.postgres_password,
            "POSTGRES_DB": self.postgres_db,
            "POSTGRES_PORT": self.postgres_port,
        }
        missing = [name for name, value in parts.items() if not value]
        if missing:
            raise RuntimeError(
                "Missing database configuration. Set DATABASE_URL or the "
                f"environment variable(s): {', '.join(missing)}."
            )
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
