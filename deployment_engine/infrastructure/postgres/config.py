#deployment_engine\infrastructure\postgres\config.py

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Run ledger database configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # PostgreSQL connection
    postgres_user: str = "deployer"
    postgres_password: str = "deployer"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_db: str = "deployments"

    # Full URL override (e.g. sqlite:///runs.db)
    ledger_database_url: Optional[str] = None

    # Connection pool
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 3600

    # SQLAlchemy
    echo_sql: bool = False

    @property
    def database_url(self) -> str:
        if self.ledger_database_url:
            return self.ledger_database_url
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = DatabaseSettings()
