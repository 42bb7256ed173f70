from pathlib import Path
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent

    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./stardeck.db",
        description="Async database URL for the deploy audit log"
    )

    DOCKER_BASE_URL: Optional[str] = Field(
        default=None,
        description="Engine socket, e.g. unix:///run/podman/podman.sock. Falls back to DOCKER_HOST"
    )
    DOCKER_TIMEOUT: int = 120

    CORS_ORIGINS: list[str] = ["http://localhost:5173"]

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    HOST: str = "0.0.0.0"
    PORT: int = 8000

    model_config = ConfigDict(
        env_file=".env"
    )

    @property
    def sync_database_url(self) -> str:
        """SQLAlchemy URL for DDL, which runs without the async driver."""
        return self.DATABASE_URL.replace("+aiosqlite", "")


settings = Settings()
