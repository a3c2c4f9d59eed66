# ballotbox/config.py
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


class Settings(BaseSettings):
    # --- Database ---
    database_url: str = "sqlite:///data/ballotbox.db"

    # --- Security / JWT ---
    jwt_secret: str = "dev-secret-please-change"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60 * 24  # 24 hours
    refresh_token_expire_minutes: int = 60 * 24 * 30  # 30 days
    enable_hsts: bool = True

    # --- CORS ---
    cors_origins: List[str] = ["http://localhost:5173", "http://localhost:8080"]

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = False

    # --- Deployment ---
    environment: str = "development"
    git_sha: Optional[str] = None

    # --- Voting ---
    # A lost race on the (voter, position) row is retried this many times before surfacing.
    vote_conflict_retries: int = 1

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()


def _sqlite_path(database_url: str) -> Path | None:
    if not database_url.startswith("sqlite:///"):
        return None
    raw = database_url.replace("sqlite:///", "", 1)
    if not raw or raw == ":memory:":
        return None
    return Path(raw)


# Ensure path directory exists (for SQLite)
db_path = _sqlite_path(settings.database_url)
if db_path is not None:
    db_path.parent.mkdir(parents=True, exist_ok=True)

# --- SQLAlchemy setup ---
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()
