# backend/app/core/config_loader.py

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_DIR = Path(__file__).resolve().parents[2]


class Settings(BaseSettings):
    environment: str = "development"

    server_host: str = "0.0.0.0"
    server_port: int = 3141

    db_path: Path = BACKEND_DIR / "data" / "workout-agent.db"

    log_dir: Path = BACKEND_DIR / "logs"
    log_level: str = "INFO"

    # Agent runtime
    anthropic_api_key: Optional[str] = None
    agent_model: Optional[str] = None
    agent_max_turns: int = 10
    agent_permission_mode: str = "acceptEdits"
    agent_connect_timeout: float = 30.0
    agent_request_timeout: float = 300.0

    cors_allow_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
