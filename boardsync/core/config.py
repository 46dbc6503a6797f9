from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./boardsync.db"
    database_echo: bool = False
    auto_create_tables: bool = True

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    session_token_expire_minutes: int = 720

    cors_origins: List[str] = ["http://localhost:3001"]

    # Внешний workflow для экспорта бэклога
    export_webhook_url: str = "http://localhost:5678/webhook/kanban-export"
    export_timeout_seconds: float = 30.0

    default_board_name: str = "Kanban Board"
    default_board_columns: List[str] = ["To Do", "In Progress", "Done"]

    log_level: str = "INFO"

    model_config = {"env_file": ".env", "extra": "ignore"}

settings = Settings()
