from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    data_dir: Path = Path.home() / ".studygenie" / "data"
    sqlite_filename: str = "studygenie.db"
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = ""  # e.g. "llama3.2:3b"; empty = generation disabled
    llm_timeout: float = 120.0
    max_generated_cards: int = 15
    default_user_id: str = "local"
    due_limit_default: int = 20
    log_level: str = "warning"
    host: str = "127.0.0.1"
    port: int = 0  # 0 = pick a free port

    model_config = {"env_prefix": "STUDYGENIE_"}


settings = Settings()
