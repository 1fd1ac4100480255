from __future__ import annotations
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional, List
from dotenv import load_dotenv
load_dotenv()  # populates os.environ from .env


class Settings(BaseSettings):
    # Browser-Use task API
    browser_use_api_key: Optional[str] = None
    browser_use_base_url: str = "https://api.browser-use.com/api/v2"
    browser_use_llm: str = "gemini-2.5-flash"
    browser_use_http_timeout: float = 30.0

    # Polling / retry (seconds)
    task_poll_interval: float = 3.0
    task_max_wait: float = 300.0
    task_max_poll_interval: float = 10.0
    task_max_retries: int = Field(2, ge=0)
    task_retry_delay: float = Field(2.0, ge=0)

    # LLM chat completions (OpenAI or any compatible endpoint, e.g. OpenRouter)
    openai_api_key: Optional[str] = None
    openai_base_url: Optional[str] = None
    openai_model_chat: str = "gpt-4o-mini"
    openai_model_plans: str = "gpt-4o-mini"

    # Storage
    data_dir: str = "data"
    history_chats_file: str = "data/chat_history.json"
    history_recipes_file: str = "data/recipe_history.json"
    history_purchases_file: str = "data/purchase_history.json"

    # Observability
    log_level: str = "INFO"
    otel_exporter_endpoint: Optional[str] = None

    cors_allow_origins: List[str] = Field(
        default_factory=lambda: ["http://127.0.0.1:3000"]
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
