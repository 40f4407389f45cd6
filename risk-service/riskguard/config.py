"""
Central configuration for the risk-scoring service.
All values are read from environment variables (with sensible defaults
for docker-compose usage).
"""
from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────
    db_host:     str = "postgres"
    db_port:     int = 5432
    db_name:     str = "proctordb"
    db_user:     str = "proctor"
    db_password: str = "proctorpass"
    database_url: str = ""              # computed below if empty

    # ── RabbitMQ ─────────────────────────────────────────────────
    rabbitmq_host:     str = "rabbitmq"
    rabbitmq_port:     int = 5672
    rabbitmq_user:     str = "proctor"
    rabbitmq_password: str = "proctorpass"
    rabbitmq_vhost:    str = "/"
    rabbitmq_url:      str = ""         # set directly (e.g. amqp://...) OR computed below

    exchange_name:       str = "proctoring.exchange"
    scoring_queue:       str = "scoring.requests"
    scoring_routing_key: str = "scoring.requests"

    # queue      → publish to RabbitMQ, ScoringConsumer thread scores
    # background → FastAPI BackgroundTasks in the API process
    scoring_dispatch: Literal["queue", "background"] = "queue"

    # ── Judgment provider (OpenAI) ───────────────────────────────
    openai_api_key:  str = ""
    openai_model:    str = "gpt-5-mini"
    openai_base_url: str = ""           # empty → SDK default

    # ── Dashboard ─────────────────────────────────────────────────
    status_window_minutes: int = 10     # default "since" cutoff for /api/students/status

    # ── Startup ───────────────────────────────────────────────────
    seed_on_startup: bool = True

    # ── HTTP server ───────────────────────────────────────────────
    port:      int = 8001
    log_level: str = "INFO"

    # ── Post-init: compute derived URLs ──────────────────────────
    @model_validator(mode="after")
    def _fill_derived_urls(self) -> "Settings":
        if not self.database_url:
            self.database_url = (
                f"postgresql+psycopg2://{self.db_user}:{self.db_password}"
                f"@{self.db_host}:{self.db_port}/{self.db_name}"
            )
        if not self.rabbitmq_url:
            self.rabbitmq_url = (
                f"amqp://{self.rabbitmq_user}:{self.rabbitmq_password}"
                f"@{self.rabbitmq_host}:{self.rabbitmq_port}{self.rabbitmq_vhost}"
            )
        return self

    @property
    def judgment_enabled(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache
def get_settings() -> Settings:
    return Settings()
