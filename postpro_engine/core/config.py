from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import date
from typing import Optional


DEFAULT_MODEL = "gpt-4.1-mini"


@dataclass(frozen=True)
class EngineConfig:
    openai_model: str
    ai_enabled: bool
    log_level: str
    today: Optional[date] = None


def load_config() -> EngineConfig:
    """Read engine settings from the environment.

    - OPENAI_API_KEY: enables the conversational AI collaborator
    - OPENAI_MODEL: model name (default gpt-4.1-mini)
    - POSTPRO_LOG_LEVEL: logging level name (default WARNING)
    - POSTPRO_TODAY: ISO date used as "today" for scripted runs
    """

    model = (os.getenv("OPENAI_MODEL", "") or "").strip() or DEFAULT_MODEL
    level = (os.getenv("POSTPRO_LOG_LEVEL", "") or "").strip().upper() or "WARNING"
    if not isinstance(logging.getLevelName(level), int):
        level = "WARNING"

    today_raw = (os.getenv("POSTPRO_TODAY", "") or "").strip()
    today = date.fromisoformat(today_raw) if today_raw else None

    return EngineConfig(
        openai_model=model,
        ai_enabled=bool(os.getenv("OPENAI_API_KEY")),
        log_level=level,
        today=today,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
