"""
Configuration and environment loading for LLM Chess Play.

- Loads settings.yml (YAML) from repo root if present; falls back to environment variables.
- Exposes SETTINGS with keys used across the project (API key, models, retry/timeout knobs, session TTL).
"""
from dataclasses import dataclass
import logging
import os
from typing import Any, Callable

import yaml
from dotenv import load_dotenv

load_dotenv()

log = logging.getLogger("config")

DIFFICULTY_LEVELS = ("beginner", "intermediate", "advanced", "expert")


def _repo_root() -> str:
    # this file: src/llmchess_play/config.py → repo root is two levels up
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))


def _load_yaml(path: str) -> dict:
    if not os.path.isfile(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        log.exception("Failed reading %s; using environment only", path)
        return {}
    return data if isinstance(data, dict) else {}


_cfg = _load_yaml(os.path.join(_repo_root(), "settings.yml"))


def _get(name: str, default: Any, cast: Callable[[Any], Any] | None = None) -> Any:
    if name in _cfg:
        val = _cfg[name]
        return cast(val) if cast else val
    env = os.environ.get(name)
    if env is not None:
        return cast(env) if cast else env
    return default


def _difficulty(value: Any) -> str:
    level = str(value).lower()
    return level if level in DIFFICULTY_LEVELS else "intermediate"


@dataclass(frozen=True)
class Settings:
    # Auth / endpoint (OpenAI-compatible wire format)
    llm_api_key: str
    api_base: str
    move_model: str
    analysis_model: str

    # Tuning knobs
    responses_timeout_s: float
    responses_retries: int
    max_regenerations: int
    default_difficulty: str
    session_ttl_s: int


SETTINGS = Settings(
    llm_api_key=_get("LLMCHESS_LLM_API_KEY", _get("OPENAI_API_KEY", "")),
    api_base=_get("LLMCHESS_LLM_BASE_URL", ""),
    move_model=_get("LLMCHESS_MOVE_MODEL", "gpt-4o"),
    analysis_model=_get("LLMCHESS_ANALYSIS_MODEL", "gpt-4o"),
    responses_timeout_s=float(_get("LLMCHESS_RESPONSES_TIMEOUT_S", 60.0, cast=float)),
    responses_retries=int(_get("LLMCHESS_RESPONSES_RETRIES", 2, cast=int)),
    max_regenerations=int(_get("LLMCHESS_MAX_REGENERATIONS", 1, cast=int)),
    default_difficulty=_difficulty(_get("LLMCHESS_DEFAULT_DIFFICULTY", "intermediate")),
    session_ttl_s=int(_get("LLMCHESS_SESSION_TTL_S", 3600, cast=int)),
)
