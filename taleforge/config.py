from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class GenerationSettings:
    # "http" (Ollama-style /api/generate) or "ag2" (OpenAI-compatible via autogen).
    backend: str = "http"
    base_url: str = "http://127.0.0.1:11434"
    model: str = "llama3"
    temperature: float = 0.8
    max_tokens: int = 400

    # Hard deadline per attempt, in seconds.
    timeout_s: float = 10.0
    # Retries after the first attempt; delays are base * factor**n (0.2s, 0.8s by default).
    max_retries: int = 2
    backoff_base_s: float = 0.2
    backoff_factor: float = 4.0

    # Only used by the ag2 backend.
    openai_base_url: str | None = None
    openai_api_key: str | None = None


@dataclass(frozen=True, slots=True)
class SessionSettings:
    idle_timeout_s: float = 1800.0
    sweep_interval_s: float = 60.0
    history_limit: int = 20
    # How many recent actions go into the narrator's context.
    context_window: int = 5


@dataclass(frozen=True, slots=True)
class AppSettings:
    generation: GenerationSettings = field(default_factory=GenerationSettings)
    session: SessionSettings = field(default_factory=SessionSettings)
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"


def _get_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be a number, got {raw!r}") from e


def _get_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{key} must be an integer, got {raw!r}") from e


def settings_from_env(environ: Mapping[str, str] | None = None) -> AppSettings:
    env = os.environ if environ is None else environ
    gen_defaults = GenerationSettings()
    session_defaults = SessionSettings()
    app_defaults = AppSettings()

    generation = GenerationSettings(
        backend=env.get("TALEFORGE_BACKEND", gen_defaults.backend),
        base_url=env.get("TALEFORGE_GENERATION_URL", gen_defaults.base_url),
        model=env.get("TALEFORGE_MODEL") or env.get("OPENAI_MODEL") or gen_defaults.model,
        temperature=_get_float(env, "TALEFORGE_TEMPERATURE", gen_defaults.temperature),
        max_tokens=_get_int(env, "TALEFORGE_MAX_TOKENS", gen_defaults.max_tokens),
        timeout_s=_get_float(env, "TALEFORGE_GENERATION_TIMEOUT_S", gen_defaults.timeout_s),
        max_retries=_get_int(env, "TALEFORGE_MAX_RETRIES", gen_defaults.max_retries),
        backoff_base_s=_get_float(env, "TALEFORGE_BACKOFF_BASE_S", gen_defaults.backoff_base_s),
        backoff_factor=_get_float(env, "TALEFORGE_BACKOFF_FACTOR", gen_defaults.backoff_factor),
        # For Ollama's OpenAI-compatible endpoint, typically http://127.0.0.1:11434/v1
        openai_base_url=env.get("OPENAI_BASE_URL"),
        openai_api_key=env.get("OPENAI_API_KEY"),
    )
    if generation.max_retries < 0:
        raise ValueError("TALEFORGE_MAX_RETRIES must be >= 0")

    session = SessionSettings(
        idle_timeout_s=_get_float(env, "TALEFORGE_IDLE_TIMEOUT_S", session_defaults.idle_timeout_s),
        sweep_interval_s=_get_float(env, "TALEFORGE_SWEEP_INTERVAL_S", session_defaults.sweep_interval_s),
        history_limit=_get_int(env, "TALEFORGE_HISTORY_LIMIT", session_defaults.history_limit),
        context_window=_get_int(env, "TALEFORGE_CONTEXT_WINDOW", session_defaults.context_window),
    )

    return AppSettings(
        generation=generation,
        session=session,
        redis_url=env.get("REDIS_URL", app_defaults.redis_url),
        log_level=env.get("TALEFORGE_LOG_LEVEL", app_defaults.log_level),
    )
