"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No protocol constants (see constants.py)
- No runtime mutation
- No live session state
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    ASR_DEFAULT_ENDPOINT,
    ASR_DEFAULT_RESOURCE_ID,
    ASR_DEFAULT_USER_ID,
    CHUNK_DURATION_MS,
    CONNECT_TIMEOUT_S,
    FALLBACK_DELAY_S,
    RESPONSE_TIMEOUT_S,
)


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def _env_int(name: str, default: int) -> int:
    value = _env_optional_int(name)
    return default if value is None else value


def _env_optional_int(name: str) -> int | None:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup (or once per module-level
    transcribe() call) and passed down to TranscriptionService.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # ASR service (Doubao / Volcengine streaming)
    # ------------------------------------------------------------------

    asr_app_key: str | None = None
    asr_access_token: str | None = None
    asr_resource_id: str = ASR_DEFAULT_RESOURCE_ID
    asr_endpoint: str = ASR_DEFAULT_ENDPOINT
    asr_user_id: str = ASR_DEFAULT_USER_ID

    # ------------------------------------------------------------------
    # Session timing
    # ------------------------------------------------------------------

    connect_timeout_s: float = CONNECT_TIMEOUT_S
    response_timeout_s: float = RESPONSE_TIMEOUT_S
    chunk_duration_ms: int = CHUNK_DURATION_MS

    # ------------------------------------------------------------------
    # Fallback transcript
    # ------------------------------------------------------------------

    fallback_delay_s: float = FALLBACK_DELAY_S
    fallback_seed: int | None = None

    @property
    def asr_configured(self) -> bool:
        return not self.missing_asr_keys()

    def missing_asr_keys(self) -> tuple[str, ...]:
        """Environment variable names whose absence disables live transcription."""
        missing: list[str] = []
        if not self.asr_app_key:
            missing.append("DOUBAO_ASR_APP_KEY")
        if not self.asr_access_token:
            missing.append("DOUBAO_ASR_ACCESS_TOKEN")
        if not self.asr_endpoint:
            missing.append("DOUBAO_ASR_ENDPOINT")
        return tuple(missing)

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Missing credentials are allowed (transcription falls back).

        Raises:
            ValueError if a numeric variable is malformed, or ASR_CHUNK_MS is
            not positive.
        """
        chunk_ms = _env_int("ASR_CHUNK_MS", CHUNK_DURATION_MS)
        if chunk_ms <= 0:
            raise ValueError(f"ASR_CHUNK_MS must be > 0, got {chunk_ms}")

        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            asr_app_key=os.environ.get("DOUBAO_ASR_APP_KEY") or None,
            asr_access_token=os.environ.get("DOUBAO_ASR_ACCESS_TOKEN") or None,
            asr_resource_id=os.environ.get("DOUBAO_ASR_RESOURCE_ID", ASR_DEFAULT_RESOURCE_ID),
            asr_endpoint=os.environ.get("DOUBAO_ASR_ENDPOINT", ASR_DEFAULT_ENDPOINT),
            asr_user_id=os.environ.get("ASR_USER_ID", ASR_DEFAULT_USER_ID),

            connect_timeout_s=_env_float("ASR_CONNECT_TIMEOUT_S", CONNECT_TIMEOUT_S),
            response_timeout_s=_env_float("ASR_RESPONSE_TIMEOUT_S", RESPONSE_TIMEOUT_S),
            chunk_duration_ms=chunk_ms,

            fallback_delay_s=_env_float("FALLBACK_DELAY_S", FALLBACK_DELAY_S),
            fallback_seed=_env_optional_int("FALLBACK_SEED"),
        )
