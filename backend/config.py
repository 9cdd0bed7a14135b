"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object
- Fail fast when a required API key is missing

Non-responsibilities:
- No orchestration logic
- No behavioral constants
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from constants import (
    GENERATION_MODEL_DEFAULT,
    LLM_TIMEOUT_MS,
    STT_LANGUAGE_CODE_DEFAULT,
    STT_TIMEOUT_MS,
)


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the gateway, which hands the relevant pieces to
    adapters and the runtime.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str
    log_level: str

    # ------------------------------------------------------------------
    # API keys
    # ------------------------------------------------------------------

    # Camera emotion detection is not wired into the voice pipeline.
    vision_api_key: str | None
    speech_api_key: str | None
    gemini_api_key: str | None

    # ------------------------------------------------------------------
    # Speech-to-text / generation
    # ------------------------------------------------------------------

    speech_language_code: str
    gemini_model: str
    stt_timeout_ms: int
    llm_timeout_ms: int

    # ------------------------------------------------------------------
    # TTS
    # ------------------------------------------------------------------

    tts_voice_id: str | None

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def validate(self) -> AppConfig:
        """
        Check that every key the voice pipeline needs is present.

        Raises:
            ConfigError naming all missing variables.
        """
        missing: list[str] = []
        if not self.speech_api_key:
            missing.append("GOOGLE_CLOUD_API_KEY")
        if not self.gemini_api_key:
            missing.append("GEMINI_API_KEY")
        if missing:
            raise ConfigError(
                "Missing required environment variables: " + ", ".join(missing)
            )

        if self.stt_timeout_ms <= 0 or self.llm_timeout_ms <= 0:
            raise ConfigError("STT_TIMEOUT_MS and LLM_TIMEOUT_MS must be positive")

        return self

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Does not validate; call validate() before accepting sessions.

        Raises:
            ConfigError if a numeric variable is not an integer.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            vision_api_key=os.environ.get("GOOGLE_CLOUD_VISION_API_KEY"),
            speech_api_key=os.environ.get("GOOGLE_CLOUD_API_KEY"),
            gemini_api_key=os.environ.get("GEMINI_API_KEY"),

            speech_language_code=os.environ.get(
                "SPEECH_LANGUAGE_CODE", STT_LANGUAGE_CODE_DEFAULT
            ),
            gemini_model=os.environ.get("GEMINI_MODEL", GENERATION_MODEL_DEFAULT),
            stt_timeout_ms=_int_env("STT_TIMEOUT_MS", STT_TIMEOUT_MS),
            llm_timeout_ms=_int_env("LLM_TIMEOUT_MS", LLM_TIMEOUT_MS),

            tts_voice_id=os.environ.get("TTS_VOICE_ID"),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",
        )


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from e
