"""
BEHAVIOR-AS-CONSTANTS
---------------------
Single source of truth for all behavioral constants in the system.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Other modules MUST import from this file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

# =============================================================================
# Audio capture format (linear PCM, 16kHz mono, WAV container)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_CHANNELS: Final[int] = 1
AUDIO_SAMPLE_WIDTH_BYTES: Final[int] = 2  # PCM16 (signed 16-bit)
AUDIO_BIT_RATE: Final[int] = 16_000
AUDIO_FILE_EXTENSION: Final[str] = ".wav"
AUDIO_ENCODING: Final[str] = "LINEAR16"

# Reading interval for the capture stream callback
CAPTURE_BLOCK_MS: Final[int] = 100

# =============================================================================
# Speech-to-text (Google Cloud Speech v1 REST)
# =============================================================================

STT_ENDPOINT: Final[str] = "https://speech.googleapis.com/v1/speech:recognize"
STT_LANGUAGE_CODE_DEFAULT: Final[str] = "en-US"
STT_MODEL: Final[str] = "default"

# Transcript recorded when the service returns no results
NO_SPEECH_DETECTED: Final[str] = "No speech detected"

# =============================================================================
# Text generation (Gemini REST)
# =============================================================================

GENERATION_ENDPOINT_TEMPLATE: Final[str] = (
    "https://generativelanguage.googleapis.com/v1/models/{model}:generateContent"
)
GENERATION_MODEL_DEFAULT: Final[str] = "gemini-pro"

# =============================================================================
# Speech synthesis
# =============================================================================

SPEECH_LANGUAGE: Final[str] = "en"
SPEECH_PITCH: Final[float] = 1.6
SPEECH_RATE: Final[float] = 0.5  # relative to normal speaking rate (1.0)

# Words-per-minute that corresponds to SPEECH_RATE == 1.0
SPEECH_BASE_WPM: Final[int] = 200

# =============================================================================
# Timeouts (no retries)
# =============================================================================

STT_TIMEOUT_MS: Final[int] = 15_000
LLM_TIMEOUT_MS: Final[int] = 20_000

# Upper bound on waiting for cancelled work during teardown
SHUTDOWN_DRAIN_TIMEOUT_S: Final[float] = 2.0

# =============================================================================
# Convenience Bundles
# =============================================================================

@dataclass(frozen=True)
class CaptureConfig:
    """
    Immutable recording configuration handed to the capture service.

    Mirrors the platform recording options: linear PCM in a WAV container,
    16kHz mono, plus quality hints a backend may ignore.
    """
    sample_rate_hz: int = AUDIO_SAMPLE_RATE_HZ
    channels: int = AUDIO_CHANNELS
    sample_width_bytes: int = AUDIO_SAMPLE_WIDTH_BYTES
    bit_rate: int = AUDIO_BIT_RATE
    extension: str = AUDIO_FILE_EXTENSION
    linear_pcm: bool = True
    keep_audio_active_hint: bool = True

    @property
    def subtype(self) -> str:
        """soundfile subtype for the configured sample width."""
        return f"PCM_{self.sample_width_bytes * 8}"


@dataclass(frozen=True)
class SpeechParams:
    """Parameters for one spoken utterance."""
    language: str = SPEECH_LANGUAGE
    pitch: float = SPEECH_PITCH
    rate: float = SPEECH_RATE


CAPTURE_CONFIG_V1: Final[CaptureConfig] = CaptureConfig()
SPEECH_PARAMS_V1: Final[SpeechParams] = SpeechParams()
