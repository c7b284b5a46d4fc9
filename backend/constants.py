"""
PROTOCOL-AS-CONSTANTS
---------------------
Single source of truth for wire constants and behavioral defaults of the
streaming transcription client.

Rules:
- If changing a value changes runtime behavior, it belongs here.
- No magic numbers elsewhere in the codebase.
- Deployment-specific values (keys, endpoints) live in config.py instead.
"""

from __future__ import annotations

from typing import Final, Tuple

# =============================================================================
# Frame header  (4 bytes, bit-packed nibbles)
# =============================================================================

PROTOCOL_VERSION: Final[int] = 0b0001
HEADER_SIZE_WORDS: Final[int] = 0b0001
HEADER_WORD_BYTES: Final[int] = 4
HEADER_BYTES: Final[int] = HEADER_SIZE_WORDS * HEADER_WORD_BYTES

SEQUENCE_FIELD_BYTES: Final[int] = 4
PAYLOAD_SIZE_FIELD_BYTES: Final[int] = 4
SEQUENCE_MAX: Final[int] = 2**32 - 1
PAYLOAD_SIZE_MAX: Final[int] = 2**32 - 1

# Socket message cap; large enough for one full-response JSON with utterances
WS_MAX_MESSAGE_BYTES: Final[int] = 2**22

# =============================================================================
# Audio defaults (PCM16 mono @ 16kHz)
# =============================================================================

AUDIO_SAMPLE_RATE_HZ: Final[int] = 16_000
AUDIO_BITS_PER_SAMPLE: Final[int] = 16
AUDIO_CHANNELS: Final[int] = 1
AUDIO_CONTAINER: Final[str] = "pcm"
AUDIO_CODEC: Final[str] = "raw"

SUPPORTED_CONTAINERS: Final[Tuple[str, ...]] = ("pcm", "wav", "ogg", "mp3")
SUPPORTED_CODECS: Final[Tuple[str, ...]] = ("raw", "opus")

# =============================================================================
# Chunking / pacing
# =============================================================================

CHUNK_DURATION_MS: Final[int] = 200

# =============================================================================
# Timeouts
# =============================================================================

CONNECT_TIMEOUT_S: Final[float] = 5.0
RESPONSE_TIMEOUT_S: Final[float] = 10.0
SEND_TIMEOUT_S: Final[float] = 5.0

# =============================================================================
# Recognition request
# =============================================================================

ASR_MODEL_NAME: Final[str] = "bigmodel"
ASR_PLATFORM: Final[str] = "python"
ASR_DEFAULT_USER_ID: Final[str] = "mindflow"
ASR_DEFAULT_RESOURCE_ID: Final[str] = "volc.bigasr.sauc.duration"
ASR_DEFAULT_ENDPOINT: Final[str] = "wss://openspeech.bytedance.com/api/v3/sauc/bigmodel"

RESULT_TYPES: Final[Tuple[str, ...]] = ("full", "single")

# =============================================================================
# Fallback transcript
# =============================================================================

FALLBACK_DELAY_S: Final[float] = 1.0
FALLBACK_DEFAULT_SEED: Final[int] = 0

# Index 0 is what the default seed resolves to (see adapters.asr.fallback).
FALLBACK_PHRASES: Final[Tuple[str, ...]] = (
    "这是一段模拟的语音转文本结果。请配置豆包 API 密钥以使用真实的语音识别功能。",
    "语音识别服务暂时不可用，这是一段占位文本，请稍后重新转写。",
    "This is a placeholder transcript. Speech recognition is currently unavailable.",
)
