"""IVR text-to-speech with a pluggable provider"""

from .base import TTSConfigError, TTSError, TTSProviderError, TTSResult, TTSVoiceOptions
from .synthesis import audio_extension, synthesize_tts, validate_tts_config

__all__ = [
    "TTSConfigError",
    "TTSError",
    "TTSProviderError",
    "TTSResult",
    "TTSVoiceOptions",
    "audio_extension",
    "synthesize_tts",
    "validate_tts_config",
]
