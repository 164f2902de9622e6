"""
Text-to-speech for IVR greetings

TTS_PROVIDER selects the backend:
- mock (default): a silent WAV, no credentials needed
- elevenlabs: ELEVENLABS_API_KEY + ELEVENLABS_VOICE_ID
"""

import logging
import wave
from pathlib import Path
from typing import Optional

from .. import config
from .base import TTSConfigError, TTSResult, TTSVoiceOptions, public_url_for
from .providers.elevenlabs import ElevenLabsProvider

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("mock", "elevenlabs")

MOCK_SAMPLE_RATE = 44100
MOCK_DURATION_SEC = 2


def write_silent_wav(out_path: str, duration_sec: int = MOCK_DURATION_SEC) -> None:
    """PCM 16-bit mono silence at 44.1 kHz"""
    frames = MOCK_SAMPLE_RATE * duration_sec
    with wave.open(out_path, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(MOCK_SAMPLE_RATE)
        wav.writeframes(b"\x00\x00" * frames)


def create_mock_tts(out_path: str) -> TTSResult:
    write_silent_wav(out_path)
    logger.info(f"🔊 Mock TTS audio written to {out_path}")
    return TTSResult(url=public_url_for(out_path), duration_sec=MOCK_DURATION_SEC)


def audio_extension(provider: Optional[str] = None) -> str:
    return "wav" if (provider or config.TTS_PROVIDER) == "mock" else "mp3"


async def synthesize_tts(
    text: str, voice: TTSVoiceOptions, out_path: str, provider: Optional[str] = None
) -> TTSResult:
    """
    Render text to an audio file with the configured provider.

    Raises:
        TTSConfigError: unknown provider or missing credentials
        TTSProviderError: the provider call failed
    """
    provider = provider or config.TTS_PROVIDER
    Path(out_path).parent.mkdir(parents=True, exist_ok=True)

    if provider == "mock":
        return create_mock_tts(out_path)

    if provider == "elevenlabs":
        return await ElevenLabsProvider().synthesize(text, voice, out_path)

    raise TTSConfigError(
        f"Unsupported TTS provider: {provider}. Supported: {', '.join(SUPPORTED_PROVIDERS)}"
    )


def validate_tts_config(provider: Optional[str] = None) -> dict:
    """Report which settings the provider is missing"""
    provider = provider or config.TTS_PROVIDER
    missing: list[str] = []

    if provider == "elevenlabs":
        if not config.ELEVENLABS_API_KEY:
            missing.append("ELEVENLABS_API_KEY")
        if not config.ELEVENLABS_VOICE_ID:
            missing.append("ELEVENLABS_VOICE_ID")
    elif provider != "mock":
        missing.append(f"Invalid TTS_PROVIDER: {provider}")

    return {"valid": not missing, "missing": missing}
