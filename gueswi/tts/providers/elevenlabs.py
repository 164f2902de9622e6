"""
ElevenLabs TTS provider

Environment:
- ELEVENLABS_API_KEY: API key (required)
- ELEVENLABS_VOICE_ID: voice to synthesize with (required, pick per gender)
- ELEVENLABS_MODEL: model id, defaults to eleven_multilingual_v2
"""

import logging
import math
from pathlib import Path
from typing import Optional

import httpx

from ... import config
from ..base import TTSConfigError, TTSProviderError, TTSResult, TTSVoiceOptions, public_url_for

logger = logging.getLogger(__name__)

ELEVENLABS_BASE_URL = "https://api.elevenlabs.io/v1"
OUTPUT_FORMAT = "mp3_44100_128"


def map_voice_settings(voice: TTSVoiceOptions) -> dict:
    """Translate a console voice style into ElevenLabs voice_settings"""
    stability = 0.75
    similarity_boost = 0.75
    style = 0.5

    if voice.style == "neutral":
        stability = 0.85
        style = 0.3
    elif voice.style == "amable":
        stability = 0.70
        similarity_boost = 0.80
        style = 0.6
    elif voice.style == "energético":
        stability = 0.60
        similarity_boost = 0.70
        style = 0.8

    return {
        "stability": stability,
        "similarity_boost": similarity_boost,
        "style": style,
        "use_speaker_boost": True,
    }


def estimate_duration(text: str) -> int:
    """Roughly three spoken words per second, never below one second"""
    word_count = len(text.split())
    return max(1, math.ceil(word_count / 3))


class ElevenLabsProvider:
    def __init__(
        self,
        api_key: Optional[str] = None,
        voice_id: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or config.ELEVENLABS_API_KEY
        self.voice_id = voice_id or config.ELEVENLABS_VOICE_ID
        self.model = model or config.ELEVENLABS_MODEL
        self._transport = transport

        if not self.api_key:
            raise TTSConfigError("ELEVENLABS_API_KEY environment variable is required")
        if not self.voice_id:
            raise TTSConfigError("ELEVENLABS_VOICE_ID environment variable is required")

    async def synthesize(self, text: str, voice: TTSVoiceOptions, out_path: str) -> TTSResult:
        url = f"{ELEVENLABS_BASE_URL}/text-to-speech/{self.voice_id}/stream"
        payload = {
            "text": text,
            "model_id": self.model,
            "voice_settings": map_voice_settings(voice),
            "output_format": OUTPUT_FORMAT,
        }
        headers = {
            "Accept": "application/json",
            "xi-api-key": self.api_key,
            "Content-Type": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=60.0, transport=self._transport) as client:
                response = await client.post(url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            logger.error(f"❌ ElevenLabs request failed: {e}")
            raise TTSProviderError(f"Failed to synthesize speech: {e}") from e

        if response.status_code >= 300:
            logger.error(f"❌ ElevenLabs API error: {response.status_code} {response.text[:200]}")
            raise TTSProviderError(
                f"Failed to synthesize speech: ElevenLabs API error: {response.status_code} {response.text}"
            )

        Path(out_path).write_bytes(response.content)
        logger.info(f"🔊 ElevenLabs audio written to {out_path} ({len(response.content)} bytes)")

        return TTSResult(url=public_url_for(out_path), duration_sec=estimate_duration(text))
