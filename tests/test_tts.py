import json
import os
import wave

import httpx
import pytest

from gueswi import config
from gueswi.tts import (
    TTSConfigError,
    TTSProviderError,
    TTSVoiceOptions,
    audio_extension,
    synthesize_tts,
    validate_tts_config,
)
from gueswi.tts.providers.elevenlabs import ElevenLabsProvider, estimate_duration, map_voice_settings


@pytest.fixture
def ivr_dir():
    path = os.path.join(config.UPLOADS_DIR, "ivr")
    os.makedirs(path, exist_ok=True)
    return path


async def test_mock_provider_writes_silent_wav(ivr_dir):
    out_path = os.path.join(ivr_dir, "mock-test.wav")
    result = await synthesize_tts("Hola", TTSVoiceOptions(), out_path, provider="mock")

    assert result.url == "/uploads/ivr/mock-test.wav"
    assert result.duration_sec == 2
    with wave.open(out_path, "rb") as wav:
        assert wav.getnchannels() == 1
        assert wav.getframerate() == 44100
        assert wav.getnframes() == 44100 * 2


async def test_unknown_provider(ivr_dir):
    with pytest.raises(TTSConfigError):
        await synthesize_tts("Hola", TTSVoiceOptions(), os.path.join(ivr_dir, "x.mp3"), provider="polly")


def test_audio_extension():
    assert audio_extension("mock") == "wav"
    assert audio_extension("elevenlabs") == "mp3"


def test_validate_tts_config(monkeypatch):
    assert validate_tts_config("mock") == {"valid": True, "missing": []}

    monkeypatch.setattr(config, "ELEVENLABS_API_KEY", "")
    monkeypatch.setattr(config, "ELEVENLABS_VOICE_ID", "voice")
    assert validate_tts_config("elevenlabs") == {"valid": False, "missing": ["ELEVENLABS_API_KEY"]}

    assert validate_tts_config("polly")["missing"] == ["Invalid TTS_PROVIDER: polly"]


@pytest.mark.parametrize(
    "style, expected",
    [
        ("neutral", (0.85, 0.75, 0.3)),
        ("amable", (0.70, 0.80, 0.6)),
        ("energético", (0.60, 0.70, 0.8)),
    ],
)
def test_map_voice_settings(style, expected):
    settings = map_voice_settings(TTSVoiceOptions(gender="mujer", style=style))
    assert (settings["stability"], settings["similarity_boost"], settings["style"]) == expected
    assert settings["use_speaker_boost"] is True


def test_estimate_duration():
    assert estimate_duration("") == 1
    assert estimate_duration("uno dos tres") == 1
    assert estimate_duration("uno dos tres cuatro") == 2


def test_elevenlabs_requires_credentials(monkeypatch):
    monkeypatch.setattr(config, "ELEVENLABS_API_KEY", "")
    with pytest.raises(TTSConfigError):
        ElevenLabsProvider(voice_id="voice")


async def test_elevenlabs_writes_audio(ivr_dir):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"ID3fake-mp3")

    provider = ElevenLabsProvider(
        api_key="xi-test", voice_id="voice-1", model="model-1", transport=httpx.MockTransport(handler)
    )
    out_path = os.path.join(ivr_dir, "eleven.mp3")
    result = await provider.synthesize("Bienvenido a la empresa", TTSVoiceOptions(style="neutral"), out_path)

    assert result.url == "/uploads/ivr/eleven.mp3"
    assert result.duration_sec == 2
    with open(out_path, "rb") as f:
        assert f.read() == b"ID3fake-mp3"

    request = seen[0]
    assert request.url.path == "/v1/text-to-speech/voice-1/stream"
    assert request.headers["xi-api-key"] == "xi-test"
    payload = json.loads(request.content)
    assert payload["model_id"] == "model-1"
    assert payload["voice_settings"]["stability"] == 0.85


async def test_elevenlabs_api_error(ivr_dir):
    transport = httpx.MockTransport(lambda request: httpx.Response(401, text="invalid key"))
    provider = ElevenLabsProvider(api_key="xi-test", voice_id="voice-1", transport=transport)
    with pytest.raises(TTSProviderError) as exc:
        await provider.synthesize("Hola", TTSVoiceOptions(), os.path.join(ivr_dir, "fail.mp3"))
    assert "401" in str(exc.value)
