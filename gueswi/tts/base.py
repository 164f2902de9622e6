import os
from dataclasses import dataclass
from pathlib import Path

from .. import config

VOICE_GENDERS = ("hombre", "mujer")
VOICE_STYLES = ("neutral", "amable", "energético")


@dataclass
class TTSVoiceOptions:
    gender: str = "mujer"
    style: str = "amable"


@dataclass
class TTSResult:
    url: str
    duration_sec: int


class TTSError(Exception):
    """Base class for text-to-speech failures"""


class TTSConfigError(TTSError):
    """The selected provider is unknown or missing credentials"""


class TTSProviderError(TTSError):
    """The upstream provider rejected or failed the request"""


def public_url_for(out_path: str) -> str:
    """Map a file under UPLOADS_DIR to its /uploads URL"""
    relative = os.path.relpath(out_path, config.UPLOADS_DIR)
    return f"/uploads/{Path(relative).as_posix()}"
