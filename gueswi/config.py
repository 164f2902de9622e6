import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from project root
env_path = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(dotenv_path=env_path)

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./gueswi.db")

ENVIRONMENT = os.getenv("ENVIRONMENT", "development").lower()
IS_PRODUCTION = ENVIRONMENT == "production"

# Security - CRITICAL: No default secret key in production
SECRET_KEY = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    import warnings

    warnings.warn(
        "SECRET_KEY not set! Using insecure default - DO NOT USE IN PRODUCTION", RuntimeWarning, stacklevel=2
    )
    SECRET_KEY = "INSECURE-DEV-KEY-CHANGE-IN-PRODUCTION"  # noqa: S105 - Dev fallback only

# Session cookie (signed with SECRET_KEY)
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "gueswi.sid")
SESSION_MAX_AGE = int(os.getenv("SESSION_MAX_AGE", str(60 * 60 * 24)))  # 24 hours

# Redis backs the response cache, the rate limiter and the arq queue
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
CACHE_ENABLED = os.getenv("CACHE_ENABLED", "true").lower() == "true"
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

# Frontend / public URLs
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:5000")

# File storage for receipts and generated IVR audio
UPLOADS_DIR = os.getenv("UPLOADS_DIR", "uploads")
MAX_RECEIPT_SIZE = 5 * 1024 * 1024  # 5MB
ALLOWED_RECEIPT_TYPES = {"image/jpeg", "image/png", "application/pdf"}

# Text-to-speech provider: mock | elevenlabs
TTS_PROVIDER = os.getenv("TTS_PROVIDER", "mock").lower()
ELEVENLABS_API_KEY = os.getenv("ELEVENLABS_API_KEY")
ELEVENLABS_VOICE_ID = os.getenv("ELEVENLABS_VOICE_ID")
ELEVENLABS_MODEL = os.getenv("ELEVENLABS_MODEL", "eleven_multilingual_v2")

# Voice AI gateway (OpenAI chat completions)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")

# Payment modes are only reported to the frontend banner, checkout lives elsewhere
STRIPE_MODE = os.getenv("STRIPE_MODE", "test")
PAYPAL_MODE = os.getenv("PAYPAL_MODE", "sandbox")

# Softphone mock: seconds between "ringing" and "answered"
SOFTPHONE_ANSWER_DELAY_SECONDS = float(os.getenv("SOFTPHONE_ANSWER_DELAY_SECONDS", "2"))

# Conversations left open longer than this are closed by the worker
STALE_CONVERSATION_MINUTES = int(os.getenv("STALE_CONVERSATION_MINUTES", "120"))

# Monthly price per plan (USD)
PLAN_PRICES = {
    "starter": 15.00,
    "growth": 25.00,
}
