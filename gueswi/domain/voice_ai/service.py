"""
Voice AI service - OpenAI chat completions for the phone assistant

Environment:
- OPENAI_API_KEY: API key (required)
- OPENAI_MODEL: chat model, defaults to gpt-4o-mini
"""

import logging
from typing import Optional
from xml.sax.saxutils import escape

import httpx
from openai import AsyncOpenAI, OpenAIError

from ... import config

logger = logging.getLogger(__name__)

GATEWAY_SYSTEM_PROMPT = (
    "Eres un asistente virtual de Gueswi. Responde de forma concisa (máximo 2-3 frases) y natural. "
    "Si el cliente quiere hablar con un humano, indica que vas a transferir la llamada."
)
SPEECH_SYSTEM_PROMPT = "Eres un asistente de Gueswi. Responde en máximo 2 frases."

TRANSFER_KEYWORD = "transferir"

# ==================== TWIML ====================

SAY_VOICE = 'language="es-MX" voice="Polly.Lupe-Neural"'
SPEECH_ACTION = "/webhook/twilio-process-speech"

GATHER = (
    f'<Gather input="speech" language="es-ES" speechTimeout="auto" action="{SPEECH_ACTION}" method="POST">'
    "</Gather>"
)


def twiml(*verbs: str) -> str:
    body = "".join(verbs)
    return f'<?xml version="1.0" encoding="UTF-8"?><Response>{body}</Response>'


def say(text: str) -> str:
    return f"<Say {SAY_VOICE}>{escape(text)}</Say>"


def greeting_twiml() -> str:
    return twiml(
        say("Hola, soy el asistente virtual de Gueswi. ¿En qué puedo ayudarte?"),
        GATHER,
        say("No te escuché. Por favor, llama de nuevo."),
    )


def reply_twiml(reply: str) -> str:
    return twiml(say(reply), GATHER, say("Gracias por llamar. Hasta pronto."))


def apology_twiml() -> str:
    return twiml(say("Lo siento, tengo problemas técnicos. Por favor llama más tarde."))


class VoiceAIError(Exception):
    """The chat completion could not be produced"""


def detect_actions(reply: str) -> list[str]:
    return ["transfer"] if TRANSFER_KEYWORD in reply.lower() else []


class VoiceAIService:
    """Phone assistant replies through the OpenAI chat completions API"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        max_retries: int = 2,
    ):
        self.api_key = api_key or config.OPENAI_API_KEY
        self.model = model or config.OPENAI_MODEL
        self._http_client = http_client
        self._max_retries = max_retries
        self._client: Optional[AsyncOpenAI] = None

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise VoiceAIError("OPENAI_API_KEY environment variable is required")
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=30.0,
                max_retries=self._max_retries,
                http_client=self._http_client,
            )
        return self._client

    async def complete(
        self, system_prompt: str, messages: list[dict], max_tokens: int, temperature: Optional[float] = None
    ) -> str:
        client = self._get_client()
        options = {"max_tokens": max_tokens}
        if temperature is not None:
            options["temperature"] = temperature

        try:
            response = await client.chat.completions.create(
                model=self.model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                **options,
            )
        except OpenAIError as e:
            raise VoiceAIError(f"OpenAI chat completion failed: {e}") from e

        try:
            return response.choices[0].message.content.strip()
        except (IndexError, AttributeError, TypeError) as e:
            raise VoiceAIError("Malformed chat completion response") from e

    async def gateway(self, messages: list[dict]) -> dict:
        """Answer a console chat turn and flag a handoff to a human"""
        reply = await self.complete(GATEWAY_SYSTEM_PROMPT, messages, max_tokens=150, temperature=0.7)
        return {"response": reply, "actions": detect_actions(reply)}

    async def answer_speech(self, speech: str) -> str:
        return await self.complete(SPEECH_SYSTEM_PROMPT, [{"role": "user", "content": speech}], max_tokens=100)
