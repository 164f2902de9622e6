"""Voice AI router - chat gateway and Twilio voice webhooks"""

import logging

from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.responses import Response

from ...rate_limiter import create_rate_limiter
from .schemas import GatewayRequest, GatewayResponse
from .service import VoiceAIError, VoiceAIService, apology_twiml, greeting_twiml, reply_twiml

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Voice AI"])

gateway_rate_limit = create_rate_limiter(limit=60, window_seconds=60, key_prefix="ai_gateway")


def get_voice_ai_service() -> VoiceAIService:
    """Dependency injection for VoiceAIService"""
    return VoiceAIService()


def xml_response(body: str) -> Response:
    return Response(content=body, media_type="text/xml")


@router.post("/api/ai-gateway", response_model=GatewayResponse)
async def ai_gateway(
    data: GatewayRequest,
    _: None = Depends(gateway_rate_limit),
    service: VoiceAIService = Depends(get_voice_ai_service),
):
    try:
        return await service.gateway([m.model_dump() for m in data.messages])
    except VoiceAIError as e:
        logger.error(f"❌ AI Gateway error: {e}")
        raise HTTPException(status_code=500, detail="AI processing failed") from e


@router.post("/webhook/twilio-voice")
async def twilio_voice():
    """Entry point of an inbound call handled by the assistant"""
    logger.info("📞 Twilio voice webhook: greeting caller")
    return xml_response(greeting_twiml())


@router.post("/webhook/twilio-process-speech")
async def twilio_process_speech(
    SpeechResult: str = Form(""),
    service: VoiceAIService = Depends(get_voice_ai_service),
):
    try:
        reply = await service.answer_speech(SpeechResult)
    except VoiceAIError as e:
        logger.error(f"❌ Speech processing failed: {e}")
        return xml_response(apology_twiml())
    return xml_response(reply_twiml(reply))
