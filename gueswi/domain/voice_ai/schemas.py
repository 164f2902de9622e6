"""Voice AI schemas - chat gateway payloads"""

from typing import Any, Optional

from pydantic import BaseModel, field_validator

CHAT_ROLES = ("user", "assistant", "system")


class ChatMessage(BaseModel):
    role: str
    content: str

    @field_validator("role")
    @classmethod
    def check_role(cls, v):
        if v not in CHAT_ROLES:
            raise ValueError(f"Role must be one of: {', '.join(CHAT_ROLES)}")
        return v


class GatewayRequest(BaseModel):
    messages: list[ChatMessage]
    context: Optional[Any] = None

    @field_validator("messages")
    @classmethod
    def check_messages(cls, v):
        if not v:
            raise ValueError("At least one message is required")
        return v


class GatewayResponse(BaseModel):
    response: str
    actions: list[str]
