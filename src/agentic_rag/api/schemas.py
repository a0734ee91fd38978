"""
Pydantic schemas for the streaming API.

Defines request/response models for /predict_stream and the WebSocket.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from ..domain.entities import Message, MessageRole


# =============================================================================
# Constants
# =============================================================================

MAX_MESSAGE_LENGTH = 10000
MAX_SESSION_ID_LENGTH = 128


# =============================================================================
# Request Schemas
# =============================================================================


class MessageIn(BaseModel):
    """One conversation turn as sent by the client."""

    role: MessageRole
    content: str = Field(..., max_length=MAX_MESSAGE_LENGTH)
    name: Optional[str] = None

    @field_validator("role", mode="before")
    @classmethod
    def parse_role(cls, value):
        if isinstance(value, MessageRole):
            return value
        return MessageRole.parse(value)

    @model_validator(mode="after")
    def check_name(self) -> "MessageIn":
        if self.name is not None and self.role != MessageRole.TOOL:
            raise ValueError("name is only allowed on Tool messages")
        return self

    def to_domain(self) -> Message:
        return Message(role=self.role, content=self.content, name=self.name)


class PredictRequest(BaseModel):
    """Request to run one exchange."""

    session_id: str = Field(..., min_length=1, max_length=MAX_SESSION_ID_LENGTH)
    messages: list[MessageIn] = Field(..., min_length=1)

    class Config:
        json_schema_extra = {
            "example": {
                "session_id": "b7f3c2e0-session",
                "messages": [
                    {"role": "User", "content": "What is the remote work policy?"},
                ],
            }
        }

    def to_domain(self) -> list[Message]:
        return [m.to_domain() for m in self.messages]


# =============================================================================
# Response Schemas
# =============================================================================


class HealthResponse(BaseModel):
    status: str = "ok"

    class Config:
        json_schema_extra = {"example": {"status": "ok"}}
