"""
Chat-related Pydantic schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from reloop.domain import Message, MessageRole


class SendMessageRequest(BaseModel):
    """New user turn for a chat."""

    message: Message = Field(description="User message")
    max_steps: int | None = Field(default=None, ge=1, description="Step budget override")

    @field_validator("message")
    @classmethod
    def _user_only(cls, message: Message) -> Message:
        if message.role != MessageRole.USER:
            raise ValueError("message must have role 'user'")
        if not message.parts:
            raise ValueError("message must have at least one part")
        return message

    model_config = {
        "json_schema_extra": {
            "example": {
                "message": {
                    "role": "user",
                    "parts": [{"type": "text", "text": "Draft a tweet about tide pools"}],
                }
            }
        }
    }


class ChatHistoryResponse(BaseModel):
    title: str | None = None
    messages: list[Message]
    resume_run_id: str | None = Field(
        default=None, description="Run to reconnect to, if the last turn was interrupted"
    )


class RunResponse(BaseModel):
    id: str
    chat_id: str | None
    message_id: str | None
    status: str
    error: str | None
    events: int
    created_at: datetime
    updated_at: datetime
