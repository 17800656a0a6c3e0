"""DTOs for the Conversation feature."""
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from api.features.conversation.models import (
    ConversationModel,
    MessageModel,
    MessagePage,
    TurnResult,
)
from api.shared.dtos import BaseDTO


class ConversationDTO(BaseDTO):
    """Conversation DTO."""

    id: int = Field(description="Conversation identifier")
    title: str = Field(description="Conversation title")
    created_at: datetime = Field(description="Creation timestamp")
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete timestamp")

    @classmethod
    def from_model(cls, model: ConversationModel) -> "ConversationDTO":
        return cls(
            id=model.id,
            title=model.title,
            created_at=model.created_at,
            deleted_at=model.deleted_at,
        )


class MessageDTO(BaseDTO):
    """Conversation message DTO."""

    id: int = Field(description="Message identifier")
    conversation_id: int = Field(description="Owning conversation identifier")
    role: str = Field(description="Message role: user or assistant")
    content: str = Field(description="Message content")
    created_at: datetime = Field(description="Creation timestamp")

    @classmethod
    def from_model(cls, model: MessageModel) -> "MessageDTO":
        return cls(
            id=model.id,
            conversation_id=model.conversation_id,
            role=model.role.value,
            content=model.content,
            created_at=model.created_at,
        )


class PostMessageRequest(BaseDTO):
    """Post a user message to a conversation."""

    content: Optional[str] = Field(default=None, description="Message content")


class MessagePageResponse(BaseDTO):
    """One window of messages in chronological order."""

    messages: List[MessageDTO] = Field(description="Messages in ascending order")
    next_cursor: Optional[str] = Field(
        default=None, description="Continue in the requested direction"
    )
    prev_cursor: Optional[str] = Field(
        default=None, description="Walk back in the opposite direction"
    )

    @classmethod
    def from_model(cls, page: MessagePage) -> "MessagePageResponse":
        return cls(
            messages=[MessageDTO.from_model(m) for m in page.messages],
            next_cursor=page.next_cursor,
            prev_cursor=page.prev_cursor,
        )


class TurnResponse(BaseDTO):
    """Result of posting a message: the stored user message and the reply."""

    message: MessageDTO = Field(description="Persisted user message")
    reply: Optional[MessageDTO] = Field(default=None, description="Assistant reply")
    error: Optional[str] = Field(
        default=None, description="Set when no reply could be generated"
    )

    @classmethod
    def from_model(cls, result: TurnResult) -> "TurnResponse":
        return cls(
            message=MessageDTO.from_model(result.message),
            reply=MessageDTO.from_model(result.reply) if result.reply else None,
            error=result.error,
        )
