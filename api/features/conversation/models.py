"""Domain models for the Conversation feature."""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from api.features.conversation.entities.conversation import Conversation as ConversationEntity
from api.features.conversation.entities.message import Message as MessageEntity, MessageRole
from api.shared.utils import ensure_utc


class ConversationModel(BaseModel):
    """Domain model for Conversation."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Conversation identifier")
    title: str = Field(description="Display title")
    created_at: datetime = Field(description="Creation timestamp")
    deleted_at: Optional[datetime] = Field(default=None, description="Soft-delete timestamp")

    @classmethod
    def from_entity(cls, entity: ConversationEntity) -> "ConversationModel":
        """Create model from database entity."""
        return cls(
            id=entity.id,
            title=entity.title,
            created_at=ensure_utc(entity.created_at),
            deleted_at=ensure_utc(entity.deleted_at) if entity.deleted_at else None,
        )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


class MessageModel(BaseModel):
    """Domain model for Message."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Message identifier")
    conversation_id: int = Field(description="Owning conversation")
    role: MessageRole = Field(description="Message role")
    content: str = Field(description="Message content")
    created_at: datetime = Field(description="Creation timestamp")

    @classmethod
    def from_entity(cls, entity: MessageEntity) -> "MessageModel":
        """Create model from database entity."""
        return cls(
            id=entity.id,
            conversation_id=entity.conversation_id,
            role=entity.role,
            content=entity.content,
            created_at=ensure_utc(entity.created_at),
        )


class MessagePage(BaseModel):
    """One pagination window, always in ascending order."""

    messages: List[MessageModel] = Field(default_factory=list)
    next_cursor: Optional[str] = None
    prev_cursor: Optional[str] = None


class TurnResult(BaseModel):
    """Outcome of one orchestrated turn.

    `reply` is None and `error` is set when the upstream was unavailable; the
    user message is durable either way.
    """

    message: MessageModel
    reply: Optional[MessageModel] = None
    error: Optional[str] = None

    @property
    def is_partial(self) -> bool:
        return self.reply is None
