"""Message entity."""
from enum import Enum

from sqlalchemy import Enum as SQLEnum, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from api.shared.entities.base import BaseEntity


class MessageRole(str, Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseEntity):
    """Immutable, role-tagged text entry belonging to one conversation."""

    __table_args__ = (
        Index("ix_message_conversation_order", "conversation_id", "created_at", "id"),
    )

    conversation_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
    )
    role: Mapped[MessageRole] = mapped_column(
        SQLEnum(
            MessageRole,
            name="message_role",
            native_enum=False,
            length=20,
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
