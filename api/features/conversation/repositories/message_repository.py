"""Repository for message rows.

Range reads walk the `(created_at, id)` order backed by
`ix_message_conversation_order`.
"""
from datetime import datetime
from typing import List, NamedTuple, Optional

from sqlalchemy import and_, or_, select

from api.features.conversation.entities.message import Message
from api.shared.base import BaseRepository
from api.shared.entities.base import is_storable_id


class Position(NamedTuple):
    """A point in a conversation's total message order."""

    created_at: datetime
    id: int

    @classmethod
    def of(cls, message: Message) -> "Position":
        return cls(message.created_at, message.id)


def _before(position: Position):
    return or_(
        Message.created_at < position.created_at,
        and_(Message.created_at == position.created_at, Message.id < position.id),
    )


def _after(position: Position):
    return or_(
        Message.created_at > position.created_at,
        and_(Message.created_at == position.created_at, Message.id > position.id),
    )


class MessageRepository(BaseRepository[Message]):
    """Message persistence operations."""

    model = Message

    async def list_for_conversation(self, conversation_id: int) -> List[Message]:
        """Full history in ascending order."""
        if not is_storable_id(conversation_id):
            return []
        stmt = (
            select(Message)
            .where(Message.conversation_id == conversation_id)
            .order_by(Message.created_at, Message.id)
        )
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def window(
        self,
        conversation_id: int,
        *,
        limit: int,
        before: Optional[Position] = None,
        after: Optional[Position] = None,
    ) -> List[Message]:
        """Up to `limit` messages adjacent to a position.

        With `after` the window extends forward from the position; otherwise
        it extends backward from `before` (or from the newest message). Rows
        come back in walk order: descending for backward windows, ascending
        for forward ones.
        """
        if not is_storable_id(conversation_id):
            return []
        stmt = select(Message).where(Message.conversation_id == conversation_id)
        if after is not None:
            stmt = stmt.where(_after(after)).order_by(
                Message.created_at.asc(), Message.id.asc()
            )
        else:
            if before is not None:
                stmt = stmt.where(_before(before))
            stmt = stmt.order_by(Message.created_at.desc(), Message.id.desc())
        result = await self._execute(stmt.limit(limit))
        return list(result.scalars().all())

    async def has_before(self, conversation_id: int, position: Position) -> bool:
        if not is_storable_id(conversation_id):
            return False
        stmt = (
            select(Message.id)
            .where(Message.conversation_id == conversation_id, _before(position))
            .limit(1)
        )
        result = await self._execute(stmt)
        return result.first() is not None

    async def has_after(self, conversation_id: int, position: Position) -> bool:
        if not is_storable_id(conversation_id):
            return False
        stmt = (
            select(Message.id)
            .where(Message.conversation_id == conversation_id, _after(position))
            .limit(1)
        )
        result = await self._execute(stmt)
        return result.first() is not None
