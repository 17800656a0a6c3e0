"""Repository for conversation rows."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update

from api.features.conversation.entities.conversation import Conversation
from api.shared.base import BaseRepository
from api.shared.entities.base import is_storable_id


class ConversationRepository(BaseRepository[Conversation]):
    """Conversation persistence operations."""

    model = Conversation

    async def list_active(self) -> List[Conversation]:
        """Conversations without a soft-delete marker, oldest first."""
        stmt = (
            select(Conversation)
            .where(Conversation.deleted_at.is_(None))
            .order_by(Conversation.created_at, Conversation.id)
        )
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def list_soft_deleted(self) -> List[Conversation]:
        stmt = (
            select(Conversation)
            .where(Conversation.deleted_at.is_not(None))
            .order_by(Conversation.deleted_at)
        )
        result = await self._execute(stmt)
        return list(result.scalars().all())

    async def set_deleted_at(
        self, conversation_id: int, deleted_at: Optional[datetime]
    ) -> bool:
        """Set or clear the soft-delete marker. Returns False if no such row."""
        if not is_storable_id(conversation_id):
            return False
        stmt = (
            update(Conversation)
            .where(Conversation.id == conversation_id)
            .values(deleted_at=deleted_at)
        )
        result = await self._execute(stmt)
        return result.rowcount > 0

    async def get_for_update(self, conversation_id: int) -> Optional[Conversation]:
        """Read a row and hold a write lock on it until the transaction ends."""
        if not is_storable_id(conversation_id):
            return None
        stmt = (
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .with_for_update()
        )
        result = await self._execute(stmt)
        return result.scalar_one_or_none()
