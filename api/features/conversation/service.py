"""Conversation lifecycle: create, list, soft delete, undo and delayed purge.

States: Active -> SoftDeleted -> Purged, with SoftDeleted -> Active on undo.
The purge timer is cancelled on undo, and the purge itself re-checks the
soft-delete marker inside its own transaction, so a restored conversation is
never removed.
"""
from __future__ import annotations

from typing import List

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.conversation import Conversation
from api.features.conversation.exceptions import (
    ConversationInvalidStateError,
    ConversationNotFoundError,
)
from api.features.conversation.models import ConversationModel
from api.features.conversation.repositories.conversation_repository import (
    ConversationRepository,
)
from api.features.conversation.repositories.message_repository import MessageRepository
from api.shared.base import BaseService
from api.shared.utils import seconds_since, utcnow
from infra.resources import DatabaseResource
from infra.scheduler import PurgeScheduler

logger = structlog.get_logger("api.conversation.service")

PURGE_DELAY_SECONDS = 5.0


class ConversationService(BaseService):
    """Service for conversation lifecycle operations."""

    def __init__(
        self,
        database: DatabaseResource,
        scheduler: PurgeScheduler,
        purge_delay_seconds: float = PURGE_DELAY_SECONDS,
    ):
        self.database = database
        self.scheduler = scheduler
        self.purge_delay_seconds = purge_delay_seconds

    async def create(self, *, db_session: AsyncSession) -> ConversationModel:
        """Create an Active conversation titled from the live row count.

        The count and the insert are separate statements, so concurrent
        creators can end up with the same number.
        """
        repository = ConversationRepository(db_session)
        count = await repository.count()
        entity = await repository.create(Conversation(title=f"Conversation #{count + 1}"))
        await self._commit(db_session)
        logger.info("Conversation created", conversation_id=entity.id, title=entity.title)
        return ConversationModel.from_entity(entity)

    async def list_active(self, *, db_session: AsyncSession) -> List[ConversationModel]:
        repository = ConversationRepository(db_session)
        return [ConversationModel.from_entity(e) for e in await repository.list_active()]

    async def get(self, conversation_id: int, *, db_session: AsyncSession) -> ConversationModel:
        """Resolve a conversation in any non-purged state."""
        entity = await ConversationRepository(db_session).get_by_id(conversation_id)
        if entity is None:
            raise ConversationNotFoundError(conversation_id)
        return ConversationModel.from_entity(entity)

    async def get_active(
        self, conversation_id: int, *, db_session: AsyncSession
    ) -> ConversationModel:
        conversation = await self.get(conversation_id, db_session=db_session)
        if conversation.is_deleted:
            raise ConversationNotFoundError(conversation_id)
        return conversation

    async def soft_delete(self, conversation_id: int, *, db_session: AsyncSession) -> None:
        """Hide the conversation now and arm its purge."""
        repository = ConversationRepository(db_session)
        if not await repository.set_deleted_at(conversation_id, utcnow()):
            raise ConversationNotFoundError(conversation_id)
        await self._commit(db_session)
        self.scheduler.schedule(conversation_id, self.purge_delay_seconds, self.purge)
        logger.info(
            "Conversation soft-deleted",
            conversation_id=conversation_id,
            purge_in_seconds=self.purge_delay_seconds,
        )

    async def undo(self, conversation_id: int, *, db_session: AsyncSession) -> ConversationModel:
        """Restore a soft-deleted conversation.

        Raises:
            ConversationNotFoundError: the purge already removed it.
            ConversationInvalidStateError: it is not soft-deleted.
        """
        repository = ConversationRepository(db_session)
        entity = await repository.get_by_id(conversation_id)
        if entity is None:
            raise ConversationNotFoundError(conversation_id)
        if not entity.is_deleted():
            raise ConversationInvalidStateError(conversation_id, "active", "soft-deleted")

        if not await repository.set_deleted_at(conversation_id, None):
            raise ConversationNotFoundError(conversation_id)
        await self._commit(db_session)
        self.scheduler.cancel(conversation_id)
        logger.info("Conversation restored", conversation_id=conversation_id)
        return ConversationModel.from_entity(entity)

    async def purge(self, conversation_id: int) -> bool:
        """Irreversibly remove a soft-deleted conversation and its messages.

        Runs in its own session. Returns False when there was nothing to do:
        the conversation is already gone or has been restored.
        """
        async with self.database.get_session() as session:
            conversations = ConversationRepository(session)
            entity = await conversations.get_for_update(conversation_id)
            if entity is None:
                logger.info("Purge skipped, already gone", conversation_id=conversation_id)
                return False
            if not entity.is_deleted():
                logger.info("Purge skipped, conversation restored", conversation_id=conversation_id)
                return False

            removed = await MessageRepository(session).delete_by_field(
                "conversation_id", conversation_id
            )
            await conversations.delete(conversation_id)
            await self._commit(session)
        logger.info("Conversation purged", conversation_id=conversation_id, messages=removed)
        return True

    async def resume_pending_purges(self) -> int:
        """Re-arm timers for soft-deleted conversations left by a previous process."""
        async with self.database.get_session() as session:
            pending = await ConversationRepository(session).list_soft_deleted()
        for entity in pending:
            remaining = self.purge_delay_seconds - seconds_since(entity.deleted_at)
            self.scheduler.schedule(entity.id, max(remaining, 0.0), self.purge)
        if pending:
            logger.info("Pending purges resumed", count=len(pending))
        return len(pending)
