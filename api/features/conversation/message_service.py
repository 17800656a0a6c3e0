"""Message store: strict appends, lenient reads, two-way cursor pagination."""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.message import Message, MessageRole
from api.features.conversation.exceptions import ConversationNotFoundError
from api.features.conversation.models import MessageModel, MessagePage
from api.features.conversation.pagination import PageDirection, decode_cursor, encode_cursor
from api.features.conversation.repositories.conversation_repository import (
    ConversationRepository,
)
from api.features.conversation.repositories.message_repository import (
    MessageRepository,
    Position,
)
from api.shared.base import BaseService

logger = logging.getLogger("api.conversation.messages")

PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class MessageService(BaseService):
    """Service for message persistence and pagination."""

    def __init__(self, page_size: int = PAGE_SIZE, max_page_size: int = MAX_PAGE_SIZE):
        self.page_size = page_size
        self.max_page_size = max_page_size

    def resolve_limit(self, limit: Optional[int]) -> int:
        if limit is None or limit <= 0:
            return self.page_size
        return min(limit, self.max_page_size)

    async def append(
        self,
        conversation_id: int,
        role: MessageRole,
        content: str,
        *,
        db_session: AsyncSession,
    ) -> MessageModel:
        """Insert and commit one message.

        Raises:
            ConversationNotFoundError: the conversation does not exist.
        """
        if not await ConversationRepository(db_session).exists(conversation_id):
            raise ConversationNotFoundError(conversation_id)

        repository = MessageRepository(db_session)
        try:
            entity = await repository.create(
                Message(conversation_id=conversation_id, role=role, content=content)
            )
            await self._commit(db_session)
        except IntegrityError as e:
            # The purge won the race between the existence check and the insert.
            await db_session.rollback()
            raise ConversationNotFoundError(conversation_id) from e

        logger.info(f"Message {entity.id} appended to conversation {conversation_id} ({role.value})")
        return MessageModel.from_entity(entity)

    async def history(
        self, conversation_id: int, *, db_session: AsyncSession
    ) -> List[MessageModel]:
        """Full ordered history of a conversation."""
        entities = await MessageRepository(db_session).list_for_conversation(conversation_id)
        return [MessageModel.from_entity(e) for e in entities]

    async def list_page(
        self,
        conversation_id: int,
        *,
        cursor: Optional[str] = None,
        direction: PageDirection = PageDirection.OLDER,
        limit: Optional[int] = None,
        db_session: AsyncSession,
    ) -> MessagePage:
        """Return one ascending window of messages.

        Without a cursor the newest window is returned regardless of
        direction. `next_cursor` continues in the requested direction and
        `prev_cursor` walks back the other way; each is None when there is
        nothing further that way. Unknown conversations give an empty page.
        """
        size = self.resolve_limit(limit)
        position = decode_cursor(cursor) if cursor else None
        repository = MessageRepository(db_session)

        if position is None or direction == PageDirection.OLDER:
            rows = await repository.window(conversation_id, limit=size + 1, before=position)
            has_more = len(rows) > size
            rows = list(reversed(rows[:size]))
            if not rows:
                return MessagePage()
            next_cursor = encode_cursor(Position.of(rows[0])) if has_more else None
            prev_cursor = None
            if position is not None and await repository.has_after(
                conversation_id, Position.of(rows[-1])
            ):
                prev_cursor = encode_cursor(Position.of(rows[-1]))
        else:
            rows = await repository.window(conversation_id, limit=size + 1, after=position)
            has_more = len(rows) > size
            rows = rows[:size]
            if not rows:
                return MessagePage()
            next_cursor = encode_cursor(Position.of(rows[-1])) if has_more else None
            prev_cursor = None
            if await repository.has_before(conversation_id, Position.of(rows[0])):
                prev_cursor = encode_cursor(Position.of(rows[0]))

        return MessagePage(
            messages=[MessageModel.from_entity(e) for e in rows],
            next_cursor=next_cursor,
            prev_cursor=prev_cursor,
        )
