"""Controller for the Conversation feature."""
import logging
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.dtos import (
    ConversationDTO,
    MessagePageResponse,
    TurnResponse,
)
from api.features.conversation.message_service import MessageService
from api.features.conversation.orchestrator import TurnOrchestrator
from api.features.conversation.pagination import PageDirection
from api.features.conversation.service import ConversationService

logger = logging.getLogger("api.conversation.controller")


class ConversationController:
    """Controller handling conversation lifecycle and message operations."""

    def __init__(
        self,
        conversation_service: ConversationService,
        message_service: MessageService,
        orchestrator: TurnOrchestrator,
    ):
        self.conversation_service = conversation_service
        self.message_service = message_service
        self.orchestrator = orchestrator

    async def list_conversations(self, *, db_session: AsyncSession) -> List[ConversationDTO]:
        items = await self.conversation_service.list_active(db_session=db_session)
        return [ConversationDTO.from_model(c) for c in items]

    async def create_conversation(self, *, db_session: AsyncSession) -> ConversationDTO:
        conversation = await self.conversation_service.create(db_session=db_session)
        return ConversationDTO.from_model(conversation)

    async def delete_conversation(self, conversation_id: int, *, db_session: AsyncSession) -> None:
        await self.conversation_service.soft_delete(conversation_id, db_session=db_session)

    async def undo_delete(self, conversation_id: int, *, db_session: AsyncSession) -> ConversationDTO:
        conversation = await self.conversation_service.undo(conversation_id, db_session=db_session)
        return ConversationDTO.from_model(conversation)

    async def get_messages(
        self,
        conversation_id: int,
        *,
        cursor: Optional[str],
        direction: PageDirection,
        limit: Optional[int],
        db_session: AsyncSession,
    ) -> MessagePageResponse:
        page = await self.message_service.list_page(
            conversation_id,
            cursor=cursor,
            direction=direction,
            limit=limit,
            db_session=db_session,
        )
        return MessagePageResponse.from_model(page)

    async def post_message(
        self, conversation_id: int, content: Optional[str], *, db_session: AsyncSession
    ) -> TurnResponse:
        result = await self.orchestrator.post_message(
            conversation_id, content, db_session=db_session
        )
        if result.is_partial:
            logger.warning(f"Returning partial turn for conversation {conversation_id}")
        return TurnResponse.from_model(result)
