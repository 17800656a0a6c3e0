"""Per-turn coordination between the message store and the completion adapter."""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from api.features.conversation.entities.message import MessageRole
from api.features.conversation.exceptions import MissingContentError
from api.features.conversation.message_service import MessageService
from api.features.conversation.models import TurnResult
from api.features.conversation.service import ConversationService
from api.shared.exceptions import UpstreamUnavailableError
from llm.adapter import CompletionAdapter
from llm.providers import CompletionMessage

logger = logging.getLogger("api.conversation.orchestrator")


class TurnOrchestrator:
    """Runs one user turn as a sequence of independently committed steps.

    1. check the conversation is Active
    2. commit the user message
    3. read the full history
    4. ask the completion adapter
    5. commit the assistant reply

    A failure in step 4 yields a partial `TurnResult`; the user message from
    step 2 stays. Concurrent turns on one conversation are not serialized.
    """

    def __init__(
        self,
        conversation_service: ConversationService,
        message_service: MessageService,
        completion_adapter: CompletionAdapter,
    ):
        self.conversation_service = conversation_service
        self.message_service = message_service
        self.completion_adapter = completion_adapter

    async def post_message(
        self,
        conversation_id: int,
        content: Optional[str],
        *,
        db_session: AsyncSession,
    ) -> TurnResult:
        if not content:
            raise MissingContentError()

        await self.conversation_service.get_active(conversation_id, db_session=db_session)

        user_message = await self.message_service.append(
            conversation_id, MessageRole.USER, content, db_session=db_session
        )
        history = await self.message_service.history(conversation_id, db_session=db_session)

        try:
            result = await self.completion_adapter.complete(
                [CompletionMessage(role=m.role.value, content=m.content) for m in history]
            )
        except UpstreamUnavailableError as e:
            logger.warning(
                f"Turn for conversation {conversation_id} kept user message "
                f"{user_message.id} without a reply: {e.message}"
            )
            return TurnResult(message=user_message, reply=None, error=e.message)

        reply = await self.message_service.append(
            conversation_id, MessageRole.ASSISTANT, result.completion, db_session=db_session
        )
        return TurnResult(message=user_message, reply=reply)
