"""Router for the Conversation feature."""
from typing import List, Optional

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Body, Depends, HTTPException, Query, Response
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from api.di.container import ApplicationContainer as DependencyContainer
from api.features.conversation.controller import ConversationController
from api.features.conversation.dtos import (
    ConversationDTO,
    MessagePageResponse,
    PostMessageRequest,
    TurnResponse,
)
from api.features.conversation.exceptions import (
    ConversationInvalidStateError,
    ConversationNotFoundError,
)
from api.features.conversation.pagination import PageDirection
from api.shared.db import get_db_session
from api.shared.exceptions import ValidationError
from api.shared.response import ResponseModel

router = APIRouter()


@router.get("", response_model=List[ConversationDTO])
@inject
async def list_conversations(
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """List Active conversations."""
    return await controller.list_conversations(db_session=db_session)


@router.post("", response_model=ConversationDTO, status_code=201)
@inject
async def create_conversation(
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Create a conversation titled "Conversation #N"."""
    return await controller.create_conversation(db_session=db_session)


@router.delete("/{conversation_id}", status_code=204, response_class=Response)
@inject
async def delete_conversation(
    conversation_id: int,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Soft delete; the conversation is purged after the undo window."""
    try:
        await controller.delete_conversation(conversation_id, db_session=db_session)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    return Response(status_code=204)


@router.post("/{conversation_id}/undo", response_model=ResponseModel[ConversationDTO])
@inject
async def undo_delete(
    conversation_id: int,
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Restore a soft-deleted conversation before its purge fires."""
    try:
        conversation = await controller.undo_delete(conversation_id, db_session=db_session)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ConversationInvalidStateError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return ResponseModel.success(data=conversation, message="Conversation restored")


@router.get("/{conversation_id}/messages", response_model=MessagePageResponse)
@inject
async def get_messages(
    conversation_id: int,
    cursor: Optional[str] = Query(None, description="Opaque position from a previous page"),
    direction: PageDirection = Query(PageDirection.OLDER),
    limit: Optional[int] = Query(None, description="Page size; defaults when absent or <= 0"),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Page through a conversation's messages."""
    try:
        return await controller.get_messages(
            conversation_id,
            cursor=cursor,
            direction=direction,
            limit=limit,
            db_session=db_session,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)


@router.post(
    "/{conversation_id}/messages",
    response_model=TurnResponse,
    responses={503: {"model": TurnResponse}},
)
@inject
async def post_message(
    conversation_id: int,
    request: Optional[PostMessageRequest] = Body(default=None),
    controller: ConversationController = Depends(
        Provide[DependencyContainer.controllers.conversation_controller]
    ),
    db_session: AsyncSession = Depends(get_db_session),
):
    """Store the user message, generate a reply and store it."""
    try:
        result = await controller.post_message(
            conversation_id,
            request.content if request else None,
            db_session=db_session,
        )
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ConversationNotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    if result.error is not None:
        return JSONResponse(
            status_code=503,
            content=result.model_dump(by_alias=True, mode="json"),
        )
    return result
