"""
Assistant API Endpoints
Onboarding chat and profile extraction; every endpoint needs AI-processing consent
"""
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_current_user
from app.core.exceptions import AIServiceError, DOMAIN_ERRORS, handle_ai_error, raise_for_domain_error
from app.db.postgres import get_db
from app.db.models.user import User
from app.services.ai.assistant_service import AssistantService
from app.services.ai.groq_service import GroqLLMService, get_llm_service
from app.services.ai.schemas import (
    ChatRequest,
    ChatResponse,
    ConversationDetail,
    ConversationSummary,
    ExtractProfileRequest,
    ExtractProfileResponse,
)

router = APIRouter(prefix="/assistant", tags=["assistant"])


def get_assistant(
    current_user: User = Depends(get_current_user),
    llm: GroqLLMService = Depends(get_llm_service),
    db: Session = Depends(get_db),
) -> AssistantService:
    assistant = AssistantService(db, llm)
    try:
        assistant.require_ai_consent(current_user)
    except PermissionError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    return assistant


@router.post("/chat", response_model=ChatResponse)
def chat(
    payload: ChatRequest,
    current_user: User = Depends(get_current_user),
    assistant: AssistantService = Depends(get_assistant),
):
    try:
        return assistant.chat(current_user, payload.message, payload.conversation_id)
    except AIServiceError as e:
        raise handle_ai_error(e)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)


@router.get("/conversations", response_model=list[ConversationSummary])
def list_conversations(
    current_user: User = Depends(get_current_user),
    assistant: AssistantService = Depends(get_assistant),
):
    return [assistant.summarize(c) for c in assistant.list_conversations(current_user)]


@router.get("/conversations/{conversation_id}", response_model=ConversationDetail)
def get_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    assistant: AssistantService = Depends(get_assistant),
):
    try:
        conversation = assistant.get_conversation(current_user, conversation_id)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return assistant.summarize(conversation, include_messages=True)


@router.delete("/conversations/{conversation_id}")
def delete_conversation(
    conversation_id: int,
    current_user: User = Depends(get_current_user),
    assistant: AssistantService = Depends(get_assistant),
):
    try:
        assistant.delete_conversation(current_user, conversation_id)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
    return {"success": True}


@router.post("/conversations/{conversation_id}/extract-profile", response_model=ExtractProfileResponse)
def extract_profile(
    conversation_id: int,
    payload: ExtractProfileRequest,
    current_user: User = Depends(get_current_user),
    assistant: AssistantService = Depends(get_assistant),
):
    """Pull profile fields out of the conversation; apply=true also saves them"""
    try:
        return assistant.extract_profile(current_user, conversation_id, payload.apply)
    except AIServiceError as e:
        raise handle_ai_error(e)
    except DOMAIN_ERRORS as e:
        raise_for_domain_error(e)
