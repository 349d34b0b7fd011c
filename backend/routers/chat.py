"""
Chat API endpoint.

Runs each user message through the IntentResolver and returns the
decision (edit, search, preview or plain reply). Nothing is written to
the calendar here; a preview is saved only when the client confirms it
via POST /events/confirm.

Errors never reach the user as raw payloads: anything unrecoverable is
logged and answered with a generic apology.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import get_conversation_store, get_intent_resolver, get_owner_scope
from backend.schemas import ChatRequest, ChatResponse
from src.agents import IntentResolver
from src.core.conversation_store import ConversationStore
from src.core.errors import AuthenticationRequired, UpstreamUnavailable
from src.core.models import MessageRole, OwnerScope, RawMessage, ResolvedAction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

APOLOGY_MESSAGE = "Sorry, I encountered an error while processing your message. Please try again."


def _action_to_response(action: ResolvedAction, conversation_id: str) -> ChatResponse:
    payload = action.to_dict()
    return ChatResponse(
        message=payload["message"],
        action=payload["action"],
        intent=payload["intent"],
        conversation_id=conversation_id,
        event_id=payload["event_id"],
        search_term=payload["search_term"],
        candidates=payload["candidates"],
        preview=payload["preview"],
    )


@router.post("/process", response_model=ChatResponse)
async def process_message(
    request: ChatRequest,
    scope: OwnerScope = Depends(get_owner_scope),
    resolver: IntentResolver = Depends(get_intent_resolver),
    conversations: ConversationStore = Depends(get_conversation_store),
):
    """
    Resolve a chat message.

    Examples:
    - "Schedule soccer practice Tuesday at 4pm" -> preview
    - "Can you update my dentist appointment" -> edit (or search)
    - "reschedule soccer practice to Friday 5pm" -> edit (or search)
    """
    conversation_id = request.conversation_id

    try:
        if not conversation_id:
            conversation_id = await conversations.latest_conversation_id(scope.user_id) \
                or conversations.new_conversation_id()
        context = await conversations.load_context(conversation_id, scope.user_id)
        action = await resolver.resolve(request.message, context, scope)
    except AuthenticationRequired as e:
        raise HTTPException(status_code=401, detail=str(e))
    except UpstreamUnavailable as e:
        logger.error(f"Chat processing failed, upstream unavailable: {e}", exc_info=True)
        return ChatResponse(message=APOLOGY_MESSAGE, conversation_id=conversation_id)
    except Exception as e:
        logger.error(f"Chat processing failed: {e}", exc_info=True)
        return ChatResponse(message=APOLOGY_MESSAGE, conversation_id=conversation_id)

    try:
        await conversations.append(
            conversation_id, scope.user_id, RawMessage(request.message, MessageRole.USER)
        )
        await conversations.append(
            conversation_id, scope.user_id, RawMessage(action.message, MessageRole.ASSISTANT)
        )
    except UpstreamUnavailable as e:
        logger.warning(f"Could not store conversation {conversation_id}: {e}")

    return _action_to_response(action, conversation_id)
