import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from ..auth import SessionPayload, optional_session
from ..core.agent import AgentLoop, ChatTurn, get_agent_loop

logger = logging.getLogger(__name__)

router = APIRouter()

CHAT_FAILURE_DETAIL = "Failed to get a response from the assistant. Please try again."


class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(..., min_length=1)
    conversation_history: List[ChatTurn] = Field(default_factory=list, alias="conversationHistory")


@router.post("/chat")
async def chat_endpoint(
    request: ChatRequest,
    session: Optional[SessionPayload] = Depends(optional_session),
    agent: AgentLoop = Depends(get_agent_loop),
):
    """One conversational turn; fund-moving tools need a signed-in session."""
    try:
        reply = await agent.run(
            request.message,
            request.conversation_history,
            user_address=session.address if session else None,
        )
    except Exception:
        logger.exception("Chat processing failed")
        raise HTTPException(status_code=500, detail=CHAT_FAILURE_DETAIL)
    return reply.to_payload()
