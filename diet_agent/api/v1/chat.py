from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from loguru import logger
from pydantic import BaseModel, Field

from diet_agent.api.deps import device_id_or_400, get_metrics, get_settings, get_task_runner
from diet_agent.config import Settings
from diet_agent.core.models import ChatHints, ChatMessage, ChatResponse, MealPlan
from diet_agent.core.preferences import is_meal_plan_request
from diet_agent.services.chat import DietChatService
from diet_agent.services.exceptions import LLMError, RepoError
from diet_agent.services.llm import ChatResponder, OpenAIChatResponder
from diet_agent.services.metrics import MetricsLogger
from diet_agent.services.planning import MealPlanService, render_meal_plan_message
from diet_agent.services.repo.json_repo import JSONHistoryStore
from diet_agent.services.task_runner import TaskRunner

router = APIRouter(tags=["chat"])

MAX_SESSIONS = 500

# device id -> conversation; process-local, like the web client's own session
_sessions: Dict[str, DietChatService] = {}


# ---- DI helpers --------------------------------------------------------------

def get_chat_responder(settings: Settings = Depends(get_settings)) -> Optional[ChatResponder]:
    if not settings.openai_api_key:
        return None
    try:
        return OpenAIChatResponder(settings)
    except LLMError as e:
        logger.warning("Chat responder unavailable: {}", e)
        return None


def _session_for(device_id: str) -> DietChatService:
    session = _sessions.get(device_id)
    if session is None:
        if len(_sessions) >= MAX_SESSIONS:
            _sessions.pop(next(iter(_sessions)))
        session = _sessions[device_id] = DietChatService()
    return session


# ---- Models ------------------------------------------------------------------

class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class ChatReply(ChatResponse):
    meal_plan: Optional[MealPlan] = None
    source: Optional[str] = None
    progress: List[str] = Field(default_factory=list)
    hints: Optional[ChatHints] = None


def _save_chat(settings: Settings, query: str, plan: str, messages: List[ChatMessage]) -> None:
    # best-effort: a full disk must not cost the user their answer
    try:
        JSONHistoryStore(settings).add_chat(query=query, plan=plan, messages=messages)
    except RepoError as e:
        logger.warning("Could not save chat history: {}", e)


# ---- Routes ------------------------------------------------------------------

@router.post("/api/v1/chat", response_model=ChatReply)
async def send_chat_message(
    body: ChatRequest,
    request: Request,
    settings: Settings = Depends(get_settings),
    responder: Optional[ChatResponder] = Depends(get_chat_responder),
    runner: Optional[TaskRunner] = Depends(get_task_runner),
    metrics: MetricsLogger = Depends(get_metrics),
):
    device_id = device_id_or_400(request)
    session = _session_for(device_id)
    session.responder = responder
    text = body.message.strip()

    if runner is not None and is_meal_plan_request(text):
        result = await MealPlanService(runner, metrics).generate(body.message)
        message = render_meal_plan_message(result)
        session.record("user", text)
        session.record("assistant", message)
        reply = ChatReply(
            message=message,
            meal_plan=result.meal_plan,
            source=result.source,
            progress=result.outcome.progress if result.outcome else [],
        )
        plan_label = result.meal_plan.title
    else:
        response = await session.send_message(text)
        reply = ChatReply(**response.model_dump(), hints=session.hints)
        plan_label = reply.suggestions[0].title if reply.suggestions else "Conversation"

    _save_chat(settings, text, plan_label, session.history[-2:])
    return reply


@router.delete("/api/v1/chat")
def reset_chat(request: Request):
    device_id = device_id_or_400(request)
    session = _sessions.pop(device_id, None)
    if session is not None:
        session.reset()
    return {"ok": True}
