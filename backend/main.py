"""
FastAPI Backend for the AI Learning Assistant

Provides REST API endpoints for:
- Chatting with the tier-routed assistant
- Reading and deleting chat sessions
- Welcome message for the current course day
- Admin cache management
"""

from fastapi import FastAPI, HTTPException, Depends, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Any
import os
import sys
import time
import logging

# Add the ai_learning_assistant package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)

package_src = os.path.join(project_root, 'ai_learning_assistant', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)
if backend_dir not in sys.path:
    sys.path.insert(0, backend_dir)

from lib.logger import setup_logging, get_logger
from lib.auth import get_current_user, require_admin

from ai_learning_assistant.errors import (
    AssistantError,
    AssistantErrorCode,
    ContentRejected,
    SessionNotFound,
    create_error,
)
from ai_learning_assistant.models import AssistantRequest, RequestType
from ai_learning_assistant.service import AssistantService, get_assistant_service

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")

# primary attempt + free-tier fallback
CHAT_TIMEOUT = float(os.getenv("ASSISTANT_CHAT_TIMEOUT", "65"))

STATUS_BY_CODE = {
    AssistantErrorCode.NOT_AUTHENTICATED: 401,
    AssistantErrorCode.INVALID_SESSION: 401,
    AssistantErrorCode.EXPIRED_SUBSCRIPTION: 403,
    AssistantErrorCode.TIER_LIMIT_REACHED: 403,
    AssistantErrorCode.EMPTY_MESSAGE: 400,
    AssistantErrorCode.MESSAGE_TOO_LONG: 400,
    AssistantErrorCode.INVALID_REQUEST_TYPE: 400,
    AssistantErrorCode.CONTENT_FILTERED: 400,
    AssistantErrorCode.SESSION_NOT_FOUND: 404,
    AssistantErrorCode.DAILY_LIMIT_EXCEEDED: 429,
    AssistantErrorCode.RATE_LIMIT_EXCEEDED: 429,
    AssistantErrorCode.AI_TIMEOUT: 504,
    AssistantErrorCode.REQUEST_TIMEOUT: 504,
    AssistantErrorCode.AI_UNAVAILABLE: 503,
    AssistantErrorCode.NETWORK_ERROR: 503,
}

app = FastAPI(
    title="AI Learning Assistant API",
    description="Tier-routed AI tutoring assistant for a 90-day programming course",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Pydantic Models ====================

class ChatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    request_type: str = Field("general", alias="requestType")
    code: Optional[str] = None
    task_id: Optional[str] = Field(None, alias="taskId")
    session_id: Optional[str] = Field(None, alias="sessionId")
    day: Optional[int] = Field(None, ge=1, le=90)
    language_id: Optional[str] = Field(None, alias="languageId")


class SessionMessage(BaseModel):
    id: str
    role: str
    content: str
    timestamp: float


class SessionInfo(BaseModel):
    sessionId: str
    messageCount: int
    startedAt: float
    lastActivity: float
    day: int
    languageId: str
    messages: List[SessionMessage]


class ClearCacheRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    language_id: Optional[str] = Field(None, alias="languageId")
    day: Optional[int] = None


# ==================== Helper Functions ====================

def get_service() -> AssistantService:
    """Service dependency (overridable in tests)."""
    return get_assistant_service()


def require_session_id(session_id: Optional[str], service: AssistantService) -> str:
    if not session_id:
        message = "Не указан ID сессии" if service.locale == "ru" else "Session ID is required"
        raise HTTPException(
            status_code=400,
            detail={"code": "MISSING_SESSION_ID", "message": "Session ID is required", "userMessage": message},
        )
    return session_id


@app.exception_handler(AssistantError)
async def assistant_error_handler(request, exc: AssistantError):
    status = STATUS_BY_CODE.get(exc.code, 500)
    logger.error(f"{request.method} {request.url.path} -> {status} {exc.code.value}", data={"detail": str(exc)})
    return JSONResponse(status_code=status, content=exc.to_error_response())


# ==================== API Endpoints ====================

@app.get("/")
async def root(service: AssistantService = Depends(get_service)):
    """Health check endpoint."""
    return {
        "status": "ok",
        "service": "AI Learning Assistant API",
        "version": "1.0.0",
        "ai_configured": service.client.is_configured,
    }


@app.post("/api/ai-assistant/chat")
async def chat(
    body: ChatRequest,
    user: dict = Depends(get_current_user),
    service: AssistantService = Depends(get_service),
):
    """Send a message to the assistant; a new session is created when sessionId is absent."""
    start_time = time.time()
    logger.request("POST", "/api/ai-assistant/chat", user_id=user["id"], data={
        "tier": user["tier"].value,
        "request_type": body.request_type,
        "session_id": body.session_id,
        "message_length": len(body.message),
    })

    try:
        request_type = RequestType(body.request_type)
    except ValueError:
        raise create_error(AssistantErrorCode.INVALID_REQUEST_TYPE, service.locale, detail=body.request_type)

    response = await service.send_message(
        AssistantRequest(
            user_id=user["id"],
            message=body.message,
            tier=user["tier"],
            request_type=request_type,
            session_id=body.session_id,
            day=body.day,
            language_id=body.language_id,
            code=body.code,
            task_id=body.task_id,
        ),
        timeout=CHAT_TIMEOUT,
    )

    if response.rejected:
        raise ContentRejected(response.reason, blocked=response.blocked)

    logger.response(200, "/api/ai-assistant/chat", duration=time.time() - start_time, data={
        "model": response.model,
        "cached": response.cached,
        "used_fallback": response.used_fallback,
    })
    return response.to_dict()


@app.get("/api/ai-assistant/chat", response_model=SessionInfo)
async def get_chat_session(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    user: dict = Depends(get_current_user),
    service: AssistantService = Depends(get_service),
):
    """Session info and history; sessions of other users are reported as not found."""
    session_id = require_session_id(session_id, service)
    session = service.sessions.get_session(session_id, user_id=user["id"])
    if session is None:
        raise SessionNotFound(session_id, service.locale)

    return SessionInfo(
        sessionId=session.id,
        messageCount=len(session.messages),
        startedAt=session.created_at,
        lastActivity=session.last_activity,
        day=session.context.day,
        languageId=session.context.language_id,
        messages=[
            SessionMessage(id=m.id, role=m.role.value, content=m.content, timestamp=m.timestamp)
            for m in session.messages
        ],
    )


@app.delete("/api/ai-assistant/chat")
async def delete_chat_session(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    user: dict = Depends(get_current_user),
    service: AssistantService = Depends(get_service),
):
    """Delete one of the caller's sessions and its history."""
    session_id = require_session_id(session_id, service)
    if service.sessions.get_session(session_id, user_id=user["id"]) is None:
        raise SessionNotFound(session_id, service.locale)

    service.sessions.clear_session(session_id)
    logger.success("Session cleared", data={"session_id": session_id, "user_id": user["id"]})
    return {
        "success": True,
        "message": "История очищена" if service.locale == "ru" else "History cleared",
    }


@app.delete("/api/ai-assistant/sessions")
async def delete_user_sessions(
    user: dict = Depends(get_current_user),
    service: AssistantService = Depends(get_service),
):
    """Delete every session of the caller."""
    deleted = service.sessions.clear_user_sessions(user["id"])
    return {"success": True, "deleted": deleted}


@app.get("/api/ai-assistant/welcome")
async def welcome(
    user: dict = Depends(get_current_user),
    service: AssistantService = Depends(get_service),
):
    """Greeting for the caller's current course day."""
    context = await service.aggregate_context(user["id"], user["tier"])
    return {
        "message": service.generate_welcome_message(context),
        "day": context.current_day,
        "languageId": context.language_id,
    }


@app.post("/api/admin/clear-cache", dependencies=[Depends(require_admin)])
async def clear_cache(
    body: Optional[ClearCacheRequest] = None,
    service: AssistantService = Depends(get_service),
):
    """Drop cached responses for one language/day, or every assistant cache."""
    if body is not None and body.language_id and body.day is not None:
        removed = service.invalidate_cache(body.language_id, body.day)
        scope = f"{body.language_id}:day{body.day}"
    else:
        removed = service.clear_all_caches()
        scope = "all"

    logger.success("Assistant cache cleared", data={"scope": scope, "removed": removed})
    return {"success": True, "scope": scope, "removed": removed, "stats": service.get_cache_stats()}


@app.get("/api/admin/cache-stats", dependencies=[Depends(require_admin)])
async def cache_stats(service: AssistantService = Depends(get_service)) -> Dict[str, Any]:
    return {
        "cache": service.get_cache_stats(),
        "sessions": service.sessions.get_stats(),
    }


if __name__ == "__main__":
    import uvicorn

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
