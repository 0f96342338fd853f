# FastAPI application entry point for the Handbook Chat backend.
# Defines API routes for chatting about the university handbook, browsing its
# sections and checking service health.

from datetime import datetime, timezone
import logging
import sys
import os
from typing import Any, Optional

from fastapi import FastAPI, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError
import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from backend.config import Config
from backend.conversations import conversation_manager
from backend.handbook import handbook
from backend.rag import get_ai_response
from backend.utils import extract_regulations, generate_fallback_response

logging.basicConfig(
    level=Config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger("backend.main")

app = FastAPI(title="Handbook Chat API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=Config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

CHAT_ERROR_MESSAGE = "抱歉，處理您的請求時出現錯誤。請稍後再試。"


# ─────────────────────────────────────────
# REQUEST MODELS
# ─────────────────────────────────────────

class HistoryMessage(BaseModel):
    type: str
    content: str


class ChatRequest(BaseModel):
    # Checked by hand so bad values get the 400 error body, not a 422.
    message: Optional[Any] = None
    sessionId: Optional[str] = None
    conversation_id: Optional[str] = None
    conversationHistory: Optional[Any] = None
    action: Optional[str] = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ─────────────────────────────────────────
# CHAT
# ─────────────────────────────────────────

def health_status() -> dict:
    return {
        "status": "healthy",
        "message": "University Handbook AI Service is running",
        "timestamp": _now(),
        "services": {
            "handbook_processor": "online" if handbook.is_loaded else "offline",
            "ai_provider": "configured" if Config.ai_configured() else "not_configured",
            "conversation_manager": "online",
        },
        "version": Config.APP_VERSION,
        "success": True,
    }


def _expire_conversations() -> None:
    expired = conversation_manager.cleanup(Config.CONVERSATION_MAX_AGE_SECS)
    if expired:
        logger.info("[CHAT] expired %d old conversations", expired)


def _new_conversation() -> dict:
    _expire_conversations()
    return {
        "success": True,
        "conversation_id": conversation_manager.create_conversation(),
        "message": "New conversation created successfully",
        "timestamp": _now(),
    }


def _seed_history(conversation_id: str, history: Any) -> None:
    """
    Restore client-held history for a conversation the server has no record
    of (e.g. after a restart). Stored history always wins.
    """
    if not isinstance(history, list) or not history:
        return
    if conversation_manager.get_history(conversation_id):
        return
    turns = []
    for item in history:
        try:
            msg = HistoryMessage.model_validate(item)
        except ValidationError:
            continue
        role = "assistant" if msg.type in ("assistant", "bot") else msg.type
        if role not in ("user", "assistant") or not msg.content.strip():
            continue
        if not turns and role != "user":
            continue
        turns.append((role, msg.content))
    for role, content in turns:
        conversation_manager.add_message(conversation_id, role, content)


def _handle_chat(body: ChatRequest):
    message = body.message
    if not isinstance(message, str) or not message.strip():
        return JSONResponse(
            status_code=400,
            content={"error": "Message is required and must be a non-empty string"},
        )
    message = message.strip()

    _expire_conversations()
    conversation_id = body.sessionId or body.conversation_id or conversation_manager.create_conversation()
    conversation_manager.ensure(conversation_id)
    _seed_history(conversation_id, body.conversationHistory)
    logger.info("[CHAT] session=%s length=%d", conversation_id, len(message))

    context = handbook.search_content(message, Config.SEARCH_TOP_K)
    logger.info("[CHAT] context items=%d sections=%s", len(context), [c.section for c in context])

    try:
        reply = get_ai_response(message, conversation_id, context)
    except Exception as e:
        logger.warning("[FALLBACK] AI service error, using fallback: %s", e)
        return {
            "message": generate_fallback_response(message),
            "conversation_id": conversation_id,
            "regulations": [],
            "faqs": [],
            "provider": "local_fallback",
            "model": "handbook_knowledge",
            "ai_powered": False,
            "success": True,
            "fallback": True,
            "timestamp": _now(),
            "error": "AI service temporarily unavailable",
        }

    return {
        "message": reply,
        "conversation_id": conversation_id,
        "regulations": [r.model_dump() for r in extract_regulations(context)],
        "faqs": [],
        "provider": "anthropic",
        "model": Config.AI_MODEL,
        "ai_powered": True,
        "success": True,
        "timestamp": _now(),
    }


@app.post("/api/chat")
def chat(body: ChatRequest):
    """
    Chat endpoint. `action` selects a health check or a new conversation;
    anything else is a chat message answered by the AI, or by the offline
    fallback when the AI is unavailable.
    """
    logger.info("[CHAT] action=%s message=%r", body.action, str(body.message or "")[:50])
    try:
        if body.action == "health":
            return health_status()
        if body.action == "new-conversation":
            return _new_conversation()
        return _handle_chat(body)
    except Exception:
        logger.exception("[CHAT] request failed")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to process chat request",
                "message": CHAT_ERROR_MESSAGE,
                "timestamp": _now(),
                "success": False,
            },
        )


@app.get("/api/chat")
def chat_info(action: Optional[str] = None):
    if action == "health":
        return health_status()
    return {
        "message": "University Handbook Chat API",
        "version": Config.APP_VERSION,
        "endpoints": {
            "POST /api/chat": "Send chat messages",
            "GET /api/chat?action=health": "Health check",
        },
    }


# ─────────────────────────────────────────
# HANDBOOK
# ─────────────────────────────────────────

@app.get("/api/sections")
def list_sections():
    sections = handbook.all_sections()
    return {
        "sections": sections,
        "total": len(sections),
        "timestamp": _now(),
        "success": True,
    }


@app.get("/api/sections/{section_name}")
def section_detail(section_name: str):
    section = handbook.find_section_name(section_name)
    if section is None:
        return JSONResponse(
            status_code=404,
            content={
                "error": "Section not found",
                "message": f'Section "{section_name}" does not exist',
                "available_sections": handbook.all_sections(),
            },
        )
    content = handbook.section_content(section)
    return {
        "section": section,
        "content": content,
        "total_items": len(content),
        "timestamp": _now(),
        "success": True,
    }


@app.get("/api/search")
def search(q: str = Query(..., min_length=1), limit: int = Query(10, ge=1, le=50)):
    """Scored handbook passages for a query, best first."""
    results = handbook.search_content(q, limit)
    return {
        "query": q,
        "results": [r.model_dump() for r in results],
        "total": len(results),
        "timestamp": _now(),
        "success": True,
    }


# ─────────────────────────────────────────
# HEALTH
# ─────────────────────────────────────────

def _check_external_api() -> str:
    try:
        response = requests.get(
            f"{Config.API_BASE_URL}/health",
            headers={"Content-Type": "application/json"},
            timeout=Config.HEALTH_CHECK_TIMEOUT_SECS,
        )
    except requests.RequestException as e:
        logger.info("[HEALTH] external API unreachable: %s", e)
        return "offline"
    return "online" if response.ok else "offline"


@app.api_route("/api/health", methods=["GET", "POST"])
def health():
    return {
        "status": "ok",
        "timestamp": _now(),
        "version": Config.APP_VERSION,
        "services": {
            "backend": "online",
            "externalApi": _check_external_api(),
            "apiUrl": Config.API_BASE_URL,
        },
        "environment": Config.ENVIRONMENT,
    }


# ─────────────────────────────────────────
# RUN
# ─────────────────────────────────────────

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8001, reload=True)
