"""
FastAPI Backend for the Conversation Tutor

Provides REST API endpoints for:
- Speech-to-text of recorded learner audio
- Chat turns (guided conversation or business role-play) with spoken replies
- Daily speaking-time tracking
- Business-mode selection
"""

from fastapi import FastAPI, HTTPException, Depends, File, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional, List
import os
import sys
import time
import logging
import signal

# Setup enhanced logging with pretty formatting
from lib.logger import setup_logging, get_logger

setup_logging(level=logging.INFO, use_colors=True)

logger = get_logger("backend.main")

# Add the conversation_tutor package to Python path
backend_dir = os.path.dirname(os.path.abspath(__file__))
project_root = os.path.dirname(backend_dir)

package_src = os.path.join(project_root, 'conversation_tutor', 'src')
if os.path.exists(package_src) and package_src not in sys.path:
    sys.path.insert(0, package_src)

from lib.supabase_client import get_optional_supabase_client
from lib.auth import get_optional_user

from conversation_tutor.config import TutorConfig
from conversation_tutor.exceptions import CurriculumError, InvalidModeError
from conversation_tutor.tutor import ConversationTutor, TurnInput
from conversation_tutor.user_profile_manager import LearnerProfile

SERVICE_NAME = "Conversation Tutor API"
SERVICE_VERSION = "1.0.0"

config = TutorConfig.from_env()

# Singleton pattern so sessions survive across requests
_tutor_instance: Optional[ConversationTutor] = None


def get_tutor_instance() -> ConversationTutor:
    """Get or create singleton ConversationTutor instance."""
    global _tutor_instance
    if _tutor_instance is None:
        try:
            _tutor_instance = ConversationTutor.from_config(config, get_optional_supabase_client())
        except (ValueError, CurriculumError) as e:
            logger.error("Tutor could not be initialized", error=e)
            raise HTTPException(status_code=503, detail=str(e))
    return _tutor_instance


app = FastAPI(
    title=SERVICE_NAME,
    description="Voice-first English conversation tutor with guided phases and business role-play",
    version=SERVICE_VERSION,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ==================== Pydantic Models ====================

class HistoryTurn(BaseModel):
    user: Optional[str] = None
    bot: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = ""
    history: List[HistoryTurn] = []
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    userId: Optional[str] = None
    email: Optional[str] = None
    controlSentinel: bool = False


class ChatResponse(BaseModel):
    reply: str
    audio: Optional[str] = None
    timeSpentToday: int
    phase: Optional[str] = None
    businessMode: bool = False


class TranscriptionResponse(BaseModel):
    text: str


class UsageRequest(BaseModel):
    seconds: Optional[float] = None
    userId: Optional[str] = None


class BusinessModeRequest(BaseModel):
    userId: str
    mode: str


class BusinessModeResponse(BaseModel):
    ok: bool
    activeMode: Optional[str] = None


# ==================== Helper Functions ====================

def client_key(request: Request) -> str:
    """Network key for a request: first X-Forwarded-For entry, else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def effective_user_id(body_user_id: Optional[str], user: Optional[dict]) -> Optional[str]:
    """An authenticated user id wins over the one sent in the body."""
    if user and user.get("id"):
        return user["id"]
    return body_user_id or None


# ==================== API Endpoints ====================

@app.get("/")
async def root():
    """Health check endpoint. Store stats appear once the tutor has been initialized."""
    tutor = _tutor_instance
    return {
        "status": "ok",
        "service": SERVICE_NAME,
        "version": SERVICE_VERSION,
        "curriculum_loaded": tutor.curriculum.is_loaded if tutor else None,
        "openai_configured": bool(config.openai_api_key),
        "sessions": tutor.store.get_stats() if tutor else None,
        "business_modes": tutor.registry.get_stats() if tutor else None,
    }


@app.post("/api/stt", response_model=TranscriptionResponse)
async def speech_to_text(
    audio: Optional[UploadFile] = File(None),
    tutor: ConversationTutor = Depends(get_tutor_instance),
):
    """Transcribe a recorded learner utterance. Missing audio yields empty text."""
    logger.request("POST", "/api/stt", data={"filename": audio.filename if audio else None})

    if audio is None:
        return TranscriptionResponse(text="")

    audio_bytes = await audio.read()
    text = await tutor.transcribe(audio_bytes, audio.filename or "audio.webm")
    return TranscriptionResponse(text=text)


@app.post("/api/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    user: Optional[dict] = Depends(get_optional_user),
    tutor: ConversationTutor = Depends(get_tutor_instance),
):
    """
    Run one tutoring turn and return the reply with synthesized audio.
    Authentication is optional; a bearer token overrides the body userId.
    """
    start_time = time.time()
    user_id = effective_user_id(body.userId, user)
    key = client_key(request)

    logger.request("POST", "/api/chat", user_id=user_id, data={
        "client_key": key,
        "message_length": len(body.message),
        "history_turns": len(body.history),
    })

    learner = None
    if user_id:
        learner = LearnerProfile(
            user_id=user_id,
            firstname=body.firstname,
            lastname=body.lastname,
            email=body.email or (user.get("email") if user else None),
        )

    turn = TurnInput(
        session_key=key,
        message=body.message,
        external_user_id=user_id,
        control_sentinel=body.controlSentinel,
    )
    result = await tutor.respond(
        turn,
        history=[t.model_dump() for t in body.history],
        learner=learner,
    )

    response = ChatResponse(
        reply=result.reply,
        audio=result.audio,
        timeSpentToday=result.time_spent_today,
        phase=result.phase.value if result.phase else None,
        businessMode=result.used_business_mode,
    )
    logger.response(200, "/api/chat", duration=time.time() - start_time, data={
        "phase": response.phase,
        "business_mode": response.businessMode,
        "has_audio": response.audio is not None,
    })
    return response


@app.post("/api/tts-time")
async def add_speaking_time(
    body: UsageRequest,
    request: Request,
    user: Optional[dict] = Depends(get_optional_user),
    tutor: ConversationTutor = Depends(get_tutor_instance),
):
    """Add seconds of played tutor audio to the learner's daily total."""
    user_id = effective_user_id(body.userId, user)
    logger.request("POST", "/api/tts-time", user_id=user_id, data={"seconds": body.seconds})

    result = await tutor.record_usage(user_id, body.seconds, ip=client_key(request))
    if not result.ok:
        logger.warning(f"Usage not recorded: {result.error}")
    return result.to_dict()


@app.post("/api/business-mode", response_model=BusinessModeResponse)
async def set_business_mode(
    body: BusinessModeRequest,
    user: Optional[dict] = Depends(get_optional_user),
    tutor: ConversationTutor = Depends(get_tutor_instance),
):
    """Enter a business role-play scenario, or leave it with mode "exit"."""
    user_id = effective_user_id(body.userId, user)
    if not user_id:
        raise HTTPException(status_code=422, detail="userId is required")

    try:
        active = tutor.set_business_mode(user_id, body.mode)
    except InvalidModeError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return BusinessModeResponse(ok=True, activeMode=active.value if active else None)


@app.get("/api/session/state")
async def get_session_state(
    request: Request,
    userId: Optional[str] = None,
    user: Optional[dict] = Depends(get_optional_user),
    tutor: ConversationTutor = Depends(get_tutor_instance),
):
    """
    Current phase, topic and counters of the caller's conversation.
    A signed-in user may only read their own session.
    """
    if user and user.get("id") and userId and userId != user["id"]:
        raise HTTPException(status_code=403, detail="Cannot read another user's session")
    key = effective_user_id(userId, user) or client_key(request)
    state = tutor.session_state(key)
    if state is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return state


@app.on_event("startup")
async def startup_event():
    """Startup event - log effective configuration."""
    logger.section("CONVERSATION TUTOR STARTING", {
        "chat_model": config.chat_model,
        "tts_model": config.tts_model,
        "curriculum": str(config.curriculum_path),
        "daily_limit_seconds": config.daily_limit_seconds,
        "openai_configured": bool(config.openai_api_key),
    })


if __name__ == "__main__":
    import uvicorn

    def handle_exit(*args):
        """Handle graceful shutdown."""
        logger.section("SERVER SHUTDOWN", {"reason": "signal received"})
        sys.exit(0)

    signal.signal(signal.SIGINT, handle_exit)
    signal.signal(signal.SIGTERM, handle_exit)

    try:
        uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
    except KeyboardInterrupt:
        logger.info("🛑 Server stopped.")
        sys.exit(0)
