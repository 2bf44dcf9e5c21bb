"""
Conversation Tutor - one learner turn from message to spoken reply

Ties the pieces together:
- Session store + phase engine (guided conversation cycle)
- Business-mode overlay (role-play scenarios)
- Usage ledger (daily time quota)
- Transcription, language model and speech synthesis services

All state for a key is read and written while holding that key's lock, and
the lock is held across the model call, so turns for the same learner are
handled one at a time.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from conversation_tutor import turn_plan
from conversation_tutor.business_modes import (
    SENTINEL_REPLACEMENT,
    BusinessMode,
    BusinessModeRegistry,
    is_start_sentinel,
)
from conversation_tutor.config import TutorConfig
from conversation_tutor.curriculum import Curriculum, load_curriculum
from conversation_tutor.phase_engine import advance
from conversation_tutor.session_manager import SessionStore
from conversation_tutor.session_state import ConversationSession, Phase
from conversation_tutor.speech_services import (
    LanguageModel,
    OpenAIChatModel,
    OpenAISpeechSynthesizer,
    OpenAITranscriber,
    SpeechSynthesizer,
    Transcriber,
    build_openai_client,
)
from conversation_tutor.usage_ledger import UsageLedger, today
from conversation_tutor.user_profile_manager import LearnerProfile, UserProfileManager

logger = logging.getLogger(__name__)

SYSTEM_PROMPT_TEMPLATE = (
    "You are an English tutor.\n"
    "Correct only important mistakes.\n"
    "Keep answers short (max 3 sentences).\n"
    "Always end with a question.\n"
    "Current phase instructions: {directive}"
)

LIMIT_MESSAGE = "I'm sorry, but you reached your 5-minute limit for today."


@dataclass
class TurnInput:
    """One learner message as received by the service."""
    session_key: str
    message: str = ""
    external_user_id: Optional[str] = None
    control_sentinel: bool = False


@dataclass
class TurnOutcome:
    """What was decided for a turn."""
    directive_text: str
    phase_after_advance: Phase
    used_business_mode: bool


@dataclass
class TurnReply:
    """Reply sent back to the learner."""
    reply: str
    audio: Optional[str] = None
    time_spent_today: int = 0
    phase: Optional[Phase] = None
    used_business_mode: bool = False
    limit_reached: bool = False


@dataclass
class UsageResult:
    """Result of recording spoken time."""
    ok: bool
    total: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "total": self.total}
        return {"ok": False, "error": self.error}


@dataclass
class _PreparedTurn:
    key: str
    session: ConversationSession
    plan: turn_plan.TurnPlan
    model_message: str
    business: bool = field(init=False)

    def __post_init__(self):
        self.business = turn_plan.uses_business_mode(self.plan)


def history_to_messages(history: Optional[List[Dict[str, Any]]]) -> List[Dict[str, str]]:
    """
    Convert client history turns ({"user": ..., "bot": ...}) to chat messages.

    Empty sides of a turn are skipped.
    """
    messages: List[Dict[str, str]] = []
    for turn in history or []:
        if not isinstance(turn, dict):
            continue
        if turn.get("user"):
            messages.append({"role": "user", "content": str(turn["user"])})
        if turn.get("bot"):
            messages.append({"role": "assistant", "content": str(turn["bot"])})
    return messages


class ConversationTutor:
    """
    Turn orchestrator.

    Owns the session store and business-mode registry; external services are
    injected so tests can replace them.
    """

    def __init__(
        self,
        curriculum: Curriculum,
        model: LanguageModel,
        synthesizer: Optional[SpeechSynthesizer] = None,
        transcriber: Optional[Transcriber] = None,
        store: Optional[SessionStore] = None,
        registry: Optional[BusinessModeRegistry] = None,
        ledger: Optional[UsageLedger] = None,
        learners: Optional[UserProfileManager] = None,
        daily_limit_seconds: int = 300,
    ):
        self.curriculum = curriculum
        self.model = model
        self.synthesizer = synthesizer
        self.transcriber = transcriber
        self.store = store if store is not None else SessionStore(curriculum)
        self.registry = registry if registry is not None else BusinessModeRegistry()
        self.ledger = ledger if ledger is not None else UsageLedger()
        self.learners = learners
        self.daily_limit_seconds = daily_limit_seconds

    @classmethod
    def from_config(cls, config: TutorConfig, supabase_client=None) -> "ConversationTutor":
        """
        Build a tutor backed by OpenAI and, when given, Supabase.

        Raises:
            ValueError: If OPENAI_API_KEY is not configured.
            CurriculumError: If the curriculum file is not valid JSON.
        """
        curriculum = load_curriculum(config.curriculum_path)
        client = build_openai_client(config)
        tutor = cls(
            curriculum=curriculum,
            model=OpenAIChatModel(client, config.chat_model, config.chat_max_tokens),
            synthesizer=OpenAISpeechSynthesizer(client, config.tts_model, config.tts_voice),
            transcriber=OpenAITranscriber(client, config.stt_model, config.stt_language),
            store=SessionStore(
                curriculum,
                ttl_seconds=config.session_ttl_seconds,
                max_sessions=config.max_sessions,
            ),
            registry=BusinessModeRegistry(
                ttl_seconds=config.session_ttl_seconds,
                max_entries=config.max_sessions,
            ),
            ledger=UsageLedger(supabase_client=supabase_client),
            learners=UserProfileManager(supabase_client=supabase_client),
            daily_limit_seconds=config.daily_limit_seconds,
        )
        logger.info(f"✅ [ConversationTutor] Initialized (curriculum loaded: {curriculum.is_loaded})")
        return tutor

    @staticmethod
    def resolve_key(turn: TurnInput) -> str:
        """Sessions follow the learner's user id when known, the network key otherwise."""
        return turn.external_user_id or turn.session_key

    def _prepare(self, key: str, turn: TurnInput, learner_name: Optional[str] = None) -> _PreparedTurn:
        session = self.store.attach_user(key, turn.external_user_id, learner_name)
        mode = self.registry.get_mode(session.user_id or turn.external_user_id)

        sentinel = turn.control_sentinel or is_start_sentinel(turn.message)
        model_message = SENTINEL_REPLACEMENT if sentinel else turn.message

        plan = turn_plan.plan_turn(
            self.curriculum,
            session,
            mode,
            model_message,
            auto_start=sentinel and mode is not None,
        )
        return _PreparedTurn(key=key, session=session, plan=plan, model_message=model_message)

    def _finish(self, prepared: _PreparedTurn) -> ConversationSession:
        if prepared.business:
            return prepared.session
        return advance(self.curriculum, prepared.session, self.store)

    async def plan_turn(self, turn: TurnInput) -> TurnOutcome:
        """
        Decide the directive for a turn and advance the conversation cycle.

        The phase is left untouched while a business mode is active.
        """
        key = self.resolve_key(turn)
        async with self.store.lock(key):
            prepared = self._prepare(key, turn)
            session = self._finish(prepared)
            return TurnOutcome(
                directive_text=turn_plan.render_directive(prepared.plan),
                phase_after_advance=session.phase,
                used_business_mode=prepared.business,
            )

    def build_system_prompt(self, plan: turn_plan.TurnPlan) -> str:
        directive = turn_plan.render_directive(plan)
        if turn_plan.uses_business_mode(plan):
            return directive
        return SYSTEM_PROMPT_TEMPLATE.format(directive=directive)

    async def respond(
        self,
        turn: TurnInput,
        history: Optional[List[Dict[str, Any]]] = None,
        learner: Optional[LearnerProfile] = None,
    ) -> TurnReply:
        """
        Handle a full chat turn.

        Args:
            turn: Learner message and identity
            history: Previous turns as {"user": ..., "bot": ...} dicts
            learner: Learner details sent with the message (optional)

        Returns:
            TurnReply with the reply text, base64 audio and time used today
        """
        if learner is not None and learner.user_id and self.learners is not None:
            await self.learners.upsert_learner(learner)

        key = self.resolve_key(turn)
        learner_name = learner.display_name if learner else None

        async with self.store.lock(key):
            session = self.store.attach_user(key, turn.external_user_id, learner_name)
            identity = session.user_id or turn.external_user_id

            used = await self.ledger.get_seconds_used(identity, today()) if identity else 0
            if used >= self.daily_limit_seconds:
                logger.info(f"⏱️ [ConversationTutor] {identity} reached the daily limit ({used}s)")
                return TurnReply(
                    reply=LIMIT_MESSAGE,
                    audio=None,
                    time_spent_today=used,
                    phase=session.phase,
                    limit_reached=True,
                )

            prepared = self._prepare(key, turn, learner_name)
            system_prompt = self.build_system_prompt(prepared.plan)
            messages = [] if prepared.business else history_to_messages(history)

            reply = await self.model.complete(system_prompt, messages, prepared.model_message)
            session = self._finish(prepared)

        audio = None
        if self.synthesizer is not None:
            audio_bytes = await self.synthesizer.synthesize(reply)
            if audio_bytes:
                audio = base64.b64encode(audio_bytes).decode("ascii")

        return TurnReply(
            reply=reply,
            audio=audio,
            time_spent_today=used,
            phase=session.phase,
            used_business_mode=prepared.business,
        )

    async def transcribe(self, audio_bytes: Optional[bytes], filename: str = "audio.webm") -> str:
        """Transcribe recorded audio; missing audio or an unavailable service yields ""."""
        if not audio_bytes or self.transcriber is None:
            return ""
        return await self.transcriber.transcribe(audio_bytes, filename)

    def set_business_mode(self, user_id: str, mode: Union[str, BusinessMode, None]) -> Optional[BusinessMode]:
        """
        Enter or leave a business scenario for a learner.

        Raises:
            InvalidModeError: If the mode is not a supported scenario.
        """
        return self.registry.set_mode(user_id, mode)

    async def record_usage(
        self,
        user_id: Optional[str],
        seconds: Union[int, float, None],
        ip: Optional[str] = None,
    ) -> UsageResult:
        """Add spoken seconds to a learner's daily total."""
        if not user_id:
            return UsageResult(ok=False, error="Missing user id")
        if seconds is None or seconds <= 0:
            return UsageResult(ok=False, error="Seconds must be positive")

        total = await self.ledger.add_seconds(user_id, int(round(seconds)), today(), ip=ip)
        return UsageResult(ok=True, total=total)

    def session_state(self, key: str) -> Optional[Dict[str, Any]]:
        """Snapshot of the session stored for a key, or None."""
        session = self.store.get(key)
        if session is None:
            return None
        state = session.to_dict()
        mode = self.registry.get_mode(session.user_id or key)
        state["business_mode"] = mode.value if mode else None
        return state
