"""
Command Center pipeline.

One conversational turn, start to finish:

    normalize -> resolve sprint -> detect mode -> check session rules
    -> classify intent -> get/create session -> assemble context (+ history)
    -> assemble prompt -> call LLM -> extract drafts -> save drafts
    -> record turn

A rule denial ends the turn before any LLM call is made.
"""

import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from config import settings
from .ai.draft_extractor import DraftExtractor, ExtractionResult
from .ai.gateway import LlmGateway, get_llm_gateway
from .ai.intent import IntentClassifier
from .ai.mode_detector import ModeDetector
from .ai.normalizer import InputNormalizer
from .ai.prompts import PromptAssembler
from .conversation.manager import ConversationManager, format_history
from .database.repositories.drafts import DraftRepository, get_draft_repository
from .exceptions import InvalidInputError
from .integrations.collaborators import (
    CeremonyService,
    SprintService,
    StandupService,
    TaskService,
    UserDirectory,
    VelocityService,
)
from .memory.context import ContextAssembler, best_effort
from .models.conversation import ChatMode, DraftSummary, TurnResult
from .models.drafts import draft_to_json
from .utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)


class CommandCenterOrchestrator:
    """Runs the conversational pipeline for a single turn."""

    def __init__(
        self,
        mode_detector: ModeDetector,
        conversation_manager: ConversationManager,
        context_assembler: ContextAssembler,
        sprints: SprintService,
        normalizer: Optional[InputNormalizer] = None,
        intent_classifier: Optional[IntentClassifier] = None,
        prompt_assembler: Optional[PromptAssembler] = None,
        gateway: Optional[LlmGateway] = None,
        extractor: Optional[DraftExtractor] = None,
        drafts: Optional[DraftRepository] = None,
        clock: Callable[[], datetime] = get_local_now,
        draft_ttl: Optional[timedelta] = None,
    ):
        self.mode_detector = mode_detector
        self.conversations = conversation_manager
        self.context_assembler = context_assembler
        self.sprints = sprints
        self.normalizer = normalizer or InputNormalizer()
        self.intent_classifier = intent_classifier or IntentClassifier()
        self.prompt_assembler = prompt_assembler or PromptAssembler()
        self.gateway = gateway or get_llm_gateway()
        self.extractor = extractor or DraftExtractor()
        self.drafts = drafts or get_draft_repository()
        self.clock = clock
        self.draft_ttl = draft_ttl or timedelta(hours=settings.draft_ttl_hours)

    async def process(
        self,
        user_id: str,
        raw_input: Optional[str],
        explicit_mode: Optional[str] = None,
        audio_base64: Optional[str] = None,
        image_base64: Optional[str] = None,
    ) -> TurnResult:
        """
        Process one user message.

        Raises:
            InvalidInputError: Blank message
            NotFoundError: Unknown user
            CircuitOpenError: AI service temporarily disabled
            LlmGatewayError: AI call failed after retries
        """
        started = time.monotonic()
        logger.info(f"Pipeline start: user={user_id}, input_length={len(raw_input or '')}")

        normalized = self.normalizer.normalize(raw_input, audio_base64, image_base64)
        if normalized.is_empty:
            raise InvalidInputError("Message cannot be empty")
        text = normalized.text

        sprint_id = await self._resolve_active_sprint_id(user_id)

        mode = await self.mode_detector.detect(user_id, text, explicit_mode, sprint_id)

        denial = await self.conversations.check_session_rules(user_id, mode)
        if denial:
            logger.info(f"Session rule denied: mode={mode.value}, user={user_id}, reason={denial}")
            return TurnResult.denial(mode, denial)

        intent = self.intent_classifier.classify(text, mode)

        session = await self.conversations.get_or_create_session(user_id, mode)

        context = await self.context_assembler.assemble(mode, user_id, sprint_id)
        history = await self.conversations.get_recent_history(session.id, settings.history_limit)
        if history:
            context["conversation_history"] = format_history(history)

        system_message = await self.prompt_assembler.assemble_system_message(mode, context)
        user_message = self.prompt_assembler.assemble_user_message(text, normalized.attachment_info)

        reply = await self.gateway.call(system_message.content, user_message.content)

        extraction = self.extractor.extract_or_fallback(reply, text)

        saved = await self._save_drafts(user_id, session.id, extraction, text)

        await self.conversations.add_turn(session, text, extraction.conversational_text, intent.value)

        elapsed_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"Pipeline complete: user={user_id}, mode={mode.value}, intent={intent.value}, "
            f"drafts={len(saved)}, elapsed={elapsed_ms:.0f}ms"
        )

        return TurnResult(
            session_id=session.id,
            mode=mode,
            intent=intent.value,
            conversational_text=extraction.conversational_text,
            drafts=saved,
        )

    async def close_session(self, user_id: str, mode: str) -> int:
        """Close the user's session for a mode (e.g. when a ceremony ends)."""
        chat_mode = ChatMode.parse(mode)
        if chat_mode is None:
            raise InvalidInputError(f"Unknown mode '{mode}'")
        return await self.conversations.close_session(user_id, chat_mode)

    # ── Helpers ──

    async def _resolve_active_sprint_id(self, user_id: str) -> Optional[str]:
        sprint = await best_effort("active sprint", lambda: self.sprints.get_current_sprint(user_id))
        return sprint.id if sprint is not None else None

    async def _save_drafts(
        self,
        user_id: str,
        session_id: str,
        extraction: ExtractionResult,
        original_input: str,
    ) -> List[DraftSummary]:
        """Save each draft on its own; one failure does not undo the others."""
        saved: List[DraftSummary] = []
        for extracted in extraction.drafts:
            now = self.clock()
            content = draft_to_json(extracted.draft)
            try:
                record = await self.drafts.create(
                    user_id=user_id,
                    draft_type=extracted.type.value,
                    draft_content=content,
                    created_at=now,
                    expires_at=now + self.draft_ttl,
                    confidence_score=extracted.confidence,
                    ai_reasoning=extracted.reasoning,
                    original_input_text=original_input,
                    session_id=session_id,
                )
            except Exception as e:
                logger.error(f"Failed to save {extracted.type.value} draft for {user_id}: {e}", exc_info=True)
                continue

            logger.info(
                f"Saved draft: id={record.id}, type={record.draft_type}, "
                f"confidence={record.confidence_score}"
            )
            saved.append(DraftSummary(
                draft_id=record.id,
                type=record.draft_type,
                confidence=record.confidence_score,
                reasoning=record.ai_reasoning or "",
                draft=content,
            ))
        return saved


def build_orchestrator(
    sprints: SprintService,
    tasks: TaskService,
    velocity: VelocityService,
    standups: StandupService,
    ceremonies: CeremonyService,
    users: UserDirectory,
    gateway: Optional[LlmGateway] = None,
    clock: Callable[[], datetime] = get_local_now,
) -> CommandCenterOrchestrator:
    """Wire the pipeline from the external services it reads from."""
    return CommandCenterOrchestrator(
        mode_detector=ModeDetector(ceremonies, clock=clock),
        conversation_manager=ConversationManager(users=users, clock=clock),
        context_assembler=ContextAssembler(sprints, tasks, velocity, standups, ceremonies, clock=clock),
        sprints=sprints,
        gateway=gateway,
        clock=clock,
    )
