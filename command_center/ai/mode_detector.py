"""
Conversational mode detection.

Priority chain, first hit wins:
1. Explicit mode requested by the client
2. A ceremony currently in progress for the user
3. Day/time heuristic, only when the text agrees
4. Keyword matching (standup, planning, retrospective, capture)
5. FREEFORM
"""

import logging
import re
from datetime import datetime
from typing import Callable, Dict, List, Optional, Pattern, Tuple

from ..integrations.collaborators import CeremonyService
from ..models.conversation import ChatMode
from ..utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)

_KEYWORDS: List[Tuple[ChatMode, Pattern[str]]] = [
    (ChatMode.STANDUP, re.compile(
        r"\b(standup|stand-up|daily|check.?in|yesterday|today.?plan|blocker)\b", re.IGNORECASE)),
    (ChatMode.PLANNING, re.compile(
        r"\b(plan|planning|sprint.?plan|commit|capacity|next.?sprint|backlog)\b", re.IGNORECASE)),
    (ChatMode.RETROSPECTIVE, re.compile(
        r"\b(retro|retrospective|went.?well|improve|action.?item|review)\b", re.IGNORECASE)),
    (ChatMode.CAPTURE, re.compile(
        r"\b(add|create|new|quick|capture|task|todo|remind)\b", re.IGNORECASE)),
]
_KEYWORDS_BY_MODE: Dict[ChatMode, Pattern[str]] = dict(_KEYWORDS)

_CEREMONY_MODES: Dict[str, ChatMode] = {
    "PLANNING": ChatMode.PLANNING,
    "REVIEW": ChatMode.REVIEW,
    "RETROSPECTIVE": ChatMode.RETROSPECTIVE,
    "RETRO": ChatMode.RETROSPECTIVE,
    "STANDUP": ChatMode.STANDUP,
    "REFINEMENT": ChatMode.REFINEMENT,
}

# datetime.weekday(): Monday=0 ... Sunday=6
_FRIDAY = 4
_SUNDAY = 6


def ceremony_to_mode(ceremony_type: Optional[str]) -> ChatMode:
    """Map an external ceremony type to a mode; unknown types give FREEFORM."""
    if not ceremony_type:
        return ChatMode.FREEFORM
    return _CEREMONY_MODES.get(ceremony_type.strip().upper(), ChatMode.FREEFORM)


def time_based_candidate(now: datetime) -> Optional[ChatMode]:
    """Mode suggested by the calendar alone."""
    weekday, hour = now.weekday(), now.hour
    if weekday == _SUNDAY and hour >= 14:
        return ChatMode.PLANNING
    if weekday == _FRIDAY and hour >= 16:
        return ChatMode.RETROSPECTIVE
    if weekday < 5 and 7 <= hour < 10:
        return ChatMode.STANDUP
    return None


class ModeDetector:
    """Chooses the conversational mode for a turn."""

    def __init__(
        self,
        ceremony_service: Optional[CeremonyService] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.ceremony_service = ceremony_service
        self.clock = clock

    async def detect(
        self,
        user_id: str,
        text: str,
        explicit_mode: Optional[str] = None,
        active_sprint_id: Optional[str] = None,
    ) -> ChatMode:
        if explicit_mode:
            mode = ChatMode.parse(explicit_mode)
            if mode is not None:
                return mode
            logger.warning(f"Ignoring invalid explicit mode '{explicit_mode}' for user {user_id}")

        ceremony_mode = await self._active_ceremony_mode(user_id)
        if ceremony_mode is not None:
            logger.debug(f"Ceremony in progress for {user_id}, mode {ceremony_mode.value}")
            return ceremony_mode

        text = text or ""

        candidate = time_based_candidate(self.clock())
        if candidate is not None and _KEYWORDS_BY_MODE[candidate].search(text):
            return candidate

        for mode, pattern in _KEYWORDS:
            if pattern.search(text):
                return mode

        return ChatMode.FREEFORM

    async def _active_ceremony_mode(self, user_id: str) -> Optional[ChatMode]:
        if self.ceremony_service is None:
            return None
        try:
            ceremonies = await self.ceremony_service.get_active_ceremonies(user_id)
        except Exception as e:
            logger.warning(f"Ceremony lookup failed for {user_id}: {e}")
            return None
        if not ceremonies:
            return None
        return ceremony_to_mode(ceremonies[0].ceremony_type)
