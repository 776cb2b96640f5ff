"""
Prompt storage lookup and layered prompt assembly.

System message layout:
    persona
    --- MODE: X ---
    mode instructions
    --- CONTEXT ---
    key: value ...
    --- END CONTEXT ---
followed by a final ``{{key}}`` substitution pass using the context.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Mapping, Optional

from ..database.repositories.prompts import PromptRepository, get_prompt_repository
from ..exceptions import NotFoundError
from ..models.conversation import ChatMessage, ChatMode, MessageRole
from ..utils.datetime_utils import get_local_now

logger = logging.getLogger(__name__)

KEY_BASE_PERSONA = "scrum_master_persona"
KEY_CAPTURE = "scrum_master_capture"
KEY_PLANNING = "scrum_master_planning"
KEY_STANDUP = "scrum_master_standup"
KEY_RETRO = "scrum_master_retro"
KEY_REVIEW = "scrum_master_review"
KEY_REFINEMENT = "scrum_master_refinement"
KEY_FREEFORM = "scrum_master_freeform"

MODE_PROMPT_KEYS: Dict[ChatMode, str] = {
    ChatMode.CAPTURE: KEY_CAPTURE,
    ChatMode.PLANNING: KEY_PLANNING,
    ChatMode.STANDUP: KEY_STANDUP,
    ChatMode.RETROSPECTIVE: KEY_RETRO,
    ChatMode.REVIEW: KEY_REVIEW,
    ChatMode.REFINEMENT: KEY_REFINEMENT,
    ChatMode.FREEFORM: KEY_FREEFORM,
}

_DRAFT_FORMAT = """When the user wants something created, propose it as a draft inside a fenced block:
>>>DRAFT
{"type": "task", "title": "...", "confidence": 0.9, "reasoning": "..."}
<<<DRAFT
Valid types: task, epic, challenge, event, bill, note. One JSON object per block.
Dates use YYYY-MM-DD. Today is {{TODAY_DATE}}, tomorrow is {{TOMORROW_DATE}}.
Everything outside the blocks is your reply to the user."""

FALLBACK_PROMPTS: Dict[str, str] = {
    KEY_BASE_PERSONA: (
        "You are a pragmatic Scrum Master coach helping one person run their life in weekly sprints. "
        "Be concise and concrete. Never invent tasks the user did not ask for.\n\n" + _DRAFT_FORMAT
    ),
    KEY_CAPTURE: (
        "Quick capture. Turn the message into the smallest set of drafts that captures it. "
        "Estimate story points (1-13) and pick an Eisenhower quadrant."
    ),
    KEY_PLANNING: (
        "Sprint planning. Review carryover work, compare against velocity and help the user commit "
        "to a realistic set of tasks for the sprint. Warn when the plan exceeds capacity."
    ),
    KEY_STANDUP: (
        "Daily standup. Ask what was done yesterday, what is planned today and what is blocking. "
        "Keep it short. Only propose drafts when the user explicitly asks to add something."
    ),
    KEY_RETRO: (
        "Sprint retrospective. Ask what went well, what did not, and turn improvements into action items."
    ),
    KEY_REVIEW: (
        "Sprint review. Summarize what was completed against the sprint goal and highlight unfinished work."
    ),
    KEY_REFINEMENT: (
        "Backlog refinement. Break large items into tasks, clarify acceptance criteria and re-estimate."
    ),
    KEY_FREEFORM: (
        "Open conversation. Answer questions, and propose drafts only when the user asks for something "
        "to be created."
    ),
}


def replace_placeholders(template: str, context: Optional[Mapping[str, str]]) -> str:
    """Replace ``{{key}}`` with context values. Unknown placeholders are left untouched."""
    if not context or template is None:
        return template
    result = template
    for key, value in context.items():
        placeholder = "{{" + key + "}}"
        if placeholder in result:
            result = result.replace(placeholder, value)
    return result


class SystemPromptService:
    """Keyed prompt lookup with date substitution and hardcoded fallbacks."""

    def __init__(
        self,
        repository: Optional[PromptRepository] = None,
        clock: Callable[[], datetime] = get_local_now,
    ):
        self.repository = repository or get_prompt_repository()
        self.clock = clock

    def replace_date_variables(self, content: str) -> str:
        today = self.clock().date()
        return (
            content.replace("{{TOMORROW_DATE}}", (today + timedelta(days=1)).isoformat())
            .replace("{{TODAY_DATE}}", today.isoformat())
            .replace("{{CURRENT_YEAR}}", str(today.year))
        )

    async def _stored_prompt(self, prompt_key: str) -> Optional[str]:
        try:
            prompt = await self.repository.get_by_key(prompt_key)
        except Exception as e:
            logger.warning(f"Prompt store unavailable for '{prompt_key}': {e}")
            return None
        if prompt is None or not prompt.is_active:
            return None
        return prompt.prompt_content

    async def get_prompt_by_key(self, prompt_key: str, fallback_description: str = "") -> str:
        """Active stored prompt, else the hardcoded fallback, else an empty string."""
        content = await self._stored_prompt(prompt_key)
        if content is None:
            logger.warning(
                f"Prompt '{prompt_key}' not found or inactive, using fallback for "
                f"{fallback_description or prompt_key}"
            )
            content = FALLBACK_PROMPTS.get(prompt_key, "")
        return self.replace_date_variables(content)

    async def require_prompt(self, prompt_key: str) -> str:
        """Like get_prompt_by_key, but a key with no stored or fallback text is an error."""
        content = await self._stored_prompt(prompt_key)
        if content is None:
            content = FALLBACK_PROMPTS.get(prompt_key)
        if content is None:
            raise NotFoundError(f"Prompt '{prompt_key}' not found")
        return self.replace_date_variables(content)


class PromptAssembler:
    """Composes the system and user messages for one LLM call."""

    def __init__(self, prompt_service: Optional[SystemPromptService] = None):
        self.prompt_service = prompt_service or SystemPromptService()

    async def assemble_system_message(self, mode: ChatMode, context: Optional[Mapping[str, str]]) -> ChatMessage:
        persona = await self.prompt_service.get_prompt_by_key(KEY_BASE_PERSONA, "Scrum Master AI persona")
        mode_key = MODE_PROMPT_KEYS.get(mode, KEY_FREEFORM)
        instructions = await self.prompt_service.get_prompt_by_key(mode_key, f"{mode.value} mode instructions")

        # Placeholders are filled in the templates only; context values stay verbatim
        template = replace_placeholders(f"{persona}\n\n--- MODE: {mode.value} ---\n{instructions}\n\n", context)
        parts = [template]
        if context:
            parts.append("--- CONTEXT ---\n")
            parts.extend(f"{key}: {value}\n" for key, value in context.items())
            parts.append("--- END CONTEXT ---\n")

        prompt = "".join(parts)
        logger.debug(f"Assembled system prompt: mode={mode.value}, length={len(prompt)}")
        return ChatMessage(role=MessageRole.SYSTEM, content=prompt)

    def assemble_user_message(self, text: str, attachment_info: Optional[str] = None) -> ChatMessage:
        content = text
        if attachment_info and attachment_info.strip():
            content = f"[Attachments: {attachment_info}]\n\n{text}"
        return ChatMessage(role=MessageRole.USER, content=content)
