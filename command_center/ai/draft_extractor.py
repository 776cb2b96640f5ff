"""
Draft extraction from LLM output.

Two strategies, tried in order:
1. Fenced blocks delimited by ``>>>DRAFT`` and ``<<<DRAFT``
2. The whole output as one JSON object carrying a ``type`` field

JSON to draft conversion is delegated to AIResponseParser.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .response_parser import AIResponseParser
from ..models.drafts import DraftModel, DraftType, draft_type_of

logger = logging.getLogger(__name__)

DRAFT_BLOCK_PATTERN = re.compile(r">>>DRAFT\s*(.*?)<<<DRAFT", re.DOTALL)
JSON_OBJECT_PATTERN = re.compile(r"\{[^{}]*\"type\"\s*:\s*\"\w+\"[^{}]*}", re.DOTALL)

DEFAULT_CONFIDENCE = 0.7
FALLBACK_CONFIDENCE = 0.3


@dataclass
class ExtractedDraft:
    """A single extracted draft with its type and parsed content."""
    type: DraftType
    draft: DraftModel
    confidence: float = DEFAULT_CONFIDENCE
    reasoning: str = ""


@dataclass
class ExtractionResult:
    """Drafts found in the output plus the conversational (non-draft) text."""
    drafts: List[ExtractedDraft] = field(default_factory=list)
    conversational_text: str = ""

    @property
    def has_drafts(self) -> bool:
        return bool(self.drafts)


class DraftExtractor:
    """Parses structured draft payloads out of free-form model text."""

    def __init__(self, parser: Optional[AIResponseParser] = None):
        self.parser = parser or AIResponseParser()

    def extract(self, model_output: Optional[str]) -> ExtractionResult:
        if model_output is None or not model_output.strip():
            logger.debug("Empty LLM output, no drafts to extract")
            return ExtractionResult()

        drafts = self._extract_fenced_blocks(model_output)
        conversational_text = DRAFT_BLOCK_PATTERN.sub("", model_output)

        if not drafts:
            drafts = self._extract_json_object(model_output)
            if drafts:
                conversational_text = self._remove_json_object(model_output)

        logger.info(
            f"Draft extraction: found {len(drafts)} drafts from {len(model_output)} chars of LLM output"
        )
        return ExtractionResult(drafts=drafts, conversational_text=conversational_text.strip())

    def extract_or_fallback(self, model_output: Optional[str], raw_input: str) -> ExtractionResult:
        """
        Like ``extract``, but when the model clearly tried to emit a draft and
        nothing could be parsed, return a single note preserving the user's input.
        """
        result = self.extract(model_output)
        if result.has_drafts or not self._attempted_structured_output(model_output):
            return result

        logger.warning("AI response contained unparseable draft output, falling back to note")
        note = self.parser.fallback_note(raw_input)
        return ExtractionResult(
            drafts=[ExtractedDraft(DraftType.NOTE, note, FALLBACK_CONFIDENCE, "Fallback after parse failure")],
            conversational_text=result.conversational_text,
        )

    # ── Fenced blocks ──

    def _extract_fenced_blocks(self, output: str) -> List[ExtractedDraft]:
        drafts = []
        for match in DRAFT_BLOCK_PATTERN.finditer(output):
            block = match.group(1).strip()
            node = self.parser.parse_json(block)
            if not node:
                logger.warning("Skipping malformed draft block")
                continue
            draft = self._draft_from_json(node)
            if draft is not None:
                drafts.append(draft)
        return drafts

    # ── JSON fallback ──

    def _extract_json_object(self, output: str) -> List[ExtractedDraft]:
        node = self.parser.parse_json(output)
        if not node:
            logger.debug("No valid JSON in LLM output")
            return []
        draft = self._draft_from_json(node)
        return [draft] if draft is not None else []

    def _remove_json_object(self, output: str) -> str:
        cleaned = self.parser.clean_json_response(output)
        position = output.find(cleaned)
        if position >= 0:
            remainder = output[:position] + output[position + len(cleaned):]
            return remainder.replace("```json", "").replace("```JSON", "").replace("```", "")
        return JSON_OBJECT_PATTERN.sub("", output)

    # ── Helpers ──

    def _draft_from_json(self, node: Dict[str, Any]) -> Optional[ExtractedDraft]:
        type_name = node.get("type")
        if not isinstance(type_name, str) or not type_name.strip():
            logger.debug("Draft JSON missing 'type' field")
            return None

        confidence = node.get("confidence", DEFAULT_CONFIDENCE)
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE
        reasoning = node.get("reasoning") or ""

        try:
            draft = self.parser.parse_draft_by_type_name(type_name, node)
        except Exception as e:
            logger.warning(f"Failed to parse draft of type '{type_name}': {e}")
            return None

        return ExtractedDraft(draft_type_of(draft), draft, confidence, str(reasoning))

    def _attempted_structured_output(self, model_output: Optional[str]) -> bool:
        if not model_output:
            return False
        if ">>>DRAFT" in model_output or "<<<DRAFT" in model_output:
            return True
        return JSON_OBJECT_PATTERN.search(model_output) is not None
