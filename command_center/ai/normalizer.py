"""
Input normalization.

Cleans raw text before it reaches the pipeline. Voice and image inputs are
accepted but not yet transcribed/analyzed; they return a placeholder so the
caller can still run the turn.
"""

import logging
import re
from typing import Optional

from ..models.conversation import InputType, NormalizedInput

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

VOICE_PLACEHOLDER = "[Voice transcription pending - speech-to-text is not enabled yet]"
IMAGE_PLACEHOLDER = "[Image uploaded]"


class InputNormalizer:
    """Turns raw user input into a NormalizedInput."""

    def normalize_text(self, raw: Optional[str]) -> NormalizedInput:
        """Trim and collapse whitespace. Blank input gives empty text, never an error."""
        if raw is None or not raw.strip():
            return NormalizedInput(text="", source_type=InputType.TEXT)
        return NormalizedInput(
            text=_WHITESPACE.sub(" ", raw).strip(),
            source_type=InputType.TEXT,
        )

    def normalize_voice(self, audio_base64: str) -> NormalizedInput:
        logger.info("Voice input received; transcription not enabled, using placeholder")
        return NormalizedInput(
            text=VOICE_PLACEHOLDER,
            source_type=InputType.VOICE,
            attachment_info=f"audio_base64_length={len(audio_base64 or '')}",
            has_voice=True,
        )

    def normalize_image(self, image_base64: str, user_text: Optional[str] = None) -> NormalizedInput:
        logger.info("Image input received; vision analysis not enabled, using placeholder")
        text = self.normalize_text(user_text).text or IMAGE_PLACEHOLDER
        return NormalizedInput(
            text=text,
            source_type=InputType.IMAGE,
            attachment_info=f"image_base64_length={len(image_base64 or '')}",
            has_image=True,
        )

    def normalize(
        self,
        raw: Optional[str],
        audio_base64: Optional[str] = None,
        image_base64: Optional[str] = None,
    ) -> NormalizedInput:
        """Dispatch on whichever inputs are present."""
        if audio_base64 and image_base64:
            voice = self.normalize_voice(audio_base64)
            image = self.normalize_image(image_base64, raw)
            return NormalizedInput(
                text=image.text if raw and raw.strip() else voice.text,
                source_type=InputType.MULTIMODAL,
                attachment_info=f"{voice.attachment_info}, {image.attachment_info}",
                has_voice=True,
                has_image=True,
            )
        if audio_base64:
            return self.normalize_voice(audio_base64)
        if image_base64:
            return self.normalize_image(image_base64, raw)
        return self.normalize_text(raw)
