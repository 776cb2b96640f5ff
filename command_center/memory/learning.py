"""
Learning user preferences from draft corrections.

When a user keeps changing the same field to the same value (e.g. always
moving tasks to the "lw-2" life area), that becomes a correction pattern
which is fed back into future prompts.
"""

import json
import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from config import settings
from ..database.repositories.feedback import FeedbackRepository, get_feedback_repository
from ..database.repositories.preferences import PreferenceRepository, get_preference_repository
from ..models.feedback import CorrectionPattern

logger = logging.getLogger(__name__)


def _value_key(value: Any) -> str:
    return value if isinstance(value, str) else json.dumps(value, sort_keys=True)


def extract_diffs(
    original: Optional[Dict[str, Any]],
    modified: Optional[Dict[str, Any]],
    counts: Counter,
) -> None:
    """Count (field, new value) for every top-level field the modification changed."""
    if not isinstance(original, dict) or not isinstance(modified, dict):
        return
    for field, new_value in modified.items():
        if new_value is None:
            continue
        if field in original and original[field] == new_value:
            continue
        counts[(field, _value_key(new_value))] += 1


class UserPreferenceLearner:
    """Mines recurring corrections into per-user patterns."""

    def __init__(
        self,
        feedback: Optional[FeedbackRepository] = None,
        preferences: Optional[PreferenceRepository] = None,
        threshold: Optional[int] = None,
        max_patterns: Optional[int] = None,
    ):
        self.feedback = feedback or get_feedback_repository()
        self.preferences = preferences or get_preference_repository()
        self.threshold = threshold or settings.pattern_threshold
        self.max_patterns = max_patterns or settings.max_patterns

    async def learn_from_user(self, user_id: str) -> int:
        """
        Recompute correction patterns for one user.

        Returns:
            Number of patterns stored (0 when there is not enough data)
        """
        modifications = await self.feedback.get_modifications(user_id)
        if len(modifications) < self.threshold:
            logger.debug(
                f"Not enough modifications for {user_id} "
                f"(have {len(modifications)}, need {self.threshold})"
            )
            return 0

        counts: Counter = Counter()
        for record in modifications:
            extract_diffs(record.original_draft_json, record.modified_draft_json, counts)

        ranked: List[Tuple[Tuple[str, str], int]] = sorted(
            ((key, count) for key, count in counts.items() if count >= self.threshold),
            key=lambda item: item[1],
            reverse=True,
        )
        patterns = [
            CorrectionPattern(field=field, preferred_value=value, count=count)
            for (field, value), count in ranked[: self.max_patterns]
        ]

        if not patterns:
            logger.debug(f"No recurring correction patterns found for {user_id}")
            return 0

        saved = await self.preferences.update_correction_patterns(
            user_id, [pattern.to_record() for pattern in patterns]
        )
        if not saved:
            logger.debug(f"No coach preferences found for {user_id}, skipping pattern save")
            return 0

        logger.info(
            f"Updated {len(patterns)} correction patterns for {user_id}: "
            f"{sorted({p.field for p in patterns})}"
        )
        return len(patterns)

    async def get_correction_patterns(self, user_id: str) -> List[CorrectionPattern]:
        prefs = await self.preferences.get(user_id)
        if prefs is None or not prefs.correction_patterns:
            return []
        patterns = []
        for record in prefs.correction_patterns:
            try:
                patterns.append(CorrectionPattern.from_record(record))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed correction pattern for {user_id}: {e}")
        return patterns

    async def get_correction_patterns_text(self, user_id: str) -> str:
        """Patterns as prompt-ready lines, or an empty string."""
        patterns = await self.get_correction_patterns(user_id)
        return "\n".join(
            f"- Field '{p.field}': user usually changes to '{p.preferred_value}' ({p.count}x)"
            for p in patterns
        )

    async def daily_pattern_learning(self) -> Dict[str, int]:
        """Re-learn patterns for every user with enough modifications."""
        logger.info("Starting daily correction pattern learning")
        user_ids = await self.preferences.users_with_modifications(self.threshold)

        users_updated = 0
        total_patterns = 0
        failures = 0
        for user_id in user_ids:
            try:
                count = await self.learn_from_user(user_id)
            except Exception as e:
                failures += 1
                logger.error(f"Pattern learning failed for {user_id}: {e}", exc_info=True)
                continue
            if count > 0:
                users_updated += 1
                total_patterns += count

        logger.info(
            f"Daily pattern learning complete: {users_updated} users updated, "
            f"{total_patterns} total patterns, {failures} failures"
        )
        return {"users_updated": users_updated, "total_patterns": total_patterns, "failures": failures}
