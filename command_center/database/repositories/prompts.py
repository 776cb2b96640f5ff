"""System prompt repository."""

import logging
from typing import Optional

from sqlalchemy import select

from ..connection import Database, get_database
from ..models import SystemPromptDB
from ..exceptions import DatabaseOperationError

logger = logging.getLogger(__name__)


class PromptRepository:
    """Repository for keyed, versioned prompt text."""

    def __init__(self, db: Optional[Database] = None):
        self.db = db or get_database()

    async def get_by_key(self, prompt_key: str) -> Optional[SystemPromptDB]:
        async with self.db.session() as session:
            result = await session.execute(
                select(SystemPromptDB).where(SystemPromptDB.prompt_key == prompt_key)
            )
            return result.scalar_one_or_none()

    async def save(
        self,
        prompt_key: str,
        prompt_content: str,
        description: Optional[str] = None,
        is_active: bool = True,
    ) -> SystemPromptDB:
        """Create a prompt, or store a new version of an existing one."""
        async with self.db.session() as session:
            try:
                result = await session.execute(
                    select(SystemPromptDB).where(SystemPromptDB.prompt_key == prompt_key)
                )
                prompt = result.scalar_one_or_none()
                if prompt is None:
                    prompt = SystemPromptDB(
                        prompt_key=prompt_key,
                        prompt_content=prompt_content,
                        description=description,
                        version=1,
                        is_active=is_active,
                    )
                    session.add(prompt)
                else:
                    prompt.prompt_content = prompt_content
                    prompt.version = (prompt.version or 0) + 1
                    prompt.is_active = is_active
                    if description is not None:
                        prompt.description = description

                await session.flush()
                logger.info(f"Saved prompt {prompt_key} v{prompt.version}")
                return prompt

            except Exception as e:
                logger.error(f"Error saving prompt {prompt_key}: {e}", exc_info=True)
                raise DatabaseOperationError(f"Failed to save prompt: {e}") from e


# Singleton
_prompt_repository: Optional[PromptRepository] = None


def get_prompt_repository() -> PromptRepository:
    """Get the prompt repository singleton."""
    global _prompt_repository
    if _prompt_repository is None:
        _prompt_repository = PromptRepository()
    return _prompt_repository
