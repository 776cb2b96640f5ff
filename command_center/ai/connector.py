"""DeepSeek connector used by the LLM gateway."""

import logging
from typing import Optional, Protocol, runtime_checkable

from openai import AsyncOpenAI
from pydantic import BaseModel

from config import settings

logger = logging.getLogger(__name__)


class TokenUsage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0


class LlmResponse(BaseModel):
    text: str
    usage: Optional[TokenUsage] = None


@runtime_checkable
class LlmConnector(Protocol):
    """Anything that turns a system + user message into generated text."""

    @property
    def model_name(self) -> str: ...

    async def complete(self, system_message: str, user_message: str) -> LlmResponse: ...


class DeepSeekConnector:
    """Client for the DeepSeek chat completions API (OpenAI compatible)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self.client = client or AsyncOpenAI(
            api_key=api_key or settings.deepseek_api_key,
            base_url=base_url or settings.deepseek_base_url,
        )
        self.model = model or settings.deepseek_model
        self.temperature = settings.llm_temperature
        self.max_tokens = settings.llm_max_tokens

    @property
    def model_name(self) -> str:
        return f"deepseek/{self.model}"

    async def complete(self, system_message: str, user_message: str) -> LlmResponse:
        """Make one API call. Retries are the gateway's job."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_message},
                {"role": "user", "content": user_message},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        usage = None
        if response.usage is not None:
            usage = TokenUsage(
                input_tokens=response.usage.prompt_tokens or 0,
                output_tokens=response.usage.completion_tokens or 0,
            )

        return LlmResponse(text=response.choices[0].message.content or "", usage=usage)


class ConnectorProvider:
    """Resolves the connector to use for the next call."""

    def __init__(self, connector: Optional[LlmConnector] = None):
        self._connector = connector

    def get_connector(self) -> LlmConnector:
        if self._connector is None:
            self._connector = DeepSeekConnector()
        return self._connector

    def set_connector(self, connector: LlmConnector) -> None:
        logger.info(f"Switching LLM connector to {connector.model_name}")
        self._connector = connector
