"""Client for the diagnosis generation model (OpenAI-compatible API)."""

from __future__ import annotations

from typing import Optional, Protocol

import openai
import structlog
from openai import AsyncOpenAI

from autodiag.config import Settings, settings as default_settings
from autodiag.errors import GenerationError

logger = structlog.get_logger(__name__)


class Generator(Protocol):
    """Anything that turns a prompt pair into raw model text."""

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        ...


class ExpertLLMClient:
    """
    Client for interacting with the Expert Diagnostic Model (hosted on Ollama
    by default, any OpenAI-compatible endpoint works).

    Returns the raw completion text; parsing and validation belong to the
    synthesizer.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        settings = settings or default_settings
        self.base_url = settings.llm_endpoint
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature
        self.client = client or AsyncOpenAI(
            api_key=settings.llm_api_key,
            base_url=self.base_url,
            timeout=settings.generation_timeout_seconds,
            max_retries=0,
        )
        logger.info("expert_llm_client.init", base_url=self.base_url, model=self.model)

    async def generate(self, system_prompt: str, user_prompt: str) -> str:
        """Send the prompts and return the completion text.

        Raises:
            GenerationError: On transport/API failure or an empty completion.
        """
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                temperature=self.temperature,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as e:
            logger.error("expert_llm_client.request_failed", error=str(e), model=self.model)
            raise GenerationError("generation request failed", {"cause": str(e)}) from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("generation returned no content", {"model": self.model})

        logger.info("expert_llm_client.response_received", raw_content_length=len(content))
        return content

    async def close(self) -> None:
        await self.client.close()
