"""LLM client shared by the classifier, assembler, analyzer and title generator."""

import asyncio
import logging
from typing import Optional, List, Dict

from src.core.config import Settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Raised when the chat-completion provider fails."""


class LLMClient:
    """
    Thin chat-completion client built once at startup.

    Uses CrewAI's LLM wrapper (LiteLLM underneath) so any provider CrewAI
    supports can be configured through OPENAI_MODEL. Calls are blocking in
    the library, so they run in a worker thread.
    """

    def __init__(self, api_key: str, model: str, timeout: int = 120):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "LLMClient":
        return cls(
            api_key=settings.OPENAI_API_KEY,
            model=settings.OPENAI_MODEL,
            timeout=settings.LLM_TIMEOUT_SECONDS,
        )

    def is_available(self) -> bool:
        """Check if a provider key is configured."""
        return bool(self.api_key)

    async def complete(
        self,
        prompt: str,
        system: Optional[str] = None,
        temperature: float = 0.3,
        max_tokens: int = 2000,
        json_mode: bool = False
    ) -> str:
        """
        Run one chat completion and return the reply text.

        Args:
            prompt: User message
            system: Optional system message
            temperature: Sampling temperature
            max_tokens: Completion token cap
            json_mode: Ask the provider for a JSON object reply

        Returns:
            Reply text (may be empty)

        Raises:
            LLMError: provider not configured or the call failed
        """
        if not self.is_available():
            raise LLMError("LLM provider is not configured")

        messages: List[Dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        try:
            reply = await asyncio.to_thread(
                self._call, messages, temperature, max_tokens, json_mode
            )
        except LLMError:
            raise
        except Exception as e:
            logger.error(f"LLM call failed ({self.model}): {e}")
            raise LLMError(str(e)) from e

        return (reply or "").strip()

    def _call(
        self,
        messages: List[Dict[str, str]],
        temperature: float,
        max_tokens: int,
        json_mode: bool
    ) -> str:
        from crewai import LLM

        options = {}
        if json_mode:
            options["response_format"] = {"type": "json_object"}

        llm = LLM(
            model=self.model,
            api_key=self.api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self.timeout,
            **options
        )
        reply = llm.call(messages)
        logger.debug(f"LLM reply: {len(reply or '')} chars")
        return reply
