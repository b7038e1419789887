"""
Chat completion provider for Groq's OpenAI-compatible API.
"""

from typing import Dict, Any, List, Optional

import openai
from openai import AsyncOpenAI

from ...interfaces.response import CompletionInterface
from ...utils.error_handling import EmptyReply, NetworkFailure, classify_http_status
from ...utils.logging_config import get_logger


logger = get_logger("completion")

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class GroqCompletionProvider(CompletionInterface):
    """
    Single-shot chat completions through the openai SDK.

    Configuration options:
    - api_key: Groq API key (required)
    - model: Model id (default: "llama-3.1-8b-instant")
    - base_url: API base (default: Groq's OpenAI-compatible endpoint)
    - request_timeout: SDK-level timeout in seconds (default: 10)
    """

    def __init__(self, config: Dict[str, Any]):
        self.api_key = config.get('api_key')
        if not self.api_key:
            raise ValueError("Groq API key is required")

        self.model = config.get('model', 'llama-3.1-8b-instant')
        self.base_url = config.get('base_url', GROQ_BASE_URL)
        self.request_timeout = config.get('request_timeout', 10.0)

        self._client: Optional[AsyncOpenAI] = None

    async def initialize(self) -> bool:
        if self._client is None:
            # Retries would stretch the reply timeout
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url,
                timeout=self.request_timeout,
                max_retries=0,
            )
            logger.info(f"✅ Completion client ready ({self.model})")
        return True

    async def complete(self,
                       messages: List[Dict[str, str]],
                       max_tokens: int,
                       temperature: float) -> str:
        if self._client is None:
            await self.initialize()

        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except openai.APITimeoutError as e:
            raise NetworkFailure("Completion timed out", timeout=True) from e
        except openai.APIConnectionError as e:
            raise NetworkFailure(f"Completion connection failed: {e}") from e
        except openai.APIStatusError as e:
            raise classify_http_status(e.status_code, str(e)) from e

        if not response.choices:
            raise EmptyReply("No choices in completion")
        content = (response.choices[0].message.content or "").strip()
        if not content:
            raise EmptyReply("Completion body was empty")
        return content

    async def cleanup(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None
