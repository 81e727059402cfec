import logging
from typing import Optional

import openai
from openai import AsyncOpenAI
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.config import Settings
from ..core.errors import GenerationFailure

logger = logging.getLogger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

# Only transport-level hiccups are worth another attempt
_TRANSIENT_ERRORS = (openai.APIConnectionError, openai.APITimeoutError, openai.RateLimitError)


class OpenAIClient:
    def __init__(self, settings: Settings) -> None:
        # Try Groq first (free), fallback to OpenAI
        if settings.GROQ_API_KEY:
            self.client: Optional[AsyncOpenAI] = AsyncOpenAI(
                api_key=settings.GROQ_API_KEY,
                base_url=GROQ_BASE_URL,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
                max_retries=0,
            )
            self.model: Optional[str] = settings.GROQ_MODEL
            logger.info("OpenAIClient: using Groq LLM")
        elif settings.OPENAI_API_KEY:
            self.client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.HTTP_TIMEOUT_SECONDS,
                max_retries=0,
            )
            self.model = settings.OPENAI_MODEL
            logger.info("OpenAIClient: using OpenAI")
        else:
            self.client = None
            self.model = None
            logger.warning("OpenAIClient: no API key configured; generation requests will fail over to fallbacks")

    def _require_client(self) -> AsyncOpenAI:
        if self.client is None:
            raise GenerationFailure("No text-generation provider configured")
        return self.client

    @staticmethod
    def _content(chat) -> str:
        content = chat.choices[0].message.content
        if not content or not content.strip():
            raise GenerationFailure("Model returned an empty completion")
        return content.strip()

    async def generate(self, system_prompt: str, user_message: str, temperature: float = 0.7, max_tokens: Optional[int] = None) -> str:
        """Single-shot completion used while a call is live."""
        client = self._require_client()
        extra = {"max_tokens": max_tokens} if max_tokens else {}
        try:
            chat = await client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_message},
                ],
                temperature=temperature,
                **extra,
            )
        except Exception as e:
            logger.error(f"Completion request failed: {type(e).__name__}: {str(e)}")
            raise GenerationFailure(str(e)) from e
        return self._content(chat)

    @retry(
        retry=retry_if_exception_type(_TRANSIENT_ERRORS),
        wait=wait_exponential(min=1, max=10),
        stop=stop_after_attempt(3),
        reraise=True,
    )
    async def _create_json_completion(self, client: AsyncOpenAI, system_prompt: str, user_message: str, temperature: float):
        return await client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            response_format={"type": "json_object"},
            temperature=temperature,
        )

    async def extract_json(self, system_prompt: str, user_message: str, temperature: float = 0.1) -> str:
        """JSON-mode completion for post-call extraction. Returns the raw JSON text."""
        client = self._require_client()
        try:
            chat = await self._create_json_completion(client, system_prompt, user_message, temperature)
        except Exception as e:
            logger.error(f"Extraction request failed: {type(e).__name__}: {str(e)}")
            raise GenerationFailure(str(e)) from e
        return self._content(chat)
