"""Text-completion capability used by the relevance scorer (OpenAI or Groq)."""
from __future__ import annotations

from typing import Callable, Protocol

from openai import APIConnectionError, APITimeoutError, AsyncOpenAI, RateLimitError

from jobmirror.log import get_logger
from jobmirror.retry import retry

log = get_logger(__name__)

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
DEFAULT_GROQ_MODEL = "llama-3.3-70b-versatile"


class TextCompletion(Protocol):
    async def complete(self, prompt: str, system: str) -> str: ...


class OpenAICompletion:
    """Chat-completions client; any OpenAI-compatible endpoint works."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        *,
        base_url: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 900,
    ) -> None:
        # Retries come from the decorator on complete().
        self._client = AsyncOpenAI(api_key=api_key, base_url=base_url, max_retries=0)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    @retry(
        max_attempts=2,
        base_delay=1.0,
        retryable=(APIConnectionError, APITimeoutError, RateLimitError),
    )
    async def complete(self, prompt: str, system: str) -> str:
        r = await self._client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return (r.choices[0].message.content or "").strip()


def completion_from_env(env_getter: Callable[[str], str]) -> TextCompletion | None:
    """OpenAI when OPENAI_API_KEY is set, else Groq, else None (fallback scoring)."""
    openai_key = env_getter("OPENAI_API_KEY")
    if openai_key:
        model = env_getter("OPENAI_LLM_MODEL") or DEFAULT_OPENAI_MODEL
        log.info("Scoring with OpenAI model %s", model)
        return OpenAICompletion(openai_key, model)

    groq_key = env_getter("GROQ_API_KEY")
    if groq_key:
        model = env_getter("GROQ_LLM_MODEL") or DEFAULT_GROQ_MODEL
        log.info("Scoring with Groq model %s", model)
        return OpenAICompletion(groq_key, model, base_url=GROQ_BASE_URL)

    log.info("No OPENAI_API_KEY or GROQ_API_KEY set, match scores use the fallback")
    return None
