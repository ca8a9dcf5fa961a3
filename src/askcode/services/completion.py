from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, Iterator, List, Optional

from ..config import AskSettings
from ..observability.metrics import RATE_LIMIT_RETRIES
from .mistral_client import MistralClient
from .retry import RetryPolicy
from .streaming import iter_in_thread


LOG = logging.getLogger("askcode.llm")


def _count_retry(attempt: int, delay: float, exc: BaseException) -> None:
    RATE_LIMIT_RETRIES.inc()
    LOG.info("llm_rate_limited", extra={"attempt": attempt, "delay_s": delay, "err": str(exc)})


def default_retry_policy(settings: AskSettings) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=settings.retry_attempts,
        initial_delay=settings.retry_initial_delay,
        multiplier=settings.retry_multiplier,
        on_retry=_count_retry,
    )


class StreamingCompletionClient:
    """Streams one completion, retrying only the opening of the stream."""

    def __init__(
        self,
        provider: MistralClient,
        settings: AskSettings,
        retry_policy: Optional[RetryPolicy] = None,
    ) -> None:
        self._provider = provider
        self._settings = settings
        self._retry = retry_policy or default_retry_policy(settings)

    def build_messages(self, prompt: str) -> List[Dict[str, str]]:
        return [{"role": "user", "content": prompt}]

    async def _open(self, api_key: str, messages: List[Dict[str, str]]) -> Iterator[str]:
        return await asyncio.to_thread(
            self._provider.open_chat_stream,
            api_key,
            self._settings.model,
            self._settings.temperature,
            self._settings.max_tokens,
            messages,
        )

    async def stream(self, api_key: str, prompt: str) -> AsyncIterator[str]:
        messages = self.build_messages(prompt)
        LOG.info("llm_stream_requested", extra={"model": self._settings.model, "prompt_chars": len(prompt)})
        chunks = await self._retry.call(lambda: self._open(api_key, messages))
        async for delta in iter_in_thread(chunks):
            if delta:
                yield delta
