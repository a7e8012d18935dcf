"""
Ollama client wrapper with retry logic and error handling.

Used by the router's second tier, the response generator and the compilers.
"""

import asyncio
import random
from dataclasses import dataclass
from datetime import datetime

import ollama

from groupmind.config import (
    OLLAMA_HOST,
    OLLAMA_MODEL,
    ORACLE_PRICE_INPUT_PER_1K,
    ORACLE_PRICE_OUTPUT_PER_1K,
    ORACLE_RETRY_ATTEMPTS,
    ORACLE_RETRY_DELAY,
    ORACLE_TIMEOUT_SECONDS,
)
from groupmind.logging_config import get_logger

logger = get_logger(__name__)


class OracleError(Exception):
    """Raised when the LLM cannot produce a reply after all retries."""
    pass


@dataclass(frozen=True)
class OracleReply:
    text: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: int = 0

    @property
    def total_tokens(self):
        return self.prompt_tokens + self.completion_tokens

    def cost(self, price_input_per_1k=ORACLE_PRICE_INPUT_PER_1K, price_output_per_1k=ORACLE_PRICE_OUTPUT_PER_1K):
        return (self.prompt_tokens / 1000) * price_input_per_1k + (self.completion_tokens / 1000) * price_output_per_1k


class Oracle:
    """Ollama chat client. One instance per model."""

    def __init__(self, model=OLLAMA_MODEL, host=OLLAMA_HOST, timeout=ORACLE_TIMEOUT_SECONDS,
                 retry_attempts=ORACLE_RETRY_ATTEMPTS, retry_delay=ORACLE_RETRY_DELAY, client=None):
        self.model = model
        self.retry_attempts = max(1, retry_attempts)
        self.retry_delay = retry_delay
        self.client = client or ollama.AsyncClient(host=host, timeout=timeout)

    async def complete(self, system, prompt, json_mode=False, temperature=None, max_tokens=None):
        """
        Send one system + user turn and return the reply.

        Raises:
            OracleError: if every attempt fails
        """
        messages = [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ]
        options = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["num_predict"] = max_tokens

        for attempt in range(self.retry_attempts):
            try:
                start = datetime.now()
                response = await self.client.chat(
                    model=self.model,
                    messages=messages,
                    format="json" if json_mode else "",
                    options=options or None,
                )
                latency_ms = int((datetime.now() - start).total_seconds() * 1000)
                reply = OracleReply(
                    text=response["message"]["content"] or "",
                    prompt_tokens=response.get("prompt_eval_count") or 0,
                    completion_tokens=response.get("eval_count") or 0,
                    latency_ms=latency_ms,
                )
                logger.debug(f"{self.model} replied in {latency_ms}ms ({reply.total_tokens} tokens)")
                return reply

            except ollama.ResponseError as e:
                logger.warning(f"{self.model} attempt {attempt + 1}/{self.retry_attempts} failed: {e}")
                if attempt < self.retry_attempts - 1:
                    # Exponential backoff with jitter
                    await asyncio.sleep(self.retry_delay * (2 ** attempt) + random.uniform(0, 1))
                else:
                    raise OracleError(f"{self.model} failed after {self.retry_attempts} attempts: {e}") from e

            except Exception as e:
                # connection refused, timeouts
                logger.error(f"Unexpected error calling {self.model}: {e}")
                raise OracleError(f"Unexpected oracle error: {e}") from e

        raise OracleError(f"{self.model} failed after {self.retry_attempts} attempts")
