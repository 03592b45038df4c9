# src/ar/llm.py
"""
LLM client utilities (text-generation collaborator).

Purpose:
- Centralize all interactions with the OpenAI-compatible chat endpoint.
- Expose the single primitive the review pipeline needs: generate(prompt) -> Markdown.
- Add observability (latency + token usage) for cost/debugging.

Design choices:
- API key and base URL are read from environment to keep secrets out of code.
- JSON-only answers validated against GeneratedReport, so malformed output fails
  the run instead of landing in a review file.
- Timeouts, dropped connections and unparseable answers are retried with
  exponential backoff; auth/quota/model errors are not.
- Every failure that escapes is a GenerationError: the caller aborts the run
  before touching the snapshot index.
"""
from __future__ import annotations

import json
import logging
import os
import re
import time
import uuid
from typing import Any, Callable, Dict, Optional, Protocol

import openai
from openai import OpenAI
from pydantic import ValidationError

from ar.errors import GenerationError
from ar.prompts import SYSTEM_PROMPT
from ar.schema import GeneratedReport

# Dedicated logger namespace so LLM telemetry can be filtered independently from the rest of the app logs.
logger = logging.getLogger("ar.llm")

DEFAULT_MODEL = "deepseek/deepseek-v3.2"
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_RETRIES = 3
RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 10.0

_FENCE_START_RE = re.compile(r"^```(?:json)?\s*\n?", re.IGNORECASE)
_FENCE_END_RE = re.compile(r"\n?```\s*$")

# APIConnectionError also covers APITimeoutError.
RETRYABLE_ERRORS = (openai.APIConnectionError, json.JSONDecodeError, ValidationError)


class TextGenerator(Protocol):
    def generate(self, prompt: str, operation: str = "review") -> str:
        ...


def get_client(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> OpenAI:
    api_key = os.environ.get("API_KEY")
    if not api_key:
        raise GenerationError("API_KEY is not set; configure it in .env or the environment.")
    # Retries are handled in OpenAIGenerator so that every attempt is logged the same way.
    return OpenAI(
        api_key=api_key,
        base_url=os.environ.get("BASE_URL") or None,
        timeout=timeout,
        max_retries=0,
    )


def _safe_usage_dict(usage: Any) -> Optional[Dict[str, int]]:
    """
    Normalize a usage object (OpenAI types or dict-like) into a stable dict of ints.
    Different gateways expose usage in slightly different shapes.
    """
    if usage is None:
        return None
    keys = ("prompt_tokens", "completion_tokens", "total_tokens")
    if all(hasattr(usage, k) for k in keys):
        try:
            return {k: int(getattr(usage, k) or 0) for k in keys}
        except (TypeError, ValueError):
            return None
    if isinstance(usage, dict):
        try:
            return {k: int(usage.get(k, 0) or 0) for k in keys}
        except (TypeError, ValueError):
            return None
    return None


def strip_code_fences(txt: str) -> str:
    # Some models wrap JSON in ```json fences even when told not to.
    txt = _FENCE_START_RE.sub("", txt.strip())
    return _FENCE_END_RE.sub("", txt).strip()


def chat_json(
    client: OpenAI,
    model: str,
    system: str,
    user: str,
    temperature: float = DEFAULT_TEMPERATURE,
    operation: str = "unspecified",
    run_id: Optional[str] = None,
) -> Any:
    """
    Call the LLM and parse a JSON response.

    Contract:
    - The caller MUST instruct the model to return JSON only.
    - Raises json.JSONDecodeError if the answer is not JSON (retryable upstream).
    """
    t0 = time.perf_counter()

    resp = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        temperature=temperature,
    )

    dt_ms = (time.perf_counter() - t0) * 1000.0
    usage = _safe_usage_dict(getattr(resp, "usage", None))

    logger.info(
        "llm_call op=%s model=%s latency_ms=%.1f run_id=%s usage=%s",
        operation,
        model,
        dt_ms,
        run_id,
        usage,
    )

    txt = resp.choices[0].message.content or ""
    return json.loads(strip_code_fences(txt))


class OpenAIGenerator:
    """TextGenerator backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        temperature: float = DEFAULT_TEMPERATURE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: Optional[OpenAI] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._model = model
        self._temperature = temperature
        self._timeout = timeout
        self._max_retries = max(0, max_retries)
        self._client = client
        self._sleep = sleep
        # One run_id per generator instance: correlates all calls of one process run in the logs
        self.run_id = str(uuid.uuid4())

    def _get_client(self) -> OpenAI:
        if self._client is None:
            self._client = get_client(timeout=self._timeout)
        return self._client

    def generate(self, prompt: str, operation: str = "review") -> str:
        client = self._get_client()
        last_error: Optional[Exception] = None
        attempts = self._max_retries + 1

        for attempt in range(attempts):
            try:
                raw = chat_json(
                    client,
                    model=self._model,
                    system=SYSTEM_PROMPT,
                    user=prompt,
                    temperature=self._temperature,
                    operation=operation,
                    run_id=self.run_id,
                )
                return GeneratedReport.model_validate(raw).text
            except RETRYABLE_ERRORS as e:
                last_error = e
                if attempt < self._max_retries:
                    delay = min(RETRY_BASE_DELAY_SECONDS * (2 ** attempt), RETRY_MAX_DELAY_SECONDS)
                    logger.warning(
                        "llm_call failed op=%s attempt=%d/%d, retrying in %.1fs: %s",
                        operation,
                        attempt + 1,
                        attempts,
                        delay,
                        e,
                    )
                    self._sleep(delay)
            except openai.OpenAIError as e:
                # Auth, quota, unknown model: retrying will not help
                raise GenerationError(f"Text generation failed ({operation}): {e}") from e

        raise GenerationError(
            f"Text generation failed ({operation}) after {attempts} attempts: {last_error}"
        ) from last_error
