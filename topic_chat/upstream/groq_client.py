"""
Client for Groq's OpenAI-compatible REST API.

``try_model`` performs one bounded attempt against a single model and
reports the result as an ``AttemptOutcome`` instead of raising, so the
fallback loop can branch on the outcome's status.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

import aiohttp

from topic_chat.logging_config import get_loggers
from topic_chat.server.errors import (
    EmptyCompletionError,
    MalformedResponseError,
    UpstreamError,
    UpstreamHTTPError,
    UpstreamTimeoutError,
    UpstreamTransportError,
)
from topic_chat.upstream.classifier import is_decommissioned_payload

_, _, upstream_logger = get_loggers()

DEFAULT_BASE_URL = "https://api.groq.com/openai/v1"
DEFAULT_TIMEOUT_SECONDS = 25.0

# Fixed by the upstream contract; not user-configurable.
TEMPERATURE = 0.7
MAX_TOKENS = 512


class AttemptStatus(str, Enum):
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"


@dataclass(frozen=True)
class AttemptOutcome:
    """Result of one attempt against one candidate model."""

    model: str
    status: AttemptStatus
    text: Optional[str] = None
    error: Optional[UpstreamError] = None

    @classmethod
    def success(cls, model: str, text: str) -> "AttemptOutcome":
        return cls(model=model, status=AttemptStatus.SUCCESS, text=text)

    @classmethod
    def retryable(cls, model: str, error: UpstreamError) -> "AttemptOutcome":
        return cls(model=model, status=AttemptStatus.RETRYABLE, error=error)

    @classmethod
    def fatal(cls, model: str, error: UpstreamError) -> "AttemptOutcome":
        return cls(model=model, status=AttemptStatus.FATAL, error=error)


def extract_completion_text(data: Any) -> Optional[str]:
    """Return the stripped text of the first choice, or None if absent."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        return None
    first = choices[0]
    if not isinstance(first, dict):
        return None
    message = first.get("message")
    if not isinstance(message, dict):
        return None
    content = message.get("content")
    if not isinstance(content, str):
        return None
    return content.strip() or None


class GroqClient:
    """
    Thin async wrapper over the Groq completion and model listing endpoints.

    The underlying ``aiohttp.ClientSession`` is a connection pool only; no
    results are cached between calls.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    async def start(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("GroqClient.start() must be awaited before use")
        return self._session

    def _headers(self, with_body: bool = False) -> Dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if with_body:
            headers["Content-Type"] = "application/json"
        return headers

    async def try_model(
        self,
        model_id: str,
        messages: List[Dict[str, str]],
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> AttemptOutcome:
        """Run a single chat completion attempt against ``model_id``."""
        payload = {
            "model": model_id,
            "messages": messages,
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
        }
        url = f"{self.base_url}/chat/completions"
        started = time.perf_counter()
        upstream_logger.debug(
            "Starting completion attempt",
            extra={"model": model_id, "timeout_s": timeout_seconds},
        )

        try:
            async with self.session.post(
                url,
                json=payload,
                headers=self._headers(with_body=True),
                timeout=aiohttp.ClientTimeout(total=timeout_seconds),
            ) as resp:
                body = await resp.text(errors="replace")
                status = resp.status
        except asyncio.TimeoutError:
            # Checked before ClientError: ServerTimeoutError is both.
            upstream_logger.warning(
                f"Model '{model_id}' timed out after {timeout_seconds:g}s"
            )
            return AttemptOutcome.fatal(
                model_id,
                UpstreamTimeoutError(f"model '{model_id}'", timeout_seconds),
            )
        except aiohttp.ClientError as e:
            upstream_logger.warning(
                f"Transport error calling model '{model_id}': {e}"
            )
            return AttemptOutcome.fatal(
                model_id, UpstreamTransportError(f"Request to Groq failed: {e}")
            )

        elapsed = time.perf_counter() - started
        if not 200 <= status < 300:
            error = UpstreamHTTPError(status, body)
            if is_decommissioned_payload(body):
                return AttemptOutcome.retryable(model_id, error)
            upstream_logger.warning(
                "Completion attempt failed",
                extra={
                    "model": model_id,
                    "status": status,
                    "elapsed_s": f"{elapsed:.3f}",
                },
            )
            return AttemptOutcome.fatal(model_id, error)

        try:
            data = json.loads(body)
        except ValueError:
            return AttemptOutcome.fatal(
                model_id,
                MalformedResponseError(
                    f"Groq returned a non-JSON response for model '{model_id}'"
                ),
            )

        text = extract_completion_text(data)
        if text is None:
            return AttemptOutcome.fatal(model_id, EmptyCompletionError())

        upstream_logger.info(
            "Completion attempt succeeded",
            extra={"model": model_id, "elapsed_s": f"{elapsed:.3f}"},
        )
        return AttemptOutcome.success(model_id, text)

    async def list_models(
        self, timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    ) -> Dict[str, Any]:
        """
        Fetch the models visible to the configured key.

        Returns ``{"models": [sorted ids], "raw": <upstream payload>}``.
        Raises an UpstreamError subclass on any failure.
        """
        url = f"{self.base_url}/models"
        try:
            async with self.session.get(
                url,
                headers=self._headers(),
                timeout=aiohttp.ClientTimeout(total=timeout_seconds),
            ) as resp:
                body = await resp.text(errors="replace")
                status = resp.status
        except asyncio.TimeoutError:
            raise UpstreamTimeoutError("the model list", timeout_seconds)
        except aiohttp.ClientError as e:
            raise UpstreamTransportError(f"Failed to fetch models: {e}") from e

        if not 200 <= status < 300:
            raise UpstreamHTTPError(status, body)

        try:
            data = json.loads(body)
        except ValueError as e:
            raise MalformedResponseError(
                "Groq returned a non-JSON model list"
            ) from e

        entries = data.get("data") if isinstance(data, dict) else None
        models = sorted(
            entry["id"]
            for entry in entries or []
            if isinstance(entry, dict) and isinstance(entry.get("id"), str)
        )
        return {"models": models, "raw": data}
