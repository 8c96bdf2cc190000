"""
Model fallback resolution.

Candidates are tried one at a time, in order. A decommissioned model is
skipped in favour of the next candidate; any other failure ends the loop
and is raised to the caller as-is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from topic_chat.config import dedupe_candidates
from topic_chat.logging_config import get_loggers
from topic_chat.server.errors import UpstreamError, no_candidate_models
from topic_chat.upstream.groq_client import (
    DEFAULT_TIMEOUT_SECONDS,
    AttemptOutcome,
    AttemptStatus,
)

app_logger, _, _ = get_loggers()

Messages = List[Dict[str, str]]
AttemptFn = Callable[[str, Messages, float], Awaitable[AttemptOutcome]]


@dataclass(frozen=True)
class Completion:
    text: str
    model: str
    attempted: List[str] = field(default_factory=list)


async def resolve_completion(
    candidates: Sequence[str],
    messages: Messages,
    attempt: AttemptFn,
    timeout_seconds: Optional[float] = None,
) -> Completion:
    """
    Return the first successful completion among ``candidates``.

    Empty and repeated ids are dropped first, keeping first-seen order.

    ``attempt`` is called as ``attempt(model_id, messages, timeout_seconds)``,
    normally ``GroqClient.try_model``. Raises ConfigurationError when no
    candidates remain. A fatal outcome's error is raised unchanged; if every
    candidate is decommissioned, the last decommission error is raised.
    """
    candidates = dedupe_candidates(list(candidates))
    if not candidates:
        raise no_candidate_models()

    timeout = timeout_seconds or DEFAULT_TIMEOUT_SECONDS
    attempted: List[str] = []
    last_error: Optional[UpstreamError] = None

    for model_id in candidates:
        attempted.append(model_id)
        outcome = await attempt(model_id, messages, timeout)

        if outcome.status is AttemptStatus.SUCCESS:
            if len(attempted) > 1:
                app_logger.info(
                    f"Completed with fallback model '{model_id}'",
                    extra={"attempted": list(attempted)},
                )
            return Completion(text=outcome.text, model=model_id, attempted=attempted)

        if outcome.status is AttemptStatus.RETRYABLE:
            app_logger.warning(
                f"Model '{model_id}' is decommissioned. Trying next fallback..."
            )
            last_error = outcome.error
            continue

        raise outcome.error

    # Every candidate was decommissioned.
    raise last_error
