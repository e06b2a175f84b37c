"""
LingoTutor - Text Generation Collaborator
Optional, best-effort phrasing for tutor feedback. Never consulted for the
correctness decision: by the time explain() runs, the attempt and state
transition are already fixed.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional, Protocol

from openai import AsyncOpenAI

from lingotutor.config import (
    LLM_MAX_TOKENS, LLM_MODEL, LLM_TEMPERATURE, LLM_TIMEOUT_SECONDS, OPENAI_API_KEY,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExplainContext:
    intent: str  # ENCOURAGE_RETRY | FORCED_ADVANCE | ADVANCE_LESSON | END_LESSON
    language: str
    question_text: str = ""
    user_answer: str = ""
    expected_answer: str = ""
    reason_code: Optional[str] = None
    hint_text: str = ""
    learner_summary: str = ""
    max_chars: int = 280


class Explainer(Protocol):
    async def explain(self, context: ExplainContext) -> str: ...


def build_messages(context: ExplainContext) -> list[dict]:
    system = (
        "You are a calm language tutor. Reply in at most two short sentences. "
        f"Stay under {context.max_chars} characters. Never judge the answer: "
        "the verdict is already decided. Do not reveal the answer unless the intent is FORCED_ADVANCE."
    )
    lines = [
        f"Intent: {context.intent}",
        f"Target language: {context.language}",
        f"Question: {context.question_text}",
        f"Learner answer: {context.user_answer}",
    ]
    if context.reason_code:
        lines.append(f"Issue: {context.reason_code}")
    if context.hint_text:
        lines.append(f"Hint to weave in: {context.hint_text}")
    if context.learner_summary:
        lines.append(f"Learner history: {context.learner_summary}")
    if context.intent == "FORCED_ADVANCE" and context.expected_answer:
        lines.append(f"Correct answer: {context.expected_answer}")
    return [
        {"role": "system", "content": system},
        {"role": "user", "content": "\n".join(lines)},
    ]


# ─── OpenAI ──────────────────────────────────────────────────────────────────

class OpenAIExplainer:
    def __init__(self, client: Optional[AsyncOpenAI] = None, model: str = LLM_MODEL):
        self._client = client or AsyncOpenAI(api_key=OPENAI_API_KEY)
        self._model = model

    async def explain(self, context: ExplainContext) -> str:
        start = time.perf_counter()
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=build_messages(context),
            max_tokens=LLM_MAX_TOKENS,
            temperature=LLM_TEMPERATURE,
        )
        elapsed = int((time.perf_counter() - start) * 1000)
        text = (response.choices[0].message.content or "").strip()
        logger.info(f"Explain response: {elapsed}ms, {len(text)} chars")
        return text[:context.max_chars].strip()


async def explain_with_fallback(
    explainer: Optional[Explainer],
    context: ExplainContext,
    fallback: str,
    timeout: float = LLM_TIMEOUT_SECONDS,
) -> str:
    """
    Time-boxed explain(). Timeout, error, cancellation of the explain call
    or an empty reply all return `fallback`. Cancellation of the calling task
    propagates.
    """
    if explainer is None:
        return fallback
    try:
        text = await asyncio.wait_for(explainer.explain(context), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Explain timed out after {timeout}s, using templated text")
        return fallback
    except asyncio.CancelledError:
        task = asyncio.current_task()
        if task is not None and task.cancelling():
            # The host cancelled this turn, not just the explain call
            raise
        logger.warning("Explain cancelled, using templated text")
        return fallback
    except Exception as e:
        logger.warning(f"Explain failed: {e}")
        return fallback

    text = (text or "").strip()
    if not text:
        return fallback
    return f"{fallback} {text}".strip() if fallback else text


_instance: Optional[OpenAIExplainer] = None


def get_explainer() -> OpenAIExplainer:
    """Configured explainer (singleton)."""
    global _instance
    if _instance is None:
        _instance = OpenAIExplainer()
    return _instance
