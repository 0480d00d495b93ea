"""
Quick-Response Generator.

Produces the short filler utterance (at most six characters) sent ahead of
the large model's answer. The small model is tried first; anything it gets
wrong falls back to a canned phrase picked by the category of the user's
last message.
"""

import random
import logging
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from loro.errors import LoroError, ValidationFailed
from loro.models.api import Message
from loro.services.retry import execute_with_retry
from loro.services.upstream import UpstreamClient

logger = logging.getLogger("loro.quick_response")

MAX_QUICK_CHARS = 6
QUICK_PUNCTUATION = "。！？，.!?,"


class RequestCategory(str, Enum):
    greeting = "greeting"
    question = "question"
    request = "request"
    thinking = "thinking"


FALLBACK_RESPONSES: Dict[RequestCategory, Tuple[str, ...]] = {
    RequestCategory.greeting: ("你好！", "嗨！", "您好，", "我在，"),
    RequestCategory.question: ("好的，", "这个，", "关于，", "我来，"),
    RequestCategory.request: ("好的，", "明白，", "我来，", "让我，"),
    RequestCategory.thinking: ("嗯，", "我觉得，", "让我，", "根据，"),
}

# Checked in order, first hit wins
_CATEGORY_KEYWORDS: Tuple[Tuple[RequestCategory, Tuple[str, ...]], ...] = (
    (RequestCategory.greeting, ("你好", "hello", "hi", "嗨")),
    (RequestCategory.question, ("什么", "如何", "怎么", "为什么", "why", "how", "what", "?", "？")),
    (RequestCategory.request, ("请", "帮我", "能不能", "可以", "help", "please")),
)


def categorize(text: str) -> RequestCategory:
    content = text.lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(k in content for k in keywords):
            return category
    return RequestCategory.thinking


def fallback_response(text: str, rng: Optional[random.Random] = None) -> str:
    phrases = FALLBACK_RESPONSES[categorize(text)]
    return (rng or random).choice(phrases)


def is_appropriate_quick_response(text: str) -> bool:
    """Short, non-empty, and at most one clause-ending mark."""
    if not text or len(text) > MAX_QUICK_CHARS:
        return False
    return sum(1 for c in text if c in QUICK_PUNCTUATION) <= 1


class QuickResponseGenerator:
    def __init__(
        self,
        upstream: UpstreamClient,
        max_retries: int = 3,
        retry_base_delay: float = 0.1,
        rng: Optional[random.Random] = None,
    ):
        self.upstream = upstream
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.rng = rng

    async def call_small_model(self, messages: Sequence[Message]) -> str:
        last_message = messages[-1]
        if not last_message.content.strip():
            raise ValidationFailed("Message content cannot be empty")

        body = self.upstream.adapter.build_quick_body(self.upstream.model_name, last_message)
        payload = await execute_with_retry(
            lambda: self.upstream.post_json(body),
            self.max_retries,
            "small_model_request",
            base_delay=self.retry_base_delay,
        )
        return self.upstream.adapter.quick_text(payload)

    async def generate(self, messages: Sequence[Message]) -> str:
        """Never fails once given a non-empty message list."""
        if not messages:
            raise ValidationFailed("Messages array cannot be empty")

        try:
            text = await self.call_small_model(messages)
        except LoroError as e:
            logger.warning(f"[QuickResponse] Small model failed: {e}, using fallback")
        else:
            if is_appropriate_quick_response(text):
                return text
            logger.info(f"[QuickResponse] Rejected small model reply {text!r}, using fallback")

        return fallback_response(messages[-1].content, self.rng)
