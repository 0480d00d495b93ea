from typing import Any, Dict, Optional

from loro.adapters.base import BaseUpstreamAdapter, Dialect, FrameResult, parse_json_object
from loro.errors import JsonParseError
from loro.models.api import ChatRequest, Message
from loro.models.chunks import ChatCompletionChunk
from loro.services.prompts import QUICK_SYSTEM_PROMPT

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"
DEFAULT_MAX_TOKENS = 150


def chunk_from_payload(
    payload: Dict[str, Any], request_id: str, model: str
) -> Optional[ChatCompletionChunk]:
    """
    Normalize an OpenAI-style payload (streaming delta or full message).

    Returns None when the first choice carries neither content nor a
    finish_reason.
    """
    choices = payload.get("choices")
    if not isinstance(choices, list):
        raise JsonParseError("missing 'choices' array")
    if not choices:
        return None
    choice = choices[0]
    if not isinstance(choice, dict):
        raise JsonParseError("choice is not an object")

    body = choice.get("delta")
    if not isinstance(body, dict):
        body = choice.get("message")
    if not isinstance(body, dict):
        body = {}

    content = body.get("content")
    role = body.get("role")
    finish_reason = choice.get("finish_reason")
    if content is not None and not isinstance(content, str):
        raise JsonParseError("'content' is not a string")
    if role is not None and not isinstance(role, str):
        raise JsonParseError("'role' is not a string")
    if finish_reason is not None and not isinstance(finish_reason, str):
        raise JsonParseError("'finish_reason' is not a string")

    if content:
        return ChatCompletionChunk.build(
            request_id, model, content=content, role=role, finish_reason=finish_reason
        )
    if finish_reason:
        # Terminal frame without content
        return ChatCompletionChunk.build(request_id, model, finish_reason=finish_reason)
    return None


class OpenAICompatibleAdapter(BaseUpstreamAdapter):
    dialect = Dialect.openai
    chat_path = "/chat/completions"

    def build_quick_body(self, model: str, last_message: Message) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": QUICK_SYSTEM_PROMPT},
                {"role": "user", "content": last_message.content},
            ],
            "max_tokens": 10,
            "temperature": 0.3,
            "stream": False,
        }

    def build_stream_body(self, model: str, request: ChatRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": model,
            "messages": self.stream_messages(request),
            "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": request.temperature,
            "stream": True,
        }
        if request.stop is not None:
            body["stop"] = request.stop
        return body

    def decode_frame(self, line: str, request_id: str, model: str) -> FrameResult:
        # Comments (":"), "event:" and "id:" lines carry no payload
        if not line.startswith(SSE_DATA_PREFIX):
            return FrameResult()

        data = line[len(SSE_DATA_PREFIX):].strip()
        if not data:
            return FrameResult()
        if data == SSE_DONE:
            return FrameResult(done=True)

        payload = parse_json_object(data)
        return FrameResult(chunk=chunk_from_payload(payload, request_id, model))

    def quick_text(self, payload: Dict[str, Any]) -> str:
        chunk = chunk_from_payload(payload, "quick", "quick")
        if chunk is None or not chunk.content:
            raise JsonParseError("No content in small model response")
        return chunk.content.strip()
