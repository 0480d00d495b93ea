from typing import Any, Dict

from loro.adapters.base import BaseUpstreamAdapter, Dialect, FrameResult, parse_json_object
from loro.errors import JsonParseError
from loro.models.api import ChatRequest, Message
from loro.models.chunks import ChatCompletionChunk
from loro.services.prompts import QUICK_SYSTEM_PROMPT

KEEP_ALIVE = "10m"


def _message_content(payload: Dict[str, Any]) -> str:
    message = payload.get("message")
    if message is None:
        return ""
    if not isinstance(message, dict):
        raise JsonParseError("'message' is not an object")
    content = message.get("content") or ""
    if not isinstance(content, str):
        raise JsonParseError("'message.content' is not a string")
    return content


class OllamaAdapter(BaseUpstreamAdapter):
    """Local NDJSON dialect: one JSON object per line, `done` on the last one."""

    dialect = Dialect.ollama
    chat_path = "/api/chat"

    def build_quick_body(self, model: str, last_message: Message) -> Dict[str, Any]:
        return {
            "model": model,
            "messages": [
                {"role": "system", "content": QUICK_SYSTEM_PROMPT},
                {"role": "user", "content": last_message.content},
            ],
            "stream": False,
            "keep_alive": KEEP_ALIVE,
            # Greedy decoding, a handful of tokens
            "options": {
                "temperature": 0.0,
                "num_predict": 3,
                "top_k": 1,
                "top_p": 0.1,
                "repeat_penalty": 1.0,
            },
        }

    def build_stream_body(self, model: str, request: ChatRequest) -> Dict[str, Any]:
        options: Dict[str, Any] = {"temperature": request.temperature}
        if request.max_tokens is not None:
            options["num_predict"] = request.max_tokens
        if request.stop is not None:
            options["stop"] = [request.stop] if isinstance(request.stop, str) else list(request.stop)

        return {
            "model": model,
            "messages": self.stream_messages(request),
            "stream": True,
            "keep_alive": KEEP_ALIVE,
            "options": options,
        }

    def decode_frame(self, line: str, request_id: str, model: str) -> FrameResult:
        payload = parse_json_object(line)
        content = _message_content(payload)
        done = bool(payload.get("done", False))
        if not content:
            return FrameResult(done=done)
        return FrameResult(chunk=ChatCompletionChunk.build(request_id, model, content=content), done=done)

    def quick_text(self, payload: Dict[str, Any]) -> str:
        content = _message_content(payload)
        if not content:
            raise JsonParseError("No content in small model response")
        return content.strip()
