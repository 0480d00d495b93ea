import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from loro.errors import JsonParseError
from loro.models.api import ChatRequest, Message
from loro.models.chunks import ChatCompletionChunk
from loro.services.prompts import LARGE_SYSTEM_PROMPT

# Sentinel key for unauthenticated local backends
NO_API_KEY = "none"


class Dialect(str, Enum):
    openai = "openai"
    ollama = "ollama"


@dataclass(frozen=True)
class FrameResult:
    """Outcome of decoding one complete upstream line."""
    chunk: Optional[ChatCompletionChunk] = None
    done: bool = False


def auth_headers(api_key: str) -> Dict[str, str]:
    headers = {"Content-Type": "application/json"}
    if api_key != NO_API_KEY:
        headers["Authorization"] = f"Bearer {api_key}"
    return headers


def parse_json_object(text: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise JsonParseError(str(e)) from e
    if not isinstance(data, dict):
        raise JsonParseError(f"expected a JSON object, got {type(data).__name__}")
    return data


class BaseUpstreamAdapter(ABC):
    """
    Abstract base class for upstream wire dialects.
    Builds request bodies for the small (quick) and large (streaming) calls
    and decodes the frames each dialect sends back.
    """

    dialect: Dialect
    chat_path: str

    def endpoint(self, base_url: str) -> str:
        return f"{base_url.rstrip('/')}{self.chat_path}"

    @staticmethod
    def stream_messages(request: ChatRequest) -> List[Dict[str, str]]:
        """Caller's conversation with the voice-assistant persona prepended."""
        messages = [{"role": "system", "content": LARGE_SYSTEM_PROMPT}]
        messages.extend({"role": m.role, "content": m.content} for m in request.messages)
        return messages

    @abstractmethod
    def build_quick_body(self, model: str, last_message: Message) -> Dict[str, Any]:
        """Non-streaming, tightly constrained body for the small model."""
        pass

    @abstractmethod
    def build_stream_body(self, model: str, request: ChatRequest) -> Dict[str, Any]:
        """Streaming body for the large model."""
        pass

    @abstractmethod
    def decode_frame(self, line: str, request_id: str, model: str) -> FrameResult:
        """
        Decode one complete, stripped line.

        Raises JsonParseError for frames that cannot be parsed.
        """
        pass

    @abstractmethod
    def quick_text(self, payload: Dict[str, Any]) -> str:
        """Extract the reply text from a non-streaming small-model response."""
        pass
