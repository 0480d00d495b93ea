import time
import uuid
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

CHUNK_OBJECT = "chat.completion.chunk"
ASSISTANT_ROLE = "assistant"
STOP_REASON = "stop"

# Serialized chunks above this size are refused
MAX_CHUNK_BYTES = 1024 * 1024


def new_request_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"


class MessageDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Optional[str] = None
    content: Optional[str] = None


class ChoiceDelta(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = 0
    delta: MessageDelta
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """One normalized streaming frame, independent of the upstream dialect."""

    model_config = ConfigDict(frozen=True)

    id: str
    object: str = CHUNK_OBJECT
    created: int = Field(default_factory=lambda: int(time.time()))
    model: str
    choices: List[ChoiceDelta] = Field(..., min_length=1)

    @classmethod
    def build(
        cls,
        request_id: str,
        model: str,
        content: Optional[str] = None,
        role: Optional[str] = None,
        finish_reason: Optional[str] = None,
    ) -> "ChatCompletionChunk":
        return cls(
            id=request_id,
            model=model,
            choices=[
                ChoiceDelta(
                    index=0,
                    delta=MessageDelta(role=role, content=content),
                    finish_reason=finish_reason,
                )
            ],
        )

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @property
    def content(self) -> Optional[str]:
        return self.choices[0].delta.content
