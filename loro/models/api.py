from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Union

ALLOWED_ROLES = ("system", "user", "assistant")

class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: str
    content: str

class ChatRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str = Field(..., description="Client-facing model name, echoed in every chunk")
    messages: List[Message]
    max_tokens: Optional[int] = Field(None, description="Large-model max output tokens (1..8192)")
    temperature: float = 0.7
    stop: Optional[Union[str, List[str]]] = None
    stream: bool = True
    # Skip the small-model filler, used to compare against the quick mode
    disable_quick_response: bool = False

    @field_validator("model")
    @classmethod
    def _model_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Model name cannot be empty")
        return v

    @field_validator("messages")
    @classmethod
    def _check_messages(cls, v: List[Message]) -> List[Message]:
        if not v:
            raise ValueError("Messages array cannot be empty")
        for i, message in enumerate(v):
            if not message.role.strip():
                raise ValueError(f"Message {i} role cannot be empty")
            if not message.content.strip():
                raise ValueError(f"Message {i} content cannot be empty")
            if message.role not in ALLOWED_ROLES:
                raise ValueError(f"Message {i} has invalid role: {message.role}")
        return v

    @field_validator("max_tokens")
    @classmethod
    def _check_max_tokens(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and (v < 1 or v > 8192):
            raise ValueError("max_tokens must be between 1 and 8192")
        return v

    @field_validator("temperature")
    @classmethod
    def _check_temperature(cls, v: float) -> float:
        if v < 0.0 or v > 2.0:
            raise ValueError("Temperature must be between 0.0 and 2.0")
        return v
