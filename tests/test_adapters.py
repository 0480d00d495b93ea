import pytest

from loro.adapters.base import Dialect, auth_headers
from loro.adapters.dialects import adapter_for_url, detect_dialect
from loro.adapters.ollama import OllamaAdapter
from loro.adapters.openai_compat import OpenAICompatibleAdapter
from loro.models.api import ChatRequest, Message
from loro.services.prompts import LARGE_SYSTEM_PROMPT, QUICK_SYSTEM_PROMPT


def chat_request(**overrides) -> ChatRequest:
    values = {
        "model": "m",
        "messages": [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ],
    }
    values.update(overrides)
    return ChatRequest(**values)


@pytest.mark.parametrize(
    "url, dialect",
    [
        ("http://localhost:11434", Dialect.ollama),
        ("http://127.0.0.1:11434/", Dialect.ollama),
        ("https://api.siliconflow.cn/v1", Dialect.openai),
        ("http://localhost:8080/v1", Dialect.openai),
    ],
)
def test_detect_dialect(url, dialect):
    assert detect_dialect(url) == dialect
    assert adapter_for_url(url).dialect == dialect


def test_endpoints():
    assert OpenAICompatibleAdapter().endpoint("https://api.example.com/v1/") == (
        "https://api.example.com/v1/chat/completions"
    )
    assert OllamaAdapter().endpoint("http://localhost:11434") == "http://localhost:11434/api/chat"


def test_auth_header_skipped_for_none_key():
    assert "Authorization" not in auth_headers("none")
    assert auth_headers("sk-123")["Authorization"] == "Bearer sk-123"


class TestOpenAIBodies:
    adapter = OpenAICompatibleAdapter()

    def test_quick_body(self):
        body = self.adapter.build_quick_body("small", Message(role="user", content="你好"))
        assert body["stream"] is False
        assert body["max_tokens"] == 10
        assert body["temperature"] == 0.3
        assert body["messages"] == [
            {"role": "system", "content": QUICK_SYSTEM_PROMPT},
            {"role": "user", "content": "你好"},
        ]

    def test_stream_body_prepends_persona(self):
        body = self.adapter.build_stream_body("large", chat_request(temperature=0.2, stop=["\n"]))
        assert body["model"] == "large"
        assert body["stream"] is True
        assert body["temperature"] == 0.2
        assert body["stop"] == ["\n"]
        assert body["max_tokens"] == 150
        assert body["messages"][0] == {"role": "system", "content": LARGE_SYSTEM_PROMPT}
        assert body["messages"][1:] == [
            {"role": "system", "content": "be brief"},
            {"role": "user", "content": "hi"},
        ]

    def test_stream_body_honours_max_tokens(self):
        body = self.adapter.build_stream_body("large", chat_request(max_tokens=512))
        assert body["max_tokens"] == 512
        assert "stop" not in body


class TestOllamaBodies:
    adapter = OllamaAdapter()

    def test_quick_body_is_deterministic(self):
        body = self.adapter.build_quick_body("qwen", Message(role="user", content="hi"))
        assert body["stream"] is False
        assert body["keep_alive"] == "10m"
        assert body["options"]["temperature"] == 0.0
        assert body["options"]["top_k"] == 1
        assert body["messages"][0]["content"] == QUICK_SYSTEM_PROMPT

    def test_stream_body(self):
        body = self.adapter.build_stream_body("qwen", chat_request(max_tokens=64, stop="END"))
        assert body["stream"] is True
        assert body["messages"][0] == {"role": "system", "content": LARGE_SYSTEM_PROMPT}
        assert body["options"] == {"temperature": 0.7, "num_predict": 64, "stop": ["END"]}


def test_quick_text_extraction():
    assert OpenAICompatibleAdapter().quick_text({"choices": [{"message": {"content": " 嗯， "}}]}) == "嗯，"
    assert OllamaAdapter().quick_text({"message": {"content": "好的\n"}, "done": True}) == "好的"
