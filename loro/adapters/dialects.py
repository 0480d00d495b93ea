from loro.adapters.base import BaseUpstreamAdapter, Dialect
from loro.adapters.ollama import OllamaAdapter
from loro.adapters.openai_compat import OpenAICompatibleAdapter

# Default port of the local NDJSON server
LOCAL_SERVER_PORT = "11434"

_ADAPTERS = {
    Dialect.openai: OpenAICompatibleAdapter,
    Dialect.ollama: OllamaAdapter,
}


def detect_dialect(base_url: str) -> Dialect:
    """Guess the wire dialect from the configured base URL."""
    if LOCAL_SERVER_PORT in base_url:
        return Dialect.ollama
    return Dialect.openai


def get_adapter(dialect: Dialect) -> BaseUpstreamAdapter:
    return _ADAPTERS[dialect]()


def adapter_for_url(base_url: str) -> BaseUpstreamAdapter:
    return get_adapter(detect_dialect(base_url))
