from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache

class Settings(BaseSettings):
    # "none" is accepted for local backends that need no Authorization header
    SMALL_MODEL_API_KEY: SecretStr
    LARGE_MODEL_API_KEY: SecretStr

    SMALL_MODEL_BASE_URL: str = "https://api.siliconflow.cn/v1"
    LARGE_MODEL_BASE_URL: str = "https://api.siliconflow.cn/v1"
    SMALL_MODEL_NAME: str = "Qwen/Qwen2-1.5B-Instruct"
    LARGE_MODEL_NAME: str = "deepseek-ai/DeepSeek-V2.5"

    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ─── Timeouts & Retries ─────────────────────────────
    HTTP_TIMEOUT_SECS: int = Field(30, ge=5, le=300)
    SMALL_MODEL_TIMEOUT_SECS: int = Field(5, ge=1, le=30)
    # Backoff is 100ms × attempt², keep the ceiling low
    MAX_RETRIES: int = Field(3, ge=0, le=10)

    # Per-mode latency sample capacity
    STATS_MAX_ENTRIES: int = Field(10000, ge=100, le=100000)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("SMALL_MODEL_API_KEY", "LARGE_MODEL_API_KEY")
    @classmethod
    def _key_not_blank(cls, v: SecretStr, info):
        if not v.get_secret_value().strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

    @field_validator("SMALL_MODEL_BASE_URL", "LARGE_MODEL_BASE_URL")
    @classmethod
    def _url_is_http(cls, v: str, info):
        if not v.startswith("http"):
            raise ValueError(f"{info.field_name} must be a valid HTTP(S) URL")
        return v.rstrip("/")

    @field_validator("SMALL_MODEL_NAME", "LARGE_MODEL_NAME")
    @classmethod
    def _name_not_blank(cls, v: str, info):
        if not v.strip():
            raise ValueError(f"{info.field_name} cannot be empty")
        return v

@lru_cache
def get_settings():
    return Settings()
