import json
import re
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from topic_chat.logging_config import get_loggers

app_logger, _, _ = get_loggers()

DEFAULT_MODEL = "llama-3.1-8b-instant"
DEFAULT_FALLBACK_MODELS = [
    "llama-3.1-8b-instant",
    "llama-3.3-70b-versatile",
    "qwen/qwen3-32b",
    "moonshotai/kimi-k2-instruct",
]

# Model ids Groq has retired; configuring one of these is remapped at startup.
DEPRECATED_MODEL_PATTERNS = [
    re.compile(r"gemma", re.IGNORECASE),
    re.compile(r"^llama3-8b-8192$", re.IGNORECASE),
    re.compile(r"^llama3-70b-8192$", re.IGNORECASE),
]


def sanitize_model_id(model_id: Optional[str]) -> str:
    """Map an empty or known-deprecated model id to the default model."""
    model_id = "" if model_id is None else str(model_id).strip()
    if not model_id:
        return DEFAULT_MODEL
    if any(pattern.search(model_id) for pattern in DEPRECATED_MODEL_PATTERNS):
        app_logger.warning(
            f"Configured GROQ_MODEL='{model_id}' appears deprecated; "
            f"using '{DEFAULT_MODEL}'"
        )
        return DEFAULT_MODEL
    return model_id


def dedupe_candidates(model_ids: List[Optional[str]]) -> List[str]:
    """Drop empty ids and repeats, keeping the first occurrence of each."""
    seen = set()
    candidates = []
    for model_id in model_ids:
        if not model_id or model_id in seen:
            continue
        seen.add(model_id)
        candidates.append(model_id)
    return candidates


class Config(BaseSettings):
    """
    Typed, immutable configuration for the topic chat proxy, loaded from
    environment variables, a .env file, or CLI args.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
        populate_by_name=True,
        cli_prog_name="topic-chat",
    )

    port: int = Field(default=3000, alias="PORT")
    host: str = Field(default="0.0.0.0", alias="HOST")
    groq_api_key: Optional[str] = Field(default=None, alias="GROQ_API_KEY")
    groq_model: str = Field(default=DEFAULT_MODEL, alias="GROQ_MODEL")
    groq_base_url: str = Field(
        default="https://api.groq.com/openai/v1", alias="GROQ_BASE_URL"
    )
    fallback_models: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_FALLBACK_MODELS),
        alias="GROQ_FALLBACK_MODELS",
    )
    request_timeout_seconds: float = Field(
        default=25.0, alias="GROQ_TIMEOUT_SECONDS", gt=0
    )
    static_dir: Optional[str] = Field(default=None, alias="STATIC_DIR")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    upstream_log_level: Optional[str] = Field(
        default=None, alias="UPSTREAM_LOG_LEVEL"
    )

    @field_validator("groq_model", mode="before")
    def sanitize_groq_model(cls, v):
        return sanitize_model_id(v)

    @field_validator("groq_base_url")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    @field_validator("fallback_models", mode="before")
    def parse_fallback_models(cls, v):
        if isinstance(v, str):
            stripped = v.strip()
            if stripped.startswith("["):
                try:
                    return json.loads(stripped)
                except json.JSONDecodeError:
                    raise ValueError(
                        "fallback_models must be a JSON list or comma-separated"
                    )
            return [item.strip() for item in stripped.split(",") if item.strip()]
        return v

    @field_validator("log_level", "upstream_log_level")
    def validate_log_level(cls, v):
        if v is None:
            return v
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL", "TRACE"]
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v.upper()

    @property
    def candidate_models(self) -> List[str]:
        """The configured model first, then the fallbacks, without repeats."""
        return dedupe_candidates([self.groq_model, *self.fallback_models])
