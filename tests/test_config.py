import pytest
from pydantic import ValidationError

from topic_chat.config import (
    DEFAULT_FALLBACK_MODELS,
    DEFAULT_MODEL,
    Config,
    dedupe_candidates,
    sanitize_model_id,
)


def _config(**values) -> Config:
    return Config(_env_file=None, **values)


def test_defaults():
    config = _config()
    assert config.groq_api_key is None
    assert config.groq_model == DEFAULT_MODEL
    assert config.groq_base_url == "https://api.groq.com/openai/v1"
    assert config.request_timeout_seconds == 25.0
    assert config.port == 3000
    assert config.fallback_models == DEFAULT_FALLBACK_MODELS


@pytest.mark.parametrize(
    "configured",
    ["gemma2-9b-it", "GEMMA-7b-it", "llama3-8b-8192", "LLAMA3-70B-8192", "", "  "],
)
def test_deprecated_or_empty_models_are_remapped(configured):
    assert sanitize_model_id(configured) == DEFAULT_MODEL
    assert _config(groq_model=configured).groq_model == DEFAULT_MODEL


def test_supported_model_is_kept():
    assert _config(groq_model="qwen/qwen3-32b").groq_model == "qwen/qwen3-32b"


def test_model_is_sanitized_from_environment(monkeypatch):
    monkeypatch.setenv("GROQ_MODEL", "llama3-70b-8192")
    monkeypatch.setenv("GROQ_API_KEY", "env-key")
    config = _config()
    assert config.groq_model == DEFAULT_MODEL
    assert config.groq_api_key == "env-key"


def test_candidates_put_configured_model_first_without_repeats():
    config = _config(groq_model="qwen/qwen3-32b")
    assert config.candidate_models == [
        "qwen/qwen3-32b",
        "llama-3.1-8b-instant",
        "llama-3.3-70b-versatile",
        "moonshotai/kimi-k2-instruct",
    ]


def test_default_model_is_not_tried_twice():
    config = _config()
    assert config.candidate_models.count(DEFAULT_MODEL) == 1
    assert config.candidate_models[0] == DEFAULT_MODEL


def test_dedupe_preserves_first_seen_order():
    assert dedupe_candidates(["b", "a", "", "b", None, "c", "a"]) == ["b", "a", "c"]


def test_fallback_models_from_comma_separated_env(monkeypatch):
    monkeypatch.setenv("GROQ_FALLBACK_MODELS", "m1, m2,,m1")
    config = _config(groq_model="m2")
    assert config.fallback_models == ["m1", "m2", "m1"]
    assert config.candidate_models == ["m2", "m1"]


def test_fallback_models_from_json_env(monkeypatch):
    monkeypatch.setenv("GROQ_FALLBACK_MODELS", '["x", "y"]')
    assert _config().fallback_models == ["x", "y"]


def test_config_is_immutable():
    config = _config()
    with pytest.raises(ValidationError):
        config.groq_model = "other"


def test_invalid_log_level_is_rejected():
    with pytest.raises(ValidationError):
        _config(log_level="chatty")


def test_log_level_is_normalized():
    assert _config(log_level="debug").log_level == "DEBUG"


def test_upstream_log_level_defaults_to_none_and_is_normalized():
    assert _config().upstream_log_level is None
    assert _config(upstream_log_level="trace").upstream_log_level == "TRACE"
    with pytest.raises(ValidationError):
        _config(upstream_log_level="chatty")


def test_timeout_must_be_positive():
    with pytest.raises(ValidationError):
        _config(request_timeout_seconds=0)


def test_base_url_trailing_slash_is_stripped():
    config = _config(groq_base_url="http://localhost:9999/openai/v1/")
    assert config.groq_base_url == "http://localhost:9999/openai/v1"
