"""Tests for settings defaults and environment overrides."""

import pytest

from repo_grader.config import Settings, _apply_env_overrides


ENV_KEYS = [
    "LLM_MODEL", "LLM_BASE_URLS", "LLM_TIMEOUT", "LLM_API_KEY", "OPENAI_API_KEY",
    "LLM_MAX_COMPLETION_TOKENS", "LLM_SEED", "LLM_JSON_MODE",
    "GRADER_MAX_ATTEMPTS", "GRADER_RETRY_DELAY", "GRADER_BATCH_COOLDOWN",
    "GRADER_BATCH_BUDGET", "GRADER_MAX_TOTAL_CHARS", "GRADER_MAX_FILE_CHARS",
    "GRADER_TRUNCATE_FILES", "USE_MOCK_DATA", "GRADER_MOCK_ON_FAILURE",
    "GRADER_PARTIAL_FAILURE_POLICY", "LOG_LEVEL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    settings = _apply_env_overrides(Settings())

    assert settings.max_attempts == 3
    assert settings.retry_delay == 2.0
    assert settings.batch_budget == 300000
    # per-call payload cap sits below the batch budget
    assert settings.max_total_chars == 100000
    assert settings.max_total_chars < settings.batch_budget
    assert settings.partial_failure_policy == "ignore"
    assert settings.use_mock_data is False
    assert settings.api_key is None


def test_env_overrides(clean_env):
    clean_env.setenv("LLM_MODEL", "gpt-4o-mini")
    clean_env.setenv("LLM_BASE_URLS", "http://one, http://two,")
    clean_env.setenv("GRADER_MAX_ATTEMPTS", "5")
    clean_env.setenv("GRADER_MAX_TOTAL_CHARS", "off")
    clean_env.setenv("GRADER_TRUNCATE_FILES", "false")
    clean_env.setenv("USE_MOCK_DATA", "yes")
    clean_env.setenv("GRADER_PARTIAL_FAILURE_POLICY", "scale")
    clean_env.setenv("OPENAI_API_KEY", "sk-test")

    settings = _apply_env_overrides(Settings())

    assert settings.model == "gpt-4o-mini"
    assert settings.base_urls == ["http://one", "http://two"]
    assert settings.max_attempts == 5
    assert settings.max_total_chars is None
    assert settings.truncate_files is False
    assert settings.use_mock_data is True
    assert settings.partial_failure_policy == "scale"
    assert settings.api_key == "sk-test"


def test_invalid_policy_rejected(clean_env):
    with pytest.raises(ValueError):
        Settings(partial_failure_policy="average")

    clean_env.setenv("GRADER_PARTIAL_FAILURE_POLICY", "average")
    with pytest.raises(ValueError):
        _apply_env_overrides(Settings())


def test_llm_config():
    cfg = Settings(model="m", base_urls=["http://a"], timeout=5.0, api_key="k").llm_config()

    assert cfg.model == "m"
    assert cfg.base_urls == ["http://a"]
    assert cfg.timeout == 5.0
    assert cfg.temperature == 0.0
    assert cfg.client_retries == 0
    assert cfg.api_key == "k"


def test_request_options_reach_llm_config(clean_env):
    clean_env.setenv("LLM_MAX_COMPLETION_TOKENS", "4096")
    clean_env.setenv("LLM_SEED", "42")
    clean_env.setenv("LLM_JSON_MODE", "true")

    cfg = _apply_env_overrides(Settings()).llm_config()

    assert cfg.max_completion_tokens == 4096
    assert cfg.seed == 42
    assert cfg.json_mode is True


def test_request_options_default_off(clean_env):
    cfg = _apply_env_overrides(Settings()).llm_config()

    assert cfg.max_completion_tokens is None
    assert cfg.seed is None
    assert cfg.json_mode is False
