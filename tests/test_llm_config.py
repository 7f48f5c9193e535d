"""Tests for llm_config.py — layering of defaults, config file and env."""

import json

import pytest

import llm_config
from llm_config import PipelineSettings, ProviderConfig, get_port, load_config


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "llm_config.json"

    def write(data):
        path.write_text(json.dumps(data), encoding="utf-8")
        return str(path)
    return write


def test_defaults_without_file(tmp_path):
    provider, settings = load_config(env={}, path=str(tmp_path / "missing.json"))
    assert provider.provider == "anthropic"
    assert provider.model == llm_config.DEFAULT_MODELS["anthropic"]
    assert provider.base_url == "https://api.anthropic.com/v1"
    assert not provider.has_credential()
    assert settings == PipelineSettings()


def test_file_values(config_file):
    path = config_file({
        "provider": "openai",
        "openai": {"model": "gpt-file", "timeout": 30},
        "pipeline": {"max_attempts": 5, "parallel": True, "inter_call_delay": 0.5},
    })
    provider, settings = load_config(env={}, path=path)
    assert provider.provider == "openai"
    assert provider.model == "gpt-file"
    assert provider.timeout == 30.0
    assert settings.max_attempts == 5
    assert settings.parallel is True
    assert settings.inter_call_delay == 0.5


def test_env_overrides_file(config_file):
    path = config_file({"provider": "openai", "openai": {"model": "gpt-file"}})
    env = {
        "STORY_PROVIDER": "huggingface",
        "STORY_MODEL": "mistral-env",
        "HF_API_TOKEN": "hf_token",
        "STORY_MAX_ATTEMPTS": "2",
        "STORY_BACKOFF_BASE": "0",
        "STORY_PARALLEL": "yes",
        "STORY_TRACE": "1",
        "STORY_DATA_DIR": "/tmp/story-data",
    }
    provider, settings = load_config(env=env, path=path)
    assert provider.provider == "huggingface"
    assert provider.model == "mistral-env"
    assert provider.api_key == "hf_token"
    assert provider.has_credential()
    assert settings.max_attempts == 2
    assert settings.backoff_base == 0.0
    assert settings.parallel is True
    assert settings.trace is True
    assert settings.data_dir == "/tmp/story-data"


def test_non_string_values_in_file_fall_back(config_file):
    path = config_file({"provider": 7, "anthropic": {"model": ["claude"]}})
    provider, _ = load_config(env={}, path=path)
    assert provider.provider == "anthropic"
    assert provider.model == llm_config.DEFAULT_MODELS["anthropic"]


def test_default_anthropic_model_is_current_generation():
    assert not llm_config.DEFAULT_MODELS["anthropic"].startswith("claude-3")


def test_invalid_number_ignored(tmp_path):
    _, settings = load_config(env={"STORY_MAX_ATTEMPTS": "many"}, path=str(tmp_path / "none.json"))
    assert settings.max_attempts == 3


def test_unknown_provider_falls_back(tmp_path):
    provider, _ = load_config(env={"STORY_PROVIDER": "cohere"}, path=str(tmp_path / "none.json"))
    assert provider.provider == "anthropic"


def test_gemini_key_pool_merges_file_and_env(config_file):
    path = config_file({
        "provider": "gemini",
        "gemini": {"api_keys": [{"key": "paid1", "tier": "paid"}]},
    })
    provider, _ = load_config(env={"GEMINI_API_KEY": "free1, free2,paid1"}, path=path)
    assert [k["key"] for k in provider.api_keys] == ["paid1", "free1", "free2"]
    assert provider.api_key == ""
    assert provider.has_credential()


def test_file_reloaded_after_write(config_file):
    path = config_file({"provider": "openai"})
    assert load_config(env={}, path=path)[0].provider == "openai"
    llm_config.write_config_file({"provider": "replicate"}, path)
    llm_config._config_cache = None
    assert load_config(env={}, path=path)[0].provider == "replicate"


def test_stub_needs_no_credential():
    assert ProviderConfig(provider="stub").has_credential()


def test_port():
    assert get_port({}) == 3000
    assert get_port({"PORT": "8080"}) == 8080
