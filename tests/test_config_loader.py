"""Tests for streamchat.settings — TOML client config loading."""

from pathlib import Path

import pytest

from streamchat.schemas.request import Approach, RetrievalMode
from streamchat.settings import API_URL_ENV, DEFAULT_API_URL, load_chat_config

# Path to the real config file shipped with the package
_CONFIG_DIR = Path(__file__).parent.parent / "streamchat" / "config"


@pytest.fixture(autouse=True)
def _no_url_env(monkeypatch):
    monkeypatch.delenv(API_URL_ENV, raising=False)


class TestLoadChatConfig:
    def test_loads_real_defaults(self):
        config = load_chat_config(_CONFIG_DIR / "defaults.toml")
        assert config.http.url == "http://localhost:3000"
        assert config.http.stream is True
        assert config.interaction_model == "chat"
        assert config.overrides.approach == Approach.READ_RETRIEVE_READ
        assert config.overrides.retrieval_mode == RetrievalMode.HYBRID
        assert config.overrides.top == 3
        assert config.model is None

    def test_default_path_used(self):
        assert load_chat_config() == load_chat_config(_CONFIG_DIR / "defaults.toml")

    def test_default_prompts_loaded(self):
        config = load_chat_config(_CONFIG_DIR / "defaults.toml")
        assert "What is the refund policy?" in config.labels.default_prompts
        assert config.labels.bot_name == "Support Assistant"

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            load_chat_config(Path("/nonexistent/streamchat.toml"))

    def test_malformed_toml_raises(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[http\nurl = ")
        with pytest.raises(ValueError, match="Invalid TOML"):
            load_chat_config(bad)

    def test_invalid_value_raises(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text('[request]\ninteraction_model = "search"\n')
        with pytest.raises(ValueError, match="Invalid chat config"):
            load_chat_config(bad)

    def test_empty_toml_uses_defaults(self, tmp_path):
        empty = tmp_path / "empty.toml"
        empty.write_text("")
        config = load_chat_config(empty)
        # Should fall back to ChatConfig defaults
        assert config.http.url == DEFAULT_API_URL
        assert config.interaction_model == "chat"
        assert config.overrides.to_context() == {}
        assert config.labels.bot_name == "Assistant"

    def test_custom_config(self, tmp_path):
        toml_content = """
[http]
url = "https://support.example.com/api"
stream = false

[http.headers]
X-Api-Key = "secret"

[request]
interaction_model = "ask"

[request.overrides]
retrieval_mode = "text"
exclude_category = "internal"

[labels]
api_error_message = "Try again soon."

[model]
model = "gpt-4o-mini"
temperature = 0.1
"""
        custom = tmp_path / "streamchat.toml"
        custom.write_text(toml_content)

        config = load_chat_config(custom)
        assert config.http.url == "https://support.example.com/api"
        assert config.http.stream is False
        assert config.http.headers == {"X-Api-Key": "secret"}
        assert config.interaction_model == "ask"
        assert config.overrides.retrieval_mode == RetrievalMode.TEXT
        assert config.overrides.exclude_category == "internal"
        assert config.labels.api_error_message == "Try again soon."
        assert config.model is not None
        assert config.model.model == "gpt-4o-mini"
        assert config.model.temperature == 0.1

    def test_env_overrides_url(self, tmp_path, monkeypatch):
        monkeypatch.setenv(API_URL_ENV, "http://env.test")
        config = load_chat_config(_CONFIG_DIR / "defaults.toml")
        assert config.http.url == "http://env.test"
