"""Unit tests for aelora.config module."""

import pytest

from aelora.config import ENV_OVERRIDES, load_settings
from aelora.errors import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.delenv("AELORA_SETTINGS", raising=False)
    # Keep load_dotenv from picking up a stray .env
    monkeypatch.chdir(tmp_path)


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(tmp_path / "missing.yaml")
        assert settings.llm.provider == "openai"
        assert settings.llm.max_history == 20
        assert settings.agents.max_iterations == 5
        assert settings.memory.compaction_min_queue == 10

    def test_reads_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(
            "llm:\n"
            "  provider: anthropic\n"
            "  model: claude-test\n"
            "  max_history: 8\n"
            "agents:\n"
            "  enabled: false\n"
            "memory:\n"
            "  data_dir: state\n"
        )

        settings = load_settings(path)

        assert settings.llm.provider == "anthropic"
        assert settings.llm.model == "claude-test"
        assert settings.llm.max_history == 8
        assert settings.agents.enabled is False
        assert str(settings.data_path) == "state"

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "settings.yaml"
        path.write_text("llm:\n  model: from-file\n")
        monkeypatch.setenv("AELORA_LLM_MODEL", "from-env")
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-key")

        settings = load_settings(path)

        assert settings.llm.model == "from-env"
        assert settings.web_search.api_key == "tvly-key"

    def test_settings_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "custom.yaml"
        path.write_text("log_level: DEBUG\n")
        monkeypatch.setenv("AELORA_SETTINGS", str(path))

        assert load_settings().log_level == "DEBUG"

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("llm: [unclosed\n")
        with pytest.raises(ConfigError, match="invalid YAML"):
            load_settings(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_settings(path)

    def test_validation_errors(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text("llm:\n  max_history: 0\n")
        with pytest.raises(ConfigError):
            load_settings(path)
