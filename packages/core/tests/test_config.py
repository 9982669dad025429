"""Tests for configuration loading."""

from mrlens_core.config import DEFAULT_CONFIG, load_config


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider"] == "anthropic"
    assert config["api_url"] == "https://github.com/api/v4"
    assert config["org_group_id"] == 9970
    assert config["trusted_email_domain"] == "github.com"
    assert config["session_max_age"] == 7200
    assert config["session_update_age"] == 600
    assert config["notifier"] == "noop"


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".mrlens.yml"
    cfg.write_text("provider: openai\norg_group_id: 42\nmax_workers: 2\n")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "openai"
    assert config["org_group_id"] == 42
    assert config["max_workers"] == 2


def test_trusted_domain_can_be_disabled(tmp_path):
    cfg = tmp_path / ".mrlens.yml"
    cfg.write_text("trusted_email_domain: null\n")
    config = load_config(config_path=str(cfg))
    assert config["trusted_email_domain"] is None


def test_empty_config_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".mrlens.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "anthropic"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".mrlens.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "anthropic"})
    assert config["provider"] == "anthropic"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".mrlens.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": None})
    assert config["provider"] == "openai"


def test_credentials_read_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.setenv("MRLENS_SESSION_SECRET", "s3cret")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["anthropic_api_key"] == "ant-key"
    assert config["session_secret"] == "s3cret"
    assert config["openai_api_key"] is None


def test_access_token_not_carried_in_config(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-tok")
    monkeypatch.setenv("GITHUB_CLIENT_SECRET", "client-secret")
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert "gh-tok" not in config.values()
    assert not any(key.startswith("github_") for key in config)


def test_each_call_returns_a_fresh_dict(tmp_path):
    first = load_config(config_path=str(tmp_path / "none.yml"))
    first["provider"] = "mutated"
    second = load_config(config_path=str(tmp_path / "none.yml"))
    assert second["provider"] == "anthropic"
    assert DEFAULT_CONFIG["provider"] == "anthropic"
