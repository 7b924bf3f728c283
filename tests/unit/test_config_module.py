import json
from pathlib import Path

import pytest

import config as config_module
from config import Config, get_config, reset_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "IMAGE_STUDIO_CONFIG",
        "USE_MOCK_IMAGES",
        "GEMINI_API_KEY",
        "GOOGLE_API_KEY",
        "GEMINI_EDIT_MODEL",
        "GEMINI_GENERATE_MODEL",
        "IMAGE_STUDIO_SECRET_KEY",
        "IMAGE_STUDIO_MAX_UPLOAD_MB",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("IMAGE_STUDIO_ENV", "testing")
    reset_config()
    yield
    reset_config()


def test_testing_environment_overrides():
    cfg = Config()

    assert cfg.is_testing
    assert not cfg.is_production
    assert cfg.get("server.port") == 5011
    assert cfg.use_mock_images
    assert cfg.get("images.mock_size") == 64
    # untouched defaults survive the merge
    assert cfg.get("server.host") == "127.0.0.1"
    assert cfg.get("gemini.edit_model") == "gemini-2.5-flash-image"


def test_production_environment_overrides():
    cfg = Config(env="production")

    assert cfg.is_production
    assert cfg.get("server.workers") == 8
    assert cfg.get("ui.session_ttl_seconds") == 900
    assert not cfg.use_mock_images


def test_get_set_dot_paths():
    cfg = Config()

    cfg.set("server.port", 9000)
    cfg.set("extra.nested.value", "x")

    assert cfg.get("server.port") == 9000
    assert cfg.get("extra.nested.value") == "x"
    assert cfg.get("missing.key", "fallback") == "fallback"
    assert cfg.get("server.port.deeper") is None


def test_defaults_are_not_mutated():
    Config().set("gemini.edit_model", "changed")

    assert config_module.DEFAULT_CONFIG["gemini"]["edit_model"] == "gemini-2.5-flash-image"
    assert Config().get("gemini.edit_model") == "gemini-2.5-flash-image"


def test_runtime_env_overrides(monkeypatch):
    monkeypatch.setenv("GOOGLE_API_KEY", " google-key ")
    monkeypatch.setenv("GEMINI_EDIT_MODEL", "edit-x")
    monkeypatch.setenv("GEMINI_GENERATE_MODEL", "gen-y")
    monkeypatch.setenv("IMAGE_STUDIO_SECRET_KEY", "cookie-secret")
    monkeypatch.setenv("USE_MOCK_IMAGES", "off")
    monkeypatch.setenv("IMAGE_STUDIO_MAX_UPLOAD_MB", "3")

    cfg = Config()

    assert cfg.gemini_settings["api_key"] == "google-key"
    assert cfg.gemini_settings["edit_model"] == "edit-x"
    assert cfg.gemini_settings["generate_model"] == "gen-y"
    assert cfg.ui_settings["secret_key"] == "cookie-secret"
    assert not cfg.use_mock_images
    assert cfg.max_upload_bytes == 3 * 1024 * 1024


def test_gemini_key_preferred_over_google_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "gemini-key")
    monkeypatch.setenv("GOOGLE_API_KEY", "google-key")

    assert Config().get("gemini.api_key") == "gemini-key"


def test_invalid_env_values_are_ignored(monkeypatch, caplog):
    monkeypatch.setenv("USE_MOCK_IMAGES", "sometimes")
    monkeypatch.setenv("IMAGE_STUDIO_MAX_UPLOAD_MB", "lots")

    with caplog.at_level("WARNING"):
        cfg = Config()

    assert cfg.use_mock_images
    assert cfg.get("ui.max_upload_mb") == 10
    assert "Invalid USE_MOCK_IMAGES value" in caplog.text
    assert "Invalid IMAGE_STUDIO_MAX_UPLOAD_MB value" in caplog.text


def test_load_user_config_success(tmp_path):
    config_path = tmp_path / "my.json"
    config_path.write_text(json.dumps({"server": {"port": 12345}, "ui": {"max_upload_mb": 2}}))

    cfg = Config(config_path=str(config_path))

    assert cfg.get("server.port") == 12345
    assert cfg.get("ui.max_upload_mb") == 2
    assert cfg.get("ui.session_ttl_seconds") == 1800


def test_config_path_from_environment(tmp_path, monkeypatch):
    config_path = tmp_path / "env.json"
    config_path.write_text(json.dumps({"gemini": {"aspect_ratio": "16:9"}}))
    monkeypatch.setenv("IMAGE_STUDIO_CONFIG", str(config_path))

    assert Config().get("gemini.aspect_ratio") == "16:9"


def test_load_user_config_json_error(tmp_path, caplog):
    config_path = tmp_path / "bad.json"
    config_path.write_text("{bad}")

    with caplog.at_level("ERROR"):
        Config(config_path=str(config_path))

    assert any("Error decoding JSON" in r.message for r in caplog.records)


def test_load_user_config_missing_file(tmp_path, caplog):
    with caplog.at_level("WARNING"):
        cfg = Config(config_path=str(tmp_path / "nope.json"))

    assert cfg.get("server.port") == 5011
    assert "User configuration file not found" in caplog.text


def test_save_requires_a_path():
    with pytest.raises(ValueError):
        Config().save_user_config()


def test_save_creates_parent_directories(tmp_path):
    target = tmp_path / "nested" / "dir" / "config.json"
    cfg = Config()
    cfg.set("server.port", 9000)

    cfg.save_user_config(str(target))

    data = json.loads(Path(target).read_text())
    assert data["server"]["port"] == 9000


def test_get_config_is_cached_until_reset():
    first = get_config()

    assert get_config() is first
    reset_config()
    assert get_config() is not first
