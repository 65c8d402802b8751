import logging
from pathlib import Path

import pytest

import config

_VARS = ("WIREVIEW_TARGET_SIZE", "WIREVIEW_VIEWER_TARGET_SIZE", "WIREVIEW_WORKSPACE",
         "WIREVIEW_MAX_UPLOAD_SIZE", "WIREVIEW_LOG_LEVEL")


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # setenv first so teardown also removes anything load_dotenv adds
    for name in _VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_defaults(tmp_path):
    settings = config.load_settings(tmp_path / "missing.env")
    assert settings.target_size == 1.5
    assert settings.viewer_target_size == 0.5
    assert settings.max_upload_size == 10 * 1024 * 1024
    assert settings.log_level == logging.INFO


def test_env_file_values(tmp_path):
    env = tmp_path / ".env"
    env.write_text("WIREVIEW_TARGET_SIZE=2.5\n"
                   f"WIREVIEW_WORKSPACE={tmp_path / 'ws'}\n"
                   "WIREVIEW_LOG_LEVEL=debug\n")
    settings = config.load_settings(env)
    assert settings.target_size == 2.5
    assert settings.workspace_dir == Path(tmp_path / "ws")
    assert settings.log_level == logging.DEBUG


def test_process_environment_wins(tmp_path, monkeypatch):
    env = tmp_path / ".env"
    env.write_text("WIREVIEW_TARGET_SIZE=2.5\n")
    monkeypatch.setenv("WIREVIEW_TARGET_SIZE", "4")
    assert config.load_settings(env).target_size == 4.0


@pytest.mark.parametrize("value", ["abc", "0", "-1", "nan", "inf"])
def test_invalid_target_size(tmp_path, monkeypatch, value):
    monkeypatch.setenv("WIREVIEW_TARGET_SIZE", value)
    with pytest.raises(ValueError, match="WIREVIEW_TARGET_SIZE"):
        config.load_settings(tmp_path / "missing.env")


def test_unknown_log_level(tmp_path, monkeypatch):
    monkeypatch.setenv("WIREVIEW_LOG_LEVEL", "chatty")
    with pytest.raises(ValueError):
        config.load_settings(tmp_path / "missing.env")
