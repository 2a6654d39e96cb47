"""Shared test fixtures and configuration.

Sets environment variables before any retrospectify modules are imported,
preventing import errors from missing API keys.
"""

import os

import pytest

# Set required env vars BEFORE any retrospectify imports happen.
# pytest loads conftest.py before test modules, so this runs first.
os.environ.setdefault("OPENROUTER_API_KEY", "test-key-not-real")
os.environ["RETRO_AUTH_ENABLED"] = "false"


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point all file storage at a temporary directory."""
    from retrospectify import config

    monkeypatch.setattr(config, "TEAMS_DIR", str(tmp_path / "teams"))
    monkeypatch.setattr(config, "USER_CONFIG_FILE", str(tmp_path / "user_config.json"))
    return tmp_path
