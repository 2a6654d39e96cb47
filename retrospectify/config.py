"""Configuration for Retrospectify."""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

# OpenRouter API key
OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")

# OpenRouter API endpoint
OPENROUTER_API_URL = "https://openrouter.ai/api/v1/chat/completions"

# Base data directory - configurable via environment
DATA_BASE_DIR = os.getenv("RETRO_DATA_DIR", "data")

# Model that writes the HTML retrospective summary
DEFAULT_REPORT_MODEL = "google/gemini-2.0-flash-001"

# Model that classifies poll justifications and drafts action items
DEFAULT_CLASSIFIER_MODEL = "google/gemini-2.0-flash-001"

# Seconds to wait for a single LLM response
LLM_TIMEOUT = float(os.getenv("RETRO_LLM_TIMEOUT", "120"))

# Team boards live here, one JSON file per team
TEAMS_DIR = os.path.join(DATA_BASE_DIR, "teams")

# User config file path
USER_CONFIG_FILE = os.path.join(DATA_BASE_DIR, "user_config.json")


def load_user_config() -> dict[str, Any]:
    """
    Load user configuration from file.

    Returns:
        Dict with user config or empty dict if not found
    """
    config_path = Path(USER_CONFIG_FILE)
    if config_path.exists():
        try:
            with open(config_path) as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError):
            return {}
    return {}


def save_user_config(config: dict[str, Any]) -> None:
    """
    Save user configuration to file.

    Args:
        config: Configuration dict to save
    """
    config_path = Path(USER_CONFIG_FILE)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        json.dump(config, f, indent=2)


def get_report_model() -> str:
    """Get effective report model (user config or default)."""
    user_config = load_user_config()
    return user_config.get('report_model', DEFAULT_REPORT_MODEL)


def get_classifier_model() -> str:
    """Get effective classifier model (user config or default)."""
    user_config = load_user_config()
    return user_config.get('classifier_model', DEFAULT_CLASSIFIER_MODEL)


def update_model_config(
    report_model: str | None = None,
    classifier_model: str | None = None
) -> dict[str, Any]:
    """
    Update model configuration.

    Args:
        report_model: New report model (None to keep current)
        classifier_model: New classifier model (None to keep current)

    Returns:
        Updated config dict
    """
    config = load_user_config()

    if report_model is not None:
        config['report_model'] = report_model
    if classifier_model is not None:
        config['classifier_model'] = classifier_model

    save_user_config(config)
    return config


def reload_config() -> dict[str, Any]:
    """
    Reload configuration from .env and user config files.

    This allows updating the API key without restarting the server.

    Returns:
        Dict with reload status and current config
    """
    global OPENROUTER_API_KEY

    load_dotenv(override=True)
    OPENROUTER_API_KEY = os.getenv("OPENROUTER_API_KEY")

    logger.info("Configuration reloaded")

    return {
        "status": "reloaded",
        "openrouter_configured": bool(OPENROUTER_API_KEY),
        "report_model": get_report_model(),
        "classifier_model": get_classifier_model(),
    }
