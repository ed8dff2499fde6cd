"""Configuration management for the Data Graph Bot.

This module centralizes all configuration constants and environment variables
for easier management and testing. A ``.env`` file in the working directory
is loaded first, so local runs don't need exported variables.

Usage:
    from config import config, DATA_DIR, PUBLIC_URL

    # Access via config object
    token = config.TELEGRAM_BOT_TOKEN

    # Or use exported constants
    measurements_dir = DATA_DIR / "measurements"

Attributes:
    TEST_MODE: Boolean flag for test environment (affects DATA_DIR)
    DATA_DIR: Path to data directory (temp dir in test mode, /app/data otherwise)
    LOG_DIR: Path to log directory
    LOG_LEVEL: Logging level name
    TELEGRAM_BOT_TOKEN: Bot API token; the bot is not started when empty
    HOST: Interface the HTTP server binds to
    PORT: Port the HTTP server listens on
    PUBLIC_URL: Base URL used in dashboard links sent to users
    CHART_WIDTH / CHART_HEIGHT: Timeline chart size in pixels
    PLACEHOLDER_WIDTH / PLACEHOLDER_HEIGHT: "No data" image size in pixels
"""

import os
import tempfile
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


class Config:
    """Central configuration for the Data Graph Bot."""

    # Test Mode
    TEST_MODE = os.environ.get("TEST_MODE") == "true"

    # Data Directories
    if TEST_MODE:
        DATA_DIR = Path(os.environ.get(
            "DATA_DIR", Path(tempfile.gettempdir()) / "datagraph_test_data"
        ))
        DATA_DIR.mkdir(parents=True, exist_ok=True)
    else:
        DATA_DIR = Path(os.environ.get("DATA_DIR", "/app/data"))

    LOG_DIR = Path(os.environ.get("LOG_DIR", "/app/logs"))
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Telegram
    TELEGRAM_BOT_TOKEN = os.environ.get("TELEGRAM_BOT_TOKEN", "")

    # HTTP Server
    HOST = os.environ.get("HOST", "0.0.0.0")
    PORT = int(os.environ.get("PORT", "3000"))
    PUBLIC_URL = os.environ.get("PUBLIC_URL", f"http://localhost:{PORT}").rstrip("/")

    # Chart Rendering (pixels)
    CHART_WIDTH = 1000
    CHART_HEIGHT = 600
    PLACEHOLDER_WIDTH = 800
    PLACEHOLDER_HEIGHT = 400


# Convenience access to config
config = Config()


# Export commonly used constants
TEST_MODE = config.TEST_MODE
DATA_DIR = config.DATA_DIR
LOG_DIR = config.LOG_DIR
PUBLIC_URL = config.PUBLIC_URL
