"""
Pytest configuration and shared fixtures for the Data Graph Bot tests.

This module MUST be loaded before main.py to set up test environment variables.
"""

import os
import shutil
import tempfile

import pytest

# Set test environment variables BEFORE config/main are imported
os.environ["TEST_MODE"] = "true"
os.environ.pop("TELEGRAM_BOT_TOKEN", None)

test_data_dir = tempfile.mkdtemp(prefix="datagraph_test_")
os.environ["DATA_DIR"] = test_data_dir
os.environ["LOG_DIR"] = os.path.join(test_data_dir, "logs")


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_data():
    """Clean up temporary test data directory after all tests complete."""
    yield
    shutil.rmtree(test_data_dir, ignore_errors=True)


@pytest.fixture(autouse=True)
def _reset_state():
    """Reset in-memory singletons and on-disk data between tests."""
    import services.measurement_store as _ms
    import services.token_service as _ts

    _ms._store = None
    _ts._tokens_cache = None

    from config import DATA_DIR
    shutil.rmtree(DATA_DIR / "measurements", ignore_errors=True)
    _ts.TOKENS_FILE.unlink(missing_ok=True)

    yield
