"""Dashboard token service.

Every user gets one random token that authorizes their chart, data and
dashboard URLs. Tokens are persisted so links keep working after a restart.
"""

import json
import secrets
import threading
from typing import Optional

from logging_config import get_logger
from config import DATA_DIR, config
from utils.file_utils import atomic_write_json, read_json

logger = get_logger()

TOKENS_FILE = DATA_DIR / "tokens.json"

# In-memory copy of the tokens file, user_id -> token (loaded on first access)
_tokens_cache: Optional[dict[int, str]] = None
_tokens_lock = threading.Lock()


def _load_tokens() -> dict[int, str]:
    """Load tokens, using the in-memory copy when available.

    Must be called with ``_tokens_lock`` held.
    """
    global _tokens_cache
    if _tokens_cache is not None:
        return _tokens_cache
    try:
        raw = read_json(TOKENS_FILE, {})
        _tokens_cache = {int(user_id): token for user_id, token in raw.items()}
    except (json.JSONDecodeError, ValueError, AttributeError) as e:
        logger.error(f"Failed to load tokens file, starting empty: {e}", exc_info=True)
        _tokens_cache = {}
    return _tokens_cache


def get_user_token(user_id: int) -> str:
    """Get the user's token, creating one on first use."""
    with _tokens_lock:
        tokens = _load_tokens()
        token = tokens.get(user_id)
        if token is not None:
            return token

        token = secrets.token_hex(16)
        updated = {**tokens, user_id: token}
        atomic_write_json(TOKENS_FILE, {str(uid): t for uid, t in updated.items()})
        tokens[user_id] = token

    logger.info("Issued dashboard token", extra={"user_id": user_id})
    return token


def get_user_id_for_token(token: str) -> Optional[int]:
    """Resolve a token to its user id, or None if it is unknown."""
    with _tokens_lock:
        tokens = dict(_load_tokens())
    candidate = token.encode("utf-8")
    for user_id, user_token in tokens.items():
        if secrets.compare_digest(user_token.encode("utf-8"), candidate):
            return user_id
    return None


def get_dashboard_url(user_id: int) -> str:
    """Private dashboard URL for a user."""
    return f"{config.PUBLIC_URL}/view/{get_user_token(user_id)}"
