import os
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

_PLACEHOLDER_KEYS = {"", "your_key_here", "sk-..."}


def load_env_file(path: str = ".env"):
    """
    Load environment variables from a .env file into os.environ.
    Does not override existing strings.
    """
    p = Path(path)
    if not p.exists():
        return

    try:
        with open(p) as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                if '=' in line:
                    key, val = line.split('=', 1)
                    key = key.strip()
                    val = val.strip().strip('"').strip("'")
                    if key not in os.environ:
                        os.environ[key] = val
    except OSError as e:
        logger.warning(f"Failed to load .env: {e}")

# Load on import
load_env_file()


def get_openai_key() -> Optional[str]:
    """Get the OpenAI API key, or None when missing or left as a template."""
    key = (os.environ.get("OPENAI_API_KEY") or "").strip()
    if key in _PLACEHOLDER_KEYS:
        return None
    return key


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


class Settings(BaseModel):
    """
    Runtime settings for one pipeline invocation.
    """
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: str = "https://api.openai.com/v1"

    db_path: str = "newsdigest.db"
    timezone: str = "Asia/Almaty"
    user_id: str = "default"

    fetch_workers: int = 8
    fetch_timeout: float = 15.0
    user_agent: str = "newsdigest/1.0"

    max_group_items: int = 30
    throttle_seconds: float = 0.4


def load_settings() -> Settings:
    """Build Settings from the environment (after .env has been applied)."""
    return Settings(
        openai_api_key=get_openai_key(),
        openai_model=(os.environ.get("OPENAI_MODEL") or "gpt-4o-mini").strip(),
        openai_base_url=(os.environ.get("OPENAI_BASE_URL") or "https://api.openai.com/v1").rstrip("/"),
        db_path=os.environ.get("NEWSDIGEST_DB") or "newsdigest.db",
        timezone=os.environ.get("NEWSDIGEST_TZ") or "Asia/Almaty",
        user_id=os.environ.get("NEWSDIGEST_USER") or "default",
        fetch_workers=max(1, _env_int("NEWSDIGEST_FETCH_WORKERS", 8)),
        fetch_timeout=float(_env_int("NEWSDIGEST_FETCH_TIMEOUT", 15)),
        user_agent=os.environ.get("NEWSDIGEST_USER_AGENT") or "newsdigest/1.0",
        max_group_items=max(1, _env_int("NEWSDIGEST_MAX_GROUP_ITEMS", 30)),
        throttle_seconds=max(0, _env_int("NEWSDIGEST_THROTTLE_MS", 400)) / 1000.0,
    )
