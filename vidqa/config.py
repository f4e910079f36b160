"""vidqa configuration — settings from the environment or a .env file.

Lookup order for every key:
  1. Environment variables (highest priority)
  2. The first of ./.env or ./.vidqa/.env that exists and holds settings
  3. The default passed by the caller

Numeric settings are read with ``get(key, default, cast=int | float)``; a
value that is missing, malformed, non-finite or below 1 gives the default.
"""

from __future__ import annotations

import logging
import math
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Every key vidqa reads, with the module that reads it.
KNOWN_KEYS = {
    "VIDQA_LLM_API_KEY": "generator key, falls back to OPENAI_API_KEY (generator)",
    "OPENAI_API_KEY": "OpenAI key when VIDQA_LLM_API_KEY is unset (generator)",
    "VIDQA_LLM_BASE_URL": "any OpenAI-compatible endpoint (generator)",
    "VIDQA_LLM_MODEL": "primary model, gpt-4o-mini (generator)",
    "VIDQA_LLM_MODELS": "comma-separated model candidates tried in order (generator)",
    "VIDQA_LLM_PROVIDER": "provider label reported to callers, openai (generator)",
    "VIDQA_LLM_TIMEOUT": "request timeout in seconds, 60 (generator)",
    "VIDQA_MAX_OUTPUT_CHARS": "generated text cap, 2000, hard max 8000 (generator)",
    "VIDQA_DAILY_MESSAGE_LIMIT": "AI requests per user per local day, 40 (service)",
    "VIDQA_MS_THRESHOLD": "bare integers at or above this are milliseconds, 1000 (transcript.timestamps)",
    "VIDQA_DB_PATH": "SQLite file, .vidqa/vidqa.sqlite3 (store)",
    "VIDQA_MCP_USER": "user id the MCP tools act as, mcp (mcp_server)",
}

ENV_FILES = (Path(".env"), Path(".vidqa") / ".env")

_loaded = False


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def read_env_file(path: Path) -> dict[str, str]:
    """KEY=VALUE pairs from a .env file; blank lines, comments and `export ` prefixes are skipped."""
    if not path.is_file():
        return {}
    values: dict[str, str] = {}
    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if line.startswith("export "):
            line = line[len("export "):].lstrip()
        key, sep, value = line.partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        if key not in KNOWN_KEYS:
            logger.debug("Unrecognised key %s in %s", key, path)
        values[key] = _unquote(value)
    return values


def load_config() -> Path | None:
    """Copy the first usable .env file into os.environ once; set variables are never overwritten.

    Returns the file that was applied, if any.
    """
    global _loaded
    if _loaded:
        return None
    _loaded = True

    for relative in ENV_FILES:
        env_path = Path.cwd() / relative
        values = read_env_file(env_path)
        if not values:
            continue
        for key, value in values.items():
            os.environ.setdefault(key, value)
        logger.debug("Loaded %d setting(s) from %s", len(values), env_path)
        return env_path
    return None


def get(key: str, default: Any = "", cast: Callable[[str], Any] | None = None) -> Any:
    """A setting as a string, or converted with cast (int or float: positive values only)."""
    load_config()
    raw = _unquote(os.environ.get(key, ""))
    if not raw:
        return default
    if cast is None:
        return raw

    try:
        value = cast(raw)
    except ValueError:
        logger.warning("Ignoring %s=%r, expected %s", key, raw, getattr(cast, "__name__", "a value"))
        return default
    if isinstance(value, (int, float)) and not (math.isfinite(value) and value > 0):
        return default
    return value
