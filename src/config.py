"""Centralized configuration for the chapter script pipeline.

This module provides:
- PROJECT_ROOT and SRC_DIR paths
- Environment variable access with get_env()
- Automatic .env loading

Usage:
    from config import PROJECT_ROOT, get_env

    api_key = get_gemini_api_key()
    output_dir = PROJECT_ROOT / "output" / "scripts"
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

from exceptions import ConfigurationError

# Calculate paths once at import time
SRC_DIR = Path(__file__).parent.resolve()
PROJECT_ROOT = SRC_DIR.parent.resolve()

# Load .env from project root
_env_path = PROJECT_ROOT / ".env"
if _env_path.exists():
    load_dotenv(_env_path)


def get_env(key: str, default: Optional[str] = None) -> str:
    """Get environment variable value.

    Args:
        key: Environment variable name
        default: Default value if not set. If None and key not found, raises KeyError.

    Returns:
        Environment variable value or default

    Raises:
        KeyError: If key not found and no default provided
    """
    value = os.environ.get(key)
    if value is not None:
        return value
    if default is not None:
        return default
    raise KeyError(f"Environment variable '{key}' not set and no default provided")


def get_env_float(key: str, default: float) -> float:
    """Get a float environment variable, falling back to default when unset.

    Raises:
        ConfigurationError: If the variable is set but not a number
    """
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ConfigurationError(f"Environment variable '{key}' must be a number, got {raw!r}") from e


def get_env_int(key: str, default: int) -> int:
    """Get an integer environment variable, falling back to default when unset."""
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"Environment variable '{key}' must be an integer, got {raw!r}") from e


# Common configuration values
def get_gemini_api_key() -> str:
    """Get Gemini API key from environment."""
    try:
        return get_env("GeminiImageAPI")
    except KeyError:
        return get_env("GEMINI_API_KEY")


def get_output_dir() -> Path:
    """Get base directory for generated script documents."""
    return Path(get_env("SCRIPT_OUTPUT_DIR", default=str(PROJECT_ROOT / "output" / "scripts")))
