# common/config/env_config.py
import os
from typing import Optional
from common.api_error import ConfigurationError


def get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    """
    Get Env variable with optional default
    """
    return os.getenv(name, default=default)


def require_env(name: str) -> str:
    """
    Get required environment variable or raise immediately.
    """
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"Missing required env variables: {name}")
    return value


def get_env_int(name: str, default: int) -> int:
    """
    Get an integer env variable, falling back to `default` when unset.

    Raises:
        ConfigurationError: If the variable is set but not an integer
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got: {raw!r}") from exc


def get_env_bool(name: str, default: bool) -> bool:
    """
    Get a boolean env variable ("true/false", "1/0", "yes/no").

    Raises:
        ConfigurationError: If the variable is set to anything else
    """
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    raise ConfigurationError(f"{name} must be a boolean, got: {raw!r}")


__all__ = ["require_env", "get_env", "get_env_int", "get_env_bool"]
