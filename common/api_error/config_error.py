# common/api_error/config_error.py
from typing import Optional, Sequence


class ConfigurationError(RuntimeError):
    """
    Raised at startup when environment configuration is invalid.

    `problems` holds one "field: reason" line per rejected setting.
    """

    def __init__(self, message: str, problems: Optional[Sequence[str]] = None):
        self.problems = list(problems or [])
        if self.problems:
            message = message + "\n" + "\n".join(f"  - {p}" for p in self.problems)
        super().__init__(message)


__all__ = ["ConfigurationError"]
