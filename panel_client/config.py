from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

__all__ = [
    "REFRESH_PATH",
    "LOGIN_PATH",
    "REGISTER_PATH",
    "LOGIN_ENTRY_POINT",
    "ClientSettings",
]

REFRESH_PATH = "/api/auth/refresh"
LOGIN_PATH = "/api/auth/login"
REGISTER_PATH = "/api/public/register"
LOGIN_ENTRY_POINT = "/login"

_DEFAULT_SESSION_FILE = Path("~/.config/panel-client/session.json")


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        val = float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number") from e
    if val <= 0:
        raise ValueError(f"{name} must be positive")
    return val


@dataclass(frozen=True)
class ClientSettings:
    """Where the backend lives and where the session is kept."""

    api_base: str = "http://localhost:8080"
    session_file: Path = _DEFAULT_SESSION_FILE
    timeout_s: float = 10.0
    refresh_path: str = REFRESH_PATH

    @classmethod
    def from_env(cls) -> ClientSettings:
        """Build settings from API_BASE, PANEL_SESSION_FILE and PANEL_TIMEOUT."""
        return cls(
            api_base=os.getenv("API_BASE") or cls.api_base,
            session_file=Path(os.getenv("PANEL_SESSION_FILE") or _DEFAULT_SESSION_FILE),
            timeout_s=_float_from_env("PANEL_TIMEOUT", cls.timeout_s),
        )
