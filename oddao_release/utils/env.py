from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv

# Load .env once on import so every entry point sees the same settings.
load_dotenv()

ENV_PREFIX = "ODDAO_"


def _key(name: str) -> str:
    return name if name.startswith(ENV_PREFIX) else f"{ENV_PREFIX}{name}"


def _env_str(name: str, default: str = "") -> str:
    """Read `ODDAO_<name>`, stripping whitespace."""
    return (os.getenv(_key(name), default) or "").strip()


def _testing() -> bool:
    return (os.getenv("TESTING") or "").strip().lower() in {"1", "true", "yes", "on"}


def _test_override(name: str) -> str:
    # TESTING=true lets TEST_ODDAO_<name> shadow the real value.
    if not _testing():
        return ""
    return (os.getenv(f"TEST_{_key(name)}") or "").strip()


def _env_int(name: str, default: int = 0) -> int:
    raw = _test_override(name) or _env_str(name, str(default))
    try:
        return int(raw, 0)
    except ValueError:
        raise SystemExit(f"[oddao-release] {_key(name)} must be an integer. Got: {raw!r}")


def _env_float(name: str, default: float = 0.0, *, minimum: Optional[float] = None) -> float:
    raw = _test_override(name) or _env_str(name, str(default))
    try:
        value = float(raw)
    except ValueError:
        raise SystemExit(f"[oddao-release] {_key(name)} must be a number. Got: {raw!r}")
    if minimum is not None:
        value = max(minimum, value)
    return value
