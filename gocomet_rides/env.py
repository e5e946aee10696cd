from __future__ import annotations

import os
from functools import lru_cache
from typing import Iterable, List

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def env_bool(name: str, *, default: bool = False) -> bool:
    """
    Read an environment variable as a boolean.

    Accepts common truthy/falsy strings; raises if the value cannot be parsed.
    """
    value = os.getenv(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean for {name!r}: {value!r}")


def env_float(name: str, *, default: float) -> float:
    """Read a float; blank values resolve to the default."""
    value = (os.getenv(name) or "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid number for {name!r}: {value!r}") from None


def env_list(name: str, *, default: Iterable[str] | None = None, separator: str = ",") -> List[str]:
    """
    Read a delimited list from an environment variable.

    Empty and missing values resolve to the provided default.
    """
    value = os.getenv(name)
    if value is None:
        if default is None:
            return []
        return [item for item in default]
    items = [item.strip() for item in value.split(separator)]
    return [item for item in items if item]


@lru_cache(maxsize=1)
def ensure_loaded() -> None:
    """Load a dotenv-style file once, if one is configured.

    Looks at GOCOMET_ENV_FILE first, then ./gocomet.env.
    Variables already present in the environment win.
    """
    for path in (os.getenv("GOCOMET_ENV_FILE", ""), "gocomet.env"):
        if path and os.path.isfile(path):
            _load_env_file(path)
            return


def _load_env_file(path: str) -> None:
    with open(path, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            k, v = line.split("=", 1)
            k = k.strip()
            v = v.strip().strip('"').strip("'")
            if k and k not in os.environ:
                os.environ[k] = v


__all__ = ["env_bool", "env_float", "env_list", "ensure_loaded"]
