from .storage import config_get, config_set
from .models import DEFAULTS
from typing import Optional


def _normalize(key: str) -> str:
    # `config set max-retries 3` and `max_retries` name the same key
    return key.strip().replace("-", "_")


def get_config(key: str, default: Optional[str] = None) -> Optional[str]:
    key = _normalize(key)
    if default is None and key in DEFAULTS:
        default = str(DEFAULTS[key])
    return config_get(key, default)


def set_config(key: str, value: str) -> None:
    config_set(_normalize(key), str(value))


def get_int(key: str) -> int:
    return int(get_config(key))


def get_float(key: str) -> float:
    return float(get_config(key))


def get_bool(key: str) -> bool:
    return (get_config(key, "false") or "").strip().lower() in ("1", "true", "yes", "on")


def shutdown_requested() -> bool:
    return get_bool("shutdown")
