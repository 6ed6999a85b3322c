from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable

from dotenv import load_dotenv


load_dotenv()


EnvGetter = Callable[[str], str | None]


def _bool_env(name: str, default: bool, *, getenv: EnvGetter = os.getenv) -> bool:
    value = getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _str_env(*names: str, default: str = "", getenv: EnvGetter = os.getenv) -> str:
    for name in names:
        value = getenv(name)
        if value is not None:
            return value.strip()
    return default


def _optional_str_env(*names: str, getenv: EnvGetter = os.getenv) -> str | None:
    value = _str_env(*names, default="", getenv=getenv)
    return value or None


def _int_env(
    name: str,
    default: int,
    minimum: int | None = None,
    maximum: int | None = None,
    *,
    getenv: EnvGetter = os.getenv,
) -> int:
    value = getenv(name)
    if value is None:
        parsed = default
    else:
        try:
            parsed = int(value.strip())
        except ValueError:
            parsed = default

    if minimum is not None and parsed < minimum:
        parsed = minimum
    if maximum is not None and parsed > maximum:
        parsed = maximum
    return parsed


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    api_token: str | None
    api_timeout_seconds: int
    verify_tls: bool

    log_level: str
    default_group: str
    dev_server_port: int

    @classmethod
    def from_env(cls, *, getenv: EnvGetter = os.getenv) -> "Settings":
        return cls(
            api_base_url=_str_env("API_BASE_URL", "GYM_API_URL", getenv=getenv).rstrip("/"),
            api_token=_optional_str_env("API_TOKEN", "GYM_API_TOKEN", getenv=getenv),
            api_timeout_seconds=_int_env("API_TIMEOUT_SECONDS", 30, minimum=5, maximum=120, getenv=getenv),
            verify_tls=_bool_env("API_VERIFY_TLS", True, getenv=getenv),
            log_level=_str_env("LOG_LEVEL", default="INFO", getenv=getenv).upper(),
            default_group=_str_env("DEFAULT_GROUP", default="back", getenv=getenv),
            dev_server_port=_int_env("DEV_SERVER_PORT", 3333, minimum=1, maximum=65535, getenv=getenv),
        )

    def validate(self) -> None:
        missing = []
        if not self.api_base_url:
            missing.append("API_BASE_URL (or GYM_API_URL)")
        if missing:
            missing_str = ", ".join(missing)
            raise ValueError(f"Missing required environment variables: {missing_str}")
