"""Runtime settings read from the environment (and a local ``.env``)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from decimal import Decimal

from dotenv import load_dotenv


def _split_origins(value: str) -> list[str]:
    return [o.strip() for o in value.split(",") if o.strip()]


@dataclass(frozen=True)
class Settings:
    api_url: str = ""
    api_token: str = ""
    api_timeout: float = 30.0
    epsilon: Decimal = Decimal("0.01")
    log_dir: str | None = None
    log_level: str = "INFO"
    allowed_origins: list[str] = field(default_factory=list)

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        if dotenv:
            load_dotenv()
        return cls(
            api_url=os.environ.get("HOURS_API_URL", ""),
            api_token=os.environ.get("HOURS_API_TOKEN", ""),
            api_timeout=float(os.environ.get("HOURS_API_TIMEOUT", "30")),
            epsilon=Decimal(os.environ.get("HOURS_EPSILON", "0.01")),
            log_dir=os.environ.get("LOG_DIR") or None,
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
            allowed_origins=_split_origins(os.environ.get("ALLOWED_ORIGINS", "")),
        )
