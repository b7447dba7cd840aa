"""
Runtime Configuration for the Channel & Session API.

Settings are read from environment variables once at startup and handed to the
components that need them. Nothing in the application reads signing secrets
from the environment after this point.

Environment Variables:
- `ACCESS_TOKEN_SECRET` / `REFRESH_TOKEN_SECRET`: independent HMAC secrets for
  the two credential classes. Both are required and must differ.
- `ACCESS_TOKEN_EXPIRY` / `REFRESH_TOKEN_EXPIRY`: lifetimes, given as integer
  seconds or with an `s`, `m`, `h` or `d` suffix (e.g. `15m`, `10d`).
- `BCRYPT_ROUNDS`: bcrypt work factor for new password hashes.
- `STORAGE_TIMEOUT_SECONDS`: upper bound for a single storage call.
"""

import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

from core.exceptions import ConfigurationError

DURATION_PATTERN = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$", re.IGNORECASE)
DURATION_UNITS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(name: str, raw: str) -> timedelta:
    """Parse `900`, `15m`, `10d` style durations"""
    match = DURATION_PATTERN.match(raw or "")
    if not match:
        raise ConfigurationError(name, f"invalid duration {raw!r}")

    seconds = int(match.group(1)) * DURATION_UNITS[match.group(2).lower()]
    if seconds <= 0:
        raise ConfigurationError(name, "duration must be positive")
    return timedelta(seconds=seconds)


@dataclass(frozen=True)
class AuthSettings:
    """Secrets and lifetimes for the two credential classes"""

    access_token_secret: str
    refresh_token_secret: str
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=10)
    bcrypt_rounds: int = 12
    storage_timeout: float = 5.0

    def __post_init__(self):
        if not self.access_token_secret:
            raise ConfigurationError("ACCESS_TOKEN_SECRET", "must not be empty")
        if not self.refresh_token_secret:
            raise ConfigurationError("REFRESH_TOKEN_SECRET", "must not be empty")
        if self.access_token_secret == self.refresh_token_secret:
            raise ConfigurationError(
                "REFRESH_TOKEN_SECRET", "must differ from ACCESS_TOKEN_SECRET"
            )
        if not 4 <= self.bcrypt_rounds <= 31:
            raise ConfigurationError("BCRYPT_ROUNDS", "must be between 4 and 31")
        if self.storage_timeout <= 0:
            raise ConfigurationError("STORAGE_TIMEOUT_SECONDS", "must be positive")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AuthSettings":
        env = os.environ if environ is None else environ

        try:
            bcrypt_rounds = int(env.get("BCRYPT_ROUNDS", "12"))
        except ValueError:
            raise ConfigurationError("BCRYPT_ROUNDS", "must be an integer")

        try:
            storage_timeout = float(env.get("STORAGE_TIMEOUT_SECONDS", "5"))
        except ValueError:
            raise ConfigurationError("STORAGE_TIMEOUT_SECONDS", "must be a number")

        return cls(
            access_token_secret=env.get("ACCESS_TOKEN_SECRET", "").strip(),
            refresh_token_secret=env.get("REFRESH_TOKEN_SECRET", "").strip(),
            access_token_ttl=parse_duration(
                "ACCESS_TOKEN_EXPIRY", env.get("ACCESS_TOKEN_EXPIRY", "15m")
            ),
            refresh_token_ttl=parse_duration(
                "REFRESH_TOKEN_EXPIRY", env.get("REFRESH_TOKEN_EXPIRY", "10d")
            ),
            bcrypt_rounds=bcrypt_rounds,
            storage_timeout=storage_timeout,
        )
