from __future__ import annotations

from dataclasses import dataclass, fields
from functools import lru_cache
import os

from .errors import ConfigurationError


@dataclass(frozen=True)
class Settings:
    """Runtime configuration values exposed to the guard service components."""

    app_name: str = "auth-guard-service"
    version: str = "0.1.0"
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    redis_url: str = os.getenv("REDIS_URL", "")
    redis_token: str = os.getenv("REDIS_TOKEN", "")
    redis_socket_timeout_seconds: float = float(os.getenv("REDIS_SOCKET_TIMEOUT_SECONDS", "2.0"))
    rate_limit_key_prefix: str = os.getenv("RATE_LIMIT_KEY_PREFIX", "rate")
    jwt_secret: str = os.getenv("JWT_SECRET", "dev-secret-change-me")
    jwt_issuer: str = os.getenv("JWT_ISSUER", "authguard.admin")

    login_ip_max_hits: int = int(os.getenv("LOGIN_IP_MAX_HITS", "10"))
    login_ip_window_seconds: int = int(os.getenv("LOGIN_IP_WINDOW_SECONDS", "900"))
    login_email_max_hits: int = int(os.getenv("LOGIN_EMAIL_MAX_HITS", "5"))
    login_email_window_seconds: int = int(os.getenv("LOGIN_EMAIL_WINDOW_SECONDS", "900"))
    login_strict_max_hits: int = int(os.getenv("LOGIN_STRICT_MAX_HITS", "3"))
    login_strict_window_seconds: int = int(os.getenv("LOGIN_STRICT_WINDOW_SECONDS", "3600"))

    registration_ip_max_hits: int = int(os.getenv("REGISTRATION_IP_MAX_HITS", "3"))
    registration_ip_window_seconds: int = int(os.getenv("REGISTRATION_IP_WINDOW_SECONDS", "3600"))
    registration_email_max_hits: int = int(os.getenv("REGISTRATION_EMAIL_MAX_HITS", "1"))
    registration_email_window_seconds: int = int(
        os.getenv("REGISTRATION_EMAIL_WINDOW_SECONDS", "86400")
    )
    registration_strict_max_hits: int = int(os.getenv("REGISTRATION_STRICT_MAX_HITS", "5"))
    registration_strict_window_seconds: int = int(
        os.getenv("REGISTRATION_STRICT_WINDOW_SECONDS", "86400")
    )

    block_cooldown_seconds: int = int(os.getenv("BLOCK_COOLDOWN_SECONDS", "86400"))

    def validate(self) -> "Settings":
        """Raise ``ConfigurationError`` unless the store and policy values are usable."""
        if not self.redis_url:
            raise ConfigurationError("REDIS_URL must be set to the counter store endpoint")
        if not self.redis_token:
            raise ConfigurationError("REDIS_TOKEN must be set to the counter store credential")
        for field in fields(self):
            if field.name.endswith(("_max_hits", "_seconds")) and getattr(self, field.name) <= 0:
                raise ConfigurationError(f"{field.name} must be positive")
        return self


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached Settings instance for the running process."""
    return Settings()
