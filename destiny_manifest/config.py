"""
Runtime settings for the manifest viewer, read from MANIFEST_* environment
variables. The core library takes explicit arguments only; this module is
the one place environment values are parsed.
"""

import os
from dataclasses import dataclass

from destiny_manifest_core import DEFAULT_BASE_URL, DEFAULT_LOCALE


@dataclass(frozen=True)
class Settings:
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None
    cache_dir: str | None = None
    locale: str = DEFAULT_LOCALE
    db_path: str | None = None
    timeout: int = 60
    ssl_verify: bool = True
    ssl_cert: str | None = None
    port: int = 8000
    log_level: str = "info"

    @classmethod
    def from_env(cls, environ=None):
        """Build settings from ``environ`` (default: os.environ).

        Raises:
            ValueError: If an integer variable is not a number.
        """
        env = os.environ if environ is None else environ
        return cls(
            base_url=env.get("MANIFEST_BASE_URL", "").strip() or DEFAULT_BASE_URL,
            api_key=env.get("MANIFEST_API_KEY", "").strip() or None,
            cache_dir=env.get("MANIFEST_CACHE_DIR", "").strip() or None,
            locale=env.get("MANIFEST_LOCALE", "").strip() or DEFAULT_LOCALE,
            db_path=env.get("MANIFEST_DB_PATH", "").strip() or None,
            timeout=_int_var(env, "MANIFEST_TIMEOUT", 60),
            ssl_verify=env.get("MANIFEST_SSL_VERIFY", "1").strip() != "0",
            ssl_cert=env.get("MANIFEST_SSL_CERT", "").strip() or None,
            port=_int_var(env, "MANIFEST_PORT", 8000),
            log_level=env.get("MANIFEST_LOG_LEVEL", "").strip().lower() or "info",
        )


def _int_var(env, name, default):
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got '{raw}'") from None
