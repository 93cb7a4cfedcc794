"""Application settings — all configuration loaded from environment variables.

Usage:
    from config.settings import Settings
    settings = Settings()
    settings.validate()   # raises ValueError if ANTHROPIC_API_KEY is missing
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Centralised application configuration.

    All values are read from environment variables at instantiation time
    so that tests can override them by patching ``os.environ``.
    """

    # ── API Keys ────────────────────────────────────────────────────────────
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )

    # ── Flask ───────────────────────────────────────────────────────────────
    debug: bool = field(default_factory=lambda: _env_flag("FLASK_DEBUG"))
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "5001"))
    )

    # ── AI Model ────────────────────────────────────────────────────────────
    #: Model used for the web-search + verdict pass.
    check_model: str = field(
        default_factory=lambda: os.environ.get("CHECK_MODEL", "claude-haiku-4-5")
    )
    max_tokens: int = field(
        default_factory=lambda: int(os.environ.get("MAX_TOKENS", "1500"))
    )
    #: Seconds before the SDK gives up on a single request.
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("REQUEST_TIMEOUT", "60"))
    )
    #: 0 keeps a failed call failed; the user simply asks again.
    max_retries: int = field(
        default_factory=lambda: int(os.environ.get("MAX_RETRIES", "0"))
    )

    # ── Search ──────────────────────────────────────────────────────────────
    max_web_searches: int = field(
        default_factory=lambda: int(os.environ.get("MAX_WEB_SEARCHES", "3"))
    )
    max_sources: int = field(
        default_factory=lambda: int(os.environ.get("MAX_SOURCES", "8"))
    )
    #: Limit web_search to each platform's official help domains.
    restrict_search_domains: bool = field(
        default_factory=lambda: _env_flag("RESTRICT_SEARCH_DOMAINS")
    )

    # ── History ─────────────────────────────────────────────────────────────
    #: "memory" (session only) or "sqlite" (survives restarts).
    history_backend: str = field(
        default_factory=lambda: os.environ.get("HISTORY_BACKEND", "memory").strip().lower()
    )
    #: 0 means unbounded.
    history_max_entries: int = field(
        default_factory=lambda: int(os.environ.get("HISTORY_MAX_ENTRIES", "0"))
    )
    db_path: str = field(default_factory=lambda: os.environ.get("DB_PATH", ""))

    def validate(self) -> None:
        """Raise ``ValueError`` if any required setting is missing or invalid."""
        if not self.anthropic_api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "Copy .env.example to .env and add your key."
            )
        if self.history_backend not in ("memory", "sqlite"):
            raise ValueError(
                f"HISTORY_BACKEND must be 'memory' or 'sqlite', got {self.history_backend!r}."
            )
        if self.history_max_entries < 0:
            raise ValueError("HISTORY_MAX_ENTRIES must be zero or positive.")
