"""Runtime configuration for the stream API."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..provider.browser import DEFAULT_BLOCKED_DOMAINS, DEFAULT_USER_AGENT
from ..provider.mirrors import DEFAULT_FINGERPRINTS

DEFAULT_MIRRORS = [
    "https://www14.gogoanimes.fi",
    "https://gogoanimes.fi",
    "https://anitaku.pe",
    "https://anitaku.bz",
    "https://anitaku.so",
    "https://gogoanime3.co",
]


class StreamSettings(BaseSettings):
    """Environment-aware settings for the resolver and its local proxy."""

    database_url: str = Field(
        default="sqlite:///./data/episodarr.db",
        description="Connection URL for the provider mapping database.",
    )
    database_echo: bool = Field(
        default=False, description="Enable SQL echo for debugging queries."
    )
    provider_name: str = Field(
        default="gogoanime", description="Provider key stored alongside cached mappings."
    )
    mirrors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MIRRORS),
        description="Mirror base URLs probed in order.",
    )
    mirror_fingerprints: list[str] = Field(
        default_factory=lambda: list(DEFAULT_FINGERPRINTS),
        description="Substrings that only appear on genuine provider pages.",
    )
    mirror_probe_timeout: float = Field(
        default=8.0, description="Seconds allowed for each mirror probe."
    )
    http_timeout: float = Field(
        default=15.0, description="Seconds allowed for provider page fetches."
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT)
    capture_debounce_seconds: float = Field(
        default=2.0, description="Quiet period after the latest capture before resolving."
    )
    capture_timeout_seconds: float = Field(
        default=25.0, description="Hard ceiling for a single capture session."
    )
    match_threshold: float = Field(
        default=30.0, description="Minimum score a search result must exceed to be accepted."
    )
    proxy_host: str = Field(default="127.0.0.1", description="Loopback address the server binds to.")
    proxy_port: int = Field(default=0, description="Port to bind; 0 lets the OS pick one.")
    proxy_retries: int = Field(default=3, description="Replay attempts per proxied request.")
    proxy_backoff_seconds: float = Field(
        default=0.3, description="Linear backoff unit between replay attempts."
    )
    proxy_fetch_timeout: float = Field(
        default=20.0, description="Seconds allowed for one replayed request."
    )
    browser_headless: bool = Field(default=True)
    session_name: str = Field(
        default="extractor", description="Name of the persistent browser session identity."
    )
    session_dir: str | None = Field(
        default=None,
        description="Directory holding browser session state; defaults to the user data dir.",
    )
    blocked_domains: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BLOCKED_DOMAINS),
        description="Ad and tracking hosts aborted inside capture sessions.",
    )
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="EPISODARR_",
        env_file=".env",
        env_file_encoding="utf-8",
    )
