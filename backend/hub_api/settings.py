"""Runtime configuration for the Streamhub API."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..providers.base_url import BASE_URL_TTL_SECONDS, DEFAULT_BASE_URL_MANIFEST
from ..providers.cascade import CASCADE_BUDGET_SECONDS
from ..providers.http import DEFAULT_USER_AGENT
from ..providers.loader import DEFAULT_MIRRORS
from ..providers.manifest import DEFAULT_PROVIDER_MANIFEST
from ..providers.patterns import DEFAULT_CDN_DOMAINS, DEFAULT_HOSTING_DOMAINS, DEFAULT_REDIRECTORS
from ..providers.registry import MODULE_CACHE_TTL_SECONDS
from ..providers.resolution import CACHE_AGE_REFRESH_MS, DEBUG_HOOK_TIMEOUT_SECONDS, RESOLVER_TIMEOUT_SECONDS
from ..providers.sandbox import MAX_SOURCE_BYTES


class HubSettings(BaseSettings):
    """Environment-aware settings for the Streamhub API service."""

    environment: str = Field(
        default="development",
        description="Deployment environment; tracebacks are hidden when set to production.",
    )
    log_level: str = Field(default="INFO", description="Root logging level.")
    version: str = Field(default="0.1.0", description="Version reported by /health.")

    module_mirrors: list[str] = Field(
        default_factory=lambda: list(DEFAULT_MIRRORS),
        description="Ordered base URLs serving {provider}/{role}{suffix} module files.",
    )
    module_suffix: str = Field(default=".py", description="File suffix of provider modules.")
    module_fetch_timeout: float = Field(default=15.0, description="Per-mirror fetch timeout in seconds.")
    module_cache_ttl: float = Field(
        default=MODULE_CACHE_TTL_SECONDS, description="Seconds a fetched module set stays fresh."
    )
    module_max_bytes: int = Field(default=MAX_SOURCE_BYTES, description="Largest accepted module source.")
    cache_age_refresh_ms: int = Field(
        default=CACHE_AGE_REFRESH_MS,
        description="cache_age values above this force a module refresh.",
    )

    provider_manifest_url: str = Field(
        default=DEFAULT_PROVIDER_MANIFEST, description="JSON list of available providers."
    )
    base_url_manifest_url: str = Field(
        default=DEFAULT_BASE_URL_MANIFEST, description="JSON map of provider base URLs."
    )
    base_url_ttl: float = Field(default=BASE_URL_TTL_SECONDS, description="Base URL cache TTL in seconds.")

    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User agent for outbound requests.")
    http_timeout: float = Field(default=30.0, description="Default outbound request timeout in seconds.")

    resolver_timeout: float = Field(
        default=RESOLVER_TIMEOUT_SECONDS, description="Time budget for a provider's get_stream."
    )
    debug_hook_timeout: float = Field(
        default=DEBUG_HOOK_TIMEOUT_SECONDS,
        description="Time budget for a module's debug hook after an empty result.",
    )
    cascade_budget: float = Field(
        default=CASCADE_BUDGET_SECONDS, description="Aggregate time budget of the extraction cascade."
    )
    strategy_timeouts: dict[str, float] = Field(
        default_factory=lambda: {
            "alternative-url": 30.0,
            "host-extractors": 20.0,
            "direct-pattern": 15.0,
            "linked-tunnel": 25.0,
            "stream-fallback": 30.0,
        },
        description="Per-strategy attempt timeouts in seconds.",
    )
    strategy_concurrency: int = Field(default=2, ge=1, description="Parallel requests inside one strategy.")
    tunnel_link_limit: int = Field(default=2, ge=0, description="Redirector links followed per page.")
    tunnel_link_timeout: float = Field(default=10.0, description="Timeout for one redirector page.")
    fallback_resolver_url: str | None = Field(
        default=None,
        description="Remote stream-fallback endpoint; the in-process resolver is used when unset.",
    )

    redirector_domains: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_REDIRECTORS),
        description="Redirector domain -> server label used by linked-tunnel mining.",
    )
    cdn_domains: list[str] = Field(default_factory=lambda: list(DEFAULT_CDN_DOMAINS))
    hosting_domains: list[str] = Field(default_factory=lambda: list(DEFAULT_HOSTING_DOMAINS))

    model_config = SettingsConfigDict(
        env_prefix="STREAMHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"
