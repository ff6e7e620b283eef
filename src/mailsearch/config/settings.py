"""Application settings — Pydantic-based configuration with YAML and env var support.

Configuration is loaded from (in order of precedence):
  1. YAML config file (if specified)
  2. Environment variables (MAILSEARCH_ prefix)
  3. Default values
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings


class ServerSettings(BaseModel):
    """HTTP server configuration."""

    host: str = Field(default="0.0.0.0", description="Server bind address")
    port: int = Field(default=8080, description="Server port")
    workers: int = Field(default=4, description="Number of worker processes")
    cors_origins: list[str] = Field(default=["*"], description="Allowed CORS origins")


class SolrSettings(BaseModel):
    """Connection and retry policy for the upstream Solr collection."""

    base_url: str = Field(default="http://localhost:8983/solr", description="Solr base URL")
    collection: str = Field(default="emails", description="Solr collection/core name")
    username: str | None = Field(default=None, description="Basic-auth username")
    password: str | None = Field(default=None, description="Basic-auth password")
    timeout: float = Field(default=10.0, gt=0, description="Per-call HTTP timeout in seconds")
    max_retries: int = Field(default=3, ge=0, description="Retries for transient upstream failures")
    backoff_base: float = Field(default=0.2, ge=0, description="First retry delay in seconds")
    backoff_max: float = Field(default=5.0, ge=0, description="Upper bound on a single retry delay")

    @field_validator("base_url")
    @classmethod
    def _strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("collection")
    @classmethod
    def _strip_leading_slash(cls, v: str) -> str:
        v = v.strip("/")
        if not v:
            raise ValueError("collection must not be blank")
        return v


class QuerySettings(BaseModel):
    """Field schema and bounds used when translating search requests.

    All field names are Solr field names. ``facet_queries`` maps a
    human-readable label to a server-defined Solr query; clients refer
    to facet queries by label only.
    """

    default_limit: int = Field(default=100, ge=1, description="Page size when the request omits limit")
    max_limit: int = Field(default=1000, ge=1, description="Largest page size a request may ask for")
    max_window: int = Field(default=100_000, ge=1, description="Upper bound on offset + limit")
    query_fields: str = Field(default="subject^2 body", description="edismax qf for free-text search")
    filterable_fields: list[str] = Field(
        default=["id", "subject", "from_addr", "to_addr", "cc_addr", "sent_at"],
        description="Fields a request may filter on",
    )
    sortable_fields: list[str] = Field(
        default=["sent_at", "id", "from_addr", "score"],
        description="Fields a request may sort on",
    )
    sort_aliases: dict[str, str] = Field(
        default={"timestamp": "sent_at"},
        description="Client-facing sort names mapped to Solr fields",
    )
    facetable_fields: list[str] = Field(
        default=["from_addr", "to_addr", "cc_addr"],
        description="Fields a request may facet on",
    )
    facet_queries: dict[str, str] = Field(
        default_factory=dict,
        description="Named facet queries (label -> Solr query)",
    )
    facet_limit: int = Field(default=100, ge=1, description="Maximum values returned per facet field")
    facet_min_count: int = Field(default=1, ge=0, description="Minimum count for a facet value to be returned")
    stream_batch_size: int = Field(default=1000, ge=1, description="Default page size for streaming exports")

    @field_validator("filterable_fields", "sortable_fields", "facetable_fields", mode="before")
    @classmethod
    def _parse_field_list(cls, v: Any) -> list[str]:
        """Accept a comma-separated string (env var) or a list."""
        if isinstance(v, str):
            return [f.strip() for f in v.split(",") if f.strip()]
        return list(v)


class CacheSettings(BaseModel):
    """Query cache configuration."""

    enabled: bool = Field(default=True, description="Serve repeated queries from cache")
    backend: str = Field(default="memory", description="Cache backend: memory, redis")
    redis_url: str = Field(default="redis://localhost:6379/0", description="Redis connection URL")
    ttl_seconds: int = Field(default=300, ge=1, description="Lifetime of a cached search result")
    sweep_interval: float = Field(default=60.0, gt=0, description="Seconds between expired-entry sweeps")
    key_prefix: str = Field(default="mailsearch:", description="Prefix applied to every cache key")


class ObservabilitySettings(BaseModel):
    """Observability configuration."""

    log_level: str = Field(default="info", description="Log level: debug, info, warning, error")
    log_format: str = Field(default="json", description="Log format: json, console")


class Settings(BaseSettings):
    """Root application settings.

    Configuration is loaded from environment variables with the MAILSEARCH_ prefix.
    Nested settings use double underscores: MAILSEARCH_SOLR__BASE_URL=http://solr:8983/solr

    Example:
        MAILSEARCH_SERVER__PORT=9090
        MAILSEARCH_SOLR__COLLECTION=emails
        MAILSEARCH_CACHE__BACKEND=redis
    """

    model_config = {
        "env_prefix": "MAILSEARCH_",
        "env_nested_delimiter": "__",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }

    # Application metadata
    app_name: str = Field(default="mailsearch", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")

    # Component settings
    server: ServerSettings = Field(default_factory=ServerSettings)
    solr: SolrSettings = Field(default_factory=SolrSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @classmethod
    def from_yaml(cls, path: str | Path) -> Settings:
        """Load settings from a YAML configuration file.

        Values from the YAML file override the built-in defaults. Sections
        missing from the file fall back to environment variables.

        Args:
            path: Path to the YAML config file.

        Returns:
            Populated Settings instance.
        """
        import yaml  # type: ignore[import-untyped]

        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls(**data)
