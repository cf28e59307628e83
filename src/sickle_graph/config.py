# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import Any, Literal, Optional

from pydantic import Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError


class Settings(BaseSettings):
    """
    Manages the application's configuration settings.
    Utilizes Pydantic's BaseSettings to allow for environment variable overrides.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="SICKLEGRAPH_",
        extra="ignore",
    )

    # --- Backend Selection ---
    backend: Literal["kuzu", "neo4j"] = Field(
        "kuzu",
        description="Graph backend: the embedded Kùzu engine or a Neo4j server."
    )

    # --- Kùzu (embedded) ---
    kuzu_db_path: str = Field(
        "./data/sicklegraph.kuzu",
        description="Path of the Kùzu database directory, or ':memory:' for an in-memory store."
    )
    kuzu_max_concurrent_queries: int = Field(4, ge=1, description="Worker slots of the Kùzu async connection.")

    # --- Neo4j (client-server) ---
    neo4j_uri: str = Field("neo4j://localhost:7687", description="Neo4j instance URI.")
    neo4j_user: Optional[str] = Field(None, description="Neo4j username.")
    neo4j_password: Optional[SecretStr] = Field(None, description="Neo4j password.")
    neo4j_database: str = Field("neo4j", description="Neo4j target database name.")
    max_connection_pool_size: int = Field(50, ge=1, description="Neo4j driver connection pool size.")

    # --- Timeouts ---
    connection_timeout: float = Field(
        10.0, gt=0,
        description="Seconds to wait while establishing the backend connection."
    )
    query_timeout: float = Field(
        30.0, gt=0,
        description="Seconds to wait for a single statement before giving up."
    )

    # --- Query Cache ---
    cache_ttl: int = Field(60, ge=0, description="Default lifetime of cached query results, in seconds.")

    # --- Concurrency ---
    max_concurrency: int = Field(
        5, ge=1,
        description="Maximum number of concurrent background lookups (batch search, preload)."
    )

    # --- NCBI E-utilities ---
    ncbi_api_key: Optional[SecretStr] = Field(None, description="NCBI API key (raises the rate limit).")
    ncbi_base_url: str = Field(
        "https://eutils.ncbi.nlm.nih.gov/entrez/eutils/",
        description="Base URL of the NCBI E-utilities API."
    )
    ncbi_rate_limit: float = Field(3.0, gt=0, description="Maximum NCBI requests per second.")
    ncbi_timeout: float = Field(10.0, gt=0, description="Per-request NCBI read timeout in seconds.")

    # --- HTTP API ---
    api_host: str = Field("127.0.0.1", description="Interface the HTTP API binds to.")
    api_port: int = Field(3000, ge=1, le=65535, description="Port the HTTP API listens on.")

    @model_validator(mode="after")
    def _require_neo4j_credentials(self) -> "Settings":
        if self.backend == "neo4j":
            missing = []
            if not self.neo4j_user:
                missing.append("neo4j_user")
            if self.neo4j_password is None or not self.neo4j_password.get_secret_value():
                missing.append("neo4j_password")
            if missing:
                raise ValueError(
                    f"backend 'neo4j' requires credentials; missing: {', '.join(missing)}"
                )
        return self


def load_settings(**overrides: Any) -> Settings:
    """
    Builds the Settings from the environment (and optional overrides),
    converting pydantic's error list into a field-by-field ConfigurationError.
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        problems = []
        for err in e.errors():
            location = ".".join(str(part) for part in err["loc"]) or "settings"
            problems.append(f"{location}: {err['msg']}")
        raise ConfigurationError(problems) from e
