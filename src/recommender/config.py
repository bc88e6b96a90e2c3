"""Runtime settings for the recommendation service.

Every field can be overridden by an environment variable with the upper-cased
field name (``CACHE_TTL_SECONDS=600``) or by an entry in ``.env``.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RecommenderSettings(BaseSettings):
    """Connection settings and engine tunables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Backends
    elasticsearch_url: str = Field("http://localhost:9200", description="Elasticsearch endpoint")
    elasticsearch_api_key: str | None = Field(None, description="Elasticsearch API key, if any")
    posts_index: str = "posts"
    users_index: str = "users"
    views_index: str = "post_views"

    neo4j_uri: str = Field("neo4j://localhost:7687", description="Neo4j bolt/neo4j URI")
    neo4j_username: str = "neo4j"
    neo4j_password: str = ""
    neo4j_database: str | None = None

    redis_url: str = Field("redis://localhost:6379/0", description="Redis URL for the cache")

    # Engine
    cache_ttl_seconds: int = Field(300, ge=1, description="TTL of a primary recommendation result")
    cache_timeout_seconds: float = Field(0.5, gt=0, description="Upper bound on any single cache call")
    signal_timeout_seconds: float = Field(2.0, gt=0, description="Upper bound on each profile signal fetch")
    max_candidates: int = Field(200, ge=1, description="Hard cap on the candidate pool")
    mark_served_as_viewed: bool = Field(
        True, description="Record served posts as viewed once a result is computed"
    )

    @property
    def interests_ttl_seconds(self) -> int:
        return self.cache_ttl_seconds * 2

    @property
    def following_ttl_seconds(self) -> int:
        return self.cache_ttl_seconds * 4

    @property
    def fallback_ttl_seconds(self) -> int:
        return max(1, self.cache_ttl_seconds // 2)
