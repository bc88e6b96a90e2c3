"""Store contracts and their Elasticsearch, Neo4j and Redis implementations."""

from .base import CacheStore, ContentStore, GraphStore
from .cache import RedisCache
from .elasticsearch import ElasticsearchContentStore
from .graph import Neo4jGraphStore

__all__ = [
    "CacheStore",
    "ContentStore",
    "GraphStore",
    "ElasticsearchContentStore",
    "Neo4jGraphStore",
    "RedisCache",
]
