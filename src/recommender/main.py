import logging
from contextlib import asynccontextmanager

import redis.asyncio as aioredis
from elasticsearch import AsyncElasticsearch
from fastapi import FastAPI
from neo4j import AsyncGraphDatabase

from .config import RecommenderSettings
from .lib.recommendations import RecommendationEngine
from .lib.stores import ElasticsearchContentStore, Neo4jGraphStore, RedisCache
from .routers import health, recommendations

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the store clients and the engine; close them on shutdown.

    Tests skip the lifespan and set ``app.state.engine`` directly.
    """
    settings = RecommenderSettings()

    es = AsyncElasticsearch(settings.elasticsearch_url, api_key=settings.elasticsearch_api_key)
    driver = AsyncGraphDatabase.driver(
        settings.neo4j_uri, auth=(settings.neo4j_username, settings.neo4j_password)
    )
    redis = aioredis.Redis.from_url(settings.redis_url, decode_responses=True)

    engine = RecommendationEngine(
        store=ElasticsearchContentStore(
            es,
            posts_index=settings.posts_index,
            users_index=settings.users_index,
            views_index=settings.views_index,
        ),
        graph=Neo4jGraphStore(driver, database=settings.neo4j_database),
        cache=RedisCache(redis, timeout_seconds=settings.cache_timeout_seconds),
        settings=settings,
    )
    app.state.engine = engine
    logger.info("Recommendation engine ready (es=%s, neo4j=%s)", settings.elasticsearch_url, settings.neo4j_uri)

    yield

    logger.info("Shutting down recommendation engine")
    await engine.aclose()
    await es.close()
    await driver.close()
    await redis.aclose()


app = FastAPI(
    title="Recommendation API",
    description="Content and people recommendations for the social network",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(recommendations.router)
