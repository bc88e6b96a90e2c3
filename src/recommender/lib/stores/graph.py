"""Neo4j-backed graph store."""

import logging
from typing import Any

from .base import GraphStore

logger = logging.getLogger(__name__)


class Neo4jGraphStore(GraphStore):
    """:class:`GraphStore` over a ``neo4j.AsyncDriver``.

    Each query runs in its own session, closed when the rows are read.
    """

    def __init__(self, driver, database: str | None = None):
        self._driver = driver
        self._database = database

    async def query(self, template: str, params: dict[str, Any] | None = None) -> list[dict]:
        async with self._driver.session(database=self._database) as session:
            result = await session.run(template, params or {})
            return await result.data()
