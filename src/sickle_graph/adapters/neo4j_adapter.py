# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import json
from typing import Any, Dict, List, Optional, Tuple

from neo4j import AsyncDriver, AsyncGraphDatabase, Query
from neo4j.exceptions import AuthError, DriverError, Neo4jError, ServiceUnavailable
from rich.console import Console

from ..errors import BackendConnectionError, QueryExecutionError
from ..schemas import NodeType, RelationshipType
from .base import GraphAdapter, identifier

console = Console()


class Neo4jAdapter(GraphAdapter):
    """
    Client-server backend using the Neo4j async driver.

    Neo4j is schema-optional: node types become uniqueness constraints on
    their primary key, and relationship types need no DDL.
    """

    source = "neo4j"
    lower_function = "toLower"

    def __init__(self, settings, cache=None, driver: Optional[AsyncDriver] = None):
        super().__init__(settings, cache)
        self._driver = driver

    async def _connect(self) -> None:
        settings = self.settings
        try:
            if self._driver is None:
                if not settings.neo4j_user or settings.neo4j_password is None:
                    raise BackendConnectionError("Neo4j credentials are not configured (neo4j_user, neo4j_password)")
                self._driver = AsyncGraphDatabase.driver(
                    settings.neo4j_uri,
                    auth=(settings.neo4j_user, settings.neo4j_password.get_secret_value()),
                    max_connection_pool_size=settings.max_connection_pool_size,
                    connection_timeout=settings.connection_timeout,
                )
            await self._driver.verify_connectivity()
        except AuthError as e:
            raise BackendConnectionError(f"Neo4j authentication failed: {e}") from e
        except ServiceUnavailable as e:
            raise BackendConnectionError(f"Neo4j is unavailable at {settings.neo4j_uri}: {e}") from e
        except (DriverError, Neo4jError, ValueError) as e:
            raise BackendConnectionError(f"Could not connect to Neo4j at {settings.neo4j_uri}: {e}") from e
        console.log(f"Connected to Neo4j at [cyan]{settings.neo4j_uri}[/cyan] (database '{settings.neo4j_database}')")

    async def _disconnect(self) -> None:
        if self._driver is not None:
            await self._driver.close()
            self._driver = None

    async def _session_run(self, query: str, params: Dict[str, Any]):
        try:
            async with self._driver.session(database=self.settings.neo4j_database) as session:
                result = await session.run(Query(query, timeout=self.settings.query_timeout), params)
                records = [record async for record in result]
                summary = await result.consume()
        except Neo4jError as e:
            raise QueryExecutionError(query, e.message or str(e), params) from e
        except DriverError as e:
            raise QueryExecutionError(query, str(e), params) from e
        return records, summary

    async def _run(self, query: str, params: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], Optional[float]]:
        records, summary = await self._session_run(query, params)
        rows = [dict(record.items()) for record in records]
        available = summary.result_available_after
        consumed = summary.result_consumed_after
        if available is None and consumed is None:
            return rows, None
        return rows, float((available or 0) + (consumed or 0))

    async def _explain(self, query: str, params: Dict[str, Any]) -> str:
        _, summary = await self._session_run(f"EXPLAIN {query}", params)
        return json.dumps(summary.plan, indent=2, default=str)

    async def _create_node_type(self, node_type: NodeType) -> None:
        await self.create_unique_constraint(node_type.label, node_type.primary_key)

    async def _create_relationship_type(self, rel_type: RelationshipType) -> None:
        return None

    async def _create_index(self, label: str, prop: str) -> None:
        await self.execute_query(
            f"CREATE INDEX idx_{label}_{prop} IF NOT EXISTS FOR (n:{identifier(label)}) ON (n.{identifier(prop)})"
        )

    async def _drop_index(self, label: str, prop: str) -> None:
        await self.execute_query(f"DROP INDEX idx_{identifier(label)}_{identifier(prop)} IF EXISTS")

    async def _create_unique_constraint(self, label: str, prop: str) -> None:
        await self.execute_query(
            f"CREATE CONSTRAINT uniq_{label}_{prop} IF NOT EXISTS "
            f"FOR (n:{identifier(label)}) REQUIRE n.{identifier(prop)} IS UNIQUE"
        )

    async def _refresh_statistics(self) -> None:
        await self.execute_query("CALL db.resampleOutdatedIndexes()")
