# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import kuzu
from rich.console import Console

from ..errors import BackendConnectionError, QueryExecutionError, SchemaValidationError, UnsupportedOperationError, Violation
from ..schemas import NODE_TYPES, NodeType, RelationshipType
from .base import GraphAdapter, identifier, is_write_statement

console = Console()

IN_MEMORY = ":memory:"


class KuzuAdapter(GraphAdapter):
    """
    Embedded backend on top of the Kùzu graph engine.

    Kùzu keeps a strict schema (node and relationship tables) and only
    indexes primary keys, so secondary indexes are recorded in the registry
    without emitting DDL, and unique constraints are accepted only on a
    table's primary key.

    Kùzu admits one write transaction at a time, so write statements are
    serialized here while reads run concurrently.
    """

    source = "kuzu"
    lower_function = "lower"

    def __init__(self, settings, cache=None):
        super().__init__(settings, cache)
        self._db: Optional[kuzu.Database] = None
        self._conn: Optional[kuzu.AsyncConnection] = None
        self._write_lock = asyncio.Lock()

    async def _connect(self) -> None:
        path = self.settings.kuzu_db_path
        try:
            if path != IN_MEMORY:
                Path(path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            self._db = await asyncio.to_thread(kuzu.Database, path)
            self._conn = kuzu.AsyncConnection(
                self._db, max_concurrent_queries=self.settings.kuzu_max_concurrent_queries
            )
            result = await self._conn.execute("RETURN 1 AS ok")
            result.close()
        except (RuntimeError, OSError) as e:
            raise BackendConnectionError(f"Could not open Kùzu database at '{path}': {e}") from e
        console.log(f"Opened Kùzu database at [cyan]{path}[/cyan]")

    async def _disconnect(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None
        if self._db is not None:
            self._db.close()
            self._db = None

    @staticmethod
    def _rows(result) -> List[Dict[str, Any]]:
        columns = result.get_column_names()
        rows = []
        while result.has_next():
            rows.append(dict(zip(columns, result.get_next())))
        return rows

    async def _execute(self, query: str, params: Dict[str, Any]):
        if is_write_statement(query):
            async with self._write_lock:
                return await self._conn.execute(query, params)
        return await self._conn.execute(query, params)

    async def _run(self, query: str, params: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], Optional[float]]:
        try:
            result = await self._execute(query, params)
        except RuntimeError as e:
            raise QueryExecutionError(query, str(e), params) from e
        try:
            return self._rows(result), result.get_execution_time()
        finally:
            result.close()

    async def _explain(self, query: str, params: Dict[str, Any]) -> str:
        rows, _ = await self._run(f"EXPLAIN {query}", params)
        return "\n".join(str(value) for row in rows for value in row.values())

    async def _create_node_type(self, node_type: NodeType) -> None:
        columns = ", ".join(f"{identifier(name)} {kind}" for name, kind in node_type.properties.items())
        await self.execute_query(
            f"CREATE NODE TABLE IF NOT EXISTS {identifier(node_type.label)}"
            f"({columns}, PRIMARY KEY ({identifier(node_type.primary_key)}))"
        )

    async def _create_relationship_type(self, rel_type: RelationshipType) -> None:
        columns = "".join(f", {identifier(name)} {kind}" for name, kind in rel_type.properties.items())
        await self.execute_query(
            f"CREATE REL TABLE IF NOT EXISTS {identifier(rel_type.label)}"
            f"(FROM {identifier(rel_type.from_label)} TO {identifier(rel_type.to_label)}{columns})"
        )

    async def _create_index(self, label: str, prop: str) -> None:
        node_type = NODE_TYPES.get(label)
        if node_type is None or prop not in node_type.properties:
            raise SchemaValidationError([Violation(f"{label}.{prop}", "no such property")], subject="index")
        # No DDL: Kùzu indexes primary keys only.

    async def _drop_index(self, label: str, prop: str) -> None:
        return None

    async def _create_unique_constraint(self, label: str, prop: str) -> None:
        node_type = NODE_TYPES.get(label)
        if node_type is None or node_type.primary_key != prop:
            raise UnsupportedOperationError(
                f"Kùzu enforces uniqueness only on primary keys; cannot constrain {label}.{prop}"
            )

    async def _refresh_statistics(self) -> None:
        await self.execute_query("CHECKPOINT")
