# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
The graph adapter contract.

GraphAdapter owns the backend connection and is the only component that
speaks the query dialect. The lifecycle, caching, timeout handling, index
registry, bulk import and every domain statement live here; a backend
subclass supplies connection handling, statement execution and the DDL
its dialect needs.

Parameter values are always bound by the driver. Values that have to be
spliced into statement text (labels, property names, SKIP/LIMIT integers)
go through identifier() or render_literal().
"""
import asyncio
import csv
import io
import math
import re
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from rich.console import Console

from ..cache import MISS, QueryCache
from ..coercion import coerce_row
from ..config import Settings
from ..errors import (
    BackendConnectionError, NotInitializedError, OperationTimeoutError, QueryExecutionError, SchemaValidationError,
    ValidationError, Violation,
)
from ..models import (
    ClinicalTrial, Disease, Gene, GeneDetail, QueryMetadata, QueryResult, ResearchPaper, Treatment, Variant,
)
from ..schemas import (
    GENE_IMPORT_COLUMNS, GENE_REQUIRED_COLUMNS, NODE_TYPES, RELATIONSHIP_TYPES, STANDARD_INDEXES,
    GeneQuery, NodeType, PaperQuery, RelationshipType, SearchQuery, TrialQuery, VariantQuery,
    validate, validate_count_filters,
)

console = Console()

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_STRING_LITERAL = re.compile(r"""'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*"|`[^`]*`""")
# A clause keyword, not a property (n.set), parameter ($copy) or part of a name.
_WRITE_CLAUSE = re.compile(r"(?<![\w.$])(CREATE|MERGE|SET|DELETE|REMOVE|DROP|ALTER|COPY)(?![\w.])", re.IGNORECASE)



class AdapterState(str, Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


def render_literal(value: Any) -> str:
    """
    Renders a scalar as a literal of the query language.
    Strings are quoted with quotes and backslashes escaped, None becomes NULL.
    Anything that is not a scalar is rejected.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value) or math.isinf(value):
            raise ValidationError(f"Cannot render non-finite number {value!r} as a literal")
        return repr(value)
    if isinstance(value, str):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    raise ValidationError(f"Cannot render {type(value).__name__} as a query literal")


def identifier(name: str) -> str:
    """Checks that `name` is safe to use as a label or property name."""
    if not isinstance(name, str) or not _IDENTIFIER.match(name):
        raise ValidationError(f"Invalid identifier: {name!r}")
    return name


def is_write_statement(query: str) -> bool:
    """True if the statement has a mutating clause outside its string literals."""
    return bool(_WRITE_CLAUSE.search(_STRING_LITERAL.sub("''", query)))


def parse_gene_rows(bulk_text: str) -> List[Dict[str, Optional[str]]]:
    """
    Parses CSV gene data (header row first) into import rows.
    Raises SchemaValidationError before anything is written if required
    columns are missing or a row lacks a required value. Rows carry only
    the known columns present in the header; empty cells become None.
    """
    if not bulk_text or not bulk_text.strip():
        raise SchemaValidationError([Violation("data", "bulk payload is empty")], subject="gene import")

    reader = csv.DictReader(io.StringIO(bulk_text.strip()))
    headers = [header.strip() for header in (reader.fieldnames or [])]
    missing = [column for column in GENE_REQUIRED_COLUMNS if column not in headers]
    if missing:
        raise SchemaValidationError(
            [Violation(column, "required column is missing") for column in missing],
            subject="gene import",
        )

    columns = [column for column in GENE_IMPORT_COLUMNS if column in headers]
    rows, violations = [], []
    for line_number, record in enumerate(reader, start=2):
        cleaned = {
            (key or "").strip(): value.strip() if isinstance(value, str) else value
            for key, value in record.items()
        }
        for column in GENE_REQUIRED_COLUMNS:
            if not cleaned.get(column):
                violations.append(Violation(f"line {line_number}.{column}", "value is required"))
        rows.append({column: cleaned.get(column) or None for column in columns})

    if violations:
        raise SchemaValidationError(violations, subject="gene import")
    return rows


def gene_import_statement(columns: Iterable[str]) -> str:
    """The merge statement for import rows carrying `columns`. Absent columns are left untouched."""
    assignments = [f"g.{identifier(column)} = row.{column}" for column in columns if column != "id"]
    assignments.append("g.lastUpdated = $importedAt")
    return "UNWIND $rows AS row\nMERGE (g:Gene {id: row.id})\nSET " + ",\n    ".join(assignments)


def _nodes(result: QueryResult, column: str) -> List[Dict[str, Any]]:
    return [row[column] for row in result.data if row.get(column) is not None]


def _page(limit: int, offset: int) -> str:
    return f"SKIP {render_literal(offset)} LIMIT {render_literal(limit)}"


def _where(clauses: List[str]) -> str:
    return f"WHERE {' AND '.join(clauses)}" if clauses else ""


class GraphAdapter(ABC):
    """
    Base class for graph backends.

    State machine: UNINITIALIZED -> INITIALIZING -> READY -> CLOSED.
    Every operation except initialize() and close() requires READY and
    raises NotInitializedError otherwise. CLOSED is terminal.

    Every mutating method clears the query cache before returning.
    """

    source = "graph"
    # Name of the lowercase string function in the backend's dialect.
    lower_function = "lower"

    def __init__(self, settings: Settings, cache: Optional[QueryCache] = None):
        self.settings = settings
        self.state = AdapterState.UNINITIALIZED
        self.cache = cache if cache is not None else QueryCache(settings.cache_ttl)
        self._index_registry: Set[Tuple[str, str]] = set()
        self._constraint_registry: Set[Tuple[str, str]] = set()
        self._import_lock = asyncio.Lock()

    # --- Backend hooks ---

    @abstractmethod
    async def _connect(self) -> None:
        """Opens the connection and verifies the backend answers. Raises BackendConnectionError."""

    @abstractmethod
    async def _disconnect(self) -> None:
        ...

    @abstractmethod
    async def _run(self, query: str, params: Dict[str, Any]) -> Tuple[List[Dict[str, Any]], Optional[float]]:
        """
        Executes one statement and returns its raw rows together with the
        backend-reported execution time in milliseconds (None if unknown).
        Backend failures are raised as QueryExecutionError.
        """

    @abstractmethod
    async def _explain(self, query: str, params: Dict[str, Any]) -> str:
        ...

    @abstractmethod
    async def _create_node_type(self, node_type: NodeType) -> None:
        ...

    @abstractmethod
    async def _create_relationship_type(self, rel_type: RelationshipType) -> None:
        ...

    @abstractmethod
    async def _create_index(self, label: str, prop: str) -> None:
        ...

    @abstractmethod
    async def _drop_index(self, label: str, prop: str) -> None:
        ...

    @abstractmethod
    async def _create_unique_constraint(self, label: str, prop: str) -> None:
        ...

    @abstractmethod
    async def _refresh_statistics(self) -> None:
        ...

    # --- Lifecycle ---

    @property
    def is_ready(self) -> bool:
        return self.state is AdapterState.READY

    def _ensure_ready(self) -> None:
        if self.state is not AdapterState.READY:
            raise NotInitializedError(
                f"{type(self).__name__} is {self.state.value}; initialize() must complete first"
            )

    async def initialize(self) -> None:
        """
        Connects to the backend and verifies it is reachable.
        On failure the adapter ends up CLOSED and BackendConnectionError propagates.
        """
        if self.state is AdapterState.READY:
            return
        if self.state is not AdapterState.UNINITIALIZED:
            raise NotInitializedError(
                f"Cannot initialize a {self.state.value} adapter; construct a new one to reconnect"
            )

        self.state = AdapterState.INITIALIZING
        console.log(f"Connecting to the [bold]{self.source}[/bold] backend...")
        try:
            await asyncio.wait_for(self._connect(), timeout=self.settings.connection_timeout)
        except asyncio.TimeoutError as e:
            await self._abort()
            raise BackendConnectionError(
                f"{self.source} backend did not answer within {self.settings.connection_timeout}s"
            ) from e
        except Exception:
            await self._abort()
            raise

        if self.state is not AdapterState.INITIALIZING:
            # close() was called while connecting
            await self._disconnect()
            raise NotInitializedError(f"{self.source} adapter was closed during initialization")

        self.state = AdapterState.READY
        console.log(f"[green]Connected to the {self.source} backend.[/green]")

    async def _abort(self) -> None:
        self.state = AdapterState.CLOSED
        await self._disconnect()

    async def close(self) -> None:
        """Releases the connection. Calling it on a closed adapter does nothing."""
        if self.state is AdapterState.CLOSED:
            return
        previous, self.state = self.state, AdapterState.CLOSED
        self.cache.invalidate()
        if previous is AdapterState.READY:
            await self._disconnect()
            console.log(f"[yellow]Closed the {self.source} connection.[/yellow]")

    async def __aenter__(self) -> "GraphAdapter":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Statement execution ---

    async def _with_timeout(self, awaitable: Awaitable, query: str) -> Any:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.query_timeout)
        except asyncio.TimeoutError as e:
            raise OperationTimeoutError(
                f"{self.source} statement did not finish within {self.settings.query_timeout}s: "
                f"{' '.join(query.split())[:200]}"
            ) from e

    async def execute_query(
        self,
        query: str,
        params: Optional[Mapping[str, Any]] = None,
        *,
        use_cache: bool = False,
        cache_ttl: Optional[float] = None,
        explain: bool = False,
        write: Optional[bool] = None,
    ) -> QueryResult:
        """
        Executes one statement with natively bound parameters.

        Args:
            query: Statement text in the backend's dialect.
            params: Parameter values referenced as $name in the statement.
            use_cache: Serve a fresh cached result if one exists, and cache this one.
            cache_ttl: Overrides the default cache lifetime (seconds) for this call.
            explain: Log the backend's plan for the statement before running it.
            write: Whether the statement mutates the graph. None detects it from
                the statement text. Writes clear the whole cache.

        Raises:
            NotInitializedError, QueryExecutionError, OperationTimeoutError
        """
        self._ensure_ready()
        params = dict(params or {})

        key = None
        if use_cache:
            key = self.cache.make_key(query, params)
            cached = self.cache.get(key, cache_ttl)
            if cached is not MISS:
                return cached.model_copy(deep=True)

        if explain:
            plan = await self._with_timeout(self._explain(query, params), query)
            console.log(f"[dim]Plan for statement:[/dim]\n{plan}")

        if write is None:
            write = is_write_statement(query)
        started = time.perf_counter()
        try:
            rows, backend_time = await self._with_timeout(self._run(query, params), query)
        finally:
            if write:
                # A timed-out write may still complete server-side.
                self.cache.invalidate()
        elapsed_ms = (time.perf_counter() - started) * 1000

        data = [coerce_row(row) for row in rows]
        result = QueryResult(
            data=data,
            metadata=QueryMetadata(
                query_time=backend_time if backend_time is not None else elapsed_ms,
                result_count=len(data),
                source=self.source,
            ),
        )
        if use_cache:
            self.cache.put(key, result.model_copy(deep=True))
        return result

    def clear_cache(self, pattern: Union[str, "re.Pattern", None] = None) -> int:
        return self.cache.invalidate(pattern)

    async def suggest_improvements(self, query: str) -> List[str]:
        """
        Returns heuristic tuning hints for a read statement, after checking
        with the backend that the statement compiles.
        """
        self._ensure_ready()
        await self._with_timeout(self._explain(query, {}), query)
        suggestions = []
        if re.search(r"\bMATCH\b", query, re.IGNORECASE) and not re.search(r"\bWHERE\b", query, re.IGNORECASE):
            suggestions.append("Add a WHERE clause to filter matches early.")
        if not re.search(r"\bLIMIT\b", query, re.IGNORECASE):
            suggestions.append("Add a LIMIT clause to bound the result size.")
        aliases = dict(re.findall(r"\((\w+):(\w+)", query))
        for alias, prop in re.findall(r"\b(\w+)\.(\w+)\b", query):
            label = aliases.get(alias)
            if not label or prop == "id" or (label, prop) in self._index_registry:
                continue
            hint = f"Consider an index on {label}.{prop}."
            if hint not in suggestions:
                suggestions.append(hint)
        return suggestions

    # --- Schema management ---

    @property
    def indexes(self) -> Set[Tuple[str, str]]:
        return set(self._index_registry)

    async def create_index(self, label: str, prop: str) -> bool:
        """Creates an index on label.prop. Returns False if it was already registered."""
        self._ensure_ready()
        key = (identifier(label), identifier(prop))
        if key in self._index_registry:
            return False
        await self._create_index(label, prop)
        self._index_registry.add(key)
        console.log(f"Created index on [cyan]{label}.{prop}[/cyan]")
        return True

    async def drop_index(self, label: str, prop: str) -> bool:
        """Drops an index on label.prop. Returns False if none was registered."""
        self._ensure_ready()
        key = (identifier(label), identifier(prop))
        if key not in self._index_registry:
            return False
        await self._drop_index(label, prop)
        self._index_registry.discard(key)
        console.log(f"Dropped index on [cyan]{label}.{prop}[/cyan]")
        return True

    async def create_unique_constraint(self, label: str, prop: str) -> bool:
        self._ensure_ready()
        key = (identifier(label), identifier(prop))
        if key in self._constraint_registry:
            return False
        await self._create_unique_constraint(label, prop)
        self._constraint_registry.add(key)
        console.log(f"Created uniqueness constraint on [cyan]{label}.{prop}[/cyan]")
        return True

    async def initialize_schema(self) -> None:
        """
        Creates every node and relationship type plus the standard indexes.
        Safe to call on an already-initialized database.
        """
        self._ensure_ready()
        console.log("Initializing graph schema...")
        for node_type in NODE_TYPES.values():
            await self._create_node_type(node_type)
        for rel_type in RELATIONSHIP_TYPES.values():
            await self._create_relationship_type(rel_type)
        for label, prop in STANDARD_INDEXES:
            await self.create_index(label, prop)
        self.cache.invalidate()
        console.log("[green]Graph schema is ready.[/green]")

    # --- Bulk import ---

    async def import_gene_data(self, bulk_text: str) -> int:
        """
        Merges CSV gene rows into the graph in a single statement.
        Columns id, symbol, name and chromosome are required; nothing is
        written if any are missing. Returns the number of rows imported.
        """
        self._ensure_ready()
        rows = parse_gene_rows(bulk_text)
        if not rows:
            console.log("[yellow]Gene import payload has a header but no rows; nothing to import.[/yellow]")
            return 0

        async with self._import_lock:
            await self.execute_query(
                gene_import_statement(rows[0]),
                {"rows": rows, "importedAt": datetime.now(timezone.utc).isoformat()},
                write=True,
            )
            try:
                await self._refresh_statistics()
            except QueryExecutionError as e:
                console.log(f"[yellow]Warning: could not refresh planner statistics: {e.backend_message}[/yellow]")

        console.log(f"[green]Imported {len(rows)} gene records.[/green]")
        return len(rows)

    # --- Writes ---

    async def _merge_node(self, label: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        # Unset values (None, empty lists) leave any stored value untouched.
        values = {
            key: value for key, value in properties.items()
            if key != "id" and value is not None and value != []
        }
        statement = f"MERGE (n:{identifier(label)} {{id: $id}})"
        if values:
            statement += " SET " + ", ".join(f"n.{identifier(key)} = ${key}" for key in values)
        statement += " RETURN n"
        result = await self.execute_query(statement, {"id": properties["id"], **values}, write=True)
        return _nodes(result, "n")[0]

    async def link(
        self,
        rel_label: str,
        from_id: str,
        to_id: str,
        properties: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """
        Merges one relationship between two existing nodes.
        Returns False if either endpoint does not exist.
        """
        self._ensure_ready()
        rel_type = RELATIONSHIP_TYPES.get(rel_label)
        if rel_type is None:
            raise ValidationError(f"Unknown relationship type '{rel_label}'")
        values = {key: value for key, value in (properties or {}).items() if value is not None}
        unknown = [key for key in values if key not in rel_type.properties]
        if unknown:
            raise SchemaValidationError(
                [Violation(key, f"not a property of {rel_label}") for key in unknown], subject=rel_label
            )

        statement = (
            f"MATCH (a:{rel_type.from_label}), (b:{rel_type.to_label}) "
            f"WHERE a.id = $fromId AND b.id = $toId "
            f"MERGE (a)-[r:{rel_type.label}]->(b)"
        )
        if values:
            statement += " SET " + ", ".join(f"r.{key} = ${key}" for key in values)
        statement += " RETURN a.id AS fromId, b.id AS toId"
        result = await self.execute_query(
            statement,
            {"fromId": from_id, "toId": to_id, **values},
            write=True,
        )
        return bool(result.data)

    async def upsert_gene(self, gene: Union[Gene, Mapping[str, Any]]) -> Dict[str, Any]:
        gene = validate(Gene, gene)
        self._ensure_ready()
        return await self._merge_node("Gene", gene.to_properties())

    async def upsert_variant(self, variant: Union[Variant, Mapping[str, Any]]) -> Dict[str, Any]:
        """Merges a Variant and, when it names its gene, the HAS_VARIANT edge."""
        variant = validate(Variant, variant)
        self._ensure_ready()
        stored = await self._merge_node("Variant", variant.to_properties())
        if variant.gene_id:
            await self.link("HAS_VARIANT", variant.gene_id, variant.id, {"frequency": variant.population_frequency})
        return stored

    async def upsert_trial(self, trial: Union[ClinicalTrial, Mapping[str, Any]]) -> Dict[str, Any]:
        """Merges a ClinicalTrial and a TARGETS edge to every stored gene it names by symbol."""
        trial = validate(ClinicalTrial, trial)
        self._ensure_ready()
        stored = await self._merge_node("ClinicalTrial", trial.to_properties())
        if trial.target_genes:
            await self.execute_query(
                "MATCH (t:ClinicalTrial), (g:Gene) "
                "WHERE t.id = $trialId AND ANY(s IN $symbols WHERE s = g.symbol) "
                "MERGE (t)-[:TARGETS]->(g) RETURN g.id AS geneId",
                {"trialId": trial.id, "symbols": trial.target_genes},
                write=True,
            )
        return stored

    async def upsert_paper(
        self,
        paper: Union[ResearchPaper, Mapping[str, Any]],
        mentions: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Merges a ResearchPaper and a MENTIONS edge to each gene id in `mentions`."""
        paper = validate(ResearchPaper, paper)
        self._ensure_ready()
        stored = await self._merge_node("ResearchPaper", paper.to_properties())
        for gene_id in mentions or []:
            await self.link("MENTIONS", paper.id, gene_id)
        return stored

    async def upsert_treatment(self, treatment: Union[Treatment, Mapping[str, Any]]) -> Dict[str, Any]:
        treatment = validate(Treatment, treatment)
        self._ensure_ready()
        return await self._merge_node("Treatment", treatment.to_properties())

    async def upsert_disease(self, disease: Union[Disease, Mapping[str, Any]]) -> Dict[str, Any]:
        disease = validate(Disease, disease)
        self._ensure_ready()
        return await self._merge_node("Disease", disease.to_properties())

    async def link_gene_variant(self, gene_id: str, variant_id: str, frequency: Optional[float] = None,
                                clinical_impact: Optional[str] = None) -> bool:
        return await self.link(
            "HAS_VARIANT", gene_id, variant_id, {"frequency": frequency, "clinicalImpact": clinical_impact}
        )

    async def link_treatment_gene(self, treatment_id: str, gene_id: str, mechanism: Optional[str] = None,
                                  efficacy: Optional[float] = None) -> bool:
        return await self.link("TARGETED_BY", treatment_id, gene_id, {"mechanism": mechanism, "efficacy": efficacy})

    async def link_paper_gene(self, paper_id: str, gene_id: str) -> bool:
        return await self.link("MENTIONS", paper_id, gene_id)

    async def link_trial_gene(self, trial_id: str, gene_id: str) -> bool:
        return await self.link("TARGETS", trial_id, gene_id)

    async def link_gene_disease(self, gene_id: str, disease_id: str) -> bool:
        return await self.link("ASSOCIATED_WITH", gene_id, disease_id)

    # --- Reads ---

    def _contains(self, expression: str, param: str) -> str:
        lower = self.lower_function
        return f"{lower}({expression}) CONTAINS {lower}(${param})"

    async def search_genes(self, text: Optional[str], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Genes whose symbol, name or description contains `text` (case-insensitive)."""
        query = validate(SearchQuery, {"text": text, "limit": limit})
        self._ensure_ready()
        statement = f"""
MATCH (g:Gene)
WHERE {self._contains('g.symbol', 'text')}
   OR {self._contains('g.name', 'text')}
   OR {self._contains('g.description', 'text')}
RETURN g
ORDER BY g.symbol
LIMIT {render_literal(query.limit)}
"""
        result = await self.execute_query(statement, {"text": query.text or ""})
        return _nodes(result, "g")

    async def get_gene(self, gene_id: str) -> Optional[GeneDetail]:
        """A gene with its variants, treatments and mentioning papers, or None if absent."""
        self._ensure_ready()
        params = {"id": gene_id}
        found = await self.execute_query("MATCH (g:Gene) WHERE g.id = $id RETURN g", params)
        genes = _nodes(found, "g")
        if not genes:
            return None

        variants, treatments, papers = await asyncio.gather(
            self.execute_query(
                "MATCH (g:Gene)-[r:HAS_VARIANT]->(v:Variant) WHERE g.id = $id "
                "RETURN v, r.frequency AS frequency, r.clinicalImpact AS clinicalImpact ORDER BY v.id",
                params,
            ),
            self.execute_query(
                "MATCH (tr:Treatment)-[t:TARGETED_BY]->(g:Gene) WHERE g.id = $id "
                "RETURN tr, t.mechanism AS mechanism, t.efficacy AS efficacy ORDER BY tr.name",
                params,
            ),
            self.execute_query(
                "MATCH (p:ResearchPaper)-[:MENTIONS]->(g:Gene) WHERE g.id = $id "
                "RETURN p ORDER BY p.publicationDate DESC",
                params,
            ),
        )
        return GeneDetail(
            gene=genes[0],
            variants=[
                {**row["v"], "frequency": row["frequency"], "clinicalImpact": row["clinicalImpact"]}
                for row in variants.data if row.get("v")
            ],
            treatments=[
                {"treatment": row["tr"], "mechanism": row["mechanism"], "efficacy": row["efficacy"]}
                for row in treatments.data if row.get("tr")
            ],
            papers=_nodes(papers, "p"),
        )

    async def find_trials_for_variant(self, variant_id: Optional[str], region: Optional[str] = "Africa") -> List[Dict[str, Any]]:
        """
        Clinical trials held in `region` (or multicentric) that target the gene
        carrying `variant_id`. An empty variant id searches all trials.
        """
        self._ensure_ready()
        params: Dict[str, Any] = {}
        clauses = []
        if variant_id:
            match = "MATCH (v:Variant)<-[:HAS_VARIANT]-(g:Gene)<-[:TARGETS]-(t:ClinicalTrial)"
            clauses.append("v.id = $variantId")
            params["variantId"] = variant_id
        else:
            match = "MATCH (t:ClinicalTrial)"
        if region:
            clauses.append("(t.region CONTAINS $region OR t.multicentric = true)")
            params["region"] = region
        statement = f"{match}\n{_where(clauses)}\nRETURN DISTINCT t\nORDER BY t.startDate DESC"
        result = await self.execute_query(statement, params)
        return _nodes(result, "t")

    async def search_papers(self, text: Optional[str], limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Papers whose title or an author contains `text`, with the symbols of the genes they mention."""
        query = validate(SearchQuery, {"text": text, "limit": limit})
        self._ensure_ready()
        lower = self.lower_function
        statement = f"""
MATCH (p:ResearchPaper)
WHERE {self._contains('p.title', 'text')}
   OR ANY(author IN p.authors WHERE {lower}(author) CONTAINS {lower}($text))
WITH DISTINCT p
OPTIONAL MATCH (p)-[:MENTIONS]->(g:Gene)
WITH p, collect(g.symbol) AS mentionedGenes
RETURN p, mentionedGenes
ORDER BY p.publicationDate DESC
LIMIT {render_literal(query.limit)}
"""
        result = await self.execute_query(statement, {"text": query.text or ""})
        return self._papers(result)

    @staticmethod
    def _papers(result: QueryResult) -> List[Dict[str, Any]]:
        return [
            {**row["p"], "mentionedGenes": [s for s in row.get("mentionedGenes") or [] if s is not None]}
            for row in result.data if row.get("p")
        ]

    async def search_genes_advanced(self, query: Union[GeneQuery, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        query = validate(GeneQuery, query)
        self._ensure_ready()
        matches = ["MATCH (g:Gene)"]
        clauses, params = [], {}
        if query.symbol:
            clauses.append(self._contains("g.symbol", "symbol"))
            params["symbol"] = query.symbol
        if query.chromosome:
            clauses.append("g.chromosome = $chromosome")
            params["chromosome"] = query.chromosome
        if query.keyword:
            clauses.append(f"({self._contains('g.description', 'keyword')} OR {self._contains('g.name', 'keyword')})")
            params["keyword"] = query.keyword
        if query.associated_disease:
            matches.append("MATCH (g)-[:ASSOCIATED_WITH]->(d:Disease)")
            clauses.append(self._contains("d.name", "associatedDisease"))
            params["associatedDisease"] = query.associated_disease
        if query.has_clinical_trials is True:
            matches.append("MATCH (t:ClinicalTrial)-[:TARGETS]->(g)")
        elif query.has_clinical_trials is False:
            clauses.append("NOT EXISTS { MATCH (:ClinicalTrial)-[:TARGETS]->(g) }")

        statement = "\n".join(matches + [
            _where(clauses),
            "RETURN DISTINCT g",
            "ORDER BY g.symbol",
            _page(query.limit, query.offset),
        ])
        result = await self.execute_query(statement, params)
        return _nodes(result, "g")

    async def search_papers_advanced(self, query: Union[PaperQuery, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        query = validate(PaperQuery, query)
        self._ensure_ready()
        lower = self.lower_function
        matches = ["MATCH (p:ResearchPaper)"]
        clauses, params = [], {}
        if query.keyword:
            clauses.append(f"({self._contains('p.title', 'keyword')} OR {self._contains('p.abstract', 'keyword')})")
            params["keyword"] = query.keyword
        if query.journal:
            clauses.append(self._contains("p.journal", "journal"))
            params["journal"] = query.journal
        if query.author:
            clauses.append(f"ANY(a IN p.authors WHERE {lower}(a) CONTAINS {lower}($author))")
            params["author"] = query.author
        if query.from_date:
            clauses.append("p.publicationDate >= $fromDate")
            params["fromDate"] = query.from_date.isoformat()
        if query.to_date:
            clauses.append("p.publicationDate <= $toDate")
            params["toDate"] = query.to_date.isoformat()
        if query.mentions_gene:
            matches.append("MATCH (p)-[:MENTIONS]->(mg:Gene)")
            clauses.append(self._contains("mg.symbol", "mentionsGene"))
            params["mentionsGene"] = query.mentions_gene

        statement = "\n".join(matches + [
            _where(clauses),
            "WITH DISTINCT p",
            "OPTIONAL MATCH (p)-[:MENTIONS]->(g:Gene)",
            "WITH p, collect(g.symbol) AS mentionedGenes",
            "RETURN p, mentionedGenes",
            "ORDER BY p.publicationDate DESC",
            _page(query.limit, query.offset),
        ])
        result = await self.execute_query(statement, params)
        return self._papers(result)

    async def search_trials_advanced(self, query: Union[TrialQuery, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        query = validate(TrialQuery, query)
        self._ensure_ready()
        clauses, params = [], {}
        if query.status:
            clauses.append("t.status = $status")
            params["status"] = query.status.value
        if query.phase:
            clauses.append("t.phase = $phase")
            params["phase"] = query.phase.value
        if query.region:
            clauses.append(self._contains("t.region", "region"))
            params["region"] = query.region
        if query.target_gene:
            clauses.append("ANY(s IN t.targetGenes WHERE s = $targetGene)")
            params["targetGene"] = query.target_gene
        if query.multicentric is not None:
            clauses.append("t.multicentric = $multicentric")
            params["multicentric"] = query.multicentric

        statement = "\n".join([
            "MATCH (t:ClinicalTrial)",
            _where(clauses),
            "RETURN t",
            "ORDER BY t.startDate DESC",
            _page(query.limit, query.offset),
        ])
        result = await self.execute_query(statement, params)
        return _nodes(result, "t")

    async def search_variants(self, query: Union[VariantQuery, Mapping[str, Any]]) -> List[Dict[str, Any]]:
        query = validate(VariantQuery, query)
        self._ensure_ready()
        clauses, params = [], {}
        if query.gene_id:
            clauses.append("v.geneId = $geneId")
            params["geneId"] = query.gene_id
        if query.hgvs:
            clauses.append(self._contains("v.hgvsNotation", "hgvs"))
            params["hgvs"] = query.hgvs
        if query.significance:
            clauses.append("v.clinicalSignificance = $significance")
            params["significance"] = query.significance.value
        if query.min_frequency is not None:
            clauses.append("v.populationFrequency >= $minFrequency")
            params["minFrequency"] = query.min_frequency
        if query.max_frequency is not None:
            clauses.append("v.populationFrequency <= $maxFrequency")
            params["maxFrequency"] = query.max_frequency

        statement = "\n".join([
            "MATCH (v:Variant)",
            _where(clauses),
            "RETURN v",
            "ORDER BY v.id",
            _page(query.limit, query.offset),
        ])
        result = await self.execute_query(statement, params)
        return _nodes(result, "v")

    async def count_entities(self, entity_type: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        """
        Counts nodes of `entity_type`. String filters match by substring,
        other filter values by equality.
        """
        filters = validate_count_filters(entity_type, filters)
        self._ensure_ready()
        clauses = [
            f"e.{key} CONTAINS ${key}" if isinstance(value, str) else f"e.{key} = ${key}"
            for key, value in filters.items()
        ]
        statement = f"MATCH (e:{entity_type})\n{_where(clauses)}\nRETURN count(e) AS total"
        result = await self.execute_query(statement, filters)
        first = result.first()
        return int(first["total"]) if first else 0

    async def get_stats(self, use_cache: bool = True) -> Dict[str, Dict[str, int]]:
        """Node counts per label and edge counts per relationship type."""
        self._ensure_ready()

        async def node_count(label: str) -> int:
            result = await self.execute_query(
                f"MATCH (n:{label}) RETURN count(n) AS total", use_cache=use_cache
            )
            return int(result.first()["total"])

        async def rel_count(rel: RelationshipType) -> int:
            result = await self.execute_query(
                f"MATCH (a:{rel.from_label})-[r:{rel.label}]->(b:{rel.to_label}) RETURN count(r) AS total",
                use_cache=use_cache,
            )
            return int(result.first()["total"])

        node_totals = await asyncio.gather(*(node_count(label) for label in NODE_TYPES))
        rel_totals = await asyncio.gather(*(rel_count(rel) for rel in RELATIONSHIP_TYPES.values()))
        return {
            "nodes": dict(zip(NODE_TYPES, node_totals)),
            "relationships": dict(zip(RELATIONSHIP_TYPES, rel_totals)),
        }
