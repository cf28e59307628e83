# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
import asyncio
from typing import Any, Awaitable, Dict, Iterable, List, Mapping, Optional, Sequence

from rich.console import Console

from .adapters import GraphAdapter, create_adapter
from .config import Settings
from .errors import OperationTimeoutError, SickleGraphError, UpstreamServiceError, ValidationError
from .ncbi import NCBIClient

console = Console()

# Genes central to sickle cell disease and fetal-hemoglobin induction
REFERENCE_GENES = ["HBB", "HBA1", "HBA2", "BCL11A", "HBG1", "HBG2", "KLF1"]

BATCH_DATABASES = ("gene", "pubmed", "clinvar")


class SickleGraphService:
    """
    Domain façade over a GraphAdapter, optionally backed by the NCBI client.

    The service owns the adapter's lifecycle: start() connects and prepares
    the schema, stop() releases everything. Every query method raises
    NotInitializedError until start() has completed.
    """

    def __init__(
        self,
        settings: Settings,
        adapter: Optional[GraphAdapter] = None,
        ncbi: Optional[NCBIClient] = None,
    ):
        self.settings = settings
        self.adapter = adapter if adapter is not None else create_adapter(settings)
        self.ncbi = ncbi
        self._semaphore = asyncio.Semaphore(settings.max_concurrency)

    async def start(self, initialize_schema: bool = True) -> None:
        await self.adapter.initialize()
        if initialize_schema:
            await self.adapter.initialize_schema()
        if self.ncbi is not None:
            await self.ncbi.open()
        console.log("[bold green]SickleGraph service started.[/bold green]")

    async def stop(self) -> None:
        await self.adapter.close()
        if self.ncbi is not None:
            await self.ncbi.aclose()
        console.log("SickleGraph service stopped.")

    async def __aenter__(self) -> "SickleGraphService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # --- Graph queries ---

    async def search_genes(self, text: Optional[str], limit: Optional[int] = 10) -> List[Dict[str, Any]]:
        return await self.adapter.search_genes(text, limit)

    async def get_gene(self, gene_id: str) -> Optional[Dict[str, Any]]:
        """The gene with its variants, treatments and papers, or None if it does not exist."""
        detail = await self.adapter.get_gene(gene_id)
        return detail.to_dict() if detail is not None else None

    async def find_trials_for_variant(self, variant_id: Optional[str], region: Optional[str] = "Africa") -> List[Dict[str, Any]]:
        return await self.adapter.find_trials_for_variant(variant_id, region)

    async def search_papers(self, text: Optional[str], limit: Optional[int] = 10) -> List[Dict[str, Any]]:
        return await self.adapter.search_papers(text, limit)

    async def search_genes_advanced(self, query: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self.adapter.search_genes_advanced(query)

    async def search_papers_advanced(self, query: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self.adapter.search_papers_advanced(query)

    async def search_trials(self, query: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self.adapter.search_trials_advanced(query)

    async def search_variants(self, query: Mapping[str, Any]) -> List[Dict[str, Any]]:
        return await self.adapter.search_variants(query)

    async def get_entity_count(self, entity_type: str, filters: Optional[Mapping[str, Any]] = None) -> int:
        return await self.adapter.count_entities(entity_type, filters)

    async def get_stats(self) -> Dict[str, Dict[str, int]]:
        return await self.adapter.get_stats()

    # --- Writes ---

    async def import_gene_data(self, bulk_text: str) -> int:
        return await self.adapter.import_gene_data(bulk_text)

    async def upsert_gene(self, gene) -> Dict[str, Any]:
        return await self.adapter.upsert_gene(gene)

    async def upsert_variant(self, variant) -> Dict[str, Any]:
        return await self.adapter.upsert_variant(variant)

    async def upsert_trial(self, trial) -> Dict[str, Any]:
        return await self.adapter.upsert_trial(trial)

    async def upsert_paper(self, paper, mentions: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        return await self.adapter.upsert_paper(paper, mentions)

    # --- Upstream-backed lookups ---

    async def _bounded(self, awaitable: Awaitable) -> Any:
        async with self._semaphore:
            return await awaitable

    async def _fetch(self, kind: str, local, upstream, upsert, force_update: bool) -> List[Dict[str, Any]]:
        """
        Local data first; on a miss (or force_update) ask NCBI and merge the
        records into the graph. Falls back to local data when NCBI fails.
        """
        if not force_update:
            found = await local()
            if found or self.ncbi is None:
                return found
        elif self.ncbi is None:
            return await local()

        try:
            records = await upstream()
        except (UpstreamServiceError, OperationTimeoutError) as e:
            console.log(f"[yellow]NCBI {kind} lookup failed ({e}); serving local data.[/yellow]")
            return await local()

        return [await upsert(record) for record in records]

    async def fetch_genes(self, text: str, limit: int = 10, force_update: bool = False) -> List[Dict[str, Any]]:
        return await self._fetch(
            "gene",
            lambda: self.adapter.search_genes(text, limit),
            lambda: self.ncbi.search_genes(text, limit),
            self.adapter.upsert_gene,
            force_update,
        )

    async def fetch_papers(self, text: str, limit: int = 10, force_update: bool = False) -> List[Dict[str, Any]]:
        return await self._fetch(
            "pubmed",
            lambda: self.adapter.search_papers(text, limit),
            lambda: self.ncbi.search_papers(text, limit),
            self.adapter.upsert_paper,
            force_update,
        )

    async def fetch_variants(self, text: str, limit: int = 10, force_update: bool = False) -> List[Dict[str, Any]]:
        return await self._fetch(
            "clinvar",
            lambda: self.adapter.search_variants({"hgvs": text, "limit": limit}),
            lambda: self.ncbi.search_variants(text, limit),
            self.adapter.upsert_variant,
            force_update,
        )

    async def batch_search(
        self,
        text: str,
        limit: int = 10,
        databases: Sequence[str] = BATCH_DATABASES,
    ) -> Dict[str, List[Dict[str, Any]]]:
        """
        Runs the gene, paper and variant lookups concurrently (at most
        max_concurrency at a time) and returns their results keyed by kind.
        """
        unknown = [db for db in databases if db not in BATCH_DATABASES]
        if unknown:
            raise ValidationError(f"Unknown databases {unknown}; expected any of {list(BATCH_DATABASES)}")

        lookups = {
            "genes": (self.fetch_genes, "gene"),
            "papers": (self.fetch_papers, "pubmed"),
            "variants": (self.fetch_variants, "clinvar"),
        }
        selected = {key: fetch for key, (fetch, db) in lookups.items() if db in databases}
        results = await asyncio.gather(*(self._bounded(fetch(text, limit)) for fetch in selected.values()))
        return dict(zip(selected, results))

    async def preload_reference_genes(self, symbols: Iterable[str] = REFERENCE_GENES) -> int:
        """
        Best-effort warm-up: looks up each reference gene (local first, then
        NCBI) with bounded concurrency. Failures are logged and skipped.
        Returns the number of genes found.
        """
        async def load(symbol: str) -> int:
            try:
                genes = await self._bounded(self.fetch_genes(symbol, limit=1))
            except SickleGraphError as e:
                console.log(f"[yellow]Warning: could not preload gene {symbol}: {e}[/yellow]")
                return 0
            return 1 if genes else 0

        loaded = sum(await asyncio.gather(*(load(symbol) for symbol in symbols)))
        console.log(f"Preloaded {loaded} reference genes.")
        return loaded
