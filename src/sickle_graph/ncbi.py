# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Client for the NCBI E-utilities API (Gene, PubMed and ClinVar).

Records are searched with esearch, fetched with esummary and normalized
into the graph's entity models. Requests are spaced to honor NCBI's
requests-per-second limit.

API reference: https://www.ncbi.nlm.nih.gov/books/NBK25500/
"""
import asyncio
import re
import time
from typing import Any, Dict, List, Optional

import httpx

from .config import Settings
from .errors import OperationTimeoutError, UpstreamServiceError
from .models import Gene, ResearchPaper, Variant
from .significance_mapper import normalize_clinical_significance


USER_AGENT = "SickleGraph/0.1 (+https://github.com/sicklegraph)"
_PUBDATE = re.compile(r"^(\d{4})(?:/(\d{2}))?(?:/(\d{2}))?")


def _iso_date(value: Optional[str]) -> str:
    """Turns an NCBI sort date ('2021/03/04 00:00') into '2021-03-04'."""
    match = _PUBDATE.match(value or "")
    if not match:
        return ""
    year, month, day = match.groups()
    return "-".join([year, month or "01", day or "01"])


def normalize_gene(record: Dict[str, Any]) -> Gene:
    aliases = (record.get("otheraliases") or "").replace(",", "|").split("|")
    ensembl_id = next((a.strip() for a in aliases if a.strip().startswith("ENSG")), None)
    return Gene(
        id=str(record["uid"]),
        symbol=record.get("name") or record.get("nomenclaturesymbol") or str(record["uid"]),
        name=record.get("description") or record.get("nomenclaturename") or "",
        description=record.get("summary") or None,
        chromosome=record.get("chromosome") or "",
        ensembl_id=ensembl_id,
        location=record.get("maplocation") or None,
    )


def normalize_paper(record: Dict[str, Any]) -> ResearchPaper:
    doi = next(
        (article_id.get("value") for article_id in record.get("articleids") or []
         if article_id.get("idtype") == "doi"),
        None,
    )
    return ResearchPaper(
        id=str(record["uid"]),
        title=record.get("title") or "",
        authors=[author.get("name", "") for author in record.get("authors") or [] if author.get("name")],
        journal=record.get("fulljournalname") or record.get("source") or "",
        publication_date=_iso_date(record.get("sortpubdate") or record.get("pubdate")),
        pmid=str(record["uid"]),
        doi=doi,
    )


def normalize_variant(record: Dict[str, Any]) -> Variant:
    # Newer ClinVar summaries report germline_classification instead of clinical_significance.
    classification = record.get("germline_classification") or record.get("clinical_significance") or {}
    if isinstance(classification, dict):
        classification = classification.get("description")
    variation = (record.get("variation_set") or [{}])[0]
    genes = record.get("genes") or []
    return Variant(
        id=str(record["uid"]),
        hgvs_notation=variation.get("variation_name") or record.get("title") or "",
        clinical_significance=normalize_clinical_significance(classification),
        variant_type=variation.get("variant_type") or record.get("obj_type") or None,
        gene_id=str(genes[0]["geneid"]) if genes and genes[0].get("geneid") else None,
    )


class NCBIClient:
    """
    Async E-utilities client.

    A single httpx.AsyncClient is shared by all requests; an asyncio.Lock
    spaces consecutive requests at least 1/rate_limit seconds apart.
    """

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._min_interval = 1.0 / settings.ncbi_rate_limit
        self._rate_lock = asyncio.Lock()
        self._last_request = 0.0

    async def open(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.ncbi_base_url,
                timeout=httpx.Timeout(self.settings.ncbi_timeout, connect=self.settings.connection_timeout),
                headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
                follow_redirects=True,
            )
            self._owns_client = True

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "NCBIClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def _params(self, **params: Any) -> Dict[str, Any]:
        params["retmode"] = "json"
        if self.settings.ncbi_api_key is not None:
            params["api_key"] = self.settings.ncbi_api_key.get_secret_value()
        return params

    async def _wait_for_slot(self) -> None:
        async with self._rate_lock:
            delay = self._last_request + self._min_interval - time.monotonic()
            if delay > 0:
                await asyncio.sleep(delay)
            self._last_request = time.monotonic()

    async def _get(self, endpoint: str, **params: Any) -> Dict[str, Any]:
        await self.open()
        await self._wait_for_slot()
        try:
            response = await self._client.get(endpoint, params=self._params(**params))
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            raise OperationTimeoutError(f"NCBI {endpoint} timed out after {self.settings.ncbi_timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise UpstreamServiceError(
                f"NCBI API error: {e.response.status_code} {e.response.reason_phrase}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamServiceError(f"NCBI request failed: {e}") from e
        except ValueError as e:
            raise UpstreamServiceError(f"NCBI returned malformed JSON from {endpoint}") from e

    async def esearch(self, db: str, term: str, limit: int = 20) -> List[str]:
        """Returns the ids of records in `db` matching `term`."""
        data = await self._get("esearch.fcgi", db=db, term=term, retmax=limit)
        return list(data.get("esearchresult", {}).get("idlist", []))

    async def esummary(self, db: str, ids: List[str]) -> List[Dict[str, Any]]:
        """Returns summary records for `ids` in the order they were requested."""
        if not ids:
            return []
        data = await self._get("esummary.fcgi", db=db, id=",".join(ids))
        result = data.get("result", {})
        return [result[uid] for uid in ids if isinstance(result.get(uid), dict)]

    async def search_genes(self, term: str, limit: int = 20) -> List[Gene]:
        records = await self.esummary("gene", await self.esearch("gene", term, limit))
        return [normalize_gene(record) for record in records if "error" not in record]

    async def search_papers(self, term: str, limit: int = 20) -> List[ResearchPaper]:
        records = await self.esummary("pubmed", await self.esearch("pubmed", term, limit))
        return [normalize_paper(record) for record in records if "error" not in record]

    async def search_variants(self, term: str, limit: int = 20) -> List[Variant]:
        records = await self.esummary("clinvar", await self.esearch("clinvar", term, limit))
        return [normalize_variant(record) for record in records if "error" not in record]
