# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
HTTP surface of SickleGraph.

Errors are returned as JSON: 400 for validation failures, 404 for missing
entities and 500 {"error": message} for everything else. Stack traces are
never included in a response.
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from rich.console import Console

from .errors import NotFoundError, SchemaValidationError, SickleGraphError, ValidationError
from .service import SickleGraphService

console = Console()

IMPORT_TYPES = {"genes"}


class ImportRequest(BaseModel):
    type: Optional[str] = None
    data: Optional[str] = None


def get_service(request: Request) -> SickleGraphService:
    return request.app.state.service


def _error(status_code: int, message: str, **extra: Any) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


def create_app(service: SickleGraphService, manage_lifecycle: bool = True) -> FastAPI:
    """
    Builds the FastAPI application around an existing service.
    With manage_lifecycle the service is started and stopped with the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if manage_lifecycle:
            await service.start()
        try:
            yield
        finally:
            if manage_lifecycle:
                await service.stop()

    app = FastAPI(
        title="SickleGraph",
        description="Biomedical knowledge graph of genes, variants, clinical trials and research papers.",
        lifespan=lifespan,
    )
    app.state.service = service

    @app.exception_handler(SchemaValidationError)
    async def schema_error(request: Request, exc: SchemaValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        violations = [
            {"field": ".".join(str(part) for part in err["loc"]), "reason": err["msg"]}
            for err in exc.errors()
        ]
        return _error(400, "Invalid request", violations=violations)

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _error(400, str(exc))

    @app.exception_handler(NotFoundError)
    async def not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, str(exc))

    @app.exception_handler(SickleGraphError)
    async def service_error(request: Request, exc: SickleGraphError) -> JSONResponse:
        console.log(f"[red]{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}[/red]")
        return _error(500, str(exc))

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        console.log(f"[red]{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}[/red]")
        return _error(500, str(exc) or type(exc).__name__)

    @app.get("/health")
    async def health(svc: SickleGraphService = Depends(get_service)) -> Dict[str, Any]:
        return {"status": "ok", "backend": svc.adapter.source, "state": svc.adapter.state.value}

    @app.get("/genes")
    async def search_genes(
        q: Optional[str] = None,
        limit: int = Query(10),
        svc: SickleGraphService = Depends(get_service),
    ) -> List[Dict[str, Any]]:
        return await svc.search_genes(q, limit)

    @app.get("/genes/{gene_id}")
    async def get_gene(gene_id: str, svc: SickleGraphService = Depends(get_service)) -> Dict[str, Any]:
        gene = await svc.get_gene(gene_id)
        if gene is None:
            raise NotFoundError("Gene not found")
        return gene

    @app.get("/variants/{variant_id}/trials")
    async def trials_for_variant(
        variant_id: str,
        region: str = "Africa",
        svc: SickleGraphService = Depends(get_service),
    ) -> List[Dict[str, Any]]:
        return await svc.find_trials_for_variant(variant_id, region)

    @app.get("/papers")
    async def search_papers(
        q: Optional[str] = None,
        limit: int = Query(10),
        svc: SickleGraphService = Depends(get_service),
    ) -> List[Dict[str, Any]]:
        return await svc.search_papers(q, limit)

    @app.get("/stats")
    async def stats(svc: SickleGraphService = Depends(get_service)) -> Dict[str, Dict[str, int]]:
        return await svc.get_stats()

    @app.post("/data/import")
    async def import_data(
        payload: ImportRequest,
        svc: SickleGraphService = Depends(get_service),
    ) -> Dict[str, Any]:
        if not payload.type or not payload.data:
            return _error(400, "Missing type or data")
        if payload.type not in IMPORT_TYPES:
            return _error(400, f"Invalid data type '{payload.type}'; expected one of {sorted(IMPORT_TYPES)}")
        imported = await svc.import_gene_data(payload.data)
        return {"status": "success", "imported": imported}

    return app
