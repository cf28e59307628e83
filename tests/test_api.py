from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from sickle_graph.api import create_app
from sickle_graph.errors import QueryExecutionError
from sickle_graph.service import SickleGraphService


@pytest.fixture
async def client(service):
    """An HTTP client bound to the app around the seeded, already-started service."""
    app = create_app(service, manage_lifecycle=False)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


def test_lifespan_starts_and_stops_the_service(settings):
    service = SickleGraphService(settings)
    with TestClient(create_app(service)) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok", "backend": "kuzu", "state": "ready"}
    assert service.adapter.state.value == "closed"


async def test_search_genes(client):
    response = await client.get("/genes", params={"q": "HBB", "limit": 5})
    assert response.status_code == 200
    assert [g["id"] for g in response.json()] == ["gene-hbb"]


async def test_get_gene(client):
    response = await client.get("/genes/gene-hbb")
    assert response.status_code == 200
    body = response.json()
    assert body["symbol"] == "HBB"
    assert {v["id"] for v in body["variants"]} == {"var-hbs", "var-hbc"}


async def test_missing_gene_is_404(client):
    response = await client.get("/genes/gene-missing")
    assert response.status_code == 404
    assert response.json() == {"error": "Gene not found"}


async def test_trials_for_variant_default_region(client):
    response = await client.get("/variants/var-hbs/trials")
    assert response.status_code == 200
    assert [t["id"] for t in response.json()] == ["trial-global", "trial-ghana"]


async def test_search_papers_and_stats(client):
    papers = await client.get("/papers", params={"q": "sickle"})
    assert [p["id"] for p in papers.json()] == ["paper-1"]

    stats = await client.get("/stats")
    assert stats.json()["nodes"]["Gene"] == 3


async def test_non_integer_limit_is_400(client):
    response = await client.get("/genes", params={"q": "HBB", "limit": "ten"})
    assert response.status_code == 400
    assert response.json()["violations"][0]["field"] == "query.limit"


async def test_import_genes(client):
    payload = {"type": "genes", "data": "id,symbol,name,chromosome\ngene-hbg2,HBG2,hemoglobin subunit gamma 2,11\n"}
    response = await client.post("/data/import", json=payload)
    assert response.status_code == 200
    assert response.json() == {"status": "success", "imported": 1}

    genes = await client.get("/genes", params={"q": "HBG2"})
    assert [g["id"] for g in genes.json()] == ["gene-hbg2"]


@pytest.mark.parametrize("payload, message", [
    ({"type": "genes"}, "Missing type or data"),
    ({"data": "id,symbol\n"}, "Missing type or data"),
    ({"type": "proteins", "data": "id\nP1\n"}, "Invalid data type 'proteins'"),
])
async def test_bad_import_requests_are_400(client, payload, message):
    response = await client.post("/data/import", json=payload)
    assert response.status_code == 400
    assert message in response.json()["error"]


async def test_import_schema_violation_lists_fields(client):
    response = await client.post("/data/import", json={"type": "genes", "data": "id,symbol\ngene-x,X\n"})
    assert response.status_code == 400
    fields = {v["field"] for v in response.json()["violations"]}
    assert fields == {"name", "chromosome"}


async def test_backend_failure_is_500_without_traceback(client, service):
    failure = QueryExecutionError("MATCH (g:Gene) RETURN g", "Buffer manager exception: out of memory")
    with patch.object(service.adapter, "search_genes", side_effect=failure):
        response = await client.get("/genes", params={"q": "HBB"})
    assert response.status_code == 500
    body = response.json()
    assert "out of memory" in body["error"]
    assert "Traceback" not in body["error"]
