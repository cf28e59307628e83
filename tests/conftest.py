import os

import pytest
from rich.console import Console
from testcontainers.neo4j import Neo4jContainer

from sickle_graph.adapters import KuzuAdapter, Neo4jAdapter
from sickle_graph.config import Settings
from sickle_graph.service import SickleGraphService

console = Console()

# --- Seed data shared by the adapter, service and API tests ---

GENES = [
    {"id": "gene-hbb", "symbol": "HBB", "name": "hemoglobin subunit beta", "chromosome": "11",
     "description": "Beta globin chain of adult hemoglobin", "location": "11p15.4"},
    {"id": "gene-hba1", "symbol": "HBA1", "name": "hemoglobin subunit alpha 1", "chromosome": "16"},
    {"id": "gene-bcl11a", "symbol": "BCL11A", "name": "BAF chromatin remodeling complex subunit BCL11A",
     "chromosome": "2", "description": "Transcription factor that represses fetal globin expression"},
]

VARIANTS = [
    {"id": "var-hbs", "hgvsNotation": "NM_000518.5:c.20A>T", "clinicalSignificance": "Pathogenic",
     "populationFrequency": 0.12, "variantType": "single nucleotide variant", "geneId": "gene-hbb"},
    {"id": "var-hbc", "hgvsNotation": "NM_000518.5:c.19G>A", "clinicalSignificance": "likely pathogenic",
     "populationFrequency": 0.02, "geneId": "gene-hbb"},
]

TRIALS = [
    {"id": "trial-ghana", "name": "Hydroxyurea dose escalation in Ghana", "status": "Recruiting", "phase": "Phase 2",
     "startDate": "2022-01-10", "region": "West Africa", "targetGenes": ["HBB"], "locations": ["Kumasi"]},
    {"id": "trial-global", "name": "Global gene therapy follow-up", "status": "Active, not recruiting", "phase": "3",
     "startDate": "2023-03-01", "region": "North America", "multicentric": True, "targetGenes": ["HBB"]},
    {"id": "trial-us", "name": "Single-site lentiviral study", "status": "Completed", "phase": "I",
     "startDate": "2021-06-01", "region": "North America", "targetGenes": ["HBB"]},
    {"id": "trial-kenya", "name": "BCL11A enhancer editing in Kenya", "status": "Recruiting", "phase": "II",
     "startDate": "2020-02-15", "region": "East Africa", "targetGenes": ["BCL11A"]},
]

PAPERS = [
    ({"id": "paper-1", "title": "Newborn screening for sickle cell disease in Nigeria",
      "authors": ["Adeyemi A", "Okafor C"], "journal": "Blood", "publicationDate": "2023-05-01",
      "abstract": "Screening outcomes for HbSS newborns."}, ["gene-hbb"]),
    ({"id": "paper-2", "title": "CRISPR editing of the BCL11A erythroid enhancer",
      "authors": ["Frangoul H"], "journal": "New England Journal of Medicine", "publicationDate": "2021-01-21"},
     ["gene-bcl11a"]),
]


class FakeClock:
    """A controllable monotonic clock for cache expiry tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_settings(tmp_path, **overrides) -> Settings:
    """Settings for an isolated Kùzu database under tmp_path, ignoring any local .env file."""
    values = {"backend": "kuzu", "kuzu_db_path": str(tmp_path / "graph.kuzu")}
    values.update(overrides)
    return Settings(_env_file=None, **values)


async def seed(adapter) -> None:
    """Loads the shared seed data through the adapter's write API."""
    for gene in GENES:
        await adapter.upsert_gene(gene)
    for variant in VARIANTS:
        await adapter.upsert_variant(variant)
    for trial in TRIALS:
        await adapter.upsert_trial(trial)
    for paper, mentions in PAPERS:
        await adapter.upsert_paper(paper, mentions)
    await adapter.upsert_treatment({"id": "tx-hydroxyurea", "name": "Hydroxyurea", "mechanism": "HbF induction"})
    await adapter.link_treatment_gene("tx-hydroxyurea", "gene-hbb", mechanism="HbF induction", efficacy=0.7)
    await adapter.upsert_disease({"id": "disease-scd", "name": "Sickle cell disease"})
    await adapter.link_gene_disease("gene-hbb", "disease-scd")


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keeps SICKLEGRAPH_* variables of the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("SICKLEGRAPH_"):
            monkeypatch.delenv(name)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
async def adapter(settings):
    """A ready Kùzu adapter with the schema created and no data."""
    adapter = KuzuAdapter(settings)
    await adapter.initialize()
    await adapter.initialize_schema()
    yield adapter
    await adapter.close()


@pytest.fixture
async def seeded_adapter(adapter):
    """The Kùzu adapter loaded with the shared seed data."""
    await seed(adapter)
    return adapter


@pytest.fixture
async def service(settings):
    """A started service over Kùzu, seeded, without an NCBI client."""
    service = SickleGraphService(settings)
    await service.start()
    await seed(service.adapter)
    yield service
    await service.stop()


@pytest.fixture(scope="session")
def neo4j_container():
    """
    Starts a Neo4j container for the test session.
    Tests depending on it are skipped when Docker is not available.
    """
    container = Neo4jContainer(image="neo4j:5.18")
    try:
        container.start()
    except Exception as e:
        pytest.skip(f"Neo4j container could not be started: {e}")
    console.log(f"[green]Neo4j container started at {container.get_connection_url()}[/green]")
    yield container
    container.stop()


@pytest.fixture
async def neo4j_adapter(neo4j_container, tmp_path):
    """A ready Neo4j adapter on an emptied database with the schema created."""
    settings = Settings(
        _env_file=None,
        backend="neo4j",
        neo4j_uri=neo4j_container.get_connection_url(),
        neo4j_user=neo4j_container.username,
        neo4j_password=neo4j_container.password,
    )
    adapter = Neo4jAdapter(settings)
    await adapter.initialize()
    await adapter.execute_query("MATCH (n) DETACH DELETE n")
    await adapter.initialize_schema()
    yield adapter
    await adapter.close()
