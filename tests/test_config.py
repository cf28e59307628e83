import pytest

from sickle_graph.adapters import KuzuAdapter, Neo4jAdapter, create_adapter
from sickle_graph.config import Settings, load_settings
from sickle_graph.errors import ConfigurationError


def test_defaults(monkeypatch, tmp_path):
    """With no environment, the embedded backend and documented defaults are used."""
    monkeypatch.chdir(tmp_path)
    settings = load_settings()
    assert settings.backend == "kuzu"
    assert settings.cache_ttl == 60
    assert settings.query_timeout == 30.0
    assert settings.max_concurrency == 5
    assert settings.neo4j_password is None


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SICKLEGRAPH_KUZU_DB_PATH", str(tmp_path / "env.kuzu"))
    monkeypatch.setenv("SICKLEGRAPH_CACHE_TTL", "5")
    monkeypatch.setenv("SICKLEGRAPH_NCBI_API_KEY", "secret-key")

    settings = load_settings()

    assert settings.kuzu_db_path == str(tmp_path / "env.kuzu")
    assert settings.cache_ttl == 5
    assert settings.ncbi_api_key.get_secret_value() == "secret-key"
    assert "secret-key" not in repr(settings)


def test_dotenv_file_is_read(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("SICKLEGRAPH_API_PORT=8080\n")
    assert load_settings().api_port == 8080


def test_neo4j_requires_credentials(monkeypatch, tmp_path):
    """Selecting Neo4j without credentials names every missing field."""
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(backend="neo4j")
    message = str(exc_info.value)
    assert "neo4j_user" in message
    assert "neo4j_password" in message


def test_invalid_values_are_all_reported(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ConfigurationError) as exc_info:
        load_settings(backend="sqlite", cache_ttl=-1, api_port=0)
    assert len(exc_info.value.problems) == 3


def test_create_adapter_selects_backend(tmp_path):
    kuzu_settings = Settings(_env_file=None, kuzu_db_path=str(tmp_path / "g.kuzu"))
    assert isinstance(create_adapter(kuzu_settings), KuzuAdapter)

    neo4j_settings = Settings(_env_file=None, backend="neo4j", neo4j_user="neo4j", neo4j_password="pw")
    assert isinstance(create_adapter(neo4j_settings), Neo4jAdapter)
