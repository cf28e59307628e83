import decimal
import uuid
import warnings
from unittest.mock import MagicMock

import pytest
from neo4j.graph import Graph, Node, Path, Relationship

from sickle_graph.coercion import coerce_row, to_plain
from sickle_graph.errors import PrecisionLossWarning

KUZU_GENE = {"_id": {"table": 0, "offset": 4}, "_label": "Gene", "id": "gene-hbb", "symbol": "HBB"}
KUZU_VARIANT = {"_id": {"table": 1, "offset": 0}, "_label": "Variant", "id": "var-hbs", "hgvsNotation": "c.20A>T"}
KUZU_EDGE = {
    "_id": {"table": 6, "offset": 2}, "_label": "HAS_VARIANT",
    "_src": {"table": 0, "offset": 4}, "_dst": {"table": 1, "offset": 0},
    "frequency": 0.12,
}


def _neo4j_node(element_id, properties):
    """A stand-in for a driver Node that passes isinstance checks."""
    node = MagicMock(spec=Node)
    node.element_id = element_id
    node.keys.return_value = list(properties)
    node.__getitem__.side_effect = properties.__getitem__
    return node


def test_scalars_pass_through():
    for value in (None, "HBB", True, 3, 0.5, b"raw"):
        assert to_plain(value) == value


def test_kuzu_node_keeps_declared_id():
    """A node's own id property wins over the backend's internal identity."""
    assert to_plain(KUZU_GENE) == {"id": "gene-hbb", "symbol": "HBB"}


def test_kuzu_node_without_id_property_gets_internal_identity():
    plain = to_plain({"_id": {"table": 2, "offset": 9}, "_label": "Disease", "name": "Sickle cell disease"})
    assert plain == {"id": "2:9", "name": "Sickle cell disease"}


def test_kuzu_relationship():
    plain = to_plain(KUZU_EDGE)
    assert plain["type"] == "HAS_VARIANT"
    assert plain["startNodeId"] == "0:4"
    assert plain["endNodeId"] == "1:0"
    assert plain["frequency"] == 0.12
    assert "_src" not in plain


def test_kuzu_path_is_split_into_segments():
    path = {"_nodes": [KUZU_GENE, KUZU_VARIANT], "_rels": [KUZU_EDGE]}
    plain = to_plain(path)
    assert plain["start"]["id"] == "gene-hbb"
    assert plain["end"]["id"] == "var-hbs"
    assert len(plain["segments"]) == 1
    assert plain["segments"][0]["relationship"]["type"] == "HAS_VARIANT"


def test_neo4j_node_becomes_property_dict():
    node = _neo4j_node("4:abc:7", {"symbol": "HBB"})
    assert to_plain(node) == {"id": "4:abc:7", "symbol": "HBB"}


def test_neo4j_relationship_records_endpoints():
    start = _neo4j_node("4:abc:1", {"id": "gene-hbb"})
    end = _neo4j_node("4:abc:2", {"id": "var-hbs"})
    rel = MagicMock(spec=Relationship)
    rel.element_id = "5:abc:3"
    rel.type = "HAS_VARIANT"
    rel.start_node = start
    rel.end_node = end
    rel.keys.return_value = ["frequency"]
    rel.__getitem__.side_effect = {"frequency": 0.12}.__getitem__

    plain = to_plain(rel)

    assert plain == {
        "id": "5:abc:3", "frequency": 0.12, "type": "HAS_VARIANT",
        "startNodeId": "4:abc:1", "endNodeId": "4:abc:2",
    }


def test_neo4j_path_is_split_into_segments():
    graph = Graph()
    gene = Node(graph, "4:abc:1", 1, ["Gene"], {"id": "gene-hbb"})
    variant = Node(graph, "4:abc:2", 2, ["Variant"], {"id": "var-hbs"})
    rel = graph.relationship_type("HAS_VARIANT")(graph, "5:abc:3", 3, {"frequency": 0.12})
    # The driver's hydration wires endpoints the same way.
    rel._start_node, rel._end_node = gene, variant

    plain = to_plain(Path(gene, rel))

    assert plain["start"] == {"id": "gene-hbb"}
    assert plain["end"] == {"id": "var-hbs"}
    assert plain["segments"] == [{
        "start": {"id": "gene-hbb"},
        "relationship": {
            "id": "5:abc:3", "frequency": 0.12, "type": "HAS_VARIANT",
            "startNodeId": "4:abc:1", "endNodeId": "4:abc:2",
        },
        "end": {"id": "var-hbs"},
    }]


def test_nested_containers_are_coerced():
    row = {"g": KUZU_GENE, "symbols": ("HBB", "HBA1"), "meta": {"n": [KUZU_VARIANT]}}
    plain = coerce_row(row)
    assert plain["g"] == {"id": "gene-hbb", "symbol": "HBB"}
    assert plain["symbols"] == ["HBB", "HBA1"]
    assert plain["meta"]["n"][0]["id"] == "var-hbs"


def test_exact_decimals_become_native_numbers():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        assert to_plain(decimal.Decimal("42")) == 42
        assert isinstance(to_plain(decimal.Decimal("42")), int)
        assert to_plain(decimal.Decimal("0.5")) == 0.5


def test_inexact_decimal_warns_about_precision():
    with pytest.warns(PrecisionLossWarning):
        value = to_plain(decimal.Decimal("0.1000000000000000000000001"))
    assert value == pytest.approx(0.1)


def test_uuid_becomes_string():
    value = uuid.UUID("12345678-1234-5678-1234-567812345678")
    assert to_plain(value) == "12345678-1234-5678-1234-567812345678"


def test_temporal_values_use_to_native():
    temporal = MagicMock()
    temporal.to_native.return_value = "2023-05-01"
    assert to_plain(temporal) == "2023-05-01"


def test_unknown_values_pass_through():
    marker = object()
    assert to_plain(marker) is marker
