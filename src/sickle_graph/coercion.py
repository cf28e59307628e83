# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Converts backend-native result values into plain Python values.

Handles the value shapes returned by both drivers:

* Neo4j: neo4j.graph.Node / Relationship / Path objects and neo4j.time types.
* Kùzu: nodes, relationships and recursive relationships arrive as dicts
  tagged with internal keys (_id/_label, _src/_dst, _nodes/_rels).

to_plain() is total: a value it does not recognize is returned unchanged.
"""
import decimal
import numbers
import uuid
import warnings
from typing import Any, Dict, List, Mapping

from neo4j.graph import Node, Path, Relationship

from .errors import PrecisionLossWarning

KUZU_ID = "_id"
KUZU_LABEL = "_label"
KUZU_SRC = "_src"
KUZU_DST = "_dst"
KUZU_NODES = "_nodes"
KUZU_RELS = "_rels"


def _kuzu_internal_id(value: Any) -> Any:
    # Kùzu internal ids are {"table": t, "offset": o}
    if isinstance(value, Mapping) and "table" in value and "offset" in value:
        return f"{value['table']}:{value['offset']}"
    return value


def _is_kuzu_node(value: Mapping) -> bool:
    return KUZU_ID in value and KUZU_LABEL in value and KUZU_SRC not in value


def _is_kuzu_relationship(value: Mapping) -> bool:
    return KUZU_SRC in value and KUZU_DST in value


def _is_kuzu_path(value: Mapping) -> bool:
    return KUZU_NODES in value and KUZU_RELS in value


def _with_identity(identity: Any, properties: Mapping) -> Dict[str, Any]:
    # Declared properties win over the injected backend identity, so a
    # caller-assigned "id" property is never shadowed.
    plain = {"id": identity}
    plain.update({key: to_plain(value) for key, value in properties.items()})
    return plain


def _coerce_number(value: Any) -> Any:
    if isinstance(value, decimal.Decimal):
        if value.is_nan() or value.is_infinite():
            return float(value)
        if value == value.to_integral_value():
            return int(value)
        converted = float(value)
        if decimal.Decimal(converted) != value:
            warnings.warn(
                f"Decimal value {value} cannot be represented exactly as float; using {converted!r}",
                PrecisionLossWarning,
                stacklevel=3,
            )
        return converted
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Real):
        return float(value)
    return value


def _neo4j_node(node: Node) -> Dict[str, Any]:
    return _with_identity(node.element_id, dict(node))


def _neo4j_relationship(rel: Relationship) -> Dict[str, Any]:
    plain = _with_identity(rel.element_id, dict(rel))
    plain.setdefault("type", rel.type)
    plain["startNodeId"] = rel.start_node.element_id if rel.start_node is not None else None
    plain["endNodeId"] = rel.end_node.element_id if rel.end_node is not None else None
    return plain


def _segments(nodes: List[Any], relationships: List[Any]) -> List[Dict[str, Any]]:
    return [
        {"start": to_plain(nodes[i]), "relationship": to_plain(rel), "end": to_plain(nodes[i + 1])}
        for i, rel in enumerate(relationships)
        if i + 1 < len(nodes)
    ]


def _neo4j_path(path: Path) -> Dict[str, Any]:
    nodes = list(path.nodes)
    return {
        "start": to_plain(path.start_node),
        "end": to_plain(path.end_node),
        "segments": _segments(nodes, list(path.relationships)),
    }


def _kuzu_node(value: Mapping) -> Dict[str, Any]:
    properties = {k: v for k, v in value.items() if k not in (KUZU_ID, KUZU_LABEL)}
    return _with_identity(_kuzu_internal_id(value[KUZU_ID]), properties)


def _kuzu_relationship(value: Mapping) -> Dict[str, Any]:
    properties = {
        k: v for k, v in value.items()
        if k not in (KUZU_ID, KUZU_LABEL, KUZU_SRC, KUZU_DST)
    }
    plain = _with_identity(_kuzu_internal_id(value.get(KUZU_ID)), properties)
    plain.setdefault("type", value.get(KUZU_LABEL))
    plain["startNodeId"] = _kuzu_internal_id(value[KUZU_SRC])
    plain["endNodeId"] = _kuzu_internal_id(value[KUZU_DST])
    return plain


def _kuzu_path(value: Mapping) -> Dict[str, Any]:
    nodes = list(value[KUZU_NODES] or [])
    rels = list(value[KUZU_RELS] or [])
    return {
        "start": to_plain(nodes[0]) if nodes else None,
        "end": to_plain(nodes[-1]) if nodes else None,
        "segments": _segments(nodes, rels),
    }


def to_plain(value: Any) -> Any:
    """
    Recursively converts one backend-native value into plain scalars,
    dicts and lists. Unrecognized shapes pass through unchanged.
    """
    if value is None or isinstance(value, (str, bool, int, float, bytes)):
        return value
    if isinstance(value, Node):
        return _neo4j_node(value)
    if isinstance(value, Relationship):
        return _neo4j_relationship(value)
    if isinstance(value, Path):
        return _neo4j_path(value)
    if isinstance(value, Mapping):
        if _is_kuzu_path(value):
            return _kuzu_path(value)
        if _is_kuzu_relationship(value):
            return _kuzu_relationship(value)
        if _is_kuzu_node(value):
            return _kuzu_node(value)
        return {key: to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(item) for item in value]
    if isinstance(value, (decimal.Decimal, numbers.Number)):
        return _coerce_number(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    to_native = getattr(value, "to_native", None)
    if callable(to_native):
        # neo4j.time.Date / DateTime / Time
        try:
            return to_native()
        except (ValueError, OverflowError):
            return value
    return value


def coerce_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Coerces every value of one result row."""
    return {key: to_plain(value) for key, value in row.items()}
