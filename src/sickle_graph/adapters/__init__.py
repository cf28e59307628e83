# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from typing import Optional

from ..cache import QueryCache
from ..config import Settings
from ..errors import ConfigurationError
from .base import AdapterState, GraphAdapter, render_literal
from .kuzu_adapter import KuzuAdapter
from .neo4j_adapter import Neo4jAdapter

BACKENDS = {
    "kuzu": KuzuAdapter,
    "neo4j": Neo4jAdapter,
}


def create_adapter(settings: Settings, cache: Optional[QueryCache] = None) -> GraphAdapter:
    """Builds an uninitialized adapter for the backend selected in `settings`."""
    try:
        adapter_class = BACKENDS[settings.backend]
    except KeyError as e:
        raise ConfigurationError([f"backend: unknown backend '{settings.backend}'"]) from e
    return adapter_class(settings, cache=cache)


__all__ = [
    "AdapterState", "GraphAdapter", "KuzuAdapter", "Neo4jAdapter", "create_adapter", "render_literal",
]
