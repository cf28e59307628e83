# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""SickleGraph: a biomedical knowledge graph access layer over Kùzu or Neo4j."""
from .adapters import GraphAdapter, create_adapter
from .config import Settings, load_settings
from .service import SickleGraphService

__version__ = "0.1.0"

__all__ = ["GraphAdapter", "SickleGraphService", "Settings", "create_adapter", "load_settings"]
