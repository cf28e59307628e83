# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Declarative schemas: the graph's node and relationship types, the standard
index set, and the shape and constraints of every search query.

Query validation applies defaults and clamps pagination here, so every
caller observes the same behavior, and reports every violated field at once.
"""
from datetime import date
from typing import Annotated, Any, Dict, List, Mapping, NamedTuple, Optional, Tuple, Type, TypeVar

from pydantic import (
    AfterValidator, BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator, model_validator,
)
from pydantic.alias_generators import to_camel

from .errors import SchemaValidationError, Violation
from .models import ClinicalSignificance, TrialPhase, TrialStatus

MIN_LIMIT = 1
MAX_LIMIT = 100
DEFAULT_LIMIT = 10
MAX_TEXT_LENGTH = 200


# --- Graph schema ---

class NodeType(NamedTuple):
    label: str
    properties: Dict[str, str]  # property -> logical type (STRING, DOUBLE, BOOLEAN, STRING[])
    primary_key: str = "id"


class RelationshipType(NamedTuple):
    label: str
    from_label: str
    to_label: str
    properties: Dict[str, str] = {}


NODE_TYPES: Dict[str, NodeType] = {
    node.label: node for node in [
        NodeType("Gene", {
            "id": "STRING", "symbol": "STRING", "name": "STRING", "description": "STRING",
            "chromosome": "STRING", "ensemblId": "STRING", "location": "STRING", "lastUpdated": "STRING",
        }),
        NodeType("Variant", {
            "id": "STRING", "hgvsNotation": "STRING", "clinicalSignificance": "STRING",
            "populationFrequency": "DOUBLE", "variantType": "STRING", "geneId": "STRING",
        }),
        NodeType("ClinicalTrial", {
            "id": "STRING", "name": "STRING", "status": "STRING", "phase": "STRING",
            "startDate": "STRING", "endDate": "STRING", "locations": "STRING[]",
            "targetGenes": "STRING[]", "region": "STRING", "multicentric": "BOOLEAN",
        }),
        NodeType("ResearchPaper", {
            "id": "STRING", "title": "STRING", "authors": "STRING[]", "journal": "STRING",
            "publicationDate": "STRING", "abstract": "STRING", "pmid": "STRING", "doi": "STRING",
            "keywords": "STRING[]",
        }),
        NodeType("Treatment", {"id": "STRING", "name": "STRING", "mechanism": "STRING"}),
        NodeType("Disease", {"id": "STRING", "name": "STRING"}),
    ]
}

RELATIONSHIP_TYPES: Dict[str, RelationshipType] = {
    rel.label: rel for rel in [
        RelationshipType("HAS_VARIANT", "Gene", "Variant", {"frequency": "DOUBLE", "clinicalImpact": "STRING"}),
        RelationshipType("TARGETED_BY", "Treatment", "Gene", {"mechanism": "STRING", "efficacy": "DOUBLE"}),
        RelationshipType("MENTIONS", "ResearchPaper", "Gene"),
        RelationshipType("TARGETS", "ClinicalTrial", "Gene"),
        RelationshipType("ASSOCIATED_WITH", "Gene", "Disease"),
    ]
}

# (label, property) pairs indexed by initialize_schema()
STANDARD_INDEXES: List[Tuple[str, str]] = [
    ("Gene", "symbol"),
    ("Gene", "chromosome"),
    ("Variant", "clinicalSignificance"),
    ("ClinicalTrial", "status"),
    ("ClinicalTrial", "startDate"),
    ("ResearchPaper", "publicationDate"),
    ("Disease", "name"),
]

GENE_IMPORT_COLUMNS = ["id", "symbol", "name", "description", "chromosome", "ensemblId", "location"]
GENE_REQUIRED_COLUMNS = ["id", "symbol", "name", "chromosome"]


# --- Query schemas ---

def _clamp_limit(value: int) -> int:
    return max(MIN_LIMIT, min(MAX_LIMIT, value))


def _clamp_offset(value: int) -> int:
    return max(0, value)


Limit = Annotated[int, AfterValidator(_clamp_limit)]
Offset = Annotated[int, AfterValidator(_clamp_offset)]
FilterText = Optional[Annotated[str, Field(max_length=MAX_TEXT_LENGTH)]]
_PAGINATION_DEFAULTS = {"limit": DEFAULT_LIMIT, "offset": 0}


class BaseQuery(BaseModel):
    """
    Pagination shared by every query: limit is clamped to [1, 100] (default 10),
    offset is clamped to >= 0 (default 0).
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        str_strip_whitespace=True,
    )

    limit: Limit = DEFAULT_LIMIT
    offset: Offset = 0

    @field_validator("*", mode="before")
    @classmethod
    def _blank_is_missing(cls, value: Any, info: ValidationInfo) -> Any:
        if isinstance(value, str) and not value.strip():
            value = None
        if value is None and info.field_name in _PAGINATION_DEFAULTS:
            return _PAGINATION_DEFAULTS[info.field_name]
        return value

    def filters(self) -> Dict[str, Any]:
        """The filters that were actually supplied, keyed by field name."""
        return {
            name: value
            for name, value in self.model_dump(exclude={"limit", "offset"}).items()
            if value is not None
        }


class SearchQuery(BaseQuery):
    """Free-text search used by the simple search endpoints."""
    text: FilterText = None


class GeneQuery(BaseQuery):
    symbol: FilterText = None
    chromosome: Optional[Annotated[str, Field(max_length=8)]] = None
    keyword: FilterText = None
    associated_disease: FilterText = None
    has_clinical_trials: Optional[bool] = None


class PaperQuery(BaseQuery):
    keyword: FilterText = None
    journal: FilterText = None
    author: FilterText = None
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    mentions_gene: FilterText = None

    @model_validator(mode="after")
    def _dates_in_order(self) -> "PaperQuery":
        if self.from_date and self.to_date and self.from_date > self.to_date:
            raise ValueError("fromDate must not be after toDate")
        return self


class TrialQuery(BaseQuery):
    status: Optional[TrialStatus] = None
    phase: Optional[TrialPhase] = None
    region: FilterText = None
    target_gene: FilterText = None
    multicentric: Optional[bool] = None


class VariantQuery(BaseQuery):
    gene_id: FilterText = None
    hgvs: FilterText = None
    significance: Optional[ClinicalSignificance] = None
    min_frequency: Optional[float] = Field(None, ge=0.0, le=1.0)
    max_frequency: Optional[float] = Field(None, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _frequency_range(self) -> "VariantQuery":
        if (
            self.min_frequency is not None
            and self.max_frequency is not None
            and self.min_frequency > self.max_frequency
        ):
            raise ValueError("minFrequency must not exceed maxFrequency")
        return self


ModelT = TypeVar("ModelT", bound=BaseModel)


def violations_from(error: ValidationError) -> List[Violation]:
    """Flattens a pydantic ValidationError into (field path, reason) pairs."""
    violations = []
    for err in error.errors():
        path = ".".join(str(part) for part in err["loc"]) or "__root__"
        reason = err["msg"]
        if reason.startswith("Value error, "):
            reason = reason[len("Value error, "):]
        violations.append(Violation(path, reason))
    return violations


def validate(schema: Type[ModelT], raw: Optional[Mapping[str, Any]]) -> ModelT:
    """
    Validates `raw` against `schema`, applying defaults.
    Raises SchemaValidationError carrying every violated field.
    """
    if raw is None:
        raw = {}
    if isinstance(raw, schema):
        return raw
    if not isinstance(raw, Mapping):
        raise SchemaValidationError([Violation("__root__", "expected an object")], subject=schema.__name__)
    try:
        return schema.model_validate(dict(raw))
    except ValidationError as e:
        raise SchemaValidationError(violations_from(e), subject=schema.__name__) from e


def validate_count_filters(entity_type: str, filters: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Checks that `entity_type` is a known node label and every filter names one of
    its properties with a scalar value. Returns the filters with None values dropped.
    """
    filters = dict(filters or {})
    violations = []
    node_type = NODE_TYPES.get(entity_type)
    if node_type is None:
        violations.append(Violation("entityType", f"unknown entity type '{entity_type}'; expected one of {sorted(NODE_TYPES)}"))
    for key, value in filters.items():
        if node_type is not None and key not in node_type.properties:
            violations.append(Violation(f"filters.{key}", f"'{key}' is not a property of {entity_type}"))
        elif value is not None and not isinstance(value, (str, int, float, bool)):
            violations.append(Violation(f"filters.{key}", "filter values must be scalars"))
    if violations:
        raise SchemaValidationError(violations, subject="count filters")
    return {key: value for key, value in filters.items() if value is not None}
