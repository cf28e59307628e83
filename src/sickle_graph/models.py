# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ClinicalSignificance(str, Enum):
    PATHOGENIC = "pathogenic"
    LIKELY_PATHOGENIC = "likely_pathogenic"
    UNCERTAIN_SIGNIFICANCE = "uncertain_significance"
    LIKELY_BENIGN = "likely_benign"
    BENIGN = "benign"
    UNKNOWN = "unknown"


class TrialStatus(str, Enum):
    RECRUITING = "recruiting"
    ACTIVE = "active"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


class TrialPhase(str, Enum):
    I = "I"
    II = "II"
    III = "III"
    IV = "IV"
    NA = "NA"


class GraphEntity(BaseModel):
    """
    Base for every node stored in the graph.
    Python attributes are snake_case; graph properties are camelCase.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        extra="ignore",
    )

    id: str = Field(..., min_length=1)

    def to_properties(self) -> Dict[str, Any]:
        """Returns the node's properties keyed by their graph (camelCase) names."""
        return self.model_dump(by_alias=True)


class Gene(GraphEntity):
    """
    Represents a gene. This is a node in the graph with the :Gene label.
    """
    symbol: str = Field(..., min_length=1, max_length=64)
    name: str = ""
    description: Optional[str] = None
    chromosome: str = ""
    ensembl_id: Optional[str] = None
    location: Optional[str] = None
    last_updated: Optional[str] = None


class Variant(GraphEntity):
    """
    Represents a genetic variant in HGVS notation, owned by a Gene via HAS_VARIANT.
    """
    hgvs_notation: str
    clinical_significance: ClinicalSignificance = ClinicalSignificance.UNKNOWN
    population_frequency: Optional[float] = Field(None, ge=0.0, le=1.0)
    variant_type: Optional[str] = None
    gene_id: Optional[str] = None

    @field_validator("clinical_significance", mode="before")
    @classmethod
    def _normalize_significance(cls, value: Any) -> ClinicalSignificance:
        from .significance_mapper import normalize_clinical_significance
        return normalize_clinical_significance(value)


class ClinicalTrial(GraphEntity):
    """
    Represents a clinical trial. Linked to the genes it targets via TARGETS.
    """
    name: str
    status: TrialStatus = TrialStatus.UNKNOWN
    phase: TrialPhase = TrialPhase.NA
    start_date: str
    end_date: Optional[str] = None
    locations: List[str] = Field(default_factory=list)
    target_genes: List[str] = Field(default_factory=list)
    region: Optional[str] = None
    multicentric: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> TrialStatus:
        from .significance_mapper import normalize_trial_status
        return normalize_trial_status(value)

    @field_validator("phase", mode="before")
    @classmethod
    def _normalize_phase(cls, value: Any) -> TrialPhase:
        from .significance_mapper import normalize_trial_phase
        return normalize_trial_phase(value)


class ResearchPaper(GraphEntity):
    """
    Represents a publication. Linked to the genes it discusses via MENTIONS.
    """
    title: str
    authors: List[str] = Field(default_factory=list)
    journal: str = ""
    publication_date: str = ""
    abstract: Optional[str] = None
    pmid: Optional[str] = None
    doi: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)


class Treatment(GraphEntity):
    name: str
    mechanism: Optional[str] = None


class Disease(GraphEntity):
    name: str


class GeneDetail(BaseModel):
    """A gene together with its variants, treatments and mentioning papers."""
    gene: Dict[str, Any]
    variants: List[Dict[str, Any]] = Field(default_factory=list)
    treatments: List[Dict[str, Any]] = Field(default_factory=list)
    papers: List[Dict[str, Any]] = Field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.gene, "variants": self.variants, "treatments": self.treatments, "papers": self.papers}


class QueryMetadata(BaseModel):
    query_time: float
    result_count: int
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {"queryTime": self.query_time, "resultCount": self.result_count, "source": self.source}


class QueryResult(BaseModel):
    """
    Normalized result of one statement: plain rows plus execution metadata.
    """
    data: List[Dict[str, Any]]
    metadata: QueryMetadata

    def column(self, name: str) -> List[Any]:
        return [row.get(name) for row in self.data]

    def first(self) -> Optional[Dict[str, Any]]:
        return self.data[0] if self.data else None
