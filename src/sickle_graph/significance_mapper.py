# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module maps free-text values reported by upstream sources and backends
onto the enumerations used by the graph.

Every ingestion boundary (upstream normalization, bulk import, model
construction) goes through these functions, so a field typed as an
enumeration never stores arbitrary text. Unrecognized input maps to the
explicit UNKNOWN member.

The ClinVar vocabulary is documented at:
https://www.ncbi.nlm.nih.gov/clinvar/docs/clinsig/
"""
import re
from typing import Any

from .models import ClinicalSignificance, TrialPhase, TrialStatus

# Free text (lowercased, separators collapsed to single spaces) -> enumeration
CLINICAL_SIGNIFICANCE_SYNONYMS = {
    "pathogenic": ClinicalSignificance.PATHOGENIC,
    "likely pathogenic": ClinicalSignificance.LIKELY_PATHOGENIC,
    "pathogenic likely pathogenic": ClinicalSignificance.LIKELY_PATHOGENIC,
    "pathogenic/likely pathogenic": ClinicalSignificance.LIKELY_PATHOGENIC,
    "uncertain significance": ClinicalSignificance.UNCERTAIN_SIGNIFICANCE,
    "uncertain": ClinicalSignificance.UNCERTAIN_SIGNIFICANCE,
    "vus": ClinicalSignificance.UNCERTAIN_SIGNIFICANCE,
    "variant of uncertain significance": ClinicalSignificance.UNCERTAIN_SIGNIFICANCE,
    "conflicting interpretations of pathogenicity": ClinicalSignificance.UNCERTAIN_SIGNIFICANCE,
    "conflicting classifications of pathogenicity": ClinicalSignificance.UNCERTAIN_SIGNIFICANCE,
    "likely benign": ClinicalSignificance.LIKELY_BENIGN,
    "benign likely benign": ClinicalSignificance.LIKELY_BENIGN,
    "benign/likely benign": ClinicalSignificance.LIKELY_BENIGN,
    "benign": ClinicalSignificance.BENIGN,
}

TRIAL_STATUS_SYNONYMS = {
    "recruiting": TrialStatus.RECRUITING,
    "not yet recruiting": TrialStatus.RECRUITING,
    "enrolling by invitation": TrialStatus.RECRUITING,
    "active": TrialStatus.ACTIVE,
    "active not recruiting": TrialStatus.ACTIVE,
    "completed": TrialStatus.COMPLETED,
}

TRIAL_PHASE_SYNONYMS = {
    "i": TrialPhase.I, "1": TrialPhase.I, "phase 1": TrialPhase.I, "phase i": TrialPhase.I,
    "early phase 1": TrialPhase.I, "phase1": TrialPhase.I,
    "ii": TrialPhase.II, "2": TrialPhase.II, "phase 2": TrialPhase.II, "phase ii": TrialPhase.II,
    "phase2": TrialPhase.II,
    "iii": TrialPhase.III, "3": TrialPhase.III, "phase 3": TrialPhase.III, "phase iii": TrialPhase.III,
    "phase3": TrialPhase.III,
    "iv": TrialPhase.IV, "4": TrialPhase.IV, "phase 4": TrialPhase.IV, "phase iv": TrialPhase.IV,
    "phase4": TrialPhase.IV,
}

_SEPARATORS = re.compile(r"[\s_,;-]+")


def _canonical(value: Any) -> str:
    return _SEPARATORS.sub(" ", str(value).strip().lower()).strip()


def normalize_clinical_significance(value: Any) -> ClinicalSignificance:
    """
    Maps any reported clinical significance onto the enumeration.
    Returns ClinicalSignificance.UNKNOWN for missing or unrecognized values.
    """
    if isinstance(value, ClinicalSignificance):
        return value
    if value is None:
        return ClinicalSignificance.UNKNOWN
    text = _canonical(value)
    if not text:
        return ClinicalSignificance.UNKNOWN
    # Enumeration values themselves ("likely_pathogenic") canonicalize to their spaced form.
    return CLINICAL_SIGNIFICANCE_SYNONYMS.get(text, ClinicalSignificance.UNKNOWN)


def normalize_trial_status(value: Any) -> TrialStatus:
    """Maps a registry status string onto TrialStatus, defaulting to UNKNOWN."""
    if isinstance(value, TrialStatus):
        return value
    if value is None:
        return TrialStatus.UNKNOWN
    return TRIAL_STATUS_SYNONYMS.get(_canonical(value), TrialStatus.UNKNOWN)


def normalize_trial_phase(value: Any) -> TrialPhase:
    """Maps a registry phase string onto TrialPhase, defaulting to NA."""
    if isinstance(value, TrialPhase):
        return value
    if value is None:
        return TrialPhase.NA
    text = _canonical(value)
    if text.upper() in TrialPhase.__members__:
        return TrialPhase[text.upper()]
    return TRIAL_PHASE_SYNONYMS.get(text, TrialPhase.NA)
