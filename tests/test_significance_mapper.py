import pytest

from sickle_graph.models import ClinicalSignificance, TrialPhase, TrialStatus, Variant
from sickle_graph.significance_mapper import (
    normalize_clinical_significance, normalize_trial_phase, normalize_trial_status,
)


@pytest.mark.parametrize("raw, expected", [
    ("Pathogenic", ClinicalSignificance.PATHOGENIC),
    ("likely_pathogenic", ClinicalSignificance.LIKELY_PATHOGENIC),
    ("Pathogenic/Likely pathogenic", ClinicalSignificance.LIKELY_PATHOGENIC),
    ("Uncertain significance", ClinicalSignificance.UNCERTAIN_SIGNIFICANCE),
    ("Conflicting interpretations of pathogenicity", ClinicalSignificance.UNCERTAIN_SIGNIFICANCE),
    ("  Benign ", ClinicalSignificance.BENIGN),
    ("Likely-Benign", ClinicalSignificance.LIKELY_BENIGN),
    ("drug response", ClinicalSignificance.UNKNOWN),
    ("", ClinicalSignificance.UNKNOWN),
    (None, ClinicalSignificance.UNKNOWN),
])
def test_clinical_significance(raw, expected):
    assert normalize_clinical_significance(raw) is expected


def test_enumeration_members_pass_through():
    assert normalize_clinical_significance(ClinicalSignificance.BENIGN) is ClinicalSignificance.BENIGN
    assert normalize_trial_status(TrialStatus.ACTIVE) is TrialStatus.ACTIVE
    assert normalize_trial_phase(TrialPhase.IV) is TrialPhase.IV


@pytest.mark.parametrize("raw, expected", [
    ("RECRUITING", TrialStatus.RECRUITING),
    ("Not yet recruiting", TrialStatus.RECRUITING),
    ("Active, not recruiting", TrialStatus.ACTIVE),
    ("completed", TrialStatus.COMPLETED),
    ("Withdrawn", TrialStatus.UNKNOWN),
    (None, TrialStatus.UNKNOWN),
])
def test_trial_status(raw, expected):
    assert normalize_trial_status(raw) is expected


@pytest.mark.parametrize("raw, expected", [
    ("II", TrialPhase.II),
    ("Phase 3", TrialPhase.III),
    ("PHASE1", TrialPhase.I),
    ("4", TrialPhase.IV),
    ("na", TrialPhase.NA),
    ("Phase 2/Phase 3", TrialPhase.NA),
    (None, TrialPhase.NA),
])
def test_trial_phase(raw, expected):
    assert normalize_trial_phase(raw) is expected


def test_variant_model_normalizes_on_construction():
    """Free-text significance never reaches the graph as-is."""
    variant = Variant(id="var-1", hgvs_notation="NM_000518.5:c.20A>T", clinical_significance="Likely pathogenic")
    assert variant.to_properties()["clinicalSignificance"] == "likely_pathogenic"

    unknown = Variant(id="var-2", hgvs_notation="NM_000518.5:c.19G>A", clinical_significance="protective?")
    assert unknown.clinical_significance == "unknown"
