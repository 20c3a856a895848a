# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
Tests for the drug-risk lookup.
"""
import pytest

from py_medrec.config import RiskSettings
from py_medrec.risk import AbstractDrugRiskLookup, StaticDrugRiskLookup, normalize_ingredient


def test_abstract_methods_raise_not_implemented_error(make_med) -> None:
    """
    Tests that calling the abstract methods on a concrete class that
    doesn't implement them raises NotImplementedError.
    """

    class ConcreteLookup(AbstractDrugRiskLookup):
        def is_high_risk(self, medication):
            return super().is_high_risk(medication)  # type: ignore[safe-super]

        def has_major_interaction(self, medication):
            return super().has_major_interaction(medication)  # type: ignore[safe-super]

    lookup = ConcreteLookup()
    med = make_med("Aspirin", "aspirin", "75mg")
    with pytest.raises(NotImplementedError):
        lookup.is_high_risk(med)
    with pytest.raises(NotImplementedError):
        lookup.has_major_interaction(med)


def test_normalize_ingredient() -> None:
    assert normalize_ingredient("  Insulin   GLARGINE ") == "insulin glargine"


def test_substring_match_on_ingredient(risk_lookup, make_med) -> None:
    assert risk_lookup.is_high_risk(make_med("Lantus", "Insulin glargine", "100 units/ml"))
    assert risk_lookup.is_high_risk(make_med("Coumadin", "WARFARIN SODIUM", "5mg"))
    assert not risk_lookup.is_high_risk(make_med("Paracetamol", "paracetamol", "500mg"))


def test_brand_name_is_not_matched(risk_lookup, make_med) -> None:
    """Only the active ingredient is classified, never the product name."""
    assert not risk_lookup.is_high_risk(make_med("Warfarin-free blend", "aspirin", "75mg"))


def test_major_interaction(risk_lookup, make_med) -> None:
    assert risk_lookup.has_major_interaction(make_med("Klaricid", "clarithromycin", "500mg"))
    assert not risk_lookup.has_major_interaction(make_med("Coumadin", "warfarin", "5mg"))


def test_from_settings_includes_controlled_ingredients(make_med) -> None:
    lookup = StaticDrugRiskLookup.from_settings(
        RiskSettings(controlled_ingredients=["oxycodone"])
    )
    assert lookup.is_high_risk(make_med("OxyNorm", "Oxycodone hydrochloride", "5mg"))
    assert lookup.is_high_risk(make_med("Priadel", "lithium carbonate", "400mg"))


def test_blank_names_are_ignored(make_med) -> None:
    lookup = StaticDrugRiskLookup(high_risk_ingredients=["", "  "])
    assert lookup.high_risk_ingredients == set()
    assert not lookup.is_high_risk(make_med("Aspirin", "aspirin", "75mg"))
