# -*- coding: utf-8 -*-
# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
"""
This module defines the drug-risk lookup consumed by the reconciliation engine.

The drug database itself is an external collaborator; the engine only needs
two predicates from it.
"""
from abc import ABC, abstractmethod
from typing import Iterable, Set

from .config import RiskSettings
from .models import ReconciliationMedication


def normalize_ingredient(value: str) -> str:
    """Lower-cases and collapses whitespace so ingredient names compare reliably."""
    return " ".join(value.casefold().split())


class AbstractDrugRiskLookup(ABC):
    """
    An abstract base class that defines the interface for drug-risk lookups.
    """

    @abstractmethod
    def is_high_risk(self, medication: ReconciliationMedication) -> bool:
        """
        Whether the medication is high-risk (e.g. anticoagulant, insulin,
        controlled substance).

        :param medication: The medication line being classified.
        """
        raise NotImplementedError

    @abstractmethod
    def has_major_interaction(self, medication: ReconciliationMedication) -> bool:
        """
        Whether the medication has any known interaction flagged major or
        contraindicated.

        :param medication: The medication line being classified.
        """
        raise NotImplementedError


class StaticDrugRiskLookup(AbstractDrugRiskLookup):
    """
    A lookup backed by configured ingredient lists. An ingredient matches when
    a configured name occurs anywhere in it (so 'insulin glargine' is insulin).
    """

    def __init__(
        self,
        high_risk_ingredients: Iterable[str] = (),
        major_interaction_ingredients: Iterable[str] = (),
    ):
        self.high_risk_ingredients: Set[str] = {
            normalize_ingredient(name) for name in high_risk_ingredients if name.strip()
        }
        self.major_interaction_ingredients: Set[str] = {
            normalize_ingredient(name) for name in major_interaction_ingredients if name.strip()
        }

    @classmethod
    def from_settings(cls, settings: RiskSettings) -> "StaticDrugRiskLookup":
        return cls(
            high_risk_ingredients=[*settings.high_risk_ingredients, *settings.controlled_ingredients],
            major_interaction_ingredients=settings.major_interaction_ingredients,
        )

    def is_high_risk(self, medication: ReconciliationMedication) -> bool:
        return self._matches(medication, self.high_risk_ingredients)

    def has_major_interaction(self, medication: ReconciliationMedication) -> bool:
        return self._matches(medication, self.major_interaction_ingredients)

    @staticmethod
    def _matches(medication: ReconciliationMedication, names: Set[str]) -> bool:
        ingredient = normalize_ingredient(medication.active_ingredient)
        return any(name in ingredient for name in names)
