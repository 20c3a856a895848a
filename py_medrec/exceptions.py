# -*- coding: utf-8 -*-
"""
This module defines custom exceptions for the py-medrec application.
"""
from typing import List, Optional

from .types import DenyReason


class MedicationEngineError(Exception):
    """
    Base class for all errors raised by the medication engine.
    """

    pass


class ValidationError(MedicationEngineError, ValueError):
    """
    Raised for malformed dosage, frequency or prescription input.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class ComplianceViolation(MedicationEngineError):
    """
    Raised when a regulatory-required field is missing, e.g. a witness for a
    controlled substance. Blocks the requested state change.
    """

    def __init__(self, violations: List[str]):
        super().__init__("Compliance violation: " + ", ".join(violations))
        self.violations = list(violations)


class IllegalTransition(MedicationEngineError):
    """
    Raised when a workflow transition is requested from an incompatible state.
    """

    def __init__(self, current_state: str, action: str, detail: str = ""):
        message = f"Cannot apply '{action}' from state '{current_state}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.current_state = current_state
        self.action = action


class AdministrationBlocked(MedicationEngineError):
    """
    Raised when a 'given' outcome is recorded against a denied safety decision.
    """

    def __init__(self, reason: DenyReason, message: str = ""):
        super().__init__(f"Administration blocked ({reason.value}). {message}".strip())
        self.reason = reason
