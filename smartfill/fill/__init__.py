"""Autofill passes: match each field, drive its control, report the outcome."""

from .orchestrator import AutofillOrchestrator, FieldTarget, autofill
from .report import AutofillReport, FieldOutcome, OutcomeKind

__all__ = [
    "AutofillOrchestrator",
    "AutofillReport",
    "FieldOutcome",
    "FieldTarget",
    "OutcomeKind",
    "autofill",
]
