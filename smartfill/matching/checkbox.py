"""Decide whether a standalone checkbox should be ticked.

A checkbox has no options to rank: the answer comes from the boolean
preference its label refers to (newsletter, marketing, notifications, terms,
data sharing, relocation, work authorization, sponsorship). When the profile
has no value for that preference the decision is left unknown.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..profile.models import CanonicalProfile
from .field_keys import referenced_paths
from .strategies import BOOLEAN_PATHS, CATEGORY_EXACT, leaf_weighted
from .types import FieldDescriptor


@dataclass(frozen=True, slots=True)
class CheckboxDecision:
    checked: Optional[bool]
    confidence: float
    reasoning: str
    source: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.checked is not None


def decide_checkbox(field: FieldDescriptor, profile: CanonicalProfile) -> CheckboxDecision:
    if not isinstance(field, FieldDescriptor):
        raise TypeError(f"field must be a FieldDescriptor, got {type(field).__name__}")
    if not isinstance(profile, CanonicalProfile):
        raise TypeError(f"profile must be a CanonicalProfile, got {type(profile).__name__}")

    referenced = [ref for ref in referenced_paths(field) if ref.path in BOOLEAN_PATHS and ref.method != "fuzzy"]
    if not referenced:
        return CheckboxDecision(None, 0.0, "Checkbox does not refer to a known preference")
    for reference in referenced:
        leaf = profile.get(reference.path)
        if leaf.present and isinstance(leaf.value, bool):
            return CheckboxDecision(
                checked=leaf.value,
                confidence=leaf_weighted(CATEGORY_EXACT, leaf.confidence),
                reasoning=f"{reference.path} is {leaf.value}",
                source=reference.path,
            )
    paths = ", ".join(ref.path for ref in referenced)
    return CheckboxDecision(None, 0.0, f"No profile value for {paths}")
