"""Canonical profile model and the normalizer that builds it."""

from .models import ABSENT, ALIAS, EMPTY_LEAF, EXACT, HEURISTIC, INFERRED, SECTIONS, CanonicalProfile, ProfileLeaf
from .normalizer import PROFILE_SCHEMA, LeafSpec, ProfileNormalizer, normalize
from .suggestions import profile_suggestions

__all__ = [
    "ABSENT",
    "ALIAS",
    "EMPTY_LEAF",
    "EXACT",
    "HEURISTIC",
    "INFERRED",
    "SECTIONS",
    "CanonicalProfile",
    "LeafSpec",
    "PROFILE_SCHEMA",
    "ProfileLeaf",
    "ProfileNormalizer",
    "normalize",
    "profile_suggestions",
]
