"""smartfill: choose form options on a user's behalf from a structured profile."""

from .aliases import AliasRegistry, default_registry
from .matching import FieldDescriptor, MatchEngine, MatchMethod, MatchReport, MatchResult, Option
from .profile import CanonicalProfile, ProfileLeaf, normalize

__version__ = "0.1.0"

__all__ = [
    "AliasRegistry",
    "CanonicalProfile",
    "FieldDescriptor",
    "MatchEngine",
    "MatchMethod",
    "MatchReport",
    "MatchResult",
    "Option",
    "ProfileLeaf",
    "__version__",
    "default_registry",
    "normalize",
]
