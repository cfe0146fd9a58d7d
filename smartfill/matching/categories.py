"""Semantic categories a field label can name, and how to read them.

A category ties label patterns to the profile paths that answer it and to
the alias table both the profile value and the option texts resolve
through. Numeric categories additionally accept option ranges
(``18-24``, ``$50k-$75k``, ``Senior (6-10)``).
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .types import FieldDescriptor


@dataclass(frozen=True, slots=True)
class CategorySpec:
    name: str
    patterns: Tuple[str, ...]
    profile_paths: Tuple[str, ...]
    alias_category: Optional[str] = None
    numeric: bool = False
    parent_path: Optional[str] = None

    @property
    def table(self) -> str:
        return self.alias_category or self.name


def _category(
    name: str,
    patterns: Sequence[str],
    paths: Sequence[str],
    *,
    table: Optional[str] = None,
    numeric: bool = False,
    parent: Optional[str] = None,
) -> CategorySpec:
    return CategorySpec(
        name=name,
        patterns=tuple(patterns),
        profile_paths=tuple(paths),
        alias_category=table,
        numeric=numeric,
        parent_path=parent,
    )


# Order matters only for reporting; every recognized category is scored.
CATEGORIES: Tuple[CategorySpec, ...] = (
    _category("gender", [r"\bgender\b", r"\bsex\b"], ["identity.gender"]),
    _category(
        "honorific",
        [r"^title$", r"\bsalutation\b", r"\bhonorific\b", r"^(name )?prefix$"],
        ["identity.title"],
    ),
    _category(
        "marital_status",
        [r"\bmarital\b", r"\brelationship status\b", r"\bcivil status\b"],
        ["personal.marital_status", "personal.marital_status_normalized"],
    ),
    _category(
        "education_level",
        [r"\beducation\b", r"\bdegree\b", r"\bqualification\b", r"\bschooling\b"],
        ["education.level", "education.level_normalized"],
    ),
    _category(
        "employment_status",
        [r"\bemployment\b", r"\bwork status\b", r"\bjob status\b", r"\bcurrently employed\b"],
        ["employment.status", "employment.status_normalized"],
    ),
    _category(
        "age_range",
        [r"\bage\b", r"\bhow old\b", r"\bage (range|group|bracket)\b"],
        ["identity.age", "identity.age_range"],
        numeric=True,
    ),
    _category(
        "income_bracket",
        [r"\b(income|salary|earnings|compensation)\b"],
        ["employment.income", "employment.income_bracket"],
        numeric=True,
    ),
    _category(
        "experience_level",
        [r"\bexperience\b", r"\bseniority\b", r"\bcareer level\b"],
        ["employment.years_of_experience", "employment.experience_level"],
        numeric=True,
    ),
    _category(
        "nationality",
        [r"\bnationality\b", r"\bcitizenship\b"],
        ["identity.nationality", "address.country"],
        table="country",
    ),
    _category("country", [r"\bcountry\b", r"^nation$"], ["address.country", "identity.nationality"]),
    _category(
        "state",
        [r"\b(state|province|region|territory)\b"],
        ["address.state"],
        parent="address.country",
    ),
    _category(
        "industry",
        [r"\b(industry|sector)\b", r"\bfield of work\b", r"\bline of business\b"],
        ["employment.industry", "employment.industry_normalized"],
    ),
    _category(
        "language",
        [r"\blanguages?\b", r"\b(mother|native) tongue\b"],
        ["skills.primary_language", "skills.languages"],
    ),
    _category(
        "skill_level",
        [r"\b(proficiency|expertise|competency)\b", r"\bskill level\b"],
        ["skills.skill_level"],
    ),
    _category(
        "interest",
        [r"\binterests?\b", r"\bhobb(y|ies)\b"],
        ["personal.interests", "personal.interest_categories"],
    ),
    _category(
        "birth_month",
        [r"\bbirth ?month\b", r"\bmonth of birth\b", r"\bdob month\b", r"\bborn\b.*\bmonth\b"],
        ["identity.birth_month"],
        table="month",
    ),
    _category(
        "birth_day",
        [r"\bbirth day\b", r"\bday of birth\b", r"\bdob day\b"],
        ["identity.birth_day"],
        numeric=True,
    ),
    _category(
        "birth_year",
        [r"\bbirth ?year\b", r"\byear of birth\b", r"\bdob year\b", r"\byear\b.*\bborn\b"],
        ["identity.birth_year"],
        numeric=True,
    ),
)

# Alias categories that can be told apart by their option texts alone.
OPTION_DETECTABLE: Tuple[str, ...] = (
    "country",
    "state",
    "industry",
    "language",
    "education_level",
    "employment_status",
    "marital_status",
    "skill_level",
    "gender",
    "birth_month",
)

_COMPILED: Dict[str, Tuple[re.Pattern[str], ...]] = {
    item.name: tuple(re.compile(pattern, re.IGNORECASE) for pattern in item.patterns) for item in CATEGORIES
}

# Surfaces a category may be read from; developer ids are too noisy.
_CATEGORY_SOURCES = frozenset({"label", "aria_label", "placeholder", "name"})


def recognize_categories(field: FieldDescriptor) -> List[CategorySpec]:
    """Categories whose patterns match one of ``field``'s surface texts."""

    texts = [text for source, text in field.surface_texts() if source in _CATEGORY_SOURCES]
    if not texts:
        texts = [text for _, text in field.surface_texts()]
    recognized: List[CategorySpec] = []
    for definition in CATEGORIES:
        patterns = _COMPILED[definition.name]
        if any(pattern.search(text) for text in texts for pattern in patterns):
            recognized.append(definition)
    return recognized
