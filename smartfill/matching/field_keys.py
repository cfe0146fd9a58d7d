"""Map a field's surface text to the canonical profile paths it refers to.

Three passes over every surface attribute (label, aria label, placeholder,
name, id), each humanized first so ``firstName`` and ``first_name`` read as
``first name``:

1. Regex lookups using the curated patterns from ``FIELD_KEY_PATTERNS``.
2. Exact comparison against the humanized canonical key names.
3. RapidFuzz ``WRatio`` against a synonym table built from the normalizer's
   raw-key aliases, kept only above :data:`FUZZY_CUTOFF`.

Regex and key hits score 1.0; fuzzy hits score ``WRatio / 100``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, List, Sequence, Tuple

from rapidfuzz import fuzz

from ..profile.normalizer import DERIVED_LEAVES, PROFILE_SCHEMA
from ..utils.text import humanize_identifier
from .types import FieldDescriptor

FUZZY_CUTOFF = 94.0

FIELD_KEY_PATTERNS: Dict[str, Sequence[str]] = {
    # ----------------------------
    # Identity
    # ----------------------------
    "identity.first_name": [r"\bfirst name\b", r"^f ?name$", r"\bgiven name\b", r"\bforename\b", r"^first$"],
    "identity.middle_name": [r"\bmiddle name\b", r"\bmiddle initial\b", r"^m ?name$"],
    "identity.last_name": [r"\blast name\b", r"^l ?name$", r"\bsurname\b", r"\bfamily name\b", r"^last$"],
    "identity.full_name": [r"^(your )?(full )?name$", r"\bfull name\b", r"^applicant name$", r"^fullname$"],
    "identity.preferred_name": [r"\bpreferred name\b", r"\bnickname\b"],
    "identity.title": [r"^title$", r"\bsalutation\b", r"\bhonorific\b", r"^(name )?prefix$"],
    "identity.gender": [r"\bgender\b", r"^sex$"],
    "identity.pronouns": [r"\bpronouns?\b"],
    "identity.date_of_birth": [r"\bdate of birth\b", r"^dob$", r"\bbirth ?date\b", r"\bbirthday\b"],
    "identity.birth_year": [r"\byear of birth\b", r"\bbirth year\b"],
    "identity.age": [r"^(your )?age$", r"\bhow old\b"],
    "identity.nationality": [r"\bnationality\b", r"\bcitizenship\b"],
    # ----------------------------
    # Contact
    # ----------------------------
    "contact.email": [r"\be ?mail\b"],
    "contact.phone": [r"\b(phone|telephone|mobile|cell)\b", r"^tel$", r"\bcontact number\b"],
    "contact.linkedin": [r"\blinked ?in\b"],
    "contact.github": [r"\bgit ?hub\b"],
    "contact.website": [r"\b(website|portfolio|homepage)\b", r"\bpersonal site\b"],
    "contact.twitter": [r"\btwitter\b"],
    # ----------------------------
    # Address
    # ----------------------------
    "address.street": [r"\bstreet\b", r"\baddress (line )?1\b", r"^address$"],
    "address.apartment": [r"\baddress (line )?2\b", r"\b(apt|apartment|suite|unit)\b"],
    "address.city": [r"\b(city|town)\b"],
    "address.state": [r"\b(state|province|region)\b"],
    "address.zip_code": [r"\b(zip|postal|postcode)\b", r"\bpost code\b"],
    "address.country": [r"\bcountry\b", r"^nation$"],
    # ----------------------------
    # Education
    # ----------------------------
    "education.level": [r"\beducation( level)?\b", r"\b(highest )?degree\b", r"\bqualification\b"],
    "education.institution": [r"\b(school|university|college|institution)\b"],
    "education.field_of_study": [r"\b(major|discipline)\b", r"\b(field|area) of study\b"],
    "education.graduation_year": [r"\bgraduation\b", r"\bgrad year\b"],
    "education.gpa": [r"\bgpa\b", r"\bgrade point\b"],
    # ----------------------------
    # Employment
    # ----------------------------
    "employment.status": [r"\bemployment( status)?\b", r"\bwork status\b", r"\bcurrently employed\b"],
    "employment.company": [r"\b(company|employer|organi[sz]ation)\b"],
    "employment.job_title": [r"\bjob title\b", r"\bcurrent title\b", r"\b(position|occupation|role)\b"],
    "employment.industry": [r"\b(industry|sector)\b"],
    "employment.years_of_experience": [r"\byears? (of )?experience\b", r"\bexperience\b"],
    "employment.income": [r"\b(income|salary|earnings|compensation)\b"],
    # ----------------------------
    # Skills and personal
    # ----------------------------
    "skills.technical": [r"\b(technical )?skills\b"],
    "skills.languages": [r"\blanguages?\b"],
    "skills.skill_level": [r"\b(proficiency|expertise)\b", r"\bskill level\b"],
    "personal.marital_status": [r"\bmarital\b", r"\brelationship status\b"],
    "personal.interests": [r"\binterests?\b", r"\bhobb(y|ies)\b"],
    # ----------------------------
    # Preferences and consent
    # ----------------------------
    "preferences.newsletter": [r"\bnewsletters?\b"],
    "preferences.marketing": [r"\b(marketing|promotions?|promotional)\b", r"\bspecial offers\b"],
    "preferences.notifications": [r"\b(notifications?|alerts?)\b"],
    "preferences.share_data": [r"\bshare (my )?(data|information|details)\b", r"\bthird part(y|ies)\b"],
    "preferences.terms": [r"\bterms\b", r"\bprivacy policy\b", r"\bconditions\b"],
    "preferences.relocate": [r"\breloca(te|tion)\b"],
    "preferences.work_authorized": [
        r"\b(authori[sz]ed|eligible) to work\b",
        r"\bwork authori[sz]ation\b",
        r"\blegally (authori[sz]ed|eligible)\b",
    ],
    "preferences.requires_sponsorship": [r"\bsponsorship\b", r"\bvisa\b"],
    "preferences.preferred_contact": [
        r"\bpreferred (contact|method of contact|contact method)\b",
        r"\bbest way to (contact|reach)\b",
    ],
}

_COMPILED_PATTERNS: Dict[str, Tuple[re.Pattern[str], ...]] = {
    path: tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)
    for path, patterns in FIELD_KEY_PATTERNS.items()
}

# Earlier surfaces are what the user reads; ids and names are developer text.
SOURCE_ORDER: Tuple[str, ...] = ("label", "aria_label", "placeholder", "name", "element_id")

# Generic key names that say nothing on their own.
_AMBIGUOUS_KEYS = frozenset({"level", "status", "category", "title", "state"})


@dataclass(frozen=True, slots=True)
class KeyReference:
    """A profile path referenced by a field, with how it was recognized."""

    path: str
    score: float
    method: str
    source: str
    matched: str


def _build_key_names() -> Dict[str, str]:
    names: Dict[str, str] = {}
    leaf_keys = [(definition.section, definition.key) for definition in PROFILE_SCHEMA if not definition.generic]
    leaf_keys.extend(DERIVED_LEAVES)
    for section, key in leaf_keys:
        if key in _AMBIGUOUS_KEYS:
            continue
        names.setdefault(humanize_identifier(key), f"{section}.{key}")
    return names


def _build_synonym_table() -> Dict[str, Tuple[str, ...]]:
    table: Dict[str, Tuple[str, ...]] = {}
    for definition in PROFILE_SCHEMA:
        entries = {humanize_identifier(alias) for alias in (definition.key, *definition.aliases)}
        # Single short tokens ("tel", "apt", "url") fuzz-match far too much.
        entries = {entry for entry in entries if len(entry) >= 5 or " " in entry}
        entries -= _AMBIGUOUS_KEYS
        if entries:
            table[definition.path] = tuple(sorted(entries))
    return table


_KEY_NAMES: Dict[str, str] = _build_key_names()
_SYNONYMS: Dict[str, Tuple[str, ...]] = _build_synonym_table()
_PATH_ORDER: Dict[str, int] = {path: position for position, path in enumerate(FIELD_KEY_PATTERNS)}


def _is_preferred(new: KeyReference, existing: KeyReference) -> bool:
    if existing.method != "fuzzy" and new.method == "fuzzy":
        return False
    if new.method != "fuzzy" and existing.method == "fuzzy":
        return True
    if new.score != existing.score:
        return new.score > existing.score
    return len(new.matched) > len(existing.matched)


@lru_cache(maxsize=1024)
def _references_for(surfaces: Tuple[Tuple[str, str], ...]) -> Tuple[KeyReference, ...]:
    best: Dict[str, KeyReference] = {}

    def _update(reference: KeyReference) -> None:
        existing = best.get(reference.path)
        if existing is None or _is_preferred(reference, existing):
            best[reference.path] = reference

    for source, text in surfaces:
        for path, patterns in _COMPILED_PATTERNS.items():
            for pattern in patterns:
                found = pattern.search(text)
                if found:
                    _update(KeyReference(path, 1.0, "regex", source, found.group(0)))
                    break
        key_path = _KEY_NAMES.get(text)
        if key_path is not None:
            _update(KeyReference(key_path, 1.0, "key", source, text))
        for path, synonyms in _SYNONYMS.items():
            best_score = 0.0
            best_synonym = None
            for synonym in synonyms:
                score = float(fuzz.WRatio(text, synonym))
                if score > best_score:
                    best_score = score
                    best_synonym = synonym
            if best_score >= FUZZY_CUTOFF and best_synonym:
                _update(KeyReference(path, best_score / 100.0, "fuzzy", source, best_synonym))

    source_rank = {name: position for position, name in enumerate(SOURCE_ORDER)}
    ordered = sorted(
        best.values(),
        key=lambda ref: (
            -ref.score,
            -len(ref.matched),
            source_rank.get(ref.source, len(SOURCE_ORDER)),
            _PATH_ORDER.get(ref.path, len(_PATH_ORDER)),
            ref.path,
        ),
    )
    return tuple(ordered)


def referenced_paths(field: FieldDescriptor) -> List[KeyReference]:
    """Return the profile paths ``field`` refers to, strongest reference first."""

    return list(_references_for(tuple(field.surface_texts())))
