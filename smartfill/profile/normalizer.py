"""Turn a loosely structured raw profile into a :class:`CanonicalProfile`.

Raw profiles come from storage, imports and hand-written JSON, so keys follow
no convention (``firstName``, ``first_name``, ``fname``) and values may sit at
the top level or inside a section mapping (``{"preferences": {...}}``).

Normalization runs in two passes:

1. Look up every leaf in :data:`PROFILE_SCHEMA` against the raw mapping, section
   mapping first, then the top level, then any other nested mapping. The first
   non-empty value wins. A canonical key found verbatim scores
   :data:`EXACT`, any other recognized spelling :data:`ALIAS`.
2. Derive the remaining leaves (age range, income bracket, normalized
   education and employment, codes) from the leaves of pass one only.

The whole transformation is pure: the same raw mapping (on the same day, since
ages depend on it) always produces an equal profile, and nothing raises.
"""
from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..aliases import AliasRegistry, default_registry
from ..utils.text import fold_key
from . import derive
from .models import (
    ALIAS,
    EMPTY_LEAF,
    EXACT,
    HEURISTIC,
    INFERRED,
    SECTIONS,
    CanonicalProfile,
    ProfileLeaf,
)

logger = logging.getLogger(__name__)

LeafKind = str  # "text" | "number" | "year" | "date" | "bool" | "list"


@dataclass(frozen=True, slots=True)
class LeafSpec:
    section: str
    key: str
    aliases: Tuple[str, ...] = ()
    kind: LeafKind = "text"
    # Generic names ("level", "status") only count inside their own section.
    generic: bool = False

    @property
    def path(self) -> str:
        return f"{self.section}.{self.key}"


def _leaf(section: str, key: str, *aliases: str, kind: LeafKind = "text", generic: bool = False) -> LeafSpec:
    return LeafSpec(section=section, key=key, aliases=aliases, kind=kind, generic=generic)


PROFILE_SCHEMA: Tuple[LeafSpec, ...] = (
    # identity
    _leaf("identity", "first_name", "firstName", "fname", "given", "given_name", "givenName", "forename", "first"),
    _leaf("identity", "middle_name", "middleName", "mname", "middle", "middle_initial"),
    _leaf("identity", "last_name", "lastName", "lname", "surname", "family_name", "familyName", "last"),
    _leaf("identity", "full_name", "fullName", "name", "displayName", "display_name"),
    _leaf("identity", "preferred_name", "preferredName", "nickname"),
    _leaf("identity", "title", "prefix", "salutation", "honorific", "name_prefix"),
    _leaf("identity", "gender", "sex", "genderIdentity"),
    _leaf("identity", "pronouns", "pronoun"),
    _leaf("identity", "date_of_birth", "dateOfBirth", "dob", "birthDate", "birth_date", "birthday", kind="date"),
    _leaf("identity", "birth_year", "birthYear", "yearOfBirth", "year_of_birth", kind="year"),
    _leaf("identity", "age", "years_old", "currentAge", kind="number"),
    _leaf("identity", "nationality", "citizenship", "citizen_of"),
    # contact
    _leaf("contact", "email", "emailAddress", "email_address", "mail", "e_mail"),
    _leaf(
        "contact", "phone", "phoneNumber", "phone_number", "telephone", "tel", "mobile",
        "mobilePhone", "mobile_phone", "cell", "cellphone",
    ),
    _leaf("contact", "linkedin", "linkedinUrl", "linkedin_url", "linkedinProfile"),
    _leaf("contact", "github", "githubUrl", "github_url"),
    _leaf("contact", "website", "websiteUrl", "portfolio", "personal_website", "homepage", "url"),
    _leaf("contact", "twitter", "twitterHandle", "twitter_handle"),
    # address
    _leaf(
        "address", "street", "address", "address1", "address_line1", "addressLine1",
        "streetAddress", "street_address",
    ),
    _leaf("address", "apartment", "address2", "address_line2", "addressLine2", "apt", "suite", "unit"),
    _leaf("address", "city", "town", "locality"),
    _leaf("address", "state", "province", "region", "state_province", "stateProvince", "county"),
    _leaf("address", "zip_code", "zip", "zipCode", "postal_code", "postalCode", "postcode"),
    _leaf("address", "country", "countryName", "country_name", "nation"),
    # education
    _leaf(
        "education", "level", "educationLevel", "education_level", "education", "degree",
        "highestDegree", "highest_degree", "highestEducation", "qualification", generic=True,
    ),
    _leaf("education", "institution", "school", "university", "college", "schoolName", "currentInstitution"),
    _leaf("education", "field_of_study", "major", "fieldOfStudy", "study_field", "discipline"),
    _leaf("education", "graduation_year", "graduationYear", "grad_year", "gradYear", kind="year"),
    _leaf("education", "gpa", "grade_point_average", kind="number"),
    # employment
    _leaf(
        "employment", "status", "employmentStatus", "employment_status", "workStatus", "jobStatus",
        generic=True,
    ),
    _leaf("employment", "company", "employer", "companyName", "currentCompany", "organization"),
    _leaf("employment", "job_title", "jobTitle", "position", "role", "currentTitle", "occupation"),
    _leaf("employment", "industry", "sector"),
    _leaf(
        "employment", "years_of_experience", "yearsOfExperience", "experience", "experienceYears",
        "years_experience", "yoe", kind="number",
    ),
    _leaf(
        "employment", "income", "salary", "annualIncome", "annual_income", "householdIncome",
        "earnings", kind="number",
    ),
    # skills
    _leaf("skills", "technical", "skills", "technicalSkills", "technical_skills", "techSkills", kind="list"),
    _leaf("skills", "languages", "spokenLanguages", "languagesSpoken", "language", kind="list"),
    _leaf("skills", "skill_level", "proficiency", "skillLevel", "expertise", "expertiseLevel"),
    # personal
    _leaf("personal", "marital_status", "maritalStatus", "relationshipStatus", "civil_status"),
    _leaf("personal", "interests", "hobbies", "interest", kind="list"),
    # preferences
    _leaf("preferences", "newsletter", "subscribeNewsletter", "newsletterOptIn", "newsletter_opt_in", kind="bool"),
    _leaf(
        "preferences", "marketing", "marketingEmails", "marketing_opt_in", "promotions",
        "promotionalEmails", kind="bool",
    ),
    _leaf("preferences", "notifications", "emailNotifications", "notify", kind="bool"),
    _leaf("preferences", "share_data", "dataSharing", "shareData", "share_information", kind="bool"),
    _leaf(
        "preferences", "terms", "acceptTerms", "termsAccepted", "agreeToTerms", "terms_and_conditions",
        kind="bool",
    ),
    _leaf("preferences", "relocate", "willingToRelocate", "relocation", "open_to_relocation", kind="bool"),
    _leaf(
        "preferences", "work_authorized", "workAuthorization", "authorizedToWork", "legallyAuthorized",
        "work_authorization", kind="bool",
    ),
    _leaf(
        "preferences", "requires_sponsorship", "sponsorship", "needsSponsorship", "visaSponsorship",
        kind="bool",
    ),
    _leaf("preferences", "preferred_contact", "contactMethod", "preferredContact", "preferred_contact_method"),
)

DERIVED_LEAVES: Tuple[Tuple[str, str], ...] = (
    ("identity", "age_range"),
    ("identity", "generation"),
    ("identity", "birth_month"),
    ("identity", "birth_day"),
    ("address", "country_code"),
    ("address", "state_code"),
    ("education", "level_normalized"),
    ("education", "category"),
    ("employment", "status_normalized"),
    ("employment", "category"),
    ("employment", "industry_normalized"),
    ("employment", "income_bracket"),
    ("employment", "experience_level"),
    ("skills", "primary_language"),
    ("personal", "marital_status_normalized"),
    ("personal", "interest_categories"),
)

SECTION_ALIASES: Dict[str, frozenset] = {
    "identity": frozenset({"identity", "personalinfo", "personalinformation", "basic", "basicinfo", "about"}),
    "contact": frozenset({"contact", "contactinfo", "contactinformation", "contacts"}),
    "address": frozenset({"address", "location", "residence", "homeaddress", "mailingaddress"}),
    "education": frozenset({"education", "academic", "academics", "schooling"}),
    "employment": frozenset({"employment", "work", "job", "career", "professional", "workexperience"}),
    "skills": frozenset({"skills", "skillset", "abilities"}),
    "personal": frozenset({"personal", "personaldetails", "demographics", "lifestyle"}),
    "preferences": frozenset({"preferences", "prefs", "settings", "privacy", "communication", "consent"}),
}

_TRUE_WORDS = frozenset({"true", "yes", "y", "1", "on", "opt in", "optin", "agree", "accepted", "subscribed"})
_FALSE_WORDS = frozenset({"false", "no", "n", "0", "off", "opt out", "optout", "decline", "declined", "unsubscribed"})


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, Mapping)):
        return len(value) == 0
    return False


def _coerce(value: Any, kind: LeafKind) -> Any:
    """Convert a raw value to the leaf's kind, or ``None`` when it does not fit."""

    if isinstance(value, Mapping):
        return None
    if kind == "number":
        return derive.parse_number(value)
    if kind == "year":
        return derive.parse_year(value)
    if kind == "date":
        parsed = derive.parse_date(value)
        return parsed.isoformat() if parsed else None
    if kind == "bool":
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value) if value in (0, 1) else None
        word = " ".join(str(value).strip().lower().replace("-", " ").split())
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
        return None
    if kind == "list":
        if isinstance(value, str):
            items: Sequence[Any] = [part for chunk in value.split(";") for part in chunk.split(",")]
        elif isinstance(value, (list, tuple, set, frozenset)):
            items = sorted(value, key=str) if isinstance(value, (set, frozenset)) else value
        else:
            items = [value]
        cleaned: List[str] = []
        for item in items:
            if isinstance(item, Mapping):
                item = item.get("name") or item.get("value") or item.get("language")
            if item is None or isinstance(item, bool):
                continue
            text = str(item).strip()
            if text and text not in cleaned:
                cleaned.append(text)
        return tuple(cleaned) or None
    # text
    if isinstance(value, bool):
        return None
    if isinstance(value, (list, tuple)):
        parts = [str(item).strip() for item in value if not _is_empty(item) and not isinstance(item, Mapping)]
        return ", ".join(parts) or None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


class ProfileNormalizer:
    """Builds canonical profiles; holds only read-only collaborators."""

    def __init__(self, registry: Optional[AliasRegistry] = None, *, schema: Sequence[LeafSpec] = PROFILE_SCHEMA) -> None:
        self._registry = registry or default_registry()
        self._schema = tuple(schema)

    def normalize(self, raw: Any, *, today: Optional[date] = None) -> CanonicalProfile:
        if not isinstance(raw, Mapping):
            logger.warning("Raw profile is not a mapping; normalizing an empty profile", extra={"type": type(raw).__name__})
            raw = {}
        today = today or date.today()

        leaves: Dict[str, Dict[str, ProfileLeaf]] = {section: {} for section in SECTIONS}
        for definition in self._schema:
            leaves.setdefault(definition.section, {})[definition.key] = self._lookup(raw, definition)
        for section, key in DERIVED_LEAVES:
            leaves[section].setdefault(key, EMPTY_LEAF)

        self._derive(leaves, today)
        profile = CanonicalProfile.from_sections(leaves)
        logger.debug(
            "Normalized profile",
            extra={"present_leaves": sum(1 for _ in profile.leaves()), "total_leaves": len(profile.paths())},
        )
        return profile

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------
    def _sources(self, raw: Mapping[str, Any], section: str) -> List[Tuple[str, Mapping[str, Any], str]]:
        """Mappings to search for ``section`` as ``(prefix, mapping, role)``."""

        own = SECTION_ALIASES.get(section, frozenset({section}))
        nested = [(str(key), value) for key, value in raw.items() if isinstance(value, Mapping)]
        sources: List[Tuple[str, Mapping[str, Any], str]] = []
        sources.extend((key, value, "section") for key, value in nested if fold_key(key) in own)
        sources.append(("", raw, "top"))
        sources.extend((key, value, "other") for key, value in nested if fold_key(key) not in own)
        return sources

    def _lookup(self, raw: Mapping[str, Any], definition: LeafSpec) -> ProfileLeaf:
        names = (definition.key, *definition.aliases)
        for prefix, mapping, role in self._sources(raw, definition.section):
            index: Dict[str, Tuple[str, Any]] = {}
            for raw_key, raw_value in mapping.items():
                index.setdefault(fold_key(raw_key), (str(raw_key), raw_value))
            for position, name in enumerate(names):
                if position == 0 and definition.generic and role != "section":
                    continue
                hit = index.get(fold_key(name))
                if hit is None:
                    continue
                raw_key, raw_value = hit
                if _is_empty(raw_value):
                    continue
                value = _coerce(raw_value, definition.kind)
                if value is None:
                    logger.debug("Discarding unparseable profile value", extra={"path": definition.path, "raw_key": raw_key})
                    continue
                verbatim = raw_key == definition.key and role in ("section", "top")
                source_key = f"{prefix}.{raw_key}" if prefix else raw_key
                return ProfileLeaf(value=value, confidence=EXACT if verbatim else ALIAS, source_key=source_key)
        return EMPTY_LEAF

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------
    def _derive(self, leaves: Dict[str, Dict[str, ProfileLeaf]], today: date) -> None:
        identity = leaves["identity"]
        address = leaves["address"]
        education = leaves["education"]
        employment = leaves["employment"]
        skills = leaves["skills"]
        personal = leaves["personal"]
        registry = self._registry

        def inferred(value: Any, *sources: Tuple[str, ProfileLeaf], level: float = INFERRED) -> ProfileLeaf:
            if value is None:
                return EMPTY_LEAF
            confidence = min([level, *(leaf.confidence for _, leaf in sources)]) if sources else level
            origin = sources[0][0] if sources else None
            return ProfileLeaf(value=value, confidence=confidence, source_key=origin)

        # Names
        full = identity["full_name"]
        first, last = identity["first_name"], identity["last_name"]
        if not full.present and first.present and last.present:
            identity["full_name"] = inferred(
                f"{first.value} {last.value}", ("identity.first_name", first), ("identity.last_name", last)
            )
        elif full.present and not (first.present and last.present):
            first_part, last_part = derive.split_full_name(full.value)
            if not first.present and first_part:
                identity["first_name"] = inferred(first_part, ("identity.full_name", full))
            if not last.present and last_part:
                identity["last_name"] = inferred(last_part, ("identity.full_name", full))

        # Age, birth date parts, generation
        dob_leaf = identity["date_of_birth"]
        dob = derive.parse_date(dob_leaf.value) if dob_leaf.present else None
        if not identity["age"].present and dob is not None:
            identity["age"] = inferred(derive.age_on(dob, today), ("identity.date_of_birth", dob_leaf))
        age_leaf = identity["age"]
        if not identity["birth_year"].present:
            if dob is not None:
                identity["birth_year"] = inferred(dob.year, ("identity.date_of_birth", dob_leaf))
            elif age_leaf.present and 0 <= age_leaf.value <= derive.MAX_AGE:
                identity["birth_year"] = inferred(today.year - int(age_leaf.value), ("identity.age", age_leaf))
        if age_leaf.present:
            identity["age_range"] = inferred(derive.age_range(age_leaf.value), ("identity.age", age_leaf))
        year_leaf = identity["birth_year"]
        if year_leaf.present:
            identity["generation"] = inferred(derive.generation(year_leaf.value), ("identity.birth_year", year_leaf))
        if dob is not None:
            identity["birth_month"] = inferred(calendar.month_name[dob.month], ("identity.date_of_birth", dob_leaf))
            identity["birth_day"] = inferred(dob.day, ("identity.date_of_birth", dob_leaf))

        # Gender and pronouns
        if not identity["gender"].present:
            title_leaf = identity["title"]
            title_keys = registry.resolve_best("honorific", title_leaf.value) if title_leaf.present else frozenset()
            title_genders = {
                (registry.entry("honorific", key).extra.get("gender") if registry.entry("honorific", key) else None)
                for key in title_keys
            } - {None}
            if len(title_genders) == 1:
                identity["gender"] = inferred(title_genders.pop(), ("identity.title", title_leaf))
            elif identity["first_name"].present:
                guess = derive.gender_from_first_name(identity["first_name"].value)
                identity["gender"] = inferred(guess, ("identity.first_name", identity["first_name"]), level=HEURISTIC)
        gender_leaf = identity["gender"]
        if not identity["pronouns"].present and gender_leaf.present:
            keys = registry.resolve_best("gender", gender_leaf.value)
            if len(keys) == 1:
                entry = registry.entry("gender", next(iter(keys)))
                pronouns = entry.extra.get("pronouns") if entry else None
                identity["pronouns"] = inferred(pronouns, ("identity.gender", gender_leaf))

        # Address codes
        country_leaf = address["country"]
        country_key = self._single(registry, "country", country_leaf)
        if country_key is not None:
            address["country_code"] = inferred(registry.code_for("country", country_key), ("address.country", country_leaf))
        state_leaf = address["state"]
        state_key = self._single(registry, "state", state_leaf, parent=country_key)
        if state_key is not None:
            address["state_code"] = inferred(registry.code_for("state", state_key), ("address.state", state_leaf))

        # Education
        level_leaf = education["level"]
        level_key = self._single(registry, "education_level", level_leaf)
        if level_key is not None:
            education["level_normalized"] = inferred(level_key, ("education.level", level_leaf))
            entry = registry.entry("education_level", level_key)
            education["category"] = inferred(entry.extra.get("category") if entry else None, ("education.level", level_leaf))

        # Employment
        status_leaf = employment["status"]
        status_key = self._single(registry, "employment_status", status_leaf)
        if status_key is not None:
            employment["status_normalized"] = inferred(status_key, ("employment.status", status_leaf))
            entry = registry.entry("employment_status", status_key)
            employment["category"] = inferred(entry.extra.get("category") if entry else None, ("employment.status", status_leaf))
        industry_leaf = employment["industry"]
        industry_key = self._single(registry, "industry", industry_leaf)
        if industry_key is not None:
            employment["industry_normalized"] = inferred(industry_key, ("employment.industry", industry_leaf))
        income_leaf = employment["income"]
        if income_leaf.present:
            employment["income_bracket"] = inferred(derive.income_bracket(income_leaf.value), ("employment.income", income_leaf))
        years_leaf = employment["years_of_experience"]
        if years_leaf.present:
            employment["experience_level"] = inferred(
                derive.experience_level(years_leaf.value), ("employment.years_of_experience", years_leaf)
            )

        # Skills
        languages_leaf = skills["languages"]
        if languages_leaf.present:
            skills["primary_language"] = inferred(languages_leaf.value[0], ("skills.languages", languages_leaf))

        # Personal
        marital_leaf = personal["marital_status"]
        marital_key = self._single(registry, "marital_status", marital_leaf)
        if marital_key is not None:
            personal["marital_status_normalized"] = inferred(marital_key, ("personal.marital_status", marital_leaf))
        interests_leaf = personal["interests"]
        if interests_leaf.present:
            categories: List[str] = []
            for item in interests_leaf.value:
                for key in sorted(registry.resolve_best("interest", item)):
                    if key not in categories:
                        categories.append(key)
            personal["interest_categories"] = inferred(tuple(categories) or None, ("personal.interests", interests_leaf))

    @staticmethod
    def _single(
        registry: AliasRegistry, category: str, leaf: ProfileLeaf, *, parent: Optional[str] = None
    ) -> Optional[str]:
        """Canonical key for ``leaf`` when it resolves unambiguously."""

        if not leaf.present:
            return None
        keys = registry.resolve_best(category, leaf.value, parent=parent)
        if len(keys) != 1:
            return None
        return next(iter(keys))


def normalize(raw: Any, *, registry: Optional[AliasRegistry] = None, today: Optional[date] = None) -> CanonicalProfile:
    """Normalize ``raw`` with the packaged alias tables."""

    return ProfileNormalizer(registry).normalize(raw, today=today)


__all__ = [
    "DERIVED_LEAVES",
    "LeafSpec",
    "PROFILE_SCHEMA",
    "ProfileNormalizer",
    "normalize",
]
