"""Candidate values for free-text fields, drawn from a canonical profile."""
from __future__ import annotations

from typing import Dict, List, Sequence

from .models import CanonicalProfile

FIELD_TYPE_PATHS: Dict[str, Sequence[str]] = {
    "name": ("identity.full_name", "identity.first_name", "identity.last_name", "identity.preferred_name"),
    "first_name": ("identity.first_name", "identity.preferred_name"),
    "last_name": ("identity.last_name",),
    "email": ("contact.email",),
    "phone": ("contact.phone",),
    "address": ("address.street", "address.apartment", "address.city", "address.state", "address.zip_code", "address.country"),
    "city": ("address.city",),
    "state": ("address.state", "address.state_code"),
    "country": ("address.country", "address.country_code"),
    "zip": ("address.zip_code",),
    "education": ("education.level", "education.institution", "education.field_of_study"),
    "employment": ("employment.company", "employment.job_title", "employment.industry", "employment.status"),
    "skills": ("skills.technical", "skills.languages"),
    "website": ("contact.website", "contact.linkedin", "contact.github"),
}


def profile_suggestions(profile: CanonicalProfile, field_type: str) -> List[str]:
    """Return distinct profile values that could fill a field of ``field_type``.

    Values are ordered by path priority and then by leaf confidence; list
    leaves contribute each item. Unknown field types yield an empty list.
    """

    paths = FIELD_TYPE_PATHS.get(str(field_type or "").strip().lower(), ())
    ranked: List[tuple] = []
    for priority, path in enumerate(paths):
        leaf = profile.get(path)
        for text in leaf.texts():
            ranked.append((-leaf.confidence, priority, text))
    ranked.sort(key=lambda item: (item[0], item[1]))
    suggestions: List[str] = []
    for _, _, text in ranked:
        if text not in suggestions:
            suggestions.append(text)
    return suggestions
