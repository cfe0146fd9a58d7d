import json

import pytest

from smartfill.aliases import AliasRegistry, AliasTable, default_registry


def test_default_registry_ships_every_category():
    registry = default_registry()

    expected = {
        "age_range",
        "boolean",
        "country",
        "education_level",
        "employment_status",
        "experience_level",
        "gender",
        "honorific",
        "income_bracket",
        "industry",
        "interest",
        "language",
        "marital_status",
        "skill_level",
        "state",
    }
    assert expected <= set(registry.categories())
    assert default_registry() is registry, "Tables should be loaded once"


def test_country_resolves_by_name_code_and_demonym():
    registry = default_registry()

    assert registry.resolve_best("country", "USA") == {"united states"}
    assert registry.resolve_best("country", "united states of america") == {"united states"}
    assert registry.resolve_best("country", "British") == {"united kingdom"}
    assert registry.resolve_best("country", "u.k.") == {"united kingdom"}
    assert registry.code_for("country", "united kingdom") == "GB"


def test_resolution_is_case_insensitive_and_never_fuzzy():
    registry = default_registry()

    assert registry.resolve("country", "CANADA") == registry.resolve("country", "canada")
    assert registry.resolve("country", "Untied States") == frozenset()
    assert registry.resolve("country", "") == frozenset()


def test_state_abbreviations_are_disambiguated_by_parent_country():
    registry = default_registry()

    assert registry.resolve("state", "WA") >= {"washington", "western australia"}
    assert registry.resolve_best("state", "WA", parent="united states") == {"washington"}
    assert registry.resolve_best("state", "WA", parent="australia") == {"western australia"}
    assert registry.resolve_best("state", "NY", parent="united states") == {"new york"}


def test_state_outside_parent_still_resolves_globally():
    registry = default_registry()

    assert registry.resolve_best("state", "New York", parent="canada") == {"new york"}


@pytest.mark.parametrize(
    ("category", "needle", "expected"),
    [
        ("education_level", "PhD", "doctoral degree"),
        ("education_level", "Bachelor's Degree", "bachelor degree"),
        ("industry", "Software Development", "technology"),
        ("employment_status", "Full-time employed", "employed full-time"),
        ("employment_status", "Employed full-time", "employed full-time"),
        ("boolean", "I agree", "yes"),
        ("boolean", "No thanks", "no"),
    ],
)
def test_category_values_resolve_to_canonical_keys(category, needle, expected):
    assert default_registry().resolve_best(category, needle) == {expected}


def test_whole_token_containment_in_both_directions():
    registry = default_registry()

    # A variant inside a longer needle.
    assert "technology" in registry.resolve("industry", "Tech startup")
    # A short needle inside a longer variant.
    assert "united states" in registry.resolve("country", "america")


def test_variants_of_lists_key_variants_and_codes():
    variants = default_registry().variants_of("country", "united states")

    assert variants[0] == "united states"
    assert "american" in variants
    assert "US" in variants
    assert default_registry().variants_of("country", "atlantis") == []


def test_unknown_category_raises_value_error():
    with pytest.raises(ValueError):
        default_registry().resolve("planet", "mars")


def test_table_rejects_duplicate_keys():
    payload = {
        "category": "colour",
        "entries": [{"key": "red", "variants": ["red"]}, {"key": "Red", "variants": ["crimson"]}],
    }

    with pytest.raises(ValueError):
        AliasTable.from_dict(payload)


def test_registry_loads_tables_from_directory(tmp_path):
    table = {
        "category": "colour",
        "entries": [
            {"key": "red", "codes": ["R"], "variants": ["red", "crimson"]},
            {"key": "blue", "codes": ["B"], "variants": ["blue", "navy blue"]},
        ],
    }
    (tmp_path / "colour.json").write_text(json.dumps(table), encoding="utf-8")

    registry = AliasRegistry.load(tmp_path)

    assert registry.categories() == ["colour"]
    assert registry.resolve_best("colour", "Crimson") == {"red"}
    assert registry.resolve("colour", "navy") == {"blue"}
    assert registry.code_for("colour", "blue") == "B"
