import json
from datetime import date

import pytest

from smartfill.matching import (
    AttemptStatus,
    CategoryStrategy,
    FieldDescriptor,
    InvalidFieldError,
    MatchEngine,
    MatchMethod,
    Option,
    SemanticStrategy,
)
from smartfill.profile.normalizer import normalize

TODAY = date(2024, 6, 1)


def _field(label, *texts, **extra):
    options = [Option(text=text, value=text, index=position) for position, text in enumerate(texts)]
    return FieldDescriptor(label=label, options=options, **extra)


def _profile(raw):
    return normalize(raw, today=TODAY)


class StubSuggestionClient:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def suggest(self, request):
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        return self.reply


def test_country_code_matches_directly():
    field = _field("Country", "USA", "CAN", "GBR")

    result = MatchEngine().match(field, _profile({"country": "USA"}))

    assert result.option is field.options[0]
    assert result.method is MatchMethod.DIRECT
    assert result.confidence == pytest.approx(1.0)
    assert result.source == "address.country"


def test_state_abbreviation_matches_directly():
    field = _field("State", "CA", "NY", "TX")

    result = MatchEngine().match(field, _profile({"state": "NY", "country": "US"}))

    assert result.option is field.options[1]
    assert result.method is MatchMethod.DIRECT
    assert result.confidence == pytest.approx(1.0)


def test_boolean_preference_answers_yes_no_question():
    field = _field("Subscribe to newsletter?", "Yes", "No")

    result = MatchEngine().match(field, _profile({"preferences": {"newsletter": True}}))

    assert result.option is field.options[0]
    assert result.method is MatchMethod.CATEGORY
    assert result.confidence == pytest.approx(0.9)


def test_missing_profile_data_yields_no_match():
    field = _field("Industry", "Technology", "Healthcare")

    report = MatchEngine().explain(field, _profile({"firstName": "Jane"}))

    assert report.result.option is None
    assert report.result.confidence == 0.0
    assert report.result.method is MatchMethod.NONE
    statuses = {attempt.stage: attempt.status for attempt in report.attempts}
    assert statuses[MatchMethod.SEMANTIC] is AttemptStatus.SKIPPED
    assert statuses[MatchMethod.AI] is AttemptStatus.SKIPPED


def test_years_of_experience_fall_within_option_range():
    field = _field("Experience", "Entry (0-2)", "Mid (3-5)", "Senior (6-10)")

    result = MatchEngine().match(field, _profile({"yearsOfExperience": 8}))

    assert result.option is field.options[2]
    assert result.method is MatchMethod.CATEGORY
    assert result.confidence == pytest.approx(0.855)


def test_age_falls_within_age_range_option():
    field = _field("Age", "18-24", "25-34", "35-44", "45+")

    result = MatchEngine().match(field, _profile({"age": 28}))

    assert result.option.text == "25-34"
    assert result.method is MatchMethod.CATEGORY
    assert result.confidence == pytest.approx(0.9)


@pytest.mark.parametrize(
    ("raw", "label", "texts", "expected"),
    [
        ({"nationality": "British"}, "Nationality", ["United States", "United Kingdom", "France"], "United Kingdom"),
        (
            {"education": "PhD"},
            "Highest level of education",
            ["High School", "Bachelor's Degree", "Master's Degree", "Doctorate"],
            "Doctorate",
        ),
        ({"industry": "Software Development"}, "Industry", ["Technology", "Healthcare", "Finance"], "Technology"),
        (
            {"employmentStatus": "Full-time employed"},
            "Employment status",
            ["Employed part-time", "Employed full-time", "Unemployed", "Retired"],
            "Employed full-time",
        ),
        ({"country": "US"}, "Country", ["Canada", "United States", "United Kingdom"], "United States"),
        ({"state": "New York", "country": "USA"}, "State", ["CA", "NY", "TX"], "NY"),
    ],
)
def test_category_stage_resolves_through_alias_tables(raw, label, texts, expected):
    field = _field(label, *texts)

    result = MatchEngine().match(field, _profile(raw))

    assert result.option is not None
    assert result.option.text == expected
    assert result.method is MatchMethod.CATEGORY
    assert result.confidence > 0.5


def test_semantic_stage_is_capped():
    field = _field("Pick one", "Photography", "Cooking")

    result = MatchEngine().match(field, _profile({"hobbies": ["Photography"]}))

    assert result.option is field.options[0]
    assert result.method is MatchMethod.SEMANTIC
    assert result.confidence <= 0.75
    assert result.confidence > 0.4


def test_result_option_is_one_of_the_field_options():
    field = _field("Country", "Canada", "Canada", "Mexico")

    result = MatchEngine().match(field, _profile({"country": "Canada"}))

    assert any(result.option is option for option in field.options)
    # Equal texts tie; the earlier option wins.
    assert result.option is field.options[0]


def test_placeholder_and_disabled_options_are_never_chosen():
    options = [
        Option(text="Select a country", value="", index=0),
        Option(text="United States", value="US", disabled=True, index=1),
        Option(text="Canada", value="CA", index=2),
    ]
    field = FieldDescriptor(label="Country", options=options)

    result = MatchEngine().match(field, _profile({"country": "United States"}))

    assert result.option is None or result.option is options[2]
    assert result.option is not options[1]


def test_matching_is_deterministic():
    engine = MatchEngine()
    field = _field("Experience", "Entry (0-2)", "Mid (3-5)", "Senior (6-10)")
    profile = _profile({"yearsOfExperience": 8})

    first = engine.explain(field, profile)
    second = engine.explain(field, profile)

    assert first.result == second.result
    assert [attempt.status for attempt in first.attempts] == [attempt.status for attempt in second.attempts]


def test_stage_order_is_reported():
    report = MatchEngine().explain(_field("Country", "USA", "CAN"), _profile({"country": "USA"}))

    assert [attempt.stage for attempt in report.attempts] == [
        MatchMethod.DIRECT,
        MatchMethod.CATEGORY,
        MatchMethod.SEMANTIC,
        MatchMethod.AI,
    ]
    assert report.attempts[0].status is AttemptStatus.ACCEPTED
    assert all(attempt.status is AttemptStatus.SKIPPED for attempt in report.attempts[1:])


def test_empty_option_list_never_matches():
    result = MatchEngine().match(FieldDescriptor(label="Country"), _profile({"country": "USA"}))

    assert not result.matched


def test_bad_inputs_raise_type_error():
    engine = MatchEngine()
    profile = _profile({})

    with pytest.raises(TypeError):
        engine.match({"label": "Country"}, profile)
    with pytest.raises(TypeError):
        engine.match(FieldDescriptor(label="Country"), {"country": "USA"})
    with pytest.raises(TypeError):
        FieldDescriptor(label="Country", options=["USA"])


def test_field_descriptor_from_dict():
    field = FieldDescriptor.from_dict({"label": "Country", "elementId": "country", "options": ["USA", {"text": "Canada"}]})

    assert field.element_id == "country"
    assert [option.text for option in field.options] == ["USA", "Canada"]
    assert [option.index for option in field.options] == [0, 1]

    with pytest.raises(InvalidFieldError):
        FieldDescriptor.from_dict({"label": "Country", "options": "USA"})
    with pytest.raises(InvalidFieldError):
        FieldDescriptor.from_dict(["Country"])


# ----------------------------------------------------------------------
# Remote stage
# ----------------------------------------------------------------------
SEASONS = ("Spring", "Summer", "Autumn", "Winter")


def test_remote_stage_is_skipped_unless_allowed():
    client = StubSuggestionClient(reply={"suggestions": [{"optionIndex": 1, "confidence": 0.65}]})
    engine = MatchEngine(suggestion_client=client)

    report = engine.explain(_field("Favourite season", *SEASONS), _profile({"firstName": "Jane"}))

    assert client.calls == []
    assert not report.result.matched
    assert report.attempts[-1].status is AttemptStatus.SKIPPED


def test_remote_suggestion_is_validated_and_used():
    client = StubSuggestionClient(
        reply={"suggestions": [{"optionIndex": 1, "confidence": 0.65, "reasoning": "x"}]}
    )
    engine = MatchEngine(suggestion_client=client)
    field = _field("Favourite season", *SEASONS)

    result = engine.match(field, _profile({"firstName": "Jane"}), allow_remote=True)

    assert result.option is field.options[1]
    assert result.method is MatchMethod.AI
    assert result.confidence == pytest.approx(0.65)
    request = client.calls[0]
    assert request["fieldContext"] == "favourite season"
    assert [item["text"] for item in request["options"]] == list(SEASONS)
    assert request["profileSnapshot"]["identity.first_name"] == "Jane"


def test_remote_reply_as_fenced_json_text():
    reply = "```json\n" + json.dumps({"suggestions": [{"optionIndex": 3, "confidence": 0.5}]}) + "\n```"
    engine = MatchEngine(suggestion_client=StubSuggestionClient(reply=reply))
    field = _field("Favourite season", *SEASONS)

    result = engine.match(field, _profile({"firstName": "Jane"}), allow_remote=True)

    assert result.option is field.options[3]


@pytest.mark.parametrize(
    "client",
    [
        StubSuggestionClient(error=RuntimeError("connection refused")),
        StubSuggestionClient(reply="not json at all"),
        StubSuggestionClient(reply={"suggestions": [{"optionIndex": 9, "confidence": 0.9}]}),
        StubSuggestionClient(reply={"suggestions": [{"optionIndex": 0, "confidence": 2}]}),
    ],
)
def test_remote_failures_degrade_to_no_match(client):
    engine = MatchEngine(suggestion_client=client)

    report = engine.explain(_field("Favourite season", *SEASONS), _profile({"firstName": "Jane"}), allow_remote=True)

    assert not report.result.matched
    assert report.remote_unavailable


def test_remote_stage_without_client_is_unavailable():
    report = MatchEngine().explain(
        _field("Favourite season", *SEASONS), _profile({"firstName": "Jane"}), allow_remote=True
    )

    assert report.remote_unavailable
    assert not report.result.matched


def test_search_hint_uses_referenced_profile_value():
    engine = MatchEngine()
    profile = _profile({"country": "USA", "industry": "Software Development"})

    assert engine.search_hint(FieldDescriptor(label="Country"), profile) == "USA"
    assert engine.search_hint(FieldDescriptor(label="Industry"), profile) == "Software Development"
    assert engine.search_hint(FieldDescriptor(label="Favourite season"), profile) is None


def test_category_is_detected_from_option_texts():
    field = _field("Select one", "Canada", "United States", "Mexico")

    result = MatchEngine().match(field, _profile({"country": "USA"}))

    assert result.option is field.options[1]
    assert result.method is MatchMethod.CATEGORY
    assert result.confidence > 0.5


def test_options_without_a_clear_category_are_not_detected():
    strategy = CategoryStrategy()
    mixed = _field("Select one", "Canada", "Photography", "Cooking", "Hiking")
    numeric = _field("Quantity", "1", "2", "3", "4")

    assert strategy.categories_for(mixed) == []
    assert strategy.categories_for(numeric) == []


def test_exact_alias_outranks_semantic_resemblance():
    texts = ("Canada", "United States", "Mexico")
    profile = _profile({"country": "United States"})
    category = CategoryStrategy()

    by_category = category.attempt(_field("Country", *texts), profile)
    by_semantics = SemanticStrategy(category).attempt(_field("Favourite place", *texts), profile)

    assert by_category is not None and by_semantics is not None
    assert by_category.option.text == by_semantics.option.text == "United States"
    assert by_category.confidence >= by_semantics.confidence
    assert by_semantics.confidence <= 0.75


@pytest.mark.parametrize(
    "label, texts, expected",
    [
        ("Birth month", [f"{month:02d}" for month in range(1, 13)], "05"),
        ("Month of birth", ["Jan", "Feb", "Mar", "Apr", "May", "Jun"], "May"),
        ("Year of birth", ["1994", "1995", "1996", "1997"], "1996"),
        ("Day of birth", ["1", "2", "3", "4", "5"], "3"),
    ],
)
def test_date_parts_are_matched_from_date_of_birth(label, texts, expected):
    field = _field(label, *texts)

    result = MatchEngine().match(field, _profile({"dateOfBirth": "1996-05-03"}))

    assert result.option is not None
    assert result.option.text == expected
    assert result.confidence > 0.5


@pytest.mark.parametrize(
    "text, value, placeholder",
    [
        ("Select Medical", "Select Medical", False),
        ("Selective Service", "Selective Service", False),
        ("Choosers Club", "Choosers Club", False),
        ("Select your country", "Select your country", True),
        ("-- Select --", "", True),
        ("Select...", "", True),
        ("Please choose an option", "", True),
    ],
)
def test_placeholder_detection_respects_word_boundaries(text, value, placeholder):
    assert Option(text=text, value=value).is_placeholder is placeholder
