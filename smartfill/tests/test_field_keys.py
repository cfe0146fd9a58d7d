from datetime import date

import pytest

from smartfill.matching import FieldDescriptor, decide_checkbox, referenced_paths
from smartfill.profile.normalizer import normalize

TODAY = date(2024, 6, 1)


def _paths(field):
    return [reference.path for reference in referenced_paths(field)]


@pytest.mark.parametrize(
    ("field", "expected"),
    [
        (FieldDescriptor(label="First name"), "identity.first_name"),
        (FieldDescriptor(name="firstName"), "identity.first_name"),
        (FieldDescriptor(element_id="email_address"), "contact.email"),
        (FieldDescriptor(placeholder="Date of birth"), "identity.date_of_birth"),
        (FieldDescriptor(aria_label="Postal code"), "address.zip_code"),
        (FieldDescriptor(label="Years of experience"), "employment.years_of_experience"),
    ],
)
def test_surface_text_refers_to_profile_path(field, expected):
    references = referenced_paths(field)

    assert references, field
    assert references[0].path == expected
    assert references[0].score == 1.0


def test_label_outranks_developer_ids():
    field = FieldDescriptor(label="Country", name="addr_line_2")

    assert _paths(field)[0] == "address.country"


def test_unrelated_text_has_no_references():
    assert _paths(FieldDescriptor(label="Favourite season")) == []
    assert _paths(FieldDescriptor()) == []


def test_references_are_stable():
    field = FieldDescriptor(label="Employment status", name="employmentStatus")

    assert referenced_paths(field) == referenced_paths(field)
    assert "employment.status" in _paths(field)


def test_checkbox_follows_boolean_preference():
    profile = normalize({"newsletter": True, "marketingEmails": False}, today=TODAY)

    subscribe = decide_checkbox(FieldDescriptor(label="Subscribe to our newsletter", type="checkbox"), profile)
    offers = decide_checkbox(FieldDescriptor(label="Send me special offers", type="checkbox"), profile)

    assert subscribe.checked is True
    assert subscribe.source == "preferences.newsletter"
    assert subscribe.confidence == pytest.approx(0.9)
    assert offers.checked is False
    assert offers.confidence == pytest.approx(0.855)


def test_checkbox_without_profile_value_is_unknown():
    profile = normalize({}, today=TODAY)

    decision = decide_checkbox(FieldDescriptor(label="I accept the terms and conditions"), profile)

    assert not decision.known
    assert decision.confidence == 0.0
    assert "preferences.terms" in decision.reasoning


def test_checkbox_unrelated_label_is_unknown():
    decision = decide_checkbox(FieldDescriptor(label="Remember me"), normalize({"newsletter": True}, today=TODAY))

    assert decision.checked is None
