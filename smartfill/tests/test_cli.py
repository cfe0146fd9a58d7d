import json

from click.testing import CliRunner

from smartfill.cli.main import cli


def _write(tmp_path, name, payload):
    path = tmp_path / name
    path.write_text(json.dumps(payload), encoding="utf-8")
    return str(path)


def test_normalize_prints_canonical_json(tmp_path):
    profile = _write(tmp_path, "profile.json", {"firstName": "Jane", "country": "USA"})

    result = CliRunner().invoke(cli, ["normalize", profile, "--json"])

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["identity"]["first_name"]["value"] == "Jane"
    assert payload["address"]["country_code"]["value"] == "US"


def test_normalize_table(tmp_path):
    profile = _write(tmp_path, "profile.json", {"firstName": "Jane"})

    result = CliRunner().invoke(cli, ["normalize", profile])

    assert result.exit_code == 0, result.output
    assert "Jane" in result.output
    assert "Canonical Profile" in result.output


def test_match_json_output(tmp_path):
    profile = _write(tmp_path, "profile.json", {"country": "USA", "yearsOfExperience": 8})
    fields = _write(
        tmp_path,
        "fields.json",
        [
            {"label": "Country", "options": ["CAN", "USA"]},
            {"label": "Experience", "options": ["Entry (0-2)", "Senior (6-10)"]},
            {"label": "Favourite season", "options": ["Spring", "Summer"]},
        ],
    )

    result = CliRunner().invoke(cli, ["match", profile, fields, "--json"])

    assert result.exit_code == 0, result.output
    reports = json.loads(result.stdout)
    assert [report["result"]["method"] for report in reports] == ["direct", "category", "none"]
    assert reports[0]["result"]["option"]["text"] == "USA"
    assert len(reports[0]["attempts"]) == 4


def test_match_table_with_explain(tmp_path):
    profile = _write(tmp_path, "profile.json", {"country": "USA"})
    fields = _write(tmp_path, "fields.json", {"label": "Country", "options": ["CAN", "USA"]})

    result = CliRunner().invoke(cli, ["match", profile, fields, "--explain"])

    assert result.exit_code == 0, result.output
    assert "Matches" in result.output
    assert "Stages: Country" in result.output
    assert "accepted" in result.output


def test_match_rejects_bad_field_descriptors(tmp_path):
    profile = _write(tmp_path, "profile.json", {})
    fields = _write(tmp_path, "fields.json", [{"label": "Country", "options": "USA"}])

    result = CliRunner().invoke(cli, ["match", profile, fields])

    assert result.exit_code == 2


def test_invalid_json_is_a_usage_error(tmp_path):
    broken = tmp_path / "profile.json"
    broken.write_text("{not json", encoding="utf-8")

    result = CliRunner().invoke(cli, ["normalize", str(broken)])

    assert result.exit_code == 2
    assert "not valid JSON" in result.output


def test_suggest_lists_profile_values(tmp_path):
    profile = _write(tmp_path, "profile.json", {"first_name": "Jane", "nickname": "JJ"})

    result = CliRunner().invoke(cli, ["suggest", profile, "first_name"])
    empty = CliRunner().invoke(cli, ["suggest", profile, "phone"])

    assert result.exit_code == 0, result.output
    assert "Jane" in result.output
    assert "JJ" in result.output
    assert "No profile values for" in empty.output


def test_config_show_and_get():
    runner = CliRunner()

    shown = runner.invoke(cli, ["config", "show"])
    value = runner.invoke(cli, ["config", "get", "low_confidence_policy"])
    missing = runner.invoke(cli, ["config", "get", "colour"])

    assert shown.exit_code == 0, shown.output
    assert "confidence_threshold" in shown.output
    assert "Stage minimums" in shown.output
    assert "confirm" in value.output
    assert missing.exit_code == 1
