import json
from types import SimpleNamespace

import pytest

from smartfill.remote import OpenAISuggestionClient, SuggestionResponse


class StubCompletions:
    def __init__(self, content):
        self.content = content
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class StubOpenAI:
    def __init__(self, content):
        self.completions = StubCompletions(content)
        self.chat = SimpleNamespace(completions=self.completions)


REQUEST = {
    "fieldContext": "favourite season",
    "options": [{"text": "Spring", "value": "spring"}, {"text": "Summer", "value": "summer"}],
    "profileSnapshot": {"identity.first_name": "Jane"},
}


def test_suggest_sends_json_request_and_decodes_reply():
    reply = {"suggestions": [{"optionIndex": 1, "confidence": 0.7, "reasoning": "likes warm weather"}]}
    stub = StubOpenAI(json.dumps(reply))
    client = OpenAISuggestionClient(client=stub, model="test-model")

    data = client.suggest(REQUEST)

    assert data == reply
    call = stub.completions.calls[0]
    assert call["model"] == "test-model"
    assert call["response_format"] == {"type": "json_object"}
    assert json.loads(call["messages"][1]["content"]) == REQUEST
    assert SuggestionResponse.model_validate(data).suggestions[0].option_index == 1


def test_fenced_reply_is_unwrapped():
    stub = StubOpenAI('```json\n{"suggestions": []}\n```')

    assert OpenAISuggestionClient(client=stub).suggest(REQUEST) == {"suggestions": []}


@pytest.mark.parametrize("content", ["not json", "[1, 2, 3]"])
def test_malformed_reply_raises_value_error(content):
    client = OpenAISuggestionClient(client=StubOpenAI(content))

    with pytest.raises(ValueError):
        client.suggest(REQUEST)


def test_missing_content_raises_runtime_error():
    client = OpenAISuggestionClient(client=StubOpenAI(None))

    with pytest.raises(RuntimeError):
        client.suggest(REQUEST)
