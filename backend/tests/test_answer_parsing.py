import pytest

from sifu.infra.llm.anthropic_engine import parse_answer


def test_plain_json_object():
    answer = parse_answer('{"response_text": "Sink the qi.", "terms_used": [{"term": "qi"}]}')
    assert answer.response_text == "Sink the qi."
    assert answer.terms_used == [{"term": "qi"}]
    assert answer.sections_referenced == []
    assert answer.classical_references == []


def test_fenced_json():
    content = '```json\n{"response_text": "Stand like a tree."}\n```'
    assert parse_answer(content).response_text == "Stand like a tree."


@pytest.mark.parametrize("content", [
    "Sure! Here is my answer.",
    "[1, 2, 3]",
    '{"terms_used": []}',
    '{"response_text": ""}',
])
def test_malformed_output_raises(content):
    with pytest.raises(ValueError):
        parse_answer(content)
