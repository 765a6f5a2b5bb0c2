import json

import pytest

from coach import shapes
from coach.parser import Ok, ParseFailure, apply_aliases, extract_first_json, parse
from coach.shapes import GrammarFeedback, SentenceRefinement

pytestmark = pytest.mark.unit


class TestParse:
    def test_round_trip(self):
        """Should give back an equal model after serializing it to JSON."""
        original = SentenceRefinement(
            original="I am agree.", polished="I agree.", explanation="No auxiliary."
        )
        result = parse(original.model_dump_json(), shapes.SENTENCE_REFINEMENT)

        assert result == Ok(original)

    def test_non_json_keeps_raw_text(self):
        """Should fail with the exact input preserved for diagnostics."""
        result = parse("not json", shapes.SENTENCE_REFINEMENT)

        assert isinstance(result, ParseFailure)
        assert result.raw_text == "not json"
        assert "invalid JSON" in result.error

    def test_deeply_nested_input(self):
        """Should return a failure instead of raising on pathologically nested JSON."""
        text = "[" * 100000 + "]" * 100000
        result = parse(text, shapes.GRAMMAR_FEEDBACK)

        assert isinstance(result, ParseFailure)
        assert result.raw_text == text
        assert "nested too deeply" in result.error

    def test_empty_text_fails(self):
        """Should fail rather than validate an empty response."""
        result = parse("", shapes.SENTENCE_REFINEMENT)

        assert isinstance(result, ParseFailure)
        assert "empty" in result.error

    def test_extracts_json_from_prose(self):
        """Should find the JSON object when the model wraps it in explanation."""
        text = 'Sure! Here it is: {"original": "a", "polished": "b"} Hope it helps.'
        result = parse(text, shapes.SENTENCE_REFINEMENT)

        assert isinstance(result, Ok)
        assert result.value.polished == "b"

    def test_container_mismatch(self):
        """Should reject an object where an array is expected."""
        result = parse('{"frase_numero": 1}', shapes.GRAMMAR_FEEDBACK)

        assert isinstance(result, ParseFailure)
        assert "expected a JSON array" in result.error

    def test_missing_required_field_is_failure(self):
        """Should never return a partially populated value."""
        payload = json.dumps([{"frase_numero": 1, "nivel_b2": "x", "nivel_c1": "y"}])
        result = parse(payload, shapes.GRAMMAR_FEEDBACK)

        assert isinstance(result, ParseFailure)
        assert "errores_gramaticales" in result.error

    def test_array_of_models(self):
        """Should validate every element of an array shape."""
        payload = json.dumps(
            [
                {"frase_numero": 1, "errores_gramaticales": "None", "nivel_b2": "a", "nivel_c1": "b"},
                {"frase_numero": 2, "errores_gramaticales": "None", "nivel_b2": "c", "nivel_c1": "d"},
            ]
        )
        result = parse(payload, shapes.GRAMMAR_FEEDBACK)

        assert isinstance(result, Ok)
        assert [item.frase_numero for item in result.value] == [1, 2]
        assert all(isinstance(item, GrammarFeedback) for item in result.value)

    def test_alias_keys(self):
        """Should accept documented alternate key names."""
        result = parse('{"refined": "I agree."}', shapes.SENTENCE_REFINEMENT)

        assert isinstance(result, Ok)
        assert result.value.polished == "I agree."

    def test_exercise_items_use_alternate_text_keys(self):
        """Should read exercise questions given as text or sentence."""
        payload = json.dumps(
            {
                "b2": [{"text": "Fill ______ in."}],
                "c1": [{"sentence": "Had I ______ (know)...", "type": "fill_in_blank"}],
            }
        )
        result = parse(payload, shapes.EXERCISE_SET)

        assert isinstance(result, Ok)
        assert result.value.b2[0].question == "Fill ______ in."
        assert result.value.c1[0].question == "Had I ______ (know)..."

    def test_score_out_of_range(self):
        """Should reject a pronunciation score above 100."""
        result = parse('{"score": 120, "feedback": "ok"}', shapes.PRONUNCIATION_ANALYSIS)

        assert isinstance(result, ParseFailure)

    def test_story_turn_requires_feedback_when_rejected(self):
        """Should reject an incorrect story turn with no feedback."""
        result = parse('{"is_correct": false}', shapes.STORY_TURN)

        assert isinstance(result, ParseFailure)


class TestExtractFirstJson:
    def test_ignores_brackets_inside_strings(self):
        """Should not be confused by braces inside string literals."""
        text = 'note {"a": "}{", "b": [1, 2]} trailing }'
        assert extract_first_json(text) == '{"a": "}{", "b": [1, 2]}'

    def test_prefers_earliest_value(self):
        """Should return the array when it starts before any object."""
        assert extract_first_json('x [{"a": 1}] {"b": 2}') == '[{"a": 1}]'

    def test_unbalanced(self):
        """Should return None when no value closes."""
        assert extract_first_json('{"a": [1, 2}') is None
        assert extract_first_json("no json here") is None


class TestApplyAliases:
    def test_canonical_key_wins(self):
        """Should keep a present canonical value."""
        item = {"polished": "x", "refined": "y"}
        assert apply_aliases(item, {"polished": ("refined",)})["polished"] == "x"

    def test_first_present_alternate(self):
        """Should copy the first non-empty alternate in order."""
        item = {"b": "", "c": "from c"}
        result = apply_aliases(item, {"a": ("b", "c")})

        assert result["a"] == "from c"
        assert "a" not in item
