"""Tests for function-call extraction from free text."""

import json

import pytest

from neural_ai.adapters.schema import ForcedFunction, FunctionDefinition
from neural_ai.tool_parsers import (
    CallSyntaxStrategy,
    EMPTY_ARGUMENTS,
    EnvelopeStrategy,
    ExtractionStrategy,
    append_function_prompt,
    build_function_prompt,
    extract_function_calls,
    find_balanced_end,
    has_function_calls,
    normalize_arguments,
    repair_json,
)


@pytest.fixture
def functions(weather_function):
    return [FunctionDefinition(**weather_function)]


# ─────────────────────────────────────────────────────────────────────
# JSON repair
# ─────────────────────────────────────────────────────────────────────


class TestRepairJson:
    def test_valid_json_is_compacted(self):
        assert repair_json('{ "a" : 1 }') == '{"a":1}'

    def test_closes_missing_braces(self):
        repaired = repair_json('{"location": "Tokyo", "extra": {"unit": "celsius"')
        assert json.loads(repaired) == {"location": "Tokyo", "extra": {"unit": "celsius"}}

    def test_closes_unterminated_string(self):
        assert json.loads(repair_json('{"location": "Tok')) == {"location": "Tok"}

    def test_drops_dangling_key_and_trailing_comma(self):
        assert json.loads(repair_json('{"a": 1, "b":')) == {"a": 1}
        assert json.loads(repair_json('{"a": [1, 2,')) == {"a": [1, 2]}

    def test_keeps_balanced_prefix(self):
        assert json.loads(repair_json('{"a": 1} and then some prose')) == {"a": 1}

    def test_irreparable_returns_none(self):
        assert repair_json("") is None
        assert repair_json("{not json at all") is None

    def test_find_balanced_end_ignores_braces_in_strings(self):
        text = '{"a": "}{", "b": {"c": 1}} tail'
        assert text[:find_balanced_end(text, 0)] == '{"a": "}{", "b": {"c": 1}}'
        assert find_balanced_end('{"a": {', 0) is None


class TestNormalizeArguments:
    def test_dict_serialized(self):
        assert json.loads(normalize_arguments({"x": 1})) == {"x": 1}

    def test_garbage_becomes_empty_object(self):
        assert normalize_arguments("{{{:::") == EMPTY_ARGUMENTS
        assert normalize_arguments(None) == EMPTY_ARGUMENTS


# ─────────────────────────────────────────────────────────────────────
# Strategies
# ─────────────────────────────────────────────────────────────────────


class TestEnvelope:
    def test_get_weather_envelope(self):
        text = 'Sure. {"name": "getWeather", "arguments": {"location": "Tokyo", "unit": "celsius"}}'

        calls = extract_function_calls(text)

        assert len(calls) == 1
        assert calls[0].name == "getWeather"
        assert json.loads(calls[0].arguments) == {"location": "Tokyo", "unit": "celsius"}

    def test_multiple_envelopes(self):
        text = (
            '{"name": "a", "arguments": {"x": 1}}\n'
            '{"name": "b", "arguments": {"y": 2}}'
        )
        calls = extract_function_calls(text)
        assert [c.name for c in calls] == ["a", "b"]

    def test_string_encoded_arguments(self):
        text = '{"name": "getWeather", "arguments": "{\\"location\\": \\"Paris\\"}"}'
        calls = extract_function_calls(text)
        assert json.loads(calls[0].arguments) == {"location": "Paris"}

    def test_truncated_arguments_repaired(self):
        text = '{"name": "getWeather", "arguments": {"location": "Tokyo", "unit": "cel'
        calls = extract_function_calls(text)
        assert json.loads(calls[0].arguments) == {"location": "Tokyo", "unit": "cel"}

    def test_unrepairable_arguments_fall_back_to_empty(self):
        text = '{"name": "getWeather", "arguments": {"location": Tokyo'
        calls = extract_function_calls(text)
        assert calls[0].name == "getWeather"
        assert calls[0].arguments == EMPTY_ARGUMENTS


class TestCallSyntax:
    def test_call_syntax(self, functions):
        calls = extract_function_calls('getWeather({"location": "Oslo"})', functions=functions)
        assert calls[0].name == "getWeather"
        assert json.loads(calls[0].arguments) == {"location": "Oslo"}

    def test_unknown_names_ignored_when_functions_known(self, functions):
        assert extract_function_calls('print({"a": 1})', functions=functions) is None

    def test_any_name_when_no_functions_known(self):
        calls = extract_function_calls('lookup({"q": "x"})')
        assert calls[0].name == "lookup"


class TestFencedBlock:
    def test_fenced_block_with_args(self):
        text = 'Calling now:\n```json\n{"name": "getWeather", "args": {"location": "Lima"}}\n```'
        calls = extract_function_calls(text)
        assert calls[0].name == "getWeather"
        assert json.loads(calls[0].arguments) == {"location": "Lima"}

    def test_fence_without_arguments_ignored(self):
        text = '```json\n{"name": "getWeather"}\n```'
        assert extract_function_calls(text) is None


class TestForcedFunction:
    def test_loose_key_value_pairs(self, functions):
        text = "location: Tokyo, unit = celsius"
        calls = extract_function_calls(text, ForcedFunction(name="getWeather"), functions)

        assert calls[0].name == "getWeather"
        assert json.loads(calls[0].arguments) == {"location": "Tokyo", "unit": "celsius"}

    def test_requires_required_parameters(self, functions):
        text = "unit: celsius"
        assert extract_function_calls(text, ForcedFunction(name="getWeather"), functions) is None

    def test_only_when_forced(self, functions):
        assert extract_function_calls("location: Tokyo", "auto", functions) is None


# ─────────────────────────────────────────────────────────────────────
# Pipeline behavior
# ─────────────────────────────────────────────────────────────────────


class TestPipeline:
    def test_plain_text_has_no_calls(self, functions):
        assert extract_function_calls("It is sunny in Tokyo.", "auto", functions) is None
        assert not has_function_calls("It is sunny in Tokyo.")

    def test_empty_text(self):
        assert extract_function_calls("") is None

    def test_none_directive_disables_extraction(self):
        text = '{"name": "getWeather", "arguments": {"location": "Tokyo"}}'
        assert extract_function_calls(text, "none") is None

    def test_first_strategy_wins(self):
        text = (
            '{"name": "fromEnvelope", "arguments": {}} '
            'fromCall({"a": 1})'
        )
        calls = extract_function_calls(text)
        assert [c.name for c in calls] == ["fromEnvelope"]

    def test_failing_strategy_is_skipped(self):
        class Broken(ExtractionStrategy):
            name = "broken"

            def extract(self, text, context):
                raise RuntimeError("boom")

        calls = extract_function_calls(
            'lookup({"q": 1})',
            strategies=(Broken(), EnvelopeStrategy(), CallSyntaxStrategy()),
        )
        assert calls[0].name == "lookup"

    @pytest.mark.parametrize("text", [
        "{", "{{{{", '{"name": "', '{"name": "x", "arguments": ', "```json\n{", "f({", "\x00\xff",
    ])
    def test_never_raises(self, text, functions):
        extract_function_calls(text, ForcedFunction(name="getWeather"), functions)


# ─────────────────────────────────────────────────────────────────────
# Prompt injection text
# ─────────────────────────────────────────────────────────────────────


class TestFunctionPrompt:
    def test_auto_prompt(self, functions):
        prompt = build_function_prompt(functions, "auto")
        assert prompt.startswith("You have access to the following functions:")
        assert '"name": "getWeather"' in prompt
        assert '{"name": "functionName", "arguments": {...}}' in prompt

    def test_forced_prompt(self, functions):
        prompt = build_function_prompt(functions, ForcedFunction(name="getWeather"))
        assert "You MUST use the function: getWeather" in prompt
        assert '{"name": "getWeather", "arguments": {...}}' in prompt

    def test_append(self, functions):
        text = append_function_prompt("What's the weather?", functions)
        assert text.startswith("What's the weather?\n\nYou have access")
