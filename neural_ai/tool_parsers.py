"""
Function-call extraction from free text.

Backends without native tool calling (Google in prompt-injection mode,
Ollama, HuggingFace) are told to answer with a JSON envelope such as:

    {"name": "getWeather", "arguments": {"location": "Tokyo"}}

Models follow that instruction loosely, so recovery is a strategy pipeline,
tried in order, first non-empty result wins:

1. EnvelopeStrategy      - {"name": ..., "arguments": {...}} anywhere in the text
2. CallSyntaxStrategy    - getWeather({"location": "Tokyo"})
3. FencedBlockStrategy   - ```json {"name": ..., "args": {...}} ```
4. ForcedFunctionStrategy - bare `location: "Tokyo"` pairs, only when the
   request forced a function whose parameters are known

Extraction never raises. No match means "the model produced no function call".
Arguments are always returned as a JSON string; truncated objects are salvaged
by closing open braces, and "{}" is used when that fails.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence

from neural_ai.adapters.schema import (
    ForcedFunction,
    FunctionCall,
    FunctionCallDirective,
    FunctionDefinition,
)

logger = logging.getLogger(__name__)

EMPTY_ARGUMENTS = "{}"

_FAILED = object()
_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_DANGLING_KEY = re.compile(r',?\s*"(?:[^"\\]|\\.)*"\s*:\s*$')


# ─────────────────────────────────────────────────────────────────────
# JSON REPAIR
# ─────────────────────────────────────────────────────────────────────

def _try_parse(candidate: str) -> Any:
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return _FAILED


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def _scan(text: str, start: int = 0) -> tuple[list[str], bool, Optional[int]]:
    """
    Walk text from start tracking open brackets outside of strings.

    Returns (open_stack, inside_string, end) where end is the index one past
    the bracket that closes text[start], or None if the text ends first.
    """
    stack: list[str] = []
    in_string = False
    escape = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack:
                stack.pop()
            if not stack:
                return stack, False, i + 1
    return stack, in_string, None


def find_balanced_end(text: str, start: int) -> Optional[int]:
    """Index one past the bracket matching text[start], or None when truncated."""
    _, _, end = _scan(text, start)
    return end


def repair_json(fragment: str) -> Optional[str]:
    """
    Best-effort salvage of a JSON fragment.

    Closes an unterminated string, drops a dangling key and trailing commas,
    then appends the missing closing braces/brackets. Deeply truncated input
    can come back semantically different from what the model meant.

    Returns compact JSON, or None if the fragment cannot be salvaged.
    """
    candidate = fragment.strip()
    if not candidate:
        return None

    parsed = _try_parse(candidate)
    if parsed is not _FAILED:
        return _dump(parsed)

    stack, in_string, end = _scan(candidate)
    if end is not None:
        # Balanced prefix followed by junk: keep the balanced part
        parsed = _try_parse(_TRAILING_COMMA.sub(r"\1", candidate[:end]))
        return None if parsed is _FAILED else _dump(parsed)

    if in_string:
        candidate += '"'
    else:
        candidate = _DANGLING_KEY.sub("", candidate.rstrip().rstrip(","))
        stack, _, _ = _scan(candidate)

    candidate += "".join("}" if opener == "{" else "]" for opener in reversed(stack))
    candidate = _TRAILING_COMMA.sub(r"\1", candidate)

    parsed = _try_parse(candidate)
    if parsed is _FAILED:
        return None
    return _dump(parsed)


def normalize_arguments(fragment: Any) -> str:
    """Coerce an arguments value into a JSON string, "{}" when irreparable."""
    if isinstance(fragment, (dict, list)):
        return _dump(fragment)
    if not isinstance(fragment, str):
        return EMPTY_ARGUMENTS
    repaired = repair_json(fragment)
    if repaired is None:
        logger.debug(f"Could not repair function arguments: {fragment[:200]}")
        return EMPTY_ARGUMENTS
    return repaired


def _unescape(raw: str) -> str:
    parsed = _try_parse(f'"{raw}"')
    return parsed if isinstance(parsed, str) else raw


# ─────────────────────────────────────────────────────────────────────
# STRATEGIES
# ─────────────────────────────────────────────────────────────────────

@dataclass
class ExtractionContext:
    """What the request told us about the functions the model may call."""
    forced_function: Optional[str] = None
    functions: list[FunctionDefinition] = field(default_factory=list)

    @property
    def known_names(self) -> set[str]:
        return {f.name for f in self.functions}

    def definition(self, name: str) -> Optional[FunctionDefinition]:
        for function in self.functions:
            if function.name == name:
                return function
        return None


class ExtractionStrategy:
    """One independent pattern. Returns calls, or None for no match."""

    name = "base"

    def extract(self, text: str, context: ExtractionContext) -> list[FunctionCall] | None:
        raise NotImplementedError


class EnvelopeStrategy(ExtractionStrategy):
    """
    {"name": "fn", "arguments": {...}} objects, anywhere in the text.

    The arguments value may also be a JSON-encoded string, as OpenAI-style
    models sometimes echo it.
    """

    name = "envelope"
    PATTERN = re.compile(
        r'\{\s*"name"\s*:\s*"((?:[^"\\]|\\.)+)"\s*,\s*"arguments"\s*:\s*',
        re.DOTALL,
    )

    def extract(self, text: str, context: ExtractionContext) -> list[FunctionCall] | None:
        calls = []
        consumed = 0
        for match in self.PATTERN.finditer(text):
            if match.start() < consumed:
                continue
            arguments, consumed = self._read_arguments(text, match.end())
            calls.append(FunctionCall(name=_unescape(match.group(1)), arguments=arguments))
        return calls or None

    @staticmethod
    def _read_arguments(text: str, start: int) -> tuple[str, int]:
        if start >= len(text):
            return EMPTY_ARGUMENTS, start

        if text[start] in "{[":
            end = find_balanced_end(text, start)
            if end is None:
                return normalize_arguments(text[start:]), len(text)
            return normalize_arguments(text[start:end]), end

        if text[start] == '"':
            try:
                value, end = json.JSONDecoder().raw_decode(text, start)
            except json.JSONDecodeError:
                return EMPTY_ARGUMENTS, start
            return normalize_arguments(value), end

        return EMPTY_ARGUMENTS, start


class CallSyntaxStrategy(ExtractionStrategy):
    """fn({...}) call syntax. Restricted to declared names when any are known."""

    name = "call_syntax"
    PATTERN = re.compile(r"(?<![\w.])([A-Za-z_][\w.]*)\s*\(\s*(?=\{)")

    def extract(self, text: str, context: ExtractionContext) -> list[FunctionCall] | None:
        known = context.known_names
        calls = []
        for match in self.PATTERN.finditer(text):
            name = match.group(1)
            if known and name not in known:
                continue
            start = match.end()
            end = find_balanced_end(text, start)
            fragment = text[start:end] if end is not None else text[start:]
            calls.append(FunctionCall(name=name, arguments=normalize_arguments(fragment)))
        return calls or None


class FencedBlockStrategy(ExtractionStrategy):
    """JSON inside ``` or ```json fences with `name` and `arguments`/`args`."""

    name = "fenced_block"
    PATTERN = re.compile(r"```(?:json|JSON)?[ \t]*\n?(.*?)```", re.DOTALL)

    def extract(self, text: str, context: ExtractionContext) -> list[FunctionCall] | None:
        calls = []
        for block in self.PATTERN.findall(text):
            data = _try_parse(block.strip())
            if data is _FAILED:
                continue
            items = data if isinstance(data, list) else [data]
            for item in items:
                if not isinstance(item, dict) or not isinstance(item.get("name"), str):
                    continue
                if "arguments" in item:
                    arguments = item["arguments"]
                elif "args" in item:
                    arguments = item["args"]
                else:
                    continue
                calls.append(FunctionCall(name=item["name"], arguments=normalize_arguments(arguments)))
        return calls or None


class ForcedFunctionStrategy(ExtractionStrategy):
    """
    Last resort when a specific function was forced.

    Looks for the forced function's declared parameter names followed by
    `:` or `=` and a scalar value, e.g. `location: "Tokyo", unit = celsius`.
    The call is synthesized when all required parameters are found (or at
    least one parameter, when none are marked required).
    """

    name = "forced_function"
    VALUE = (
        r'("(?:[^"\\]|\\.)*"'
        r"|'[^']*'"
        r"|-?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?"
        r"|true|false|null"
        r"|[A-Za-z_][\w\-]*)"
    )

    def extract(self, text: str, context: ExtractionContext) -> list[FunctionCall] | None:
        name = context.forced_function
        if not name:
            return None
        definition = context.definition(name)
        if definition is None:
            return None

        properties = definition.parameters.get("properties") or {}
        if not isinstance(properties, dict) or not properties:
            return None
        required = [p for p in definition.parameters.get("required") or [] if p in properties]

        found: dict[str, Any] = {}
        for prop, schema in properties.items():
            value = self._find_value(text, prop, schema if isinstance(schema, dict) else {})
            if value is not _FAILED:
                found[prop] = value

        if not found:
            return None
        if required and not all(p in found for p in required):
            return None
        return [FunctionCall(name=name, arguments=_dump(found))]

    def _find_value(self, text: str, key: str, schema: dict) -> Any:
        pattern = re.compile(
            rf"(?<![\w])[\"']?{re.escape(key)}[\"']?\s*[:=]\s*{self.VALUE}"
        )
        match = pattern.search(text)
        if match is None:
            return _FAILED
        raw = match.group(1)
        if raw.startswith("'"):
            return raw[1:-1]
        parsed = _try_parse(raw)
        if parsed is _FAILED:
            # Bare word: only meaningful for string parameters
            if schema.get("type", "string") != "string":
                return _FAILED
            return raw
        if schema.get("type") == "string" and not isinstance(parsed, str):
            return raw
        return parsed


DEFAULT_STRATEGIES: tuple[ExtractionStrategy, ...] = (
    EnvelopeStrategy(),
    CallSyntaxStrategy(),
    FencedBlockStrategy(),
    ForcedFunctionStrategy(),
)


# ─────────────────────────────────────────────────────────────────────
# PUBLIC API
# ─────────────────────────────────────────────────────────────────────

def extract_function_calls(
    text: str,
    function_call: Optional[FunctionCallDirective] = None,
    functions: Optional[Iterable[FunctionDefinition]] = None,
    strategies: Sequence[ExtractionStrategy] = DEFAULT_STRATEGIES,
) -> list[FunctionCall] | None:
    """
    Recover function calls from generated text.

    Args:
        text: The model's generated text
        function_call: The request's directive; a forced function enables
            the last-resort parameter search
        functions: The request's function definitions
        strategies: Pipeline to run, first non-empty result wins

    Returns:
        List of FunctionCall, or None if the text contains no call
    """
    if not text or function_call == "none":
        return None

    context = ExtractionContext(
        forced_function=function_call.name if isinstance(function_call, ForcedFunction) else None,
        functions=list(functions or []),
    )

    for strategy in strategies:
        try:
            calls = strategy.extract(text, context)
        except Exception as e:
            logger.warning(f"Function-call strategy '{strategy.name}' failed: {e}", exc_info=True)
            continue
        if calls:
            logger.debug(f"Extracted {len(calls)} function call(s) via '{strategy.name}'")
            return calls

    return None


def has_function_calls(
    text: str,
    function_call: Optional[FunctionCallDirective] = None,
    functions: Optional[Iterable[FunctionDefinition]] = None,
) -> bool:
    calls = extract_function_calls(text, function_call, functions)
    return calls is not None and len(calls) > 0


def build_function_prompt(
    functions: Iterable[FunctionDefinition],
    function_call: Optional[FunctionCallDirective] = None,
) -> str:
    """
    Instruction block telling a model without native tool calling how to
    answer with a function call.
    """
    definitions = [f.model_dump() for f in functions]
    lines = [
        "You have access to the following functions:",
        "```json",
        json.dumps(definitions, indent=2),
        "```",
        "",
    ]
    if isinstance(function_call, ForcedFunction):
        lines += [
            f"You MUST use the function: {function_call.name}",
            "Format your response as a function call using JSON in this exact format:",
            f'{{"name": "{function_call.name}", "arguments": {{...}}}}',
            "Don't include any explanations, just output the function call.",
        ]
    else:
        lines += [
            "If appropriate for the request, call one of these functions.",
            "Format your response as a function call using JSON in this exact format:",
            '{"name": "functionName", "arguments": {...}}',
        ]
    return "\n".join(lines)


def append_function_prompt(
    text: str,
    functions: Iterable[FunctionDefinition],
    function_call: Optional[FunctionCallDirective] = None,
) -> str:
    block = build_function_prompt(functions, function_call)
    return f"{text}\n\n{block}" if text else block
