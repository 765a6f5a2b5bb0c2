"""Structured parsing of sanitized model output into validated shapes."""

import json
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ValidationError

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


@dataclass(frozen=True)
class Ok(Generic[T]):
    """A complete, schema-conformant value."""

    value: T


@dataclass(frozen=True)
class ParseFailure:
    """Model output that did not decode into the expected shape.

    ``raw_text`` is the text exactly as it was handed to the parser.
    """

    raw_text: str
    error: str


ParsedResult = Ok[T] | ParseFailure


@dataclass(frozen=True)
class Shape(Generic[M]):
    """Expected result shape: an object or an array of one pydantic model.

    ``aliases`` maps a canonical field name to alternate key names the model
    is known to use instead, tried in order. ``adapt`` is an optional hook that
    normalizes nested values before validation.
    """

    name: str
    model: type[M]
    container: Literal["object", "array"] = "object"
    aliases: Mapping[str, Sequence[str]] = field(default_factory=dict)
    adapt: Callable[[dict], dict] | None = None


def apply_aliases(item: dict, aliases: Mapping[str, Sequence[str]]) -> dict:
    """Copy the first present alternate key into each missing canonical key."""
    if not aliases:
        return item
    result = dict(item)
    for canonical, alternates in aliases.items():
        if result.get(canonical) not in (None, ""):
            continue
        for alternate in alternates:
            if result.get(alternate) not in (None, ""):
                result[canonical] = result[alternate]
                break
    return result


def extract_first_json(text: str) -> str | None:
    """
    Find the first balanced top-level JSON object or array inside prose.

    Brackets inside string literals are ignored.

    Args:
        text: Text that may contain explanation before/after a JSON body

    Returns:
        The JSON substring, or None when no balanced value is found
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return None

    start = min(starts)
    stack: list[str] = []
    in_string = False
    escape = False
    pairs = {"{": "}", "[": "]"}

    for i in range(start, len(text)):
        ch = text[i]
        if escape:
            escape = False
            continue
        if ch == "\\" and in_string:
            escape = True
            continue
        if ch == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if ch in pairs:
            stack.append(pairs[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start : i + 1]

    return None


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as strict_error:
        candidate = extract_first_json(text)
        if candidate is None:
            raise strict_error
        return json.loads(candidate)


def _prepare(item: Any, shape: Shape) -> Any:
    if not isinstance(item, dict):
        return item
    item = apply_aliases(item, shape.aliases)
    if shape.adapt is not None:
        item = shape.adapt(item)
    return item


def _format_validation_error(error: ValidationError) -> str:
    problems = []
    for detail in error.errors()[:5]:
        location = ".".join(str(part) for part in detail["loc"]) or "<root>"
        problems.append(f"{location}: {detail['msg']}")
    return "; ".join(problems)


def parse(sanitized: str, shape: Shape[M]) -> "ParsedResult":
    """
    Decode sanitized model text into the given shape.

    Args:
        sanitized: Text returned by ``sanitize``
        shape: The expected container and model

    Returns:
        Ok with a validated model (or list of models), or ParseFailure
    """
    if not sanitized or not sanitized.strip():
        return ParseFailure(raw_text=sanitized or "", error=f"{shape.name}: empty response")

    try:
        data = _decode(sanitized)
    except (json.JSONDecodeError, ValueError) as e:
        return ParseFailure(raw_text=sanitized, error=f"{shape.name}: invalid JSON ({e})")
    except RecursionError:
        return ParseFailure(raw_text=sanitized, error=f"{shape.name}: JSON nested too deeply")

    expected = list if shape.container == "array" else dict
    if not isinstance(data, expected):
        return ParseFailure(
            raw_text=sanitized,
            error=(
                f"{shape.name}: expected a JSON {shape.container}, "
                f"got {type(data).__name__}"
            ),
        )

    try:
        if shape.container == "array":
            value = [shape.model.model_validate(_prepare(item, shape)) for item in data]
        else:
            value = shape.model.model_validate(_prepare(data, shape))
    except ValidationError as e:
        return ParseFailure(
            raw_text=sanitized,
            error=f"{shape.name}: {_format_validation_error(e)}",
        )
    except (TypeError, AttributeError) as e:
        return ParseFailure(raw_text=sanitized, error=f"{shape.name}: {e}")
    return Ok(value)
