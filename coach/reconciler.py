"""Merge parsed model output with fields the caller already knows."""

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from coach.parser import Ok, ParseFailure


@dataclass(frozen=True)
class ReconciliationMismatch:
    """Parsed array length differs from the caller's input length."""

    expected: int
    actual: int

    @property
    def error(self) -> str:
        return f"expected {self.expected} items from the model, got {self.actual}"


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, (str, list, dict)) and not value)


def merge_fields(
    parsed: BaseModel,
    authoritative: Mapping[str, Any],
    authoritative_fields: Collection[str] = (),
) -> BaseModel:
    """
    Merge caller-known values into one parsed model.

    A field listed in ``authoritative_fields`` always takes the caller's value.
    Any other field in ``authoritative`` only fills a missing or empty value.

    Args:
        parsed: Validated model output
        authoritative: Caller-supplied values by field name
        authoritative_fields: Fields the model is never trusted with

    Returns:
        A new model instance; ``parsed`` is not modified
    """
    updates = {}
    for name, value in authoritative.items():
        if name not in type(parsed).model_fields:
            continue
        if name in authoritative_fields or _is_empty(getattr(parsed, name)):
            updates[name] = value
    if not updates:
        return parsed
    return parsed.model_copy(update=updates)


def reconcile(
    parsed: Any,
    authoritative: Mapping[str, Any] | Sequence[Mapping[str, Any]],
    authoritative_fields: Collection[str] = (),
) -> Any:
    """
    Reconcile a ParsedResult with caller ground truth.

    Objects merge field by field. Arrays merge positionally, and a length
    mismatch is a failure rather than a best-effort partial merge.

    Args:
        parsed: Ok or ParseFailure from the parser
        authoritative: A mapping for object results, a sequence of mappings for arrays
        authoritative_fields: Fields that always come from the caller

    Returns:
        Ok with the merged value, the original ParseFailure, or ReconciliationMismatch
    """
    if isinstance(parsed, ParseFailure):
        return parsed

    value = parsed.value
    if isinstance(value, list):
        if len(value) != len(authoritative):
            return ReconciliationMismatch(expected=len(authoritative), actual=len(value))
        merged = [
            merge_fields(item, truth, authoritative_fields)
            for item, truth in zip(value, authoritative)
        ]
        return Ok(merged)

    return Ok(merge_fields(value, authoritative, authoritative_fields))
