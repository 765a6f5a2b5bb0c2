"""Strip markdown code fences from raw model output."""

import re

# An opening fence may carry a language tag (```json, ``` JSON, ```js), but only
# when a newline follows it, so ```true``` keeps its payload.
_OPENING_FENCE = re.compile(r"\A```(?:[ \t]*[A-Za-z0-9_+-]+[ \t]*\n|[ \t]*\n?)")
_CLOSING_FENCE = re.compile(r"\n?[ \t]*```\Z")


def sanitize(raw: str | None) -> str:
    """
    Remove code-fence wrapping and surrounding whitespace.

    Fences are peeled repeatedly so nested or doubled wrappers are removed too,
    which keeps the function idempotent.

    Args:
        raw: Raw model text, possibly wrapped in ```json ... ```

    Returns:
        The payload text, or an empty string for empty input
    """
    if not raw:
        return ""

    text = raw.strip()
    while True:
        stripped = _OPENING_FENCE.sub("", text, count=1)
        stripped = _CLOSING_FENCE.sub("", stripped, count=1).strip()
        if stripped == text:
            return text
        text = stripped
