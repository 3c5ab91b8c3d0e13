import re
from typing import Any, Mapping

# Any brace-delimited token is consumed, whatever characters its name holds,
# so "{{ name }}" or "{{first-name}}" never survive as literal text.
PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def expand_placeholders(text: str, data: Mapping[str, Any]) -> str:
    """Replace every {{field}} with its value; unknown fields become ""."""
    return PLACEHOLDER_PATTERN.sub(lambda m: _to_text(data.get(m.group(1).strip())), text)
