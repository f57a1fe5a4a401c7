from __future__ import annotations

import json
import re
from typing import Any, Optional

import yaml

from jpscript.jpscript_datatypes import Value, from_python, TypeCoercionError


# --------------------------
# Helpers
# --------------------------

def _norm_text(data: bytes | bytearray | str, *, encoding: Optional[str] = None) -> str:
    if isinstance(data, (bytes, bytearray)):
        return bytes(data).decode(encoding or 'utf-8')
    if isinstance(data, str):
        return data
    return str(data)


def _encoding_from_content_type(content_type: Optional[str]) -> Optional[str]:
    if not content_type:
        return None
    m = re.search(r'charset\s*=\s*([^\s;]+)', content_type, re.IGNORECASE)
    if m:
        return m.group(1).strip('"').strip("'")
    return None


_SUFFIX_FORMATS = {'.json': 'json', '.yaml': 'yaml', '.yml': 'yaml'}


def format_from_suffix(suffix: Optional[str]) -> Optional[str]:
    """Map a file suffix ('.json', '.yml', ...) to a format name, or None if unknown."""
    return _SUFFIX_FORMATS.get((suffix or '').lower())


def detect_format(content_type: Optional[str] = None, data_hint: Optional[str] = None) -> Optional[str]:
    """
    Returns a canonical format name, 'json' or 'yaml'.
    Uses the Content-Type first; falls back to sniffing the data.
    """
    ct = (content_type or "").lower()
    if 'json' in ct:
        return 'json'
    if 'yaml' in ct or 'yml' in ct:
        return 'yaml'
    if data_hint is not None:
        s = data_hint.lstrip()
        if s.startswith('{') or s.startswith('['):
            return 'json'
        return 'yaml'
    return None


# --------------------------
# Public API
# --------------------------

def deserialize(data: bytes | bytearray | str,
                *,
                content_type: Optional[str] = None,
                fmt: Optional[str] = None,
                label: str = "document") -> Value:
    """
    Parse a JSON or YAML document into a Value tree.
    If fmt is None, uses content_type, then sniffing. JSON that fails to
    parse is retried as YAML, which accepts a superset of it.
    """
    enc = _encoding_from_content_type(content_type)
    text = _norm_text(data, encoding=enc)
    f = (fmt or detect_format(content_type, text))
    if f == 'json':
        try:
            loaded = json.loads(text)
        except json.JSONDecodeError:
            loaded = yaml.safe_load(text)
    elif f == 'yaml':
        loaded = yaml.safe_load(text)
    else:
        raise ValueError(f"Unsupported document format: {fmt!r}")
    return from_python(loaded, label)


def serialize(value: Value,
              *,
              fmt: str = 'json',
              pretty: bool = True) -> str:
    """Render a Value as 'json' or 'yaml' text."""
    if not isinstance(value, Value):
        raise TypeCoercionError(f"serialize expects a Value, got {type(value).__name__}")
    f = (fmt or '').lower()
    built: Any = value.to_python()
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "detect_format",
    "format_from_suffix",
]
