"""
Serialization of failure records, and decoding of response bodies.

`serialize()` turns an AssertionFailureError (or any value) into JSON or
YAML text for snapshot tools; values with no plain-data form are rendered
through the Printer. `deserialize()` decodes a response body for shape
checks: JSON when the content type says so, otherwise the text itself.
"""
from __future__ import annotations

import collections.abc
import json
from typing import Any, Optional

import yaml

from phrasal.phrasal_datatypes import UNSET, AssertionFailure
from phrasal.phrasal_printer import Printer


def to_builtin(obj: Any, _printer: Optional[Printer] = None) -> Any:
    """
    Converts a value into plain JSON/YAML-safe data.

    Mappings become dicts with string keys, sequences and sets become lists,
    failures become dicts; any other leaf that is not a scalar is rendered
    through the Printer.
    """
    printer = _printer or Printer()
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if obj is UNSET:
        return None
    if isinstance(obj, AssertionFailure):
        return {k: to_builtin(v, printer) for k, v in
                (("actual", obj.actual), ("expected", obj.expected), ("message", obj.message), ("diff", obj.diff))
                if v is not UNSET and v is not None}
    if hasattr(obj, "to_dict") and callable(obj.to_dict):
        return to_builtin(obj.to_dict(), printer)
    if isinstance(obj, collections.abc.Mapping):
        return {k if isinstance(k, str) else printer.inline(k, limit=0): to_builtin(v, printer)
                for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_builtin(x, printer) for x in obj]
    if isinstance(obj, (set, frozenset)):
        return [to_builtin(x, printer) for x in sorted(obj, key=lambda v: printer.pformat(v))]
    return printer.inline(obj, limit=0)


def is_json_content_type(content_type: Optional[str]) -> bool:
    """True for application/json and the +json family."""
    media = (content_type or "").split(";", 1)[0].strip().lower()
    return media == "application/json" or media.endswith("+json")


def deserialize(text: str, *, content_type: Optional[str] = None) -> Any:
    """Decodes a body for shape checks; undecodable JSON stays text."""
    if not is_json_content_type(content_type):
        return text
    try:
        return json.loads(text)
    except ValueError:
        return text


def serialize(value: Any, *, fmt: str = "json", pretty: bool = True) -> str:
    """Writes a value, typically a failure, as 'json' or 'yaml' text."""
    built = to_builtin(value)
    f = (fmt or '').lower()
    if f == 'json':
        return json.dumps(built, ensure_ascii=False, indent=2 if pretty else None)
    if f == 'yaml':
        return yaml.safe_dump(built, sort_keys=False, allow_unicode=True)
    raise ValueError(f"Unsupported serialization format: {fmt!r}")


__all__ = [
    "deserialize",
    "serialize",
    "is_json_content_type",
    "to_builtin",
]
