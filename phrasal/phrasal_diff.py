"""
Renders assertion failures into human-readable diffs.

Values are rendered by the Printer, then compared line by line with
difflib. Validation issues (pydantic's error dicts) can be turned into
an actual/expected pair by correcting the actual value at each issue's
location.
"""
from __future__ import annotations

import copy
import difflib
from typing import Any, Optional

from phrasal.phrasal_config import diff_context_lines
from phrasal.phrasal_datatypes import UNSET, AssertionFailure
from phrasal.phrasal_printer import Printer


# --------------------------
# Helpers
# --------------------------

def _same(actual: Any, expected: Any) -> bool:
    """Equal and rendered identically, so `1` and `True` differ at any depth."""
    if actual is expected:
        return True
    try:
        if not actual == expected:
            return False
    except Exception:
        return False
    printer = Printer()
    return printer.pformat(actual) == printer.pformat(expected)


def should_generate_diff(actual: Any, expected: Any) -> bool:
    return actual is not UNSET and expected is not UNSET and actual is not expected


def _change_counts(lines: list[str]) -> tuple[int, int]:
    removed = added = 0
    for line in lines:
        if line.startswith("---") or line.startswith("+++"):
            continue
        if line.startswith("-"):
            removed += 1
        elif line.startswith("+"):
            added += 1
    return removed, added


# --------------------------
# Public API
# --------------------------

def generate_diff(expected: Any, actual: Any, options: Optional[dict] = None) -> Optional[str]:
    """Line diff between the rendered `expected` and `actual`; None when they match.

    Options: `context` (lines around each change), `expected_label`,
    `actual_label`, `include_change_counts`.
    """
    if not should_generate_diff(actual, expected) or _same(actual, expected):
        return None
    opts = dict(options or {})
    context = opts.get("context")
    if context is None:
        context = diff_context_lines()
    exp_label = opts.get("expected_label", "expected")
    act_label = opts.get("actual_label", "actual")

    printer = Printer()
    exp_lines = printer.pformat(expected).splitlines()
    act_lines = printer.pformat(actual).splitlines()
    lines = list(difflib.unified_diff(
        exp_lines, act_lines, fromfile=exp_label, tofile=act_label, n=int(context), lineterm=""
    ))
    if not lines:
        return "Compared values have no visual difference."

    body = "\n".join(lines)
    if not opts.get("include_change_counts", True):
        return body
    removed, added = _change_counts(lines)
    width = max(len(exp_label), len(act_label))
    header = (f"- {exp_label.ljust(width)}  - {removed}\n"
              f"+ {act_label.ljust(width)}  + {added}")
    return f"{header}\n\n{body}"


def format_failure(failure: AssertionFailure) -> Optional[str]:
    """
    Formats an AssertionFailure into a diff string for error output.

    Precedence:
      1. `diff` is returned as-is (custom formatters are ignored),
      2. `format_actual`/`format_expected` serialize the values before diffing,
      3. otherwise the raw values are diffed.
    """
    if failure.diff is not None:
        return failure.diff

    actual, expected = failure.actual, failure.expected
    if actual is UNSET or expected is UNSET:
        return None
    formatted_actual = failure.format_actual(actual) if failure.format_actual else actual
    formatted_expected = failure.format_expected(expected) if failure.format_expected else expected
    if _same(formatted_actual, formatted_expected):
        return None
    return generate_diff(formatted_expected, formatted_actual, failure.diff_options)


# --------------------------
# Validation issues -> expected value
# --------------------------

_ZERO_VALUES = {
    'int_type': 0,
    'float_type': 0.0,
    'string_type': '',
    'str_type': '',
    'bool_type': False,
    'list_type': [],
    'tuple_type': (),
    'dict_type': {},
    'set_type': set(),
    'frozen_set_type': frozenset(),
    'bytes_type': b'',
    'none_required': None,
    'callable_type': '<callable>',
}


def _corrected_value(issue: dict, current: Any) -> Any:
    kind = issue.get('type', '')
    ctx = issue.get('ctx') or {}
    match kind:
        case 'greater_than':
            return ctx.get('gt', current)
        case 'greater_than_equal':
            return ctx.get('ge', current)
        case 'less_than':
            return ctx.get('lt', current)
        case 'less_than_equal':
            return ctx.get('le', current)
        case 'too_long':
            limit = ctx.get('max_length')
            if isinstance(limit, int) and isinstance(current, (str, list, tuple)):
                return current[:limit]
            return current
        case 'too_short':
            limit = ctx.get('min_length')
            if isinstance(limit, int) and isinstance(current, str):
                return current + 'x' * max(0, limit - len(current))
            if isinstance(limit, int) and isinstance(current, list):
                return current + [None] * max(0, limit - len(current))
            return current
        case 'literal_error':
            return f"<{ctx.get('expected', 'literal')}>"
        case 'is_instance_of':
            return f"<{ctx.get('class', 'instance')}>"
        case 'missing':
            return '<missing>'
    if kind in _ZERO_VALUES:
        return copy.copy(_ZERO_VALUES[kind])
    # Unknown issue kinds: leave the value alone rather than guessing.
    return current


def _get_at(obj: Any, loc: tuple) -> Any:
    cur = obj
    for key in loc:
        try:
            cur = cur[key]
        except (KeyError, IndexError, TypeError):
            return None
    return cur


def _set_at(obj: Any, loc: tuple, value: Any) -> Any:
    if not loc:
        return value
    head, tail = loc[0], loc[1:]
    if isinstance(obj, list) and isinstance(head, int) and 0 <= head < len(obj):
        out = list(obj)
        out[head] = _set_at(out[head], tail, value)
        return out
    if isinstance(obj, tuple) and isinstance(head, int) and 0 <= head < len(obj):
        out = list(obj)
        out[head] = _set_at(out[head], tail, value)
        return tuple(out)
    if isinstance(obj, dict):
        out = dict(obj)
        out[head] = _set_at(out.get(head), tail, value)
        return out
    return obj


def extract_diff_values(issues: list[dict], subject: Any) -> tuple[Any, Any]:
    """Returns (actual, expected) for a subject that failed validation."""
    try:
        expected = copy.deepcopy(subject)
    except Exception:
        expected = subject
    for issue in issues:
        loc = tuple(k for k in issue.get('loc', ()) if isinstance(k, (str, int)))
        current = _get_at(subject, loc)
        expected = _set_at(expected, loc, _corrected_value(issue, current))
    return subject, expected


def describe_issues(issues: list[dict]) -> str:
    parts = []
    for issue in issues:
        loc = ".".join(str(k) for k in issue.get('loc', ()))
        msg = issue.get('msg', 'invalid value')
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts)
