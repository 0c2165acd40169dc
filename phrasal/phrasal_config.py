"""
Environment-driven settings for the phrasal runtime.

Every value is read when it is needed, so tests and callers can flip a
variable with monkeypatch without reloading anything.
"""
import os
import sys

DEFAULT_DIFF_CONTEXT = 3
DEFAULT_WITHIN_MS = 2000


def debug_enabled() -> bool:
    return bool(os.environ.get("PHRASAL_DEBUG"))


def dbg(*parts):
    """Prints a debug line to stderr when PHRASAL_DEBUG is set."""
    if debug_enabled():
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


def diff_context_lines() -> int:
    raw = os.environ.get("PHRASAL_DIFF_CONTEXT")
    if raw is None:
        return DEFAULT_DIFF_CONTEXT
    try:
        n = int(raw)
    except ValueError:
        return DEFAULT_DIFF_CONTEXT
    return n if n >= 0 else DEFAULT_DIFF_CONTEXT


def default_within_ms() -> float:
    raw = os.environ.get("PHRASAL_DEFAULT_WITHIN")
    if raw is None:
        return DEFAULT_WITHIN_MS
    try:
        ms = float(raw)
    except ValueError:
        return DEFAULT_WITHIN_MS
    return ms if ms > 0 else DEFAULT_WITHIN_MS
