"""
Exception types raised by phrasal.

Definition and dispatch errors also subclass TypeError, since they are
raised for calls and definitions with the wrong shape. Check failures
subclass AssertionError so test runners report them as failures rather
than errors.
"""
from typing import Any, Optional

import pystache

from phrasal.phrasal_datatypes import UNSET, AssertionFailure
from phrasal.phrasal_diff import format_failure
from phrasal.phrasal_printer import Printer


_OPEN = "{{"
# Switch to <% %> delimiters for one literal "{{", then switch back.
_LITERAL_OPEN = "{{=<% %>=}}{{<%={{ }}=%>"


def verbatim(text: Any) -> str:
    """Makes `text` safe to embed in a message template: it renders as-is."""
    return str(text).replace(_OPEN, _LITERAL_OPEN)


def render_message(template: str, context: dict) -> str:
    """Renders a mustache message template against the failure values."""
    if "{{" not in template:
        return template
    printer = Printer()
    view = {k: (printer.inline(v) if v is not UNSET else "<unset>") for k, v in context.items()}
    renderer = pystache.Renderer(escape=lambda u: u)
    try:
        return renderer.render(template, view)
    except Exception:
        return template


class PhrasalError(Exception):
    """Base class for every error raised by phrasal."""
    pass


class DefinitionError(PhrasalError, TypeError):
    """An assertion definition was malformed."""
    pass


class NoMatchingAssertionError(PhrasalError, TypeError):
    def __init__(self, args_: tuple, reasons: list, negated: bool = False):
        self.args_ = tuple(args_)
        self.reasons = list(reasons)
        self.negated = negated
        printer = Printer()
        rendered = ", ".join(printer.inline(a, limit=40) for a in self.args_)
        lines = [f"No assertion matched the arguments: {rendered}"]
        for definition, reason in self.reasons:
            lines.append(f"  {definition!r}: {reason}")
        super().__init__("\n".join(lines))


class AmbiguousMatchError(PhrasalError, TypeError):
    def __init__(self, first: Any, second: Any, args_: tuple = ()):
        self.first = first
        self.second = second
        self.args_ = tuple(args_)
        super().__init__(
            f"Ambiguous assertion: both {first!r} and {second!r} match exactly; "
            f"the registry contains overlapping definitions"
        )


class AssertionImplementationError(PhrasalError, TypeError):
    """An assertion implementation returned something it should not have."""
    pass


class UnexpectedAsyncError(PhrasalError, TypeError):
    def __init__(self, definition: Any = None):
        self.definition = definition
        where = f" {definition!r}" if definition is not None else ""
        super().__init__(
            f"Assertion{where} returned an awaitable; use expect_async() instead"
        )


class AssertionFailureError(PhrasalError, AssertionError):
    """A check ran and did not hold.

    The message is rendered from the failure, followed by the formatted
    diff when there is one.
    """

    def __init__(self, failure: Optional[AssertionFailure] = None, message: Optional[str] = None,
                 definition: Any = None):
        self.failure = failure if failure is not None else AssertionFailure()
        self.definition = definition
        self.caller: Optional[dict] = None
        template = message if message is not None else (self.failure.message or "Assertion failed")
        self.message = render_message(
            template, {"actual": self.failure.actual, "expected": self.failure.expected}
        )
        try:
            self.diff = format_failure(self.failure)
        except Exception as e:
            # A failing custom formatter must not hide the original failure.
            self.diff = f"<diff unavailable: {type(e).__name__}: {e}>"
        super().__init__(self.message)

    @property
    def actual(self) -> Any:
        return self.failure.actual

    @property
    def expected(self) -> Any:
        return self.failure.expected

    def __str__(self) -> str:
        if self.diff:
            return f"{self.message}\n\n{self.diff}"
        return self.message

    def to_dict(self) -> dict:
        """A stable, serializable description of the failure."""
        out = {
            "error": type(self).__name__,
            "message": self.message,
            "diff": self.diff,
        }
        if self.actual is not UNSET:
            out["actual"] = self.actual
        if self.expected is not UNSET:
            out["expected"] = self.expected
        if self.definition is not None:
            out["assertion"] = repr(self.definition)
        if self.caller is not None:
            out["caller"] = dict(self.caller)
        return out


class NegatedAssertionError(AssertionFailureError):
    """A negated check passed when it was expected to fail."""
    pass


__all__ = [
    "PhrasalError",
    "DefinitionError",
    "NoMatchingAssertionError",
    "AmbiguousMatchError",
    "AssertionImplementationError",
    "UnexpectedAsyncError",
    "AssertionFailureError",
    "NegatedAssertionError",
    "render_message",
    "verbatim",
]
