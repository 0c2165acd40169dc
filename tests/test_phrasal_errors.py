import pytest

from phrasal.phrasal_assertion import create_assertion
from phrasal.phrasal_datatypes import AssertionFailure
from phrasal.phrasal_errors import (
    AmbiguousMatchError, AssertionFailureError, DefinitionError, NegatedAssertionError,
    NoMatchingAssertionError, PhrasalError, UnexpectedAsyncError, render_message, verbatim,
)
from phrasal.phrasal_validators import NUMBER


def test_failure_error_is_an_assertion_error():
    err = AssertionFailureError(AssertionFailure(actual=1, expected=2, message="numbers differ"))
    assert isinstance(err, AssertionError)
    assert isinstance(err, PhrasalError)
    assert str(err).startswith("numbers differ\n\n- expected")
    assert err.actual == 1
    assert err.expected == 2


def test_failure_without_diff_is_just_the_message():
    err = AssertionFailureError(AssertionFailure(message="plain"))
    assert str(err) == "plain"
    assert err.diff is None


def test_default_message():
    assert AssertionFailureError().message == "Assertion failed"


def test_explicit_message_overrides_failure_message():
    err = AssertionFailureError(AssertionFailure(message="inner"), message="outer")
    assert err.message == "outer"


def test_message_template_is_rendered():
    err = AssertionFailureError(AssertionFailure(actual="abc", message="got {{actual}}"))
    assert err.message == "got 'abc'"


def test_render_message_leaves_plain_text_alone():
    assert render_message("no {braces} here", {"actual": 1}) == "no {braces} here"


@pytest.mark.parametrize("text", ["{{actual}}", "a {{{b}}} c", "{{#x}}{{/x}}", "}} {{"])
def test_verbatim_text_renders_as_is(text):
    assert render_message("got " + verbatim(text) + " for {{actual}}", {"actual": 1}) == f"got {text} for 1"


def test_failing_formatter_does_not_hide_failure():
    failure = AssertionFailure(actual=1, expected=2, format_actual=lambda v: 1 / 0, message="m")
    err = AssertionFailureError(failure)
    assert err.message == "m"
    assert err.diff.startswith("<diff unavailable: ZeroDivisionError")


def test_to_dict_shape():
    definition = create_assertion([NUMBER, "to be odd"], lambda n: n % 2 == 1)
    err = AssertionFailureError(AssertionFailure(actual=2, expected=3, message="m"), definition=definition)
    err.caller = {"file": "x.py", "line": 1, "function": "f"}
    data = err.to_dict()
    assert data["error"] == "AssertionFailureError"
    assert data["message"] == "m"
    assert data["actual"] == 2
    assert data["expected"] == 3
    assert data["assertion"] == "{number} 'to be odd'"
    assert data["caller"] == {"file": "x.py", "line": 1, "function": "f"}


def test_to_dict_omits_unset_values():
    data = AssertionFailureError(AssertionFailure(message="m")).to_dict()
    assert "actual" not in data and "expected" not in data and "caller" not in data


def test_negated_error_is_a_failure_error():
    assert issubclass(NegatedAssertionError, AssertionFailureError)


@pytest.mark.parametrize(
    "cls",
    [DefinitionError, NoMatchingAssertionError, AmbiguousMatchError, UnexpectedAsyncError],
)
def test_dispatch_errors_are_type_errors(cls):
    assert issubclass(cls, TypeError)
    assert issubclass(cls, PhrasalError)


def test_no_matching_message_lists_reasons():
    definition = create_assertion([NUMBER, "to be odd"], lambda n: True)
    err = NoMatchingAssertionError(("x", "to be odd"), [(definition, "argument 0 is not a valid number")])
    text = str(err)
    assert text.startswith("No assertion matched the arguments: 'x', 'to be odd'")
    assert "{number} 'to be odd': argument 0 is not a valid number" in text
    assert err.args_ == ("x", "to be odd")
    assert len(err.reasons) == 1


def test_ambiguous_message_names_both():
    a = create_assertion([NUMBER, "to be odd"], lambda n: True)
    b = create_assertion([NUMBER, "to be odd"], lambda n: False)
    err = AmbiguousMatchError(a, b)
    assert err.first is a and err.second is b
    assert str(err).count("{number} 'to be odd'") == 2
