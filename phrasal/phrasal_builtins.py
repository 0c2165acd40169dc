"""
Built-in synchronous assertions.

No two definitions here may exact-match the same call; definitions that
share a phrase differ in the type of their subject or arguments.
"""
import math
import re
from typing import Union

from phrasal.phrasal_assertion import create_assertion
from phrasal.phrasal_datatypes import UNSET, AssertionFailure, Validator
from phrasal.phrasal_errors import verbatim
from phrasal.phrasal_validators import (
    ANY, BOOLEAN, CALLABLE, CLASS, DICT, EXCEPTION_CLASS, FINITE_NUMBER, INTEGER, LIST,
    MAPPING, NUMBER, PATTERN, SET, SIZED, STRING, TUPLE, predicate, schema,
)

LIST_OR_TUPLE = schema(Union[list, tuple], "list or tuple")

_SCALARS = (int, float, complex, str, bytes, bool, type(None))


# =================================================================
# Type and value checks
# =================================================================

def _is_infinite(v):
    return isinstance(v, (int, float)) and not isinstance(v, bool) and math.isinf(v)


def _is_nan(v):
    return isinstance(v, float) and math.isnan(v)


def _is_positive(v):
    return isinstance(v, (int, float)) and not isinstance(v, bool) and v > 0


def _is_negative(v):
    return isinstance(v, (int, float)) and not isinstance(v, bool) and v < 0


def _exactly(expected):
    def check(subject):
        if subject is expected:
            return True
        return AssertionFailure(actual=subject, expected=expected,
                                message=f"Expected {{{{actual}}}} to be {expected!r}")
    return check


def _is_empty(subject):
    if len(subject) == 0:
        return True
    expected = type(subject)() if isinstance(subject, (str, bytes, list, tuple, dict, set)) else UNSET
    return AssertionFailure(actual=subject, expected=expected,
                            message="Expected {{actual}} to be empty")


def _instance_of(subject, cls):
    if isinstance(subject, cls):
        return True
    return AssertionFailure(actual=subject,
                            message=f"Expected {{{{actual}}}} to be an instance of {verbatim(cls.__qualname__)}")


def _one_of(subject, options):
    return subject in options


TYPE_ASSERTIONS = [
    create_assertion([("to be a string", "to be a str")], STRING),
    create_assertion([("to be a number", "to be numeric")], NUMBER),
    create_assertion(["to be finite"], FINITE_NUMBER),
    create_assertion(["to be infinite"], predicate(_is_infinite, "infinite")),
    create_assertion(["to be NaN"], predicate(_is_nan, "NaN")),
    create_assertion([("to be an integer", "to be an int")], INTEGER),
    create_assertion([("to be a boolean", "to be a bool")], BOOLEAN),
    create_assertion(["to be true"], _exactly(True)),
    create_assertion(["to be false"], _exactly(False)),
    create_assertion([("to be none", "to be None")], _exactly(None)),
    create_assertion([("to be a list", "to be an array")], LIST),
    create_assertion(["to be a tuple"], TUPLE),
    create_assertion([("to be a dict", "to be a dictionary")], DICT),
    create_assertion(["to be a mapping"], MAPPING),
    create_assertion(["to be a set"], SET),
    create_assertion([("to be a function", "to be callable")], CALLABLE),
    create_assertion([("to be a class", "to be a type")], CLASS),
    create_assertion([("to be truthy", "to exist", "to be ok")], predicate(bool, "truthy")),
    create_assertion(["to be falsy"], predicate(lambda v: not v, "falsy")),
    create_assertion(["to be positive"], predicate(_is_positive, "positive")),
    create_assertion(["to be negative"], predicate(_is_negative, "negative")),
    create_assertion([SIZED, "to be empty"], _is_empty),
    create_assertion([ANY, ("to be a", "to be an", "to be an instance of"), CLASS], _instance_of),
    create_assertion([ANY, "to be one of", LIST_OR_TUPLE], _one_of),
]


# =================================================================
# Comparisons
# =================================================================

def _compare(op, words):
    def check(subject, other):
        if op(subject, other):
            return True
        return {
            "actual": subject,
            "expected": other,
            "message": f"Expected {{{{actual}}}} to be {words} {{{{expected}}}}",
            "diff": "",
        }
    return check


def _within(subject, low, high):
    if low <= subject <= high:
        return True
    return AssertionFailure(actual=subject, expected=(low, high), diff="",
                            message=f"Expected {{{{actual}}}} to be within {low!r}..{high!r}")


def _close_to(subject, target, tolerance=None):
    ok = (math.isclose(subject, target, rel_tol=1e-9, abs_tol=0.0) if tolerance is None
          else abs(subject - target) <= tolerance)
    if ok:
        return True
    return AssertionFailure(actual=subject, expected=target,
                            message="Expected {{actual}} to be close to {{expected}}")


COMPARISON_ASSERTIONS = [
    create_assertion([NUMBER, ("to be greater than", "to be above"), NUMBER],
                     _compare(lambda a, b: a > b, "greater than")),
    create_assertion([NUMBER, ("to be less than", "to be below"), NUMBER],
                     _compare(lambda a, b: a < b, "less than")),
    create_assertion([NUMBER, ("to be at least", "to be greater than or equal to"), NUMBER],
                     _compare(lambda a, b: a >= b, "at least")),
    create_assertion([NUMBER, ("to be at most", "to be less than or equal to"), NUMBER],
                     _compare(lambda a, b: a <= b, "at most")),
    create_assertion([NUMBER, "to be within", NUMBER, NUMBER], _within),
    create_assertion([NUMBER, ("to be close to", "to be approximately"), NUMBER], _close_to),
    create_assertion([NUMBER, ("to be close to", "to be approximately"), NUMBER, NUMBER], _close_to),
]


# =================================================================
# Equality
# =================================================================

def _identical(subject, expected):
    if subject is expected:
        return True
    if isinstance(subject, _SCALARS) and type(subject) is type(expected) and subject == expected:
        return True
    return AssertionFailure(actual=subject, expected=expected,
                            message="Expected {{actual}} to be {{expected}}")


def _equal(subject, expected):
    if subject == expected:
        return True
    return AssertionFailure(actual=subject, expected=expected,
                            message="Expected {{actual}} to equal {{expected}}")


EQUALITY_ASSERTIONS = [
    create_assertion([ANY, ("to be", "to be identical to"), ANY], _identical),
    create_assertion([ANY, ("to equal", "to deep equal", "to be equal to"), ANY], _equal),
]


# =================================================================
# Collections and strings
# =================================================================

_CONTAIN = ("to contain", "to include")


def _contains(subject, item):
    if item in subject:
        return True
    return {"actual": subject, "message": f"Expected {{{{actual}}}} to contain {verbatim(repr(item))}"}


def _has_length(subject, n):
    if len(subject) == n:
        return True
    return AssertionFailure(actual=len(subject), expected=n,
                            message="Expected length {{actual}} to be {{expected}}")


def _has_key(subject, key):
    if key in subject:
        return True
    return AssertionFailure(actual=subject,
                            message=f"Expected {{{{actual}}}} to have key {verbatim(repr(key))}")


def _has_keys(subject, keys):
    missing = [k for k in keys if k not in subject]
    if not missing:
        return True
    return AssertionFailure(message=f"Expected mapping to have keys {verbatim(repr(missing))}")


def _matches(subject, pattern):
    if re.search(pattern, subject):
        return True
    shown = pattern.pattern if isinstance(pattern, re.Pattern) else pattern
    return AssertionFailure(actual=subject,
                            message=f"Expected {{{{actual}}}} to match {verbatim(repr(shown))}")


def _starts_with(subject, prefix):
    return subject.startswith(prefix)


def _ends_with(subject, suffix):
    return subject.endswith(suffix)


COLLECTION_ASSERTIONS = [
    create_assertion([LIST_OR_TUPLE, _CONTAIN, ANY], _contains),
    create_assertion([STRING, _CONTAIN, STRING], _contains),
    create_assertion([MAPPING, _CONTAIN, ANY], _contains),
    create_assertion([SET, _CONTAIN, ANY], _contains),
    create_assertion([SIZED, ("to have length", "to have size"), INTEGER], _has_length),
    create_assertion([MAPPING, ("to have key", "to have property"), ANY], _has_key),
    create_assertion([MAPPING, ("to have keys", "to have properties"), LIST_OR_TUPLE], _has_keys),
    create_assertion([STRING, "to match", PATTERN], _matches),
    create_assertion([STRING, "to match", STRING], _matches),
    create_assertion([STRING, "to start with", STRING], _starts_with),
    create_assertion([STRING, "to end with", STRING], _ends_with),
]


# =================================================================
# Shape matching
# =================================================================


def _project(subject, shape):
    """
    Returns the part of `subject` that `shape` describes, with matching
    leaves replaced by the shape's own value so that a diff between the
    two shows only what differs.
    """
    if isinstance(shape, dict):
        if not isinstance(subject, dict):
            return subject
        return {k: (_project(subject[k], v) if k in subject else UNSET) for k, v in shape.items()}
    if type(shape) in (list, tuple) and type(subject) is type(shape) and len(subject) == len(shape):
        return type(shape)([_project(s, v) for s, v in zip(subject, shape)])
    if _leaf_satisfies(subject, shape):
        return shape
    return subject


def _leaf_satisfies(subject, shape) -> bool:
    if isinstance(shape, re.Pattern):
        return isinstance(subject, str) and shape.search(subject) is not None
    if isinstance(shape, Validator):
        return shape.validate(subject).success
    try:
        return bool(subject == shape)
    except Exception:
        return False


def satisfies(subject, shape):
    projected = _project(subject, shape)
    if projected == shape:
        return True
    return AssertionFailure(actual=projected, expected=shape,
                            message="Expected {{actual}} to satisfy {{expected}}")


SHAPE_ASSERTIONS = [
    create_assertion([ANY, ("to satisfy", "to be like"), ANY], satisfies),
]


# =================================================================
# Throwing
# =================================================================

def _call(fn):
    try:
        fn()
    except Exception as e:
        return e
    return None


def _throws(fn):
    if _call(fn) is None:
        return AssertionFailure(message="Expected function to throw")
    return True


def _throws_instance(fn, cls):
    error = _call(fn)
    if error is None:
        return AssertionFailure(message=f"Expected function to throw {verbatim(cls.__name__)}")
    if isinstance(error, cls):
        return True
    message = f"Expected function to throw {verbatim(cls.__name__)}, got {verbatim(repr(error))}"
    return AssertionFailure(actual=type(error).__name__, expected=cls.__name__, message=message)


def _throws_matching(fn, expected):
    error = _call(fn)
    if error is None:
        return AssertionFailure(message=f"Expected function to throw {verbatim(repr(expected))}")
    text = str(error)
    if isinstance(expected, re.Pattern):
        if expected.search(text):
            return True
        return AssertionFailure(actual=text,
                                message=f"Expected error message to match {verbatim(repr(expected.pattern))}")
    if text == expected:
        return True
    return AssertionFailure(actual=text, expected=expected,
                            message="Expected error message {{actual}} to be {{expected}}")


_THROW = ("to throw", "to raise")
_THROW_A = ("to throw a", "to throw an", "to raise a", "to raise an")

THROW_ASSERTIONS = [
    create_assertion([CALLABLE, _THROW], _throws),
    create_assertion([CALLABLE, _THROW_A, EXCEPTION_CLASS], _throws_instance),
    create_assertion([CALLABLE, _THROW, EXCEPTION_CLASS], _throws_instance),
    create_assertion([CALLABLE, _THROW, STRING], _throws_matching),
    create_assertion([CALLABLE, _THROW, PATTERN], _throws_matching),
]


SYNC_ASSERTIONS = (
    TYPE_ASSERTIONS
    + COMPARISON_ASSERTIONS
    + EQUALITY_ASSERTIONS
    + COLLECTION_ASSERTIONS
    + SHAPE_ASSERTIONS
    + THROW_ASSERTIONS
)

__all__ = ["SYNC_ASSERTIONS", "LIST_OR_TUPLE", "satisfies"]
