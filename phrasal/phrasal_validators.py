"""
Validator constructors and the stock validators used by the built-in
assertions.

Strict validators are pydantic TypeAdapters run in strict mode, so `1`
is not a string, `True` is not an integer and a tuple is not a list.
"""
import collections.abc
import inspect
import math
import re
from typing import Any, Callable, Dict, Union

from pydantic import AfterValidator, InstanceOf, TypeAdapter
from typing_extensions import Annotated, TypedDict

from phrasal.phrasal_datatypes import Validator


def _type_name(tp: Any) -> str:
    return getattr(tp, "__name__", None) or str(tp).replace("typing.", "")


def schema(tp: Any, name: str = None, coerce: bool = False) -> Validator:
    """A strict validator for any type pydantic can build a schema for."""
    return Validator(name or _type_name(tp), TypeAdapter(tp), coerce=coerce)


def loose(name: str = "any") -> Validator:
    """Accepts anything. A slot using it never produces an exact match."""
    return Validator(name, loose=True)


def instance_of(cls: type, name: str = None) -> Validator:
    return Validator(name or cls.__name__, TypeAdapter(InstanceOf[cls]))


def predicate(fn: Callable[[Any], bool], name: str = None) -> Validator:
    """A strict validator that accepts values for which `fn` returns truthy."""
    label = name or getattr(fn, "__name__", "predicate")

    def _check(value):
        if not fn(value):
            raise ValueError(f"Input should be {label}")
        return value

    return Validator(label, TypeAdapter(Annotated[Any, AfterValidator(_check)]))


def async_predicate(fn: Callable[[Any], Any], name: str = None) -> Validator:
    """A validator whose check must be awaited; usable only by async definitions."""
    label = name or getattr(fn, "__name__", "async predicate")

    async def _check(value):
        result = fn(value)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    return Validator(label, check_async=_check)


def to_validator(part: Any) -> Validator:
    """Returns `part` as a Validator, promoting a bare class to `schema(cls)`."""
    if isinstance(part, Validator):
        return part
    if isinstance(part, type):
        return schema(part)
    raise TypeError(f"Not a validator: {part!r}")


def _is_number(v):
    return isinstance(v, (int, float)) and not isinstance(v, bool)


def _is_exception_class(v):
    return isinstance(v, type) and issubclass(v, BaseException)


class TimeoutOptions(TypedDict, total=False):
    within: Union[int, float]


ANY = loose()
STRING = schema(str, "string")
INTEGER = schema(int, "integer")
NUMBER = predicate(_is_number, "number")
FINITE_NUMBER = predicate(lambda v: _is_number(v) and math.isfinite(v), "finite number")
BOOLEAN = schema(bool, "boolean")
LIST = schema(list, "list")
TUPLE = schema(tuple, "tuple")
DICT = schema(Dict[Any, Any], "dict")
SET = predicate(lambda v: isinstance(v, (set, frozenset)), "set")
SEQUENCE = instance_of(collections.abc.Sequence, "sequence")
MAPPING = instance_of(collections.abc.Mapping, "mapping")
SIZED = instance_of(collections.abc.Sized, "sized")
CALLABLE = predicate(callable, "callable")
CLASS = instance_of(type, "class")
EXCEPTION_CLASS = predicate(_is_exception_class, "exception class")
PATTERN = instance_of(re.Pattern, "pattern")
AWAITABLE = predicate(inspect.isawaitable, "awaitable")
TIMEOUT_OPTIONS = schema(TimeoutOptions, "options")


__all__ = [
    "schema", "loose", "instance_of", "predicate", "async_predicate", "to_validator",
    "TimeoutOptions",
    "ANY", "STRING", "INTEGER", "NUMBER", "FINITE_NUMBER", "BOOLEAN", "LIST", "TUPLE",
    "DICT", "SET", "SEQUENCE", "MAPPING", "SIZED", "CALLABLE", "CLASS",
    "EXCEPTION_CLASS", "PATTERN", "AWAITABLE", "TIMEOUT_OPTIONS",
]
