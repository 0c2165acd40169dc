"""
Defines the core data types for the phrasal dispatch engine.

This module provides the compiled slot variants, the validator wrapper
used by typed slots, and the per-call records (parse results, match
candidates, failure descriptors) that flow between the dispatcher, the
assertion definitions and the error formatter.
"""

from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import ValidationError


class _Unset:
    """Marks an actual/expected value that was never supplied."""
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self):
        return "<unset>"

    def __bool__(self):
        return False

UNSET = _Unset()


# =================================================================
# Validators
# =================================================================

@dataclass
class Validation:
    """Outcome of running a Validator against one value."""
    success: bool
    value: Any
    issues: List[Dict[str, Any]] = field(default_factory=list)


class Validator:
    """A typed check for one positional value.

    Strict validators wrap a pydantic TypeAdapter and validate in strict
    mode. A loose validator accepts anything and only exists to mark an
    intentionally untyped position. Asynchronous validators wrap an
    awaitable predicate and can only be used by async definitions.
    """
    def __init__(self, name: str, adapter: Any = None, *, loose: bool = False,
                 coerce: bool = False, check_async: Optional[Callable] = None):
        if adapter is None and not loose and check_async is None:
            raise ValueError("A strict Validator needs a TypeAdapter or an async check.")
        self.name = name
        self.adapter = adapter
        self.loose = loose
        self.coerce = coerce
        self._check_async = check_async

    @property
    def is_async(self) -> bool:
        return self._check_async is not None

    def validate(self, value: Any) -> Validation:
        if self.loose:
            return Validation(True, value)
        if self.is_async:
            raise TypeError(f"Validator {self.name!r} is asynchronous; use validate_async()")
        try:
            data = self.adapter.validate_python(value, strict=True)
        except ValidationError as e:
            return Validation(False, value, e.errors(include_url=False))
        except Exception as e:
            # A check that blows up on an unexpected type rejects the value.
            return Validation(False, value, [self._raised(value, e)])
        return Validation(True, data if self.coerce else value)

    async def validate_async(self, value: Any) -> Validation:
        if not self.is_async:
            return self.validate(value)
        try:
            ok = await self._check_async(value)
        except ValidationError as e:
            return Validation(False, value, e.errors(include_url=False))
        except Exception as e:
            return Validation(False, value, [self._raised(value, e)])
        if ok:
            return Validation(True, value)
        return Validation(False, value, [{
            'type': 'predicate_failed',
            'loc': (),
            'msg': f"Input should be {self.name}",
            'input': value,
        }])

    def _raised(self, value: Any, error: Exception) -> Dict[str, Any]:
        return {
            'type': 'check_raised',
            'loc': (),
            'msg': f"{self.name} check raised {type(error).__name__}: {error}",
            'input': value,
        }

    def __repr__(self) -> str:
        flags = " loose" if self.loose else (" async" if self.is_async else "")
        return f"<Validator {self.name}{flags}>"


# =================================================================
# Slots
# =================================================================

class Slot(ABC):
    """Abstract base class for the compiled matcher of one call position."""
    pass


class LiteralSlot(Slot):
    """Accepts exactly one phrase string."""
    __match_args__ = ("phrase",)

    def __init__(self, phrase: str):
        self.phrase = phrase

    def accepts(self, arg: Any) -> bool:
        return isinstance(arg, str) and arg == self.phrase

    @property
    def phrases(self) -> Tuple[str, ...]:
        return (self.phrase,)

    def __repr__(self) -> str:
        return f"LiteralSlot<{self.phrase!r}>"

    def __eq__(self, other):
        return isinstance(other, LiteralSlot) and self.phrase == other.phrase

    def __hash__(self):
        return hash(("literal", self.phrase))


class ChoiceSlot(Slot):
    """Accepts any one of a fixed, non-empty set of phrase strings."""
    __match_args__ = ("phrases",)

    def __init__(self, phrases: Tuple[str, ...]):
        if not phrases:
            raise ValueError("ChoiceSlot must have at least one phrase.")
        self.phrases = tuple(phrases)

    def accepts(self, arg: Any) -> bool:
        return isinstance(arg, str) and arg in self.phrases

    def __repr__(self) -> str:
        return f"ChoiceSlot<{' / '.join(repr(p) for p in self.phrases)}>"

    def __eq__(self, other):
        return isinstance(other, ChoiceSlot) and self.phrases == other.phrases

    def __hash__(self):
        return hash(("choice", self.phrases))


class ValidatorSlot(Slot):
    """Accepts a value when its validator does."""
    __match_args__ = ("validator",)

    def __init__(self, validator: Validator):
        self.validator = validator

    @property
    def loose(self) -> bool:
        return self.validator.loose

    def __repr__(self) -> str:
        return f"ValidatorSlot<{self.validator.name}>"

    def __eq__(self, other):
        return isinstance(other, ValidatorSlot) and self.validator is other.validator

    def __hash__(self):
        return hash(("validator", id(self.validator)))


# =================================================================
# Per-call records
# =================================================================

@dataclass
class ParsedResult:
    """The outcome of matching one call against one definition."""
    success: bool
    parsed_values: Tuple[Any, ...] = ()
    exact_match: bool = False
    reason: Optional[str] = None
    # Set by simple validator-only definitions so execute() can skip re-validating.
    subject_validation: Optional[Validation] = None

    @classmethod
    def failure(cls, reason: str) -> 'ParsedResult':
        return cls(success=False, reason=reason)


@dataclass
class MatchCandidate:
    definition: Any
    result: ParsedResult

    @property
    def exact_match(self) -> bool:
        return self.result.exact_match

    @property
    def parsed_values(self) -> Tuple[Any, ...]:
        return self.result.parsed_values


FAILURE_FIELDS = ("actual", "expected", "message", "diff",
                  "format_actual", "format_expected", "diff_options")


@dataclass
class AssertionFailure:
    """Describes why a check did not hold.

    `actual` and `expected` default to UNSET rather than None, since None
    is a perfectly good value to compare.
    """
    actual: Any = UNSET
    expected: Any = UNSET
    message: Optional[str] = None
    diff: Optional[str] = None
    format_actual: Optional[Callable[[Any], Any]] = None
    format_expected: Optional[Callable[[Any], Any]] = None
    diff_options: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data) -> 'AssertionFailure':
        unknown = set(data) - set(FAILURE_FIELDS)
        if unknown:
            raise KeyError(f"Unknown failure fields: {', '.join(sorted(unknown))}")
        kwargs = dict(data)
        kwargs["diff_options"] = dict(kwargs.get("diff_options") or {})
        return cls(**kwargs)

    @staticmethod
    def looks_like(data) -> bool:
        """True for a non-empty mapping whose keys are all failure fields."""
        try:
            keys = set(data.keys())
        except AttributeError:
            return False
        return bool(keys) and keys <= set(FAILURE_FIELDS)
