"""
Assertion definitions: compiled slots plus an implementation.

An implementation is either a Validator applied to the subject, or a
predicate function called with the parsed values (phrase tokens are
not passed). Definitions are immutable once created; matching a call
against one never has side effects.
"""
import dataclasses
import inspect
import re
from typing import Any, Optional, Sequence, Tuple

from pydantic import ValidationError

from phrasal.phrasal_config import dbg
from phrasal.phrasal_datatypes import (
    AssertionFailure, ChoiceSlot, LiteralSlot, ParsedResult, Validation, Validator, ValidatorSlot
)
from phrasal.phrasal_diff import describe_issues, extract_diff_values
from phrasal.phrasal_errors import (
    AssertionFailureError, AssertionImplementationError, DefinitionError, UnexpectedAsyncError, verbatim,
)
from phrasal.phrasal_printer import Printer
from phrasal.phrasal_slots import phrase_at, slotify
from phrasal.phrasal_validators import schema


def _slot_repr(slot) -> str:
    match slot:
        case LiteralSlot(phrase):
            return repr(phrase)
        case ChoiceSlot(phrases):
            return "(" + " / ".join(repr(p) for p in phrases) + ")"
        case ValidatorSlot(validator):
            return "{" + validator.name + "}"
    return repr(slot)


def _slug(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def _close_awaitable(obj: Any) -> None:
    close = getattr(obj, "close", None)
    if callable(close):
        close()
    elif hasattr(obj, "cancel"):
        obj.cancel()


# =================================================================
# Base definition
# =================================================================

class Assertion:
    """A compiled assertion definition."""
    is_async = False

    def __init__(self, parts: Sequence[Any], slots: Sequence[Any], impl: Any):
        self.parts = tuple(parts)
        self.slots = tuple(slots)
        self.impl = impl
        self._repr = " ".join(_slot_repr(s) for s in self.slots)
        self.id = f"{_slug(self._repr)}-{len(self.slots)}s{len(self.parts)}p"

    def __repr__(self) -> str:
        return self._repr

    # ---- introspection ----

    def index_phrases(self) -> Tuple[str, ...]:
        """Phrases accepted at the position right after the subject."""
        return phrase_at(self.slots, 1)

    def phrases(self) -> Tuple[str, ...]:
        out = []
        for slot in self.slots:
            if isinstance(slot, (LiteralSlot, ChoiceSlot)):
                out.extend(slot.phrases)
        return tuple(out)

    @property
    def is_simple_schema(self) -> bool:
        """True for `loose subject + phrases only` definitions with a Validator impl."""
        if not isinstance(self.impl, Validator) or not self.slots:
            return False
        first, rest = self.slots[0], self.slots[1:]
        return (isinstance(first, ValidatorSlot) and first.loose
                and all(isinstance(s, (LiteralSlot, ChoiceSlot)) for s in rest))

    # ---- parsing ----

    def _arity_mismatch(self, args: Sequence[Any]) -> Optional[ParsedResult]:
        if len(args) != len(self.slots):
            return ParsedResult.failure(
                f"expected {len(self.slots)} arguments, got {len(args)}"
            )
        return None

    def _phrase_mismatch(self, index: int, slot, arg: Any) -> ParsedResult:
        expected = " or ".join(repr(p) for p in slot.phrases)
        return ParsedResult.failure(
            f"argument {index} should be {expected}, got {Printer().inline(arg, limit=40)}"
        )

    def _invalid(self, index: int, validator: Validator, validation: Validation) -> ParsedResult:
        detail = describe_issues(validation.issues)
        msg = f"argument {index} is not a valid {validator.name}"
        return ParsedResult.failure(f"{msg} ({detail})" if detail else msg)

    def parse_values(self, args: Sequence[Any]) -> ParsedResult:
        """Matches `args` against the slots. Never raises for a mismatch."""
        mismatch = self._arity_mismatch(args)
        if mismatch:
            return mismatch

        values = []
        exact = True
        subject_validation = None
        for i, (slot, arg) in enumerate(zip(self.slots, args)):
            match slot:
                case LiteralSlot() | ChoiceSlot():
                    if not slot.accepts(arg):
                        return self._phrase_mismatch(i, slot, arg)
                case ValidatorSlot(validator) if validator.loose:
                    if i == 0 and self.is_simple_schema and not self.impl.is_async:
                        subject_validation = self.impl.validate(arg)
                    values.append(arg)
                    exact = False
                case ValidatorSlot(validator):
                    if validator.is_async:
                        return ParsedResult.failure(
                            f"argument {i} needs asynchronous validation ({validator.name})"
                        )
                    validation = validator.validate(arg)
                    if not validation.success:
                        return self._invalid(i, validator, validation)
                    values.append(validation.value)
        return ParsedResult(True, tuple(values), exact, subject_validation=subject_validation)

    # ---- failure construction ----

    def _generic_message(self, args: Sequence[Any]) -> str:
        printer = Printer()
        rendered = ", ".join(printer.inline(a, limit=40) for a in args)
        return verbatim(f"Assertion {self!r} failed for arguments: {rendered}")

    def _failure_from_issues(self, issues: list, subject: Any) -> AssertionFailureError:
        actual, expected = extract_diff_values(issues, subject)
        message = verbatim(f"Assertion {self!r} failed: {describe_issues(issues)}")
        return AssertionFailureError(
            AssertionFailure(actual=actual, expected=expected, message=message), definition=self
        )

    def _failure_from_validation(self, validation: Validation, subject: Any) -> Optional[AssertionFailureError]:
        if validation.success:
            return None
        return self._failure_from_issues(validation.issues, subject)

    def _interpret(self, result: Any, parsed_values: Sequence[Any], args: Sequence[Any]) -> Optional[Validator]:
        """
        Turns a predicate's return value into pass/fail.

        Returns a Validator when the predicate handed one back; the caller
        applies it to the subject.
        """
        match result:
            case True | None:
                return None
            case False:
                raise AssertionFailureError(
                    AssertionFailure(message=self._generic_message(args)), definition=self
                )
            case Validator():
                return result
            case AssertionFailure():
                failure = result
            case _ if AssertionFailure.looks_like(result):
                failure = AssertionFailure.from_mapping(result)
            case _:
                raise AssertionImplementationError(
                    f"Assertion {self!r} returned an unsupported value: {Printer().inline(result)}"
                )
        if failure.message is None:
            failure = dataclasses.replace(failure, message=self._generic_message(args))
        raise AssertionFailureError(failure, definition=self)

    def _convert_exception(self, e: BaseException, parsed_values: Sequence[Any], args: Sequence[Any]):
        """Maps a predicate's exception to a failure, or returns None to re-raise it."""
        if isinstance(e, AssertionFailureError):
            return None
        if isinstance(e, ValidationError):
            subject = parsed_values[0] if parsed_values else None
            return self._failure_from_issues(e.errors(include_url=False), subject)
        if isinstance(e, AssertionError):
            message = verbatim(e) if str(e) else self._generic_message(args)
            return AssertionFailureError(AssertionFailure(message=message), definition=self)
        return None


# =================================================================
# Synchronous definitions
# =================================================================

class SchemaAssertion(Assertion):
    """Applies a Validator directly to the subject."""

    def execute(self, parsed_values: Sequence[Any], args: Sequence[Any],
                parse_result: Optional[ParsedResult] = None) -> None:
        __tracebackhide__ = True
        subject = parsed_values[0]
        validation = parse_result.subject_validation if parse_result is not None else None
        if validation is not None:
            dbg("cached subject validation", self.id, validation.success)
        else:
            validation = self.impl.validate(subject)
        error = self._failure_from_validation(validation, subject)
        if error is not None:
            raise error


class FunctionAssertion(Assertion):
    """Calls a predicate with the parsed values."""

    def execute(self, parsed_values: Sequence[Any], args: Sequence[Any],
                parse_result: Optional[ParsedResult] = None) -> None:
        __tracebackhide__ = True
        try:
            result = self.impl(*parsed_values)
        except Exception as e:
            converted = self._convert_exception(e, parsed_values, args)
            if converted is None:
                raise
            raise converted from e

        if inspect.isawaitable(result):
            dbg("closing awaitable returned by", self.id)
            _close_awaitable(result)
            raise UnexpectedAsyncError(self)

        validator = self._interpret(result, parsed_values, args)
        if validator is not None:
            if validator.is_async:
                raise UnexpectedAsyncError(self)
            error = self._failure_from_validation(validator.validate(parsed_values[0]), parsed_values[0])
            if error is not None:
                raise error


# =================================================================
# Asynchronous definitions
# =================================================================

class _AsyncParsing:
    is_async = True

    async def parse_values_async(self, args: Sequence[Any]) -> ParsedResult:
        mismatch = self._arity_mismatch(args)
        if mismatch:
            return mismatch

        values = []
        exact = True
        subject_validation = None
        for i, (slot, arg) in enumerate(zip(self.slots, args)):
            match slot:
                case LiteralSlot() | ChoiceSlot():
                    if not slot.accepts(arg):
                        return self._phrase_mismatch(i, slot, arg)
                case ValidatorSlot(validator) if validator.loose:
                    if i == 0 and self.is_simple_schema:
                        subject_validation = await self.impl.validate_async(arg)
                    values.append(arg)
                    exact = False
                case ValidatorSlot(validator):
                    validation = await validator.validate_async(arg)
                    if not validation.success:
                        return self._invalid(i, validator, validation)
                    values.append(validation.value)
        return ParsedResult(True, tuple(values), exact, subject_validation=subject_validation)


class AsyncSchemaAssertion(_AsyncParsing, SchemaAssertion):

    async def execute_async(self, parsed_values: Sequence[Any], args: Sequence[Any],
                            parse_result: Optional[ParsedResult] = None) -> None:
        __tracebackhide__ = True
        subject = parsed_values[0]
        validation = parse_result.subject_validation if parse_result is not None else None
        if validation is None:
            validation = await self.impl.validate_async(subject)
        error = self._failure_from_validation(validation, subject)
        if error is not None:
            raise error


class AsyncFunctionAssertion(_AsyncParsing, FunctionAssertion):

    async def execute_async(self, parsed_values: Sequence[Any], args: Sequence[Any],
                            parse_result: Optional[ParsedResult] = None) -> None:
        __tracebackhide__ = True
        try:
            result = self.impl(*parsed_values)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            converted = self._convert_exception(e, parsed_values, args)
            if converted is None:
                raise
            raise converted from e

        validator = self._interpret(result, parsed_values, args)
        if validator is not None:
            validation = await validator.validate_async(parsed_values[0])
            error = self._failure_from_validation(validation, parsed_values[0])
            if error is not None:
                raise error


# =================================================================
# Factories
# =================================================================

def _normalize_impl(impl: Any) -> Any:
    if isinstance(impl, type):
        return schema(impl)
    return impl


def create_assertion(parts: Sequence[Any], impl: Any) -> Assertion:
    """Creates a synchronous assertion definition.

    Raises DefinitionError for malformed parts, asynchronous validators,
    or an implementation that is neither a Validator nor callable.
    """
    slots = slotify(parts)
    for slot in slots:
        if isinstance(slot, ValidatorSlot) and slot.validator.is_async:
            raise DefinitionError(
                f"Validator {slot.validator.name!r} is asynchronous; use create_async_assertion()"
            )
    impl = _normalize_impl(impl)
    match impl:
        case Validator():
            if impl.is_async:
                raise DefinitionError("Asynchronous validators need create_async_assertion()")
            return SchemaAssertion(parts, slots, impl)
        case _ if callable(impl):
            return FunctionAssertion(parts, slots, impl)
    raise DefinitionError(
        f"Assertion implementation must be a Validator or a callable, got {type(impl).__name__}"
    )


def create_async_assertion(parts: Sequence[Any], impl: Any) -> Assertion:
    """Creates an asynchronous assertion definition, run by expect_async()."""
    slots = slotify(parts)
    impl = _normalize_impl(impl)
    match impl:
        case Validator():
            return AsyncSchemaAssertion(parts, slots, impl)
        case _ if callable(impl):
            return AsyncFunctionAssertion(parts, slots, impl)
    raise DefinitionError(
        f"Assertion implementation must be a Validator or a callable, got {type(impl).__name__}"
    )


__all__ = [
    "Assertion",
    "SchemaAssertion",
    "FunctionAssertion",
    "AsyncSchemaAssertion",
    "AsyncFunctionAssertion",
    "create_assertion",
    "create_async_assertion",
]
