"""
Dispatches `expect(...)` calls to exactly one assertion definition.

One pass per call:

1. split the call on bare "and" arguments into sub-calls sharing the subject,
2. strip a leading "not " from each sub-call's phrase and remember it,
3. parse the sub-call against every candidate definition,
4. pick the winner: a single exact match beats any number of fallback
   matches; two exact matches are ambiguous; with no exact match the first
   fallback in registry order wins,
5. run the winners in order, inverting the outcome of negated sub-calls.

Every sub-call is resolved before any of them runs.
"""
import asyncio
import inspect
import sys
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from phrasal.phrasal_assertion import create_assertion, create_async_assertion
from phrasal.phrasal_config import dbg
from phrasal.phrasal_datatypes import AssertionFailure, MatchCandidate
from phrasal.phrasal_errors import (
    AmbiguousMatchError, AssertionFailureError, NegatedAssertionError, NoMatchingAssertionError, verbatim,
)
from phrasal.phrasal_registry import Registry
from phrasal.phrasal_slots import CONJUNCTION, NEGATION_MARKER


@dataclass
class CallPlan:
    """A resolved (sub-)call, ready to execute."""
    candidate: MatchCandidate
    args: Tuple[Any, ...]
    negated: bool = False

    @property
    def definition(self):
        return self.candidate.definition


# =================================================================
# Argument preprocessing
# =================================================================

def detect_negation(args: Sequence[Any]) -> Tuple[bool, Tuple[Any, ...]]:
    """Returns (negated, args with the marker stripped from the phrase)."""
    args = tuple(args)
    if len(args) >= 2 and isinstance(args[1], str) and args[1].startswith(NEGATION_MARKER):
        return True, (args[0], args[1][len(NEGATION_MARKER):]) + args[2:]
    return False, args


def _is_conjunction(arg: Any) -> bool:
    return isinstance(arg, str) and arg == CONJUNCTION


def conjunctify(args: Sequence[Any]) -> List[Tuple[Any, ...]]:
    """Splits a call on bare "and" arguments; each part keeps the subject."""
    args = tuple(args)
    if len(args) < 2 or not any(_is_conjunction(a) for a in args[1:]):
        return [args]
    subject = args[0]
    parts = []
    current = [subject]
    for arg in args[1:]:
        if _is_conjunction(arg):
            parts.append(tuple(current))
            current = [subject]
        else:
            current.append(arg)
    parts.append(tuple(current))
    return parts


def _phrase_of(args: Tuple[Any, ...]) -> Optional[str]:
    if len(args) > 1 and isinstance(args[1], str):
        return args[1]
    return None


# =================================================================
# Resolution
# =================================================================

def disambiguate(args: Tuple[Any, ...], candidates: List[MatchCandidate], reasons: list,
                 negated: bool = False) -> MatchCandidate:
    if not candidates:
        raise NoMatchingAssertionError(args, reasons, negated)
    exact = [c for c in candidates if c.exact_match]
    if len(exact) > 1:
        raise AmbiguousMatchError(exact[0].definition, exact[1].definition, args)
    if exact:
        return exact[0]
    return candidates[0]


def _resolve_one(registry: Registry, args: Tuple[Any, ...]) -> CallPlan:
    negated, processed = detect_negation(args)
    candidates, reasons = [], []
    for definition in registry.candidates(_phrase_of(processed), is_async=False):
        result = definition.parse_values(processed)
        if result.success:
            candidates.append(MatchCandidate(definition, result))
        else:
            reasons.append((definition, result.reason))
    winner = disambiguate(processed, candidates, reasons, negated)
    dbg("resolved", winner.definition.id, f"candidates={len(candidates)}",
        f"exact={winner.exact_match}", f"negated={negated}")
    return CallPlan(winner, processed, negated)


async def _resolve_one_async(registry: Registry, args: Tuple[Any, ...]) -> CallPlan:
    negated, processed = detect_negation(args)
    candidates, reasons = [], []
    for definition in registry.candidates(_phrase_of(processed), is_async=True):
        result = await definition.parse_values_async(processed)
        if result.success:
            candidates.append(MatchCandidate(definition, result))
        else:
            reasons.append((definition, result.reason))
    winner = disambiguate(processed, candidates, reasons, negated)
    dbg("resolved async", winner.definition.id, f"candidates={len(candidates)}",
        f"exact={winner.exact_match}", f"negated={negated}")
    return CallPlan(winner, processed, negated)


def _share_subject(args: Tuple[Any, ...]) -> Tuple[Any, ...]:
    """Wraps an awaitable subject in a Task so every conjunction part can await it."""
    subject = args[0]
    if inspect.isawaitable(subject) and not isinstance(subject, asyncio.Future):
        return (asyncio.ensure_future(subject),) + args[1:]
    return args


def release_subject(args: Sequence[Any]) -> None:
    """Closes a coroutine (or cancels a Task) subject that will never run."""
    subject = args[0] if args else None
    if inspect.iscoroutine(subject):
        subject.close()
    elif isinstance(subject, asyncio.Future):
        subject.cancel()


def resolve(registry: Registry, args: Sequence[Any]) -> List[CallPlan]:
    """Resolves a call (and its conjunction parts) against the sync registry."""
    args = tuple(args)
    parts = conjunctify(args)
    try:
        if len(parts) > 1:
            try:
                return [_resolve_one(registry, part) for part in parts]
            except NoMatchingAssertionError:
                dbg("conjunction split did not resolve; retrying unsplit")
        return [_resolve_one(registry, args)]
    except (NoMatchingAssertionError, AmbiguousMatchError):
        release_subject(args)
        raise


async def resolve_async(registry: Registry, args: Sequence[Any]) -> List[CallPlan]:
    args = tuple(args)
    parts = conjunctify(args)
    if len(parts) > 1:
        args = _share_subject(args)
        parts = conjunctify(args)
    try:
        if len(parts) > 1:
            try:
                return [await _resolve_one_async(registry, part) for part in parts]
            except NoMatchingAssertionError:
                dbg("conjunction split did not resolve; retrying unsplit")
        return [await _resolve_one_async(registry, args)]
    except (NoMatchingAssertionError, AmbiguousMatchError):
        release_subject(args)
        raise


# =================================================================
# Execution
# =================================================================

def _negation_passed(plan: CallPlan) -> NegatedAssertionError:
    definition = plan.definition
    return NegatedAssertionError(
        AssertionFailure(
            message=verbatim(f"Expected assertion {definition!r} to fail (due to negation), but it passed")
        ),
        definition=definition,
    )


def execute(plan: CallPlan) -> None:
    __tracebackhide__ = True
    candidate = plan.candidate
    try:
        plan.definition.execute(candidate.parsed_values, plan.args, candidate.result)
    except AssertionFailureError:
        if plan.negated:
            dbg("negated failure swallowed", plan.definition.id)
            return
        raise
    if plan.negated:
        raise _negation_passed(plan)


async def execute_async(plan: CallPlan) -> None:
    __tracebackhide__ = True
    candidate = plan.candidate
    try:
        await plan.definition.execute_async(candidate.parsed_values, plan.args, candidate.result)
    except AssertionFailureError:
        if plan.negated:
            dbg("negated failure swallowed", plan.definition.id)
            return
        raise
    if plan.negated:
        raise _negation_passed(plan)


# =================================================================
# Traceback trimming
# =================================================================

def _is_internal(frame) -> bool:
    name = frame.f_globals.get("__name__", "")
    return name == "phrasal" or name.startswith("phrasal.")


def trim_traceback(tb):
    """Drops phrasal's own frames from a traceback chain."""
    kept = []
    while tb is not None:
        if not _is_internal(tb.tb_frame):
            kept.append(tb)
        tb = tb.tb_next
    head = None
    for entry in reversed(kept):
        entry.tb_next = head
        head = entry
    return head


def caller_info(frame) -> Optional[dict]:
    if frame is None:
        return None
    code = frame.f_code
    return {"file": code.co_filename, "line": frame.f_lineno, "function": code.co_name}


def _prepare(error: AssertionFailureError, caller: Optional[dict]) -> AssertionFailureError:
    if error.caller is None:
        error.caller = caller
    return error.with_traceback(trim_traceback(error.__traceback__))


# =================================================================
# Entry points
# =================================================================

class _EntryPoint:
    create_assertion = staticmethod(create_assertion)
    create_async_assertion = staticmethod(create_async_assertion)

    def __init__(self, registry: Registry):
        self.registry = registry

    def fail(self, reason: Optional[str] = None):
        """Fails unconditionally."""
        __tracebackhide__ = True
        error = AssertionFailureError(AssertionFailure(message=verbatim(reason or "Explicitly failed")))
        error.caller = caller_info(sys._getframe(1))
        raise error

    def use(self, definitions) -> Tuple['Expect', 'ExpectAsync']:
        """Returns a new (expect, expect_async) pair that also knows `definitions`."""
        return create_expect(self.registry.extend(definitions))


class Expect(_EntryPoint):
    """The synchronous entry point: `expect(subject, phrase, *rest)`."""

    @property
    def assertions(self):
        return self.registry.sync

    def __call__(self, *args: Any) -> None:
        __tracebackhide__ = True
        try:
            for plan in resolve(self.registry, args):
                execute(plan)
        except AssertionFailureError as e:
            raise _prepare(e, caller_info(sys._getframe(1)))

    def __repr__(self) -> str:
        return f"<Expect {len(self.assertions)} assertions>"


class ExpectAsync(_EntryPoint):
    """The asynchronous entry point: `await expect_async(subject, phrase, *rest)`."""

    @property
    def assertions(self):
        return self.registry.async_

    def __call__(self, *args: Any):
        # Record the caller now; inside the coroutine the frame above is the event loop.
        return self._run(args, caller_info(sys._getframe(1)))

    async def _run(self, args: Tuple[Any, ...], caller: Optional[dict]) -> None:
        __tracebackhide__ = True
        try:
            for plan in await resolve_async(self.registry, args):
                await execute_async(plan)
        except AssertionFailureError as e:
            raise _prepare(e, caller)

    def __repr__(self) -> str:
        return f"<ExpectAsync {len(self.assertions)} assertions>"


def create_expect(registry: Registry) -> Tuple[Expect, ExpectAsync]:
    return Expect(registry), ExpectAsync(registry)


__all__ = [
    "CallPlan",
    "detect_negation",
    "conjunctify",
    "disambiguate",
    "resolve",
    "resolve_async",
    "release_subject",
    "execute",
    "execute_async",
    "trim_traceback",
    "Expect",
    "ExpectAsync",
    "create_expect",
]
