"""
Built-in asynchronous assertions and the `first_of` race combinator.

A subject is either an awaitable or a callable; a callable is called
first, and its result is awaited when it is awaitable. A callable that
raises counts as a rejection.
"""
import asyncio
import inspect
import re
from typing import Any, Awaitable, Tuple

from phrasal.phrasal_assertion import create_async_assertion
from phrasal.phrasal_config import dbg
from phrasal.phrasal_datatypes import AssertionFailure
from phrasal.phrasal_errors import verbatim
from phrasal.phrasal_validators import ANY, EXCEPTION_CLASS, PATTERN, STRING, predicate


async def first_of(*awaitables: Awaitable) -> Tuple[int, Any]:
    """
    Waits for the first of `awaitables` to finish.

    Returns (index, result) of the winner; if the winner raised, its
    exception propagates. Every other awaitable is cancelled and drained
    before this returns, on success, failure and cancellation alike.
    """
    if not awaitables:
        raise ValueError("first_of() needs at least one awaitable")
    tasks = [asyncio.ensure_future(a) for a in awaitables]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
    for index, task in enumerate(tasks):
        if task in done:
            return index, task.result()
    raise RuntimeError("first_of() finished without a winner")


def _is_settleable(value) -> bool:
    return inspect.isawaitable(value) or callable(value)


SETTLEABLE = predicate(_is_settleable, "awaitable or callable")


async def settle(subject: Any) -> Tuple[bool, Any]:
    """Returns (True, value) if `subject` resolves, (False, exception) if it rejects."""
    try:
        value = subject() if callable(subject) and not inspect.isawaitable(subject) else subject
        if inspect.isawaitable(value):
            value = await value
    except Exception as e:
        dbg("subject rejected with", repr(e))
        return False, e
    return True, value


# =================================================================
# Implementations
# =================================================================

def _rejected(value) -> AssertionFailure:
    return AssertionFailure(
        message=f"Expected subject to resolve, but it rejected with {verbatim(repr(value))}"
    )


async def _resolves(subject):
    ok, value = await settle(subject)
    if ok:
        return True
    return _rejected(value)


async def _rejects(subject):
    ok, value = await settle(subject)
    if not ok:
        return True
    return AssertionFailure(actual=value, message="Expected subject to reject, but it resolved with {{actual}}")


async def _rejects_with_instance(subject, cls):
    ok, value = await settle(subject)
    name = verbatim(cls.__name__)
    if ok:
        return AssertionFailure(message=f"Expected subject to reject with {name}, but it resolved")
    if isinstance(value, cls):
        return True
    return AssertionFailure(actual=type(value).__name__, expected=cls.__name__,
                            message=f"Expected subject to reject with {name}, got {verbatim(repr(value))}")


async def _rejects_matching(subject, expected):
    ok, value = await settle(subject)
    if ok:
        return AssertionFailure(
            message=f"Expected subject to reject with {verbatim(repr(expected))}, but it resolved"
        )
    text = str(value)
    if isinstance(expected, re.Pattern):
        if expected.search(text):
            return True
        return AssertionFailure(actual=text,
                                message=f"Expected rejection message to match {verbatim(repr(expected.pattern))}")
    if text == expected:
        return True
    return AssertionFailure(actual=text, expected=expected,
                            message="Expected rejection message {{actual}} to be {{expected}}")


async def _resolves_to(subject, expected):
    ok, value = await settle(subject)
    if not ok:
        return _rejected(value)
    if value == expected:
        return True
    return AssertionFailure(actual=value, expected=expected,
                            message="Expected subject to resolve to {{expected}}")


ASYNC_ASSERTIONS = [
    create_async_assertion([SETTLEABLE, ("to resolve", "to fulfill", "to be fulfilled")], _resolves),
    create_async_assertion([SETTLEABLE, ("to reject", "to be rejected")], _rejects),
    create_async_assertion([SETTLEABLE, ("to reject with a", "to reject with an"), EXCEPTION_CLASS],
                           _rejects_with_instance),
    create_async_assertion([SETTLEABLE, "to reject with", EXCEPTION_CLASS], _rejects_with_instance),
    create_async_assertion([SETTLEABLE, "to reject with", STRING], _rejects_matching),
    create_async_assertion([SETTLEABLE, "to reject with", PATTERN], _rejects_matching),
    create_async_assertion([SETTLEABLE, ("to fulfill with value", "to resolve to", "to resolve with"), ANY],
                           _resolves_to),
]

__all__ = ["ASYNC_ASSERTIONS", "first_of", "settle", "SETTLEABLE"]
