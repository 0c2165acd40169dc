"""
Assertions about event emitters.

An emitter is any object with `on(event, listener)`, `remove_listener(event,
listener)` and either `listener_count(event)` or `listeners(event)`, the
interface pyee's EventEmitter provides.
"""
import asyncio
import inspect
from typing import Any, Optional

from phrasal.phrasal_assertion import create_assertion, create_async_assertion
from phrasal.phrasal_async import first_of
from phrasal.phrasal_config import dbg, default_within_ms
from phrasal.phrasal_datatypes import AssertionFailure
from phrasal.phrasal_errors import verbatim
from phrasal.phrasal_validators import ANY, CALLABLE, INTEGER, TIMEOUT_OPTIONS, predicate

_TIMED_OUT = object()


def is_emitter(value) -> bool:
    return (callable(getattr(value, "on", None))
            and callable(getattr(value, "remove_listener", None))
            and (callable(getattr(value, "listener_count", None))
                 or callable(getattr(value, "listeners", None))))


EMITTER = predicate(is_emitter, "emitter")


def listener_count(emitter, event) -> int:
    if callable(getattr(emitter, "listener_count", None)):
        return int(emitter.listener_count(event))
    return len(list(emitter.listeners(event)))


async def wait_for_event(emitter, event, within_ms: float, trigger=None):
    """
    Subscribes to `event`, runs `trigger` (if any) and waits up to
    `within_ms` milliseconds for the event.

    Returns a tuple of the listener's arguments, or _TIMED_OUT. The
    listener and the timer are gone by the time this returns.
    """
    loop = asyncio.get_running_loop()
    fired = loop.create_future()

    def listener(*args, **kwargs):
        if not fired.done():
            fired.set_result(args)

    emitter.on(event, listener)
    trigger_task: Optional[asyncio.Future] = None
    try:
        if trigger is not None:
            result = trigger()
            if inspect.isawaitable(result):
                trigger_task = asyncio.ensure_future(result)
        if fired.done():
            return fired.result()
        _, value = await first_of(fired, asyncio.sleep(within_ms / 1000, result=_TIMED_OUT))
        return value
    finally:
        emitter.remove_listener(event, listener)
        if trigger_task is not None:
            if not trigger_task.done():
                trigger_task.cancel()
            outcome, = await asyncio.gather(trigger_task, return_exceptions=True)
            if isinstance(outcome, Exception):
                dbg("trigger raised", repr(outcome))


def _within(options) -> float:
    if options and options.get("within") is not None:
        return float(options["within"])
    return default_within_ms()


def _not_emitted(event, within_ms):
    return AssertionFailure(
        message=f"Expected event {verbatim(repr(event))} to be emitted within {within_ms:g}ms"
    )


# =================================================================
# Implementations
# =================================================================

def _has_listener_for(emitter, event):
    n = listener_count(emitter, event)
    if n > 0:
        return True
    return AssertionFailure(message=f"Expected emitter to have a listener for {verbatim(repr(event))}")


def _has_listener_count(emitter, event, expected):
    n = listener_count(emitter, event)
    if n == expected:
        return True
    return AssertionFailure(actual=n, expected=expected,
                            message=f"Expected {{{{expected}}}} listeners for {verbatim(repr(event))}, "
                                    "found {{actual}}")


async def _trigger_emits(trigger, emitter, event, options=None):
    within_ms = _within(options)
    value = await wait_for_event(emitter, event, within_ms, trigger=trigger)
    if value is _TIMED_OUT:
        return _not_emitted(event, within_ms)
    return True


async def _emits(emitter, event, options=None):
    within_ms = _within(options)
    value = await wait_for_event(emitter, event, within_ms)
    if value is _TIMED_OUT:
        return _not_emitted(event, within_ms)
    return True


EVENT_ASSERTIONS = [
    create_assertion([EMITTER, ("to have listener for", "to have listeners for"), ANY], _has_listener_for),
    create_assertion([EMITTER, "to have listener count", ANY, INTEGER], _has_listener_count),
    create_async_assertion([CALLABLE, "to emit from", EMITTER, ANY], _trigger_emits),
    create_async_assertion([CALLABLE, "to emit from", EMITTER, ANY, TIMEOUT_OPTIONS], _trigger_emits),
    create_async_assertion([EMITTER, "to emit", ANY], _emits),
    create_async_assertion([EMITTER, "to emit", ANY, TIMEOUT_OPTIONS], _emits),
]

__all__ = ["EVENT_ASSERTIONS", "EMITTER", "is_emitter", "listener_count", "wait_for_event"]
