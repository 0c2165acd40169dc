import inspect

import pytest

import phrasal
from phrasal import expect, expect_async
from phrasal.phrasal_assertion import create_assertion, create_async_assertion
from phrasal.phrasal_datatypes import AssertionFailure
from phrasal.phrasal_dispatch import conjunctify, create_expect, detect_negation, resolve
from phrasal.phrasal_errors import (
    AmbiguousMatchError, AssertionFailureError, NegatedAssertionError, NoMatchingAssertionError,
)
from phrasal.phrasal_registry import Registry
from phrasal.phrasal_validators import NUMBER, STRING, predicate


def make_expect(*definitions):
    return create_expect(Registry().extend(definitions))


# --- argument preprocessing ---

def test_detect_negation():
    assert detect_negation((1, "not to be a string")) == (True, (1, "to be a string"))
    assert detect_negation((1, "to be a string")) == (False, (1, "to be a string"))
    assert detect_negation(("not x",)) == (False, ("not x",))
    assert detect_negation((1, 2)) == (False, (1, 2))


def test_conjunctify():
    assert conjunctify((1, "to be a number")) == [(1, "to be a number")]
    assert conjunctify((1, "to be a number", "and", "to be greater than", 0)) == [
        (1, "to be a number"),
        (1, "to be greater than", 0),
    ]
    assert conjunctify(("and", "to be a string")) == [("and", "to be a string")]


# --- subject typing ---

def test_greater_than_with_loose_subject():
    gt = create_assertion(["to be greater than", NUMBER],
                          lambda a, b: a > b or AssertionFailure(actual=a, expected=b))
    check, _ = make_expect(gt)
    check(10, "to be greater than", 5)
    with pytest.raises(AssertionFailureError) as info:
        check(3, "to be greater than", 5)
    assert info.value.actual == 3


def test_builtin_greater_than_failure_carries_actual():
    with pytest.raises(AssertionFailureError) as info:
        expect(3, "to be greater than", 5)
    assert info.value.actual == 3
    assert str(info.value) == "Expected 3 to be greater than 5"


def test_contain_resolves_by_subject_type():
    registry = phrasal.registry
    [list_plan] = resolve(registry, ([1, 2, 3], "to contain", 2))
    [str_plan] = resolve(registry, ("abc", "to contain", "b"))
    assert list_plan.definition is not str_plan.definition
    assert str_plan.candidate.exact_match
    expect([1, 2, 3], "to contain", 2)
    expect("abc", "to contain", "b")


# --- disambiguation ---

def test_exact_match_beats_fallback():
    loose = create_assertion(["to be special"], lambda s: False)
    strict = create_assertion([STRING, "to be special"], lambda s: True)
    check, _ = make_expect(loose, strict)
    check("x", "to be special")
    with pytest.raises(AssertionFailureError):
        check(3, "to be special")


def test_two_exact_matches_are_ambiguous():
    a = create_assertion([STRING, "to be twice"], lambda s: True)
    b = create_assertion([STRING, "to be twice"], lambda s: True)
    check, _ = make_expect(a, b)
    with pytest.raises(AmbiguousMatchError) as info:
        check("x", "to be twice")
    assert info.value.first is a
    assert info.value.second is b


def test_first_fallback_in_registry_order_wins():
    passes = create_assertion(["to be fuzzy"], lambda s: True)
    fails = create_assertion(["to be fuzzy"], lambda s: False)
    check, _ = make_expect(passes, fails)
    check(1, "to be fuzzy")
    check, _ = make_expect(fails, passes)
    with pytest.raises(AssertionFailureError):
        check(1, "to be fuzzy")


def test_validator_that_raises_lets_other_definitions_match():
    positive = create_assertion([predicate(lambda v: v > 0, "positive"), "to be fine"], lambda v: True)
    text = create_assertion([STRING, "to be fine"], lambda v: v == "x")
    check, _ = make_expect(positive, text)
    [plan] = resolve(check.registry, ("x", "to be fine"))
    assert plan.definition is text
    check("x", "to be fine")
    check(1, "to be fine")
    with pytest.raises(AssertionFailureError):
        check("y", "to be fine")


def test_no_match_lists_each_attempt():
    gt = create_assertion([NUMBER, "to be greater than", NUMBER], lambda a, b: a > b)
    check, _ = make_expect(gt)
    with pytest.raises(NoMatchingAssertionError) as info:
        check("x", "to be greater than", 5)
    [(definition, reason)] = info.value.reasons
    assert definition is gt
    assert "not a valid number" in reason


def test_unknown_phrase():
    with pytest.raises(NoMatchingAssertionError, match="No assertion matched"):
        expect(1, "to frobnicate")


def test_no_match_is_raised_even_when_negated():
    with pytest.raises(NoMatchingAssertionError) as info:
        expect(1, "not to frobnicate")
    assert info.value.negated


def test_unmatched_coroutine_subject_is_closed():
    async def later():
        return 1

    coro = later()
    with pytest.raises(NoMatchingAssertionError):
        expect(coro, "to frobnicate")
    assert inspect.getcoroutinestate(coro) == inspect.CORO_CLOSED


# --- negation ---

@pytest.mark.parametrize(
    "args",
    [
        (1, "to be a number"),
        ("abc", "to contain", "b"),
        ([1, 2], "to equal", [1, 2]),
    ],
)
def test_negation_inverts_passing_checks(args):
    expect(*args)
    negated = (args[0], "not " + args[1]) + args[2:]
    with pytest.raises(NegatedAssertionError, match="to fail \\(due to negation\\), but it passed"):
        expect(*negated)


@pytest.mark.parametrize(
    "args",
    [
        ("abc", "to be a number"),
        ("abc", "to contain", "z"),
        ([1, 2], "to equal", [2, 1]),
    ],
)
def test_negation_inverts_failing_checks(args):
    with pytest.raises(AssertionFailureError):
        expect(*args)
    expect(args[0], "not " + args[1], *args[2:])


def test_negation_does_not_swallow_definition_bugs():
    def explode(n):
        raise ValueError("kaboom")

    check, _ = make_expect(create_assertion([NUMBER, "to explode"], explode))
    with pytest.raises(ValueError):
        check(1, "not to explode")


# --- conjunctions ---

def test_conjunction_runs_every_part():
    expect("abc", "to be a string", "and", "to have length", 3)
    with pytest.raises(AssertionFailureError):
        expect("abc", "to be a string", "and", "to have length", 4)


def test_conjunction_parts_handle_their_own_negation():
    expect("abc", "to be a string", "and", "not to be empty")
    with pytest.raises(NegatedAssertionError):
        expect("abc", "not to be a number", "and", "not to be a string")


def test_conjunction_resolves_everything_before_running():
    seen = []
    record = create_assertion(["to record"], lambda s: seen.append(s))
    check, _ = make_expect(record)
    with pytest.raises(NoMatchingAssertionError):
        check("x", "to record", "and", "to frobnicate")
    assert seen == []
    check("x", "to record", "and", "to record")
    assert seen == ["x", "x"]


def test_conjunction_falls_back_to_unsplit_call():
    between = create_assertion([NUMBER, "to be between", NUMBER, "and", NUMBER],
                               lambda n, lo, hi: lo <= n <= hi)
    check, _ = make_expect(between)
    check(5, "to be between", 1, "and", 10)
    with pytest.raises(AssertionFailureError):
        check(50, "to be between", 1, "and", 10)


# --- error reporting ---

def _frame_modules(tb):
    names = []
    while tb is not None:
        names.append(tb.tb_frame.f_globals.get("__name__", ""))
        tb = tb.tb_next
    return names


def test_failure_traceback_hides_internal_frames():
    with pytest.raises(AssertionFailureError) as info:
        expect(3, "to be greater than", 5)
    modules = _frame_modules(info.value.__traceback__)
    assert modules[0] == __name__
    internal = [m for m in modules if m.startswith("phrasal")]
    # Only the entry point itself, which pytest hides via __tracebackhide__.
    assert internal == ["phrasal.phrasal_dispatch"]


def test_failure_records_the_caller():
    with pytest.raises(AssertionFailureError) as info:
        expect("abc", "to be a number")
    caller = info.value.caller
    assert caller["function"] == "test_failure_records_the_caller"
    assert caller["file"] == __file__


def test_fail():
    with pytest.raises(AssertionFailureError, match="nope") as info:
        expect.fail("nope")
    assert info.value.caller["function"] == "test_fail"
    with pytest.raises(AssertionFailureError, match="Explicitly failed"):
        expect_async.fail()


# --- extension ---

def test_use_returns_extended_pair_without_touching_original():
    shiny = create_assertion(["to be shiny"], lambda s: s == "shiny")
    later = create_async_assertion(["to be shiny later"], lambda s: s == "shiny")
    new_expect, new_expect_async = phrasal.use([shiny, later])
    new_expect("shiny", "to be shiny")
    new_expect(1, "to be a number")
    assert len(new_expect.assertions) == len(expect.assertions) + 1
    assert len(new_expect_async.assertions) == len(expect_async.assertions) + 1
    with pytest.raises(NoMatchingAssertionError):
        expect("shiny", "to be shiny")


def test_entry_points_expose_registration():
    d = expect.create_assertion(["to be made here"], lambda s: True)
    check, _ = expect.use([d])
    check(None, "to be made here")
    assert expect_async.create_async_assertion(["x"], lambda s: True).is_async


# --- async entry point ---

@pytest.mark.asyncio
async def test_async_entry_point_uses_async_registry():
    async def later(n):
        return n > 0

    _, check_async = make_expect(create_async_assertion([NUMBER, "to be positive later"], later))
    await check_async(1, "to be positive later")
    await check_async(-1, "not to be positive later")
    with pytest.raises(AssertionFailureError) as info:
        await check_async(-1, "to be positive later")
    assert info.value.caller["function"] == "test_async_entry_point_uses_async_registry"
    with pytest.raises(NegatedAssertionError):
        await check_async(1, "not to be positive later")


@pytest.mark.asyncio
async def test_async_conjunction():
    async def later(n):
        return n > 0

    _, check_async = make_expect(create_async_assertion([NUMBER, "to be positive later"], later))
    await check_async(1, "to be positive later", "and", "to be positive later")
    with pytest.raises(NoMatchingAssertionError):
        await check_async(1, "to be positive later", "and", "to be a string")


@pytest.mark.asyncio
async def test_async_entry_point_does_not_see_sync_definitions():
    with pytest.raises(NoMatchingAssertionError):
        await expect_async(1, "to be a number")
