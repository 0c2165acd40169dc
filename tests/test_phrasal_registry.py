import re

import httpx
import pytest

import phrasal
from phrasal.phrasal_assertion import create_assertion, create_async_assertion
from phrasal.phrasal_async import SETTLEABLE
from phrasal.phrasal_builtins import LIST_OR_TUPLE
from phrasal.phrasal_datatypes import ValidatorSlot
from phrasal.phrasal_dispatch import resolve, resolve_async
from phrasal.phrasal_errors import DefinitionError
from phrasal.phrasal_events import EMITTER
from phrasal.phrasal_http import HTTP_URL, RESPONSE, STATUS_CATEGORY
from phrasal.phrasal_registry import Registry, bootstrap, vocabulary
from phrasal.phrasal_validators import (
    ANY, CALLABLE, CLASS, EXCEPTION_CLASS, INTEGER, MAPPING, NUMBER, PATTERN, SET, SIZED, STRING,
    TIMEOUT_OPTIONS,
)

A = create_assertion([NUMBER, "to be odd"], lambda n: n % 2 == 1)
B = create_assertion([NUMBER, "to be even"], lambda n: n % 2 == 0)
UNINDEXED = create_assertion([ANY, STRING], lambda a, b: True)
C = create_assertion([NUMBER, ("to be odd", "to be uneven")], lambda n: n % 2 == 1)
LATER = create_async_assertion([ANY, "to be odd"], lambda n: True)


def test_extend_returns_new_registry():
    base = Registry()
    extended = base.extend([A, LATER])
    assert len(base) == 0
    assert extended.sync == (A,)
    assert extended.async_ == (LATER,)
    assert repr(extended) == "<Registry sync=1 async=1>"


def test_definitions_are_routed_by_kind():
    with pytest.raises(DefinitionError):
        Registry(sync=[LATER])
    with pytest.raises(DefinitionError):
        Registry(async_=[A])


def test_extend_rejects_non_definitions():
    with pytest.raises(DefinitionError):
        Registry().extend([lambda: True])


def test_candidates_keep_registry_order():
    registry = Registry(sync=[A, UNINDEXED, B, C])
    assert registry.candidates("to be odd") == (A, UNINDEXED, C)
    assert registry.candidates("to be uneven") == (UNINDEXED, C)
    assert registry.candidates("to be prime") == (UNINDEXED,)
    assert registry.candidates(None) == (A, UNINDEXED, B, C)
    assert registry.candidates(3) == (A, UNINDEXED, B, C)


def test_candidates_are_per_kind():
    registry = Registry(sync=[A], async_=[LATER])
    assert registry.candidates("to be odd", is_async=True) == (LATER,)
    assert registry.definitions(is_async=True) == (LATER,)


def test_vocabulary():
    registry = Registry(sync=[A, C], async_=[LATER])
    assert vocabulary(registry) == ("to be odd", "to be uneven")
    assert registry.vocabulary() == vocabulary(registry)


def test_bootstrap_has_every_family():
    registry = bootstrap()
    words = registry.vocabulary()
    for phrase in ("to be a string", "to resolve", "to emit", "to have status"):
        assert phrase in words
    assert all(not d.is_async for d in registry.sync)
    assert all(d.is_async for d in registry.async_)


def test_builtin_ids_are_unique():
    ids = [d.id for d in phrasal.registry.sync + phrasal.registry.async_]
    assert len(ids) == len(set(ids))


# --- registry health ---

class _Emitter:
    def on(self, event, listener):
        pass

    def remove_listener(self, event, listener):
        pass

    def listener_count(self, event):
        return 0


SAMPLES = {
    ANY: "anything",
    STRING: "text",
    INTEGER: 3,
    NUMBER: 1.5,
    CLASS: int,
    SIZED: [1],
    MAPPING: {"a": 1},
    SET: {1},
    PATTERN: re.compile("x"),
    CALLABLE: len,
    EXCEPTION_CLASS: ValueError,
    TIMEOUT_OPTIONS: {"within": 10},
    LIST_OR_TUPLE: (1, 2),
    SETTLEABLE: lambda: None,
    EMITTER: _Emitter(),
    RESPONSE: httpx.Response(200),
    STATUS_CATEGORY: "ok",
    HTTP_URL: "https://example.test/",
}


def _sample_calls(definition):
    """One call per phrase accepted right after the subject, built from sample values."""
    for phrase in definition.index_phrases():
        args = []
        for i, slot in enumerate(definition.slots):
            if i == 1:
                args.append(phrase)
            elif isinstance(slot, ValidatorSlot):
                args.append(SAMPLES[slot.validator])
            else:
                args.append(slot.phrases[0])
        yield tuple(args)


def _has_loose_slot(definition):
    return any(isinstance(s, ValidatorSlot) and s.loose for s in definition.slots)


BUILTINS = bootstrap()


@pytest.mark.parametrize("definition", BUILTINS.sync, ids=lambda d: d.id)
def test_builtin_sample_calls_resolve_unambiguously(definition):
    for args in _sample_calls(definition):
        result = definition.parse_values(args)
        assert result.success, result.reason
        assert result.exact_match is not _has_loose_slot(definition)
        plans = resolve(BUILTINS, args)
        if result.exact_match:
            assert [p.definition for p in plans] == [definition]


@pytest.mark.asyncio
@pytest.mark.parametrize("definition", BUILTINS.async_, ids=lambda d: d.id)
async def test_builtin_async_sample_calls_resolve_unambiguously(definition):
    for args in _sample_calls(definition):
        result = await definition.parse_values_async(args)
        assert result.success, result.reason
        assert result.exact_match is not _has_loose_slot(definition)
        plans = await resolve_async(BUILTINS, args)
        if result.exact_match:
            assert [p.definition for p in plans] == [definition]
