"""
The registry of assertion definitions.

A Registry holds two immutable tuples, one of synchronous and one of
asynchronous definitions. It is built once by `bootstrap()` and never
mutated; `extend()` returns a new Registry.
"""
from typing import Dict, Iterable, Optional, Sequence, Tuple

from phrasal.phrasal_assertion import Assertion
from phrasal.phrasal_errors import DefinitionError


def _build_index(definitions: Sequence[Assertion]) -> Tuple[Dict[str, Tuple[int, ...]], Tuple[int, ...]]:
    index: Dict[str, list] = {}
    unindexed = []
    for pos, definition in enumerate(definitions):
        phrases = definition.index_phrases()
        if not phrases:
            unindexed.append(pos)
            continue
        for phrase in phrases:
            index.setdefault(phrase, []).append(pos)
    return {k: tuple(v) for k, v in index.items()}, tuple(unindexed)


class Registry:
    """Immutable sync/async definition lists with a phrase index."""

    def __init__(self, sync: Iterable[Assertion] = (), async_: Iterable[Assertion] = ()):
        self.sync = tuple(sync)
        self.async_ = tuple(async_)
        for d in self.sync:
            if d.is_async:
                raise DefinitionError(f"{d!r} is asynchronous and cannot join the sync registry")
        for d in self.async_:
            if not d.is_async:
                raise DefinitionError(f"{d!r} is synchronous and cannot join the async registry")
        self._sync_index = _build_index(self.sync)
        self._async_index = _build_index(self.async_)

    def __repr__(self) -> str:
        return f"<Registry sync={len(self.sync)} async={len(self.async_)}>"

    def __len__(self) -> int:
        return len(self.sync) + len(self.async_)

    def definitions(self, is_async: bool = False) -> Tuple[Assertion, ...]:
        return self.async_ if is_async else self.sync

    def candidates(self, phrase: Optional[str], is_async: bool = False) -> Tuple[Assertion, ...]:
        """
        Definitions that could match a call whose phrase is `phrase`.

        Definitions without a phrase right after the subject are always
        included. Registry order is preserved.
        """
        definitions = self.definitions(is_async)
        if not isinstance(phrase, str):
            return definitions
        index, unindexed = self._async_index if is_async else self._sync_index
        hits = index.get(phrase)
        if not hits:
            return tuple(definitions[i] for i in unindexed)
        return tuple(definitions[i] for i in sorted(hits + unindexed))

    def extend(self, definitions: Iterable[Assertion]) -> 'Registry':
        """Returns a new registry with `definitions` appended, routed by kind."""
        sync, async_ = list(self.sync), list(self.async_)
        for definition in definitions:
            if not isinstance(definition, Assertion):
                raise DefinitionError(f"Not an assertion definition: {definition!r}")
            (async_ if definition.is_async else sync).append(definition)
        return Registry(sync, async_)

    def vocabulary(self) -> Tuple[str, ...]:
        return vocabulary(self)


def vocabulary(registry: Registry) -> Tuple[str, ...]:
    """Every phrase the registry can match, sorted."""
    phrases = set()
    for definition in registry.sync + registry.async_:
        phrases.update(definition.phrases())
    return tuple(sorted(phrases))


def bootstrap() -> Registry:
    """Builds the registry of built-in definitions."""
    from phrasal.phrasal_builtins import SYNC_ASSERTIONS
    from phrasal.phrasal_async import ASYNC_ASSERTIONS
    from phrasal.phrasal_events import EVENT_ASSERTIONS
    from phrasal.phrasal_http import HTTP_ASSERTIONS

    return Registry().extend(SYNC_ASSERTIONS + ASYNC_ASSERTIONS + EVENT_ASSERTIONS + HTTP_ASSERTIONS)


__all__ = ["Registry", "bootstrap", "vocabulary"]
