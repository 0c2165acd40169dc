"""
Natural-language assertions.

    from phrasal import expect, expect_async

    expect(10, "to be greater than", 5)
    expect("abc", "not to contain", "z")
    await expect_async(fetch_user(), "to resolve")
"""
from phrasal.phrasal_assertion import create_assertion, create_async_assertion
from phrasal.phrasal_async import first_of
from phrasal.phrasal_datatypes import UNSET, AssertionFailure, Validator
from phrasal.phrasal_dispatch import Expect, ExpectAsync, create_expect
from phrasal.phrasal_errors import (
    AmbiguousMatchError,
    AssertionFailureError,
    AssertionImplementationError,
    DefinitionError,
    NegatedAssertionError,
    NoMatchingAssertionError,
    PhrasalError,
    UnexpectedAsyncError,
)
from phrasal.phrasal_registry import Registry, bootstrap, vocabulary
from phrasal.phrasal_validators import async_predicate, instance_of, loose, predicate, schema

registry = bootstrap()
expect, expect_async = create_expect(registry)


def use(definitions):
    """Returns a new (expect, expect_async) pair extended with `definitions`."""
    return expect.use(definitions)


__all__ = [
    "expect", "expect_async", "use", "registry",
    "create_assertion", "create_async_assertion", "create_expect",
    "Expect", "ExpectAsync", "Registry", "bootstrap", "vocabulary",
    "AssertionFailure", "Validator", "UNSET", "first_of",
    "schema", "loose", "instance_of", "predicate", "async_predicate",
    "PhrasalError", "DefinitionError", "NoMatchingAssertionError", "AmbiguousMatchError",
    "AssertionFailureError", "NegatedAssertionError", "UnexpectedAsyncError",
    "AssertionImplementationError",
]
