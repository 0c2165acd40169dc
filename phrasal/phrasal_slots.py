"""
Compiles assertion parts into slots.

A part is a phrase literal (`str`), a phrase choice (`tuple`/`list` of
`str`), a Validator, or a bare class (promoted to a strict schema).
"""
from typing import Any, List, Sequence

from phrasal.phrasal_datatypes import ChoiceSlot, LiteralSlot, Slot, Validator, ValidatorSlot
from phrasal.phrasal_errors import DefinitionError
from phrasal.phrasal_validators import ANY, to_validator

NEGATION_MARKER = "not "
CONJUNCTION = "and"


def _is_validator_part(part: Any) -> bool:
    return isinstance(part, (Validator, type))


def _check_phrase(phrase: Any) -> str:
    if not isinstance(phrase, str):
        raise DefinitionError(f"Phrase choices must contain only strings, got {phrase!r}")
    if not phrase:
        raise DefinitionError("Phrases must not be empty")
    if phrase.startswith(NEGATION_MARKER):
        raise DefinitionError(
            f"Phrase {phrase!r} must not start with the negation marker {NEGATION_MARKER!r}"
        )
    return phrase


def _compile_part(part: Any, following: Any) -> Slot:
    match part:
        case str() if part == CONJUNCTION:
            if not _is_validator_part(following):
                raise DefinitionError(f"{CONJUNCTION!r} must be followed by a validator")
            return LiteralSlot(part)
        case str():
            return LiteralSlot(_check_phrase(part))
        case tuple() | list():
            if not part:
                raise DefinitionError("A phrase choice must not be empty")
            return ChoiceSlot(tuple(_check_phrase(p) for p in part))
        case Validator() | type():
            return ValidatorSlot(to_validator(part))
        case _:
            raise DefinitionError(
                f"Invalid assertion part {part!r}: expected a phrase, a phrase choice or a validator"
            )


def slotify(parts: Sequence[Any]) -> List[Slot]:
    """Compiles `parts` into an ordered list of slots.

    When the first part is a phrase (literal or choice), a loose subject
    slot is injected ahead of it.
    """
    if not isinstance(parts, (list, tuple)):
        raise DefinitionError(f"Assertion parts must be a list or tuple, got {type(parts).__name__}")
    if not parts:
        raise DefinitionError("Assertion parts must not be empty")

    slots: List[Slot] = []
    for i, part in enumerate(parts):
        following = parts[i + 1] if i + 1 < len(parts) else None
        slot = _compile_part(part, following)
        if i == 0 and isinstance(slot, (LiteralSlot, ChoiceSlot)):
            if part == CONJUNCTION:
                raise DefinitionError(f"An assertion cannot start with {CONJUNCTION!r}")
            slots.append(ValidatorSlot(ANY))
        slots.append(slot)
    return slots


def phrase_at(slots: Sequence[Slot], position: int = 1):
    """The phrases accepted at `position`, or () if it is not a phrase slot."""
    if position >= len(slots):
        return ()
    match slots[position]:
        case LiteralSlot(phrase):
            return (phrase,)
        case ChoiceSlot(phrases):
            return phrases
        case _:
            return ()


__all__ = ["slotify", "phrase_at", "NEGATION_MARKER", "CONJUNCTION"]
