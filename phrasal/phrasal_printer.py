"""
A pretty-printer for values under test.

Produces stable, indented, multi-line text so that two renderings can be
diffed line by line, plus a short single-line form for messages.
"""
import collections.abc
import enum
import re

from phrasal.phrasal_datatypes import (
    UNSET, Validator, LiteralSlot, ChoiceSlot, ValidatorSlot, AssertionFailure
)


class _Entry:
    """One `key: value` line of a rendered mapping."""
    __slots__ = ("key", "value")

    def __init__(self, key, value):
        self.key = key
        self.value = value


class Printer:
    """Formats Python values into readable, diff-friendly strings."""

    def __init__(self, indent_width=2):
        self._indent_char = " " * indent_width
        self._handlers = self._create_handlers()
        self._active = set()
        self._compact = False

    def pformat(self, obj, level=0):
        """Public entry point to format an object."""
        handler = self._get_handler(obj)
        return handler(obj, level)

    def inline(self, obj, limit=80):
        """Single-line rendering, truncated to roughly `limit` characters."""
        previous = self._compact
        self._compact = True
        try:
            text = self.pformat(obj)
        finally:
            self._compact = previous
        if limit and len(text) > limit:
            return text[:max(limit - 3, 1)] + "..."
        return text

    def _get_handler(self, obj):
        """Dispatcher to find the correct formatting method."""
        # Fast path for singletons
        if obj is UNSET: return self._pformat_unset
        if obj is None: return self._pformat_none

        obj_type = type(obj)
        if obj_type in self._handlers:
            return self._handlers[obj_type]
        if isinstance(obj, enum.Enum): return self._pformat_enum
        if isinstance(obj, bool): return self._pformat_bool
        if isinstance(obj, (int, float, complex)): return self._pformat_primitive
        if isinstance(obj, str): return self._pformat_str
        if isinstance(obj, BaseException): return self._pformat_exception
        if isinstance(obj, re.Pattern): return self._pformat_pattern
        if isinstance(obj, collections.abc.Mapping): return self._pformat_dict
        if isinstance(obj, (collections.abc.Set)): return self._pformat_set
        if isinstance(obj, tuple): return self._pformat_tuple
        if isinstance(obj, list): return self._pformat_list
        if isinstance(obj, type): return self._pformat_class
        # Default to Python's repr for unknown types
        return lambda o, l: self._safe_repr(o)

    def _create_handlers(self):
        return {
            str: self._pformat_str,
            bytes: self._pformat_primitive,
            int: self._pformat_primitive,
            float: self._pformat_primitive,
            complex: self._pformat_primitive,
            bool: self._pformat_bool,
            list: self._pformat_list,
            tuple: self._pformat_tuple,
            dict: self._pformat_dict,
            set: self._pformat_set,
            frozenset: self._pformat_set,
            Validator: self._pformat_validator,
            LiteralSlot: self._pformat_literal_slot,
            ChoiceSlot: self._pformat_choice_slot,
            ValidatorSlot: self._pformat_validator_slot,
            AssertionFailure: self._pformat_failure,
        }

    def _safe_repr(self, obj):
        try:
            return repr(obj)
        except Exception:
            return f"<{type(obj).__name__} object>"

    def _pformat_primitive(self, obj, level):
        return repr(obj)

    def _pformat_str(self, obj, level):
        return repr(obj)

    def _pformat_bool(self, obj, level):
        return 'True' if obj else 'False'

    def _pformat_none(self, obj, level):
        return 'None'

    def _pformat_unset(self, obj, level):
        return '<unset>'

    def _pformat_enum(self, obj, level):
        return f"{type(obj).__name__}.{obj.name}"

    def _pformat_class(self, obj, level):
        return f"<class {obj.__qualname__}>"

    def _pformat_pattern(self, obj, level):
        return f"re.compile({obj.pattern!r})"

    def _pformat_exception(self, obj, level):
        return f"{type(obj).__name__}({str(obj)!r})"

    def _pformat_block(self, nodes, level, open_char, close_char, obj=None):
        if not nodes:
            return f"{open_char}{close_char}"
        if obj is not None:
            if id(obj) in self._active:
                return "<Circular>"
            self._active.add(id(obj))
        try:
            if self._compact:
                inner = ", ".join(self._pformat_node(node, level) for node in nodes)
                return f"{open_char}{inner}{close_char}"

            outer_indent = self._indent_char * level
            inner_level = level + 1
            inner_indent = self._indent_char * inner_level

            lines = []
            for node in nodes:
                arg_str = self._pformat_node(node, inner_level)
                arg_lines = arg_str.splitlines() or [""]
                # Indent the first line of the entry. Subsequent lines are already
                # correctly indented by the recursive pformat call.
                first_line = inner_indent + arg_lines[0]
                lines.append("\n".join([first_line] + arg_lines[1:]) + ",")
            return f"{open_char}\n" + "\n".join(lines) + f"\n{outer_indent}{close_char}"
        finally:
            if obj is not None:
                self._active.discard(id(obj))

    def _pformat_node(self, node, level):
        if isinstance(node, _Entry):
            return f"{node.key}: {self.pformat(node.value, level)}"
        return self.pformat(node, level)

    def _pformat_list(self, obj, level):
        return self._pformat_block(list(obj), level, '[', ']', obj)

    def _pformat_tuple(self, obj, level):
        prefix = "" if type(obj) is tuple else type(obj).__name__
        return prefix + self._pformat_block(list(obj), level, '(', ')', obj)

    def _pformat_set(self, obj, level):
        if not obj:
            return f"{type(obj).__name__}()"
        items = sorted(obj, key=lambda v: self.pformat(v))
        prefix = "" if type(obj) is set else type(obj).__name__
        return prefix + self._pformat_block(items, level, '{', '}', obj)

    def _sorted_items(self, obj):
        items = list(obj.items())
        try:
            return sorted(items, key=lambda kv: kv[0])
        except TypeError:
            return sorted(items, key=lambda kv: self.pformat(kv[0]))

    def _pformat_dict(self, obj, level):
        if not obj:
            return "{}"
        entries = [_Entry(self.inline(key, limit=0), value) for key, value in self._sorted_items(obj)]
        prefix = "" if isinstance(obj, dict) else type(obj).__name__
        return prefix + self._pformat_block(entries, level, '{', '}', obj)

    def _pformat_validator(self, obj, level):
        return f"{{{obj.name}}}"

    def _pformat_literal_slot(self, obj, level):
        return repr(obj.phrase)

    def _pformat_choice_slot(self, obj, level):
        return " / ".join(repr(p) for p in obj.phrases)

    def _pformat_validator_slot(self, obj, level):
        return self._pformat_validator(obj.validator, level)

    def _pformat_failure(self, obj, level):
        fields = {k: getattr(obj, k) for k in ("actual", "expected", "message")
                  if getattr(obj, k) is not UNSET and getattr(obj, k) is not None}
        return "AssertionFailure" + self._pformat_dict(fields, level)
