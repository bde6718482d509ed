"""JSON object tree backing the config store.

A node is either an object (a dict of named children) or a scalar leaf
(str, number, bool or None). Arrays found in a loaded file are carried
along untouched but are never treated as objects or values.
"""
import json
import math

INDENT = 4


class _Missing:
    """Placeholder for a path that does not reach any node."""

    def __repr__(self):
        return 'MISSING'

    def __bool__(self):
        return False


MISSING = _Missing()


def new_object():
    return {}


def is_object(node):
    return isinstance(node, dict)


def is_scalar(node):
    return node is None or isinstance(node, (str, bool, int, float))


def _reject_constant(name):
    raise ValueError(f"{name} is not valid JSON")


def _parse_float(text):
    number = float(text)
    if not math.isfinite(number):
        raise ValueError(f"{text} is out of range for a config number")
    return number


def parse(text):
    """Parse JSON text.

    Raises ValueError on malformed input, including NaN, Infinity and overflowing
    floats, integers past the interpreter's digit limit, and RecursionError on
    absurdly deep nesting.
    """
    return json.loads(text, parse_float=_parse_float, parse_constant=_reject_constant)


def dump(root):
    """Serialize the tree to indented text."""
    return json.dumps(root, indent=INDENT, ensure_ascii=False, allow_nan=False)
