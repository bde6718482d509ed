"""Conversion between typed values and document leaves.

Values are plain Python objects: str, float, bool, bytes or None. JSON has
no binary type, so bytes are stored as strings tagged with BASE64_PREFIX.

A literal string that starts with the prefix and whose remainder happens to
be valid base64 reads back as bytes. The prefix is kept as-is so existing
config files stay readable.
"""
import base64
import math

BASE64_PREFIX = 'base64:'


def str_to_value(text):
    """Decode a stored string, unwrapping tagged bytes."""
    if text.startswith(BASE64_PREFIX):
        try:
            return base64.b64decode(text[len(BASE64_PREFIX):], validate=True)
        except ValueError:
            # binascii.Error, or non-ASCII text after the prefix
            pass
    return text


def number_to_value(node):
    try:
        return float(node)
    except OverflowError:
        # integers beyond float range
        return math.inf if node > 0 else -math.inf


def leaf_to_value(node):
    """Turn a document node into a value, or None if it holds none."""
    if isinstance(node, str):
        return str_to_value(node)
    if isinstance(node, bool):
        return node
    if isinstance(node, (int, float)):
        return number_to_value(node)
    return None


def value_to_leaf(value):
    """Turn a value into something the document can store."""
    if value is None or isinstance(value, (str, bool)):
        return value
    if isinstance(value, (int, float)):
        number = number_to_value(value)
        if not math.isfinite(number):
            raise ValueError(f"Config numbers must be finite, got {value!r}")
        return number
    if isinstance(value, (bytes, bytearray, memoryview)):
        return BASE64_PREFIX + base64.b64encode(bytes(value)).decode('ascii')
    raise TypeError(f"Unsupported config value type: {type(value).__name__}")
