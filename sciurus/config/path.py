"""Dotted path lookup into the document tree."""
from . import document
from .document import MISSING


def split_path(path):
    """Split 'a.b.c' into ['a', 'b', 'c']."""
    if not path:
        raise ValueError("Config path must not be empty")
    return path.split('.')


def resolve_read(root, segments):
    """Return the node at segments, or MISSING. Never mutates the tree."""
    node = root
    for name in segments:
        if not document.is_object(node) or name not in node:
            return MISSING
        node = node[name]
    return node


def resolve_write(root, segments):
    """Return (parent, key) for the last segment, creating objects on the way.

    An intermediate node that is not an object gets replaced with an empty
    object.
    """
    if not segments:
        raise ValueError("Config path must not be empty")
    node = root
    for name in segments[:-1]:
        child = node.get(name)
        if not document.is_object(child):
            child = document.new_object()
            node[name] = child
        node = child
    return node, segments[-1]


def resolve_parent(root, segments):
    """Return the object holding the last segment, or None if it is not there."""
    if not segments:
        raise ValueError("Config path must not be empty")
    parent = resolve_read(root, segments[:-1])
    if not document.is_object(parent):
        return None
    return parent
