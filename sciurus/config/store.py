import logging
import os
import pathlib
import shutil
from abc import ABC, abstractmethod

from . import document
from .document import MISSING
from .path import resolve_parent, resolve_read, resolve_write, split_path
from .value import leaf_to_value, value_to_leaf

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Base class for config load/save failures."""

    def __init__(self, message, path=None):
        super().__init__(message)
        self.path = path


class ConfigParseError(ConfigError):
    """The config file is not a JSON object."""


class ConfigIOError(ConfigError):
    """The config file could not be read or written."""


class Config(ABC):
    """Key-value settings addressed by dotted paths.

    Implementations are not synchronized. Code sharing one instance across
    threads must hold a lock around every call.
    """

    @abstractmethod
    def get(self, path, default=None):
        """Return the value at path, or default if nothing is stored there."""

    @abstractmethod
    def set(self, path, value):
        """Store value at path."""

    @abstractmethod
    def delete(self, path):
        """Remove path if present."""

    def _get_typed(self, path, type_, default):
        # No coercion: a stored bool is not a number, tagged bytes are not a string
        value = self.get(path)
        return value if isinstance(value, type_) else default

    def get_string(self, path, default=None):
        return self._get_typed(path, str, default)

    def get_number(self, path, default=None):
        return self._get_typed(path, float, default)

    def get_bool(self, path, default=None):
        return self._get_typed(path, bool, default)

    def get_bytes(self, path, default=None):
        return self._get_typed(path, bytes, default)

    def __contains__(self, path):
        return self.get(path) is not None


class JsonConfig(Config):
    """Store configuration as a JSON object tree in a single file."""

    def __init__(self, path, auto_save=False):
        self.path = pathlib.Path(path)
        self.auto_save = auto_save
        self.data = document.new_object()

    def __repr__(self):
        return f"JsonConfig({str(self.path)!r}, auto_save={self.auto_save})"

    def load(self):
        """Replace the in-memory tree with the file contents.

        A missing file leaves the tree as it is.
        """
        try:
            text = self.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            logger.debug("Config file %s not found, keeping current settings", self.path)
            return
        except UnicodeDecodeError as e:
            raise ConfigParseError(f"Config file {self.path} is not valid UTF-8: {e}", self.path) from e
        except OSError as e:
            raise ConfigIOError(f"Failed to read config file {self.path}: {e}", self.path) from e

        try:
            data = document.parse(text)
        except (ValueError, RecursionError) as e:
            raise ConfigParseError(f"Failed to parse config file {self.path}: {e}", self.path) from e
        if not document.is_object(data):
            raise ConfigParseError(f"Config file {self.path}: not object", self.path)

        self.data = data
        logger.debug("Loaded config from %s", self.path)

    def save(self):
        """Write the whole tree to the file."""
        try:
            text = document.dump(self.data)
        except ValueError as e:
            raise ConfigError(f"Config for {self.path} cannot be written as JSON: {e}", self.path) from e

        tmp = self.path.with_name(self.path.name + '.tmp')
        try:
            tmp.write_text(text, encoding='utf-8')
            try:
                # keep the permissions of an existing file, it may hold tokens
                shutil.copymode(self.path, tmp)
            except FileNotFoundError:
                pass
            os.replace(tmp, self.path)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise ConfigIOError(f"Failed to write config file {self.path}: {e}", self.path) from e
        logger.debug("Saved config to %s", self.path)

    def get(self, path, default=None):
        node = resolve_read(self.data, split_path(path))
        if node is MISSING:
            return default
        value = leaf_to_value(node)
        return default if value is None else value

    def set(self, path, value):
        leaf = value_to_leaf(value)
        parent, key = resolve_write(self.data, split_path(path))
        parent[key] = leaf
        if self.auto_save:
            self.save()

    def delete(self, path):
        segments = split_path(path)
        parent = resolve_parent(self.data, segments)
        if parent is not None:
            parent.pop(segments[-1], None)
        if self.auto_save:
            self.save()
