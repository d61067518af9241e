"""Persistent key-value store for the shared automation document"""

import copy
import fcntl
import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path

from ssnit_automator.state.model import AutomationState


class StoreError(Exception):
    """Raised when the persisted document cannot be read or written."""
    pass


class StateStore:
    """Key-value store holding the single automation document.

    get(keys) returns only the requested keys (all keys when None);
    set(values) merges the given keys into the stored document.
    """

    def get(self, keys=None):
        raise NotImplementedError

    def set(self, values):
        raise NotImplementedError

    def update(self, key, change):
        """Replace one key with change(current value) as a single write"""
        raise NotImplementedError

    def clear(self):
        raise NotImplementedError


def _select(document, keys):
    if keys is None:
        return document
    return {k: document[k] for k in keys if k in document}


class MemoryStore(StateStore):
    """In-process store. Copies on every read and write."""

    def __init__(self, initial=None):
        self._data = copy.deepcopy(initial or {})

    def get(self, keys=None):
        return copy.deepcopy(_select(self._data, keys))

    def set(self, values):
        self._data.update(copy.deepcopy(values))

    def update(self, key, change):
        value = change(copy.deepcopy(self._data.get(key)))
        self._data[key] = copy.deepcopy(value)

    def clear(self):
        self._data = {}


class JsonFileStore(StateStore):
    """Durable JSON document on disk, rewritten atomically on every set

    Every read-modify-write holds an exclusive advisory lock on a sidecar
    .lock file, so a pause from another terminal cannot land between the
    engine's read and its write.
    """

    def __init__(self, path):
        self.path = Path(path)
        self.lock_path = self.path.with_name(self.path.name + ".lock")

    @contextmanager
    def locked(self):
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_path, "a") as handle:
            fcntl.flock(handle, fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(handle, fcntl.LOCK_UN)

    def _read(self):
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise StoreError(f"Cannot read state file {self.path}: {e}") from e
        if not text.strip():
            return {}
        try:
            document = json.loads(text)
        except json.JSONDecodeError as e:
            raise StoreError(f"State file {self.path} is corrupt: {e}") from e
        if not isinstance(document, dict):
            raise StoreError(f"State file {self.path} does not hold a JSON object")
        return document

    def _write(self, document):
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".state-", suffix=".json", dir=str(directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StoreError(f"Cannot write state file {self.path}: {e}") from e

    def get(self, keys=None):
        return _select(self._read(), keys)

    def set(self, values):
        with self.locked():
            document = self._read()
            document.update(values)
            self._write(document)

    def update(self, key, change):
        with self.locked():
            document = self._read()
            document[key] = change(document.get(key))
            self._write(document)

    def clear(self):
        with self.locked():
            self._write({})


def load_state(store) -> AutomationState:
    return AutomationState.from_document(store.get())


def save_state(store, state: AutomationState, keys=None, exclude=()):
    """Write state back. keys limits the write to those document keys."""
    document = state.to_document()
    if keys is not None:
        document = {k: document[k] for k in keys}
    for key in exclude:
        document.pop(key, None)
    store.set(document)
