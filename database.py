"""
Key-value store for the console's data.

Each key holds one JSON document. The file backend keeps one <key>.json per
key inside a profile directory, the memory backend keeps serialized strings
in a dict. Both backends share the same contract:

    get(key)   -> deserialized value, or None when the key is absent
    set(key, value)
    clear(key)

There is no transactionality; the last writer wins on every key.
"""
import json
import logging
import os
import re
import tempfile
from typing import Any, Dict, List, Optional

from errors import CorruptedStateError, StorageError

logger = logging.getLogger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def _dumps(key: str, value: Any) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError) as e:
        raise StorageError(key, f"value is not JSON serializable ({e})") from e


def _loads(key: str, raw: str) -> Any:
    try:
        return json.loads(raw)
    except ValueError as e:
        raise CorruptedStateError(key, str(e)) from e


class KeyValueStore:
    name = "base"

    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError

    def set(self, key: str, value: Any) -> None:
        raise NotImplementedError

    def clear(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    name = "memory"

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        if raw is None:
            return None
        return _loads(key, raw)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = _dumps(key, value)

    def clear(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return sorted(self._data)


class FileStore(KeyValueStore):
    name = "file"

    def __init__(self, directory: str):
        self.directory = os.path.abspath(directory)
        os.makedirs(self.directory, exist_ok=True)

    def _path(self, key: str) -> str:
        if not _KEY_RE.match(key or ""):
            raise StorageError(key, "invalid key")
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = f.read()
        except FileNotFoundError:
            return None
        return _loads(key, raw)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        raw = _dumps(key, value)
        fd, tmp = tempfile.mkstemp(prefix=f".{key}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(raw)
            os.replace(tmp, path)
        except (OSError, ValueError) as e:
            raise StorageError(key, str(e)) from e
        finally:
            if os.path.exists(tmp):
                os.unlink(tmp)

    def clear(self, key: str) -> None:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(key, str(e)) from e

    def keys(self) -> List[str]:
        return sorted(
            name[: -len(".json")]
            for name in os.listdir(self.directory)
            if name.endswith(".json") and not name.startswith(".")
        )


def create_store(settings) -> KeyValueStore:
    if settings.STORAGE_BACKEND == "memory":
        store: KeyValueStore = MemoryStore()
    else:
        store = FileStore(settings.DATA_DIR)
    logger.info("Using %s store", store.name)
    return store
