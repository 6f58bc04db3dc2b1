"""Optional persisted registrations and leases."""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from .settings import COORDINATOR_STATE_PATH

logger = logging.getLogger(__name__)

REGISTRATIONS = "registrations"
LEASES = "leases"
NAMESPACES = (REGISTRATIONS, LEASES)


def empty_state() -> Dict[str, Dict[str, Any]]:
    return {namespace: {} for namespace in NAMESPACES}


class KeyValueStore(ABC):
    @abstractmethod
    def get(self, namespace: str, key: str) -> Optional[Any]:
        raise NotImplementedError

    @abstractmethod
    def set(self, namespace: str, key: str, value: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def delete(self, namespace: str, key: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def items(self, namespace: str) -> Iterator[Tuple[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def prune(self, namespace: str, predicate: Callable[[Any], bool]) -> int:
        """Drop every entry whose value matches ``predicate``; return how many went."""
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self) -> None:
        self._state = empty_state()
        self._lock = threading.Lock()

    def get(self, namespace: str, key: str) -> Optional[Any]:
        with self._lock:
            return self._state[namespace].get(key)

    def set(self, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            self._state[namespace][key] = value

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            self._state[namespace].pop(key, None)

    def items(self, namespace: str) -> Iterator[Tuple[str, Any]]:
        with self._lock:
            snapshot = list(self._state[namespace].items())
        return iter(snapshot)

    def prune(self, namespace: str, predicate: Callable[[Any], bool]) -> int:
        with self._lock:
            doomed = [key for key, value in self._state[namespace].items() if predicate(value)]
            for key in doomed:
                del self._state[namespace][key]
        return len(doomed)


class JsonFileStore(KeyValueStore):
    """One JSON document on disk; every read-modify-write holds one lock."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return empty_state()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.warning("state file %s unreadable, starting empty", self.path)
            return empty_state()
        state = empty_state()
        if isinstance(raw, dict):
            for namespace in NAMESPACES:
                if isinstance(raw.get(namespace), dict):
                    state[namespace] = raw[namespace]
        return state

    def _save(self, state: Dict[str, Dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp")
        try:
            os.fchmod(fd, 0o600)
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(state, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, namespace: str, key: str) -> Optional[Any]:
        with self._lock:
            return self._load()[namespace].get(key)

    def set(self, namespace: str, key: str, value: Any) -> None:
        with self._lock:
            state = self._load()
            state[namespace][key] = value
            self._save(state)

    def delete(self, namespace: str, key: str) -> None:
        with self._lock:
            state = self._load()
            if state[namespace].pop(key, None) is not None:
                self._save(state)

    def items(self, namespace: str) -> Iterator[Tuple[str, Any]]:
        with self._lock:
            snapshot = list(self._load()[namespace].items())
        return iter(snapshot)

    def prune(self, namespace: str, predicate: Callable[[Any], bool]) -> int:
        with self._lock:
            state = self._load()
            doomed = [key for key, value in state[namespace].items() if predicate(value)]
            for key in doomed:
                del state[namespace][key]
            if doomed:
                self._save(state)
        return len(doomed)


def open_state_store(path: str = COORDINATOR_STATE_PATH) -> Optional[KeyValueStore]:
    if not path:
        return None
    return JsonFileStore(Path(path))


_state_store: Optional[KeyValueStore] = open_state_store()


def current_store() -> Optional[KeyValueStore]:
    return _state_store


def configure_store(store: Optional[KeyValueStore]) -> None:
    global _state_store
    _state_store = store
