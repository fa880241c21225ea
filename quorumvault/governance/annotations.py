"""
Local Annotation Store

Client-only bookkeeping that never reaches the chain. The ignore list hides
proposals from the default view; it never changes a proposal's status and
never blocks confirm or execute.

Storage goes through an injected `KeyValueStore`, so any persistence backend
(in-memory for tests, a JSON file on disk, a browser bridge) can be used.
"""

import json
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union

from ..constants import IGNORED_KEY
from ..logger import get_logger

logger = get_logger(__name__)


# ══════════════════════════════════════════════════════════════════════
#  KEY-VALUE STORES
# ══════════════════════════════════════════════════════════════════════

class KeyValueStore(ABC):
    """String key → string value persistence."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def list(self) -> List[str]:
        """All stored keys."""


class MemoryStore(KeyValueStore):
    """Process-local store; contents are lost on exit."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def list(self) -> List[str]:
        return list(self._data.keys())


class JsonFileStore(KeyValueStore):
    """
    Store backed by a single JSON object on disk. Writes go to a temporary
    file in the same directory and are moved into place.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Annotation file {self.path} unreadable, starting empty: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning(f"Annotation file {self.path} is not a JSON object, starting empty")
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            data = self._read()
            data[key] = value
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=".annotations-")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(data, fh, indent=2, sort_keys=True)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise

    def list(self) -> List[str]:
        with self._lock:
            return list(self._read().keys())


# ══════════════════════════════════════════════════════════════════════
#  IGNORE LIST
# ══════════════════════════════════════════════════════════════════════

class IgnoreList:
    """
    Set of ignored proposal ids, persisted as a JSON string array under
    *key*. Every operation is idempotent.
    """

    def __init__(self, store: KeyValueStore, key: str = IGNORED_KEY):
        self._store = store
        self._key = key

    def _load(self) -> FrozenSet[str]:
        raw = self._store.get(self._key)
        if not raw:
            return frozenset()
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignore list under '{self._key}' is corrupt, treating as empty")
            return frozenset()
        if not isinstance(ids, list):
            return frozenset()
        return frozenset(str(i) for i in ids)

    def _save(self, ids: FrozenSet[str]) -> None:
        ordered = sorted(ids, key=lambda s: (len(s), s))
        self._store.set(self._key, json.dumps(ordered))

    def ids(self) -> FrozenSet[int]:
        return frozenset(int(i) for i in self._load() if i.isdigit())

    def is_ignored(self, proposal_id: int) -> bool:
        return str(proposal_id) in self._load()

    def ignore(self, proposal_id: int) -> None:
        ids = self._load()
        if str(proposal_id) not in ids:
            self._save(ids | {str(proposal_id)})
            logger.debug(f"Proposal #{proposal_id} ignored")

    def unignore(self, proposal_id: int) -> None:
        ids = self._load()
        if str(proposal_id) in ids:
            self._save(ids - {str(proposal_id)})
            logger.debug(f"Proposal #{proposal_id} un-ignored")

    def toggle(self, proposal_id: int) -> bool:
        """Flip the flag; returns the new state."""
        if self.is_ignored(proposal_id):
            self.unignore(proposal_id)
            return False
        self.ignore(proposal_id)
        return True

    def __contains__(self, proposal_id: int) -> bool:
        return self.is_ignored(proposal_id)

    def __len__(self) -> int:
        return len(self._load())
