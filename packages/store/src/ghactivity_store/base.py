"""Abstract store interface.

A snapshot backend (flat JSON file, SQLite) implements this interface. The
tracker and the CLI depend on BaseStore, not on a concrete backend, so the
storage format is a configuration choice.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ghactivity_store.models import ActivityData


class StorageError(Exception):
    """A read, write or parse failure in a store backend.

    The message always names the operation and the path involved; the
    underlying exception is chained as __cause__.
    """


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def ensure_parent_dir(path: str) -> None:
    Path(path).expanduser().resolve().parent.mkdir(parents=True, exist_ok=True)


class BaseStore(ABC):
    """Persistence layer for one user's activity snapshot.

    Two write modes: save() replaces the whole snapshot, append() merges one
    record kind into it, skipping ids that are already stored.
    """

    @abstractmethod
    def save(self, data: ActivityData) -> None:
        """Atomically replace the persisted snapshot with ``data``."""

    @abstractmethod
    def load(self) -> ActivityData | None:
        """Return the stored snapshot, or None if nothing has been saved yet."""

    @abstractmethod
    def append(self, kind: str, items: list) -> None:
        """Merge ``items`` of one kind (``pullRequests``, ``issues``, ``reviews``)
        into the stored snapshot, creating it if absent.
        """

    def close(self) -> None:
        """Release any resources held by the store (connections, file handles).

        Optional. The default is a no-op so callers can always call close().
        """
