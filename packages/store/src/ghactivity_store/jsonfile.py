"""JSONStore: flat-file snapshot in the canonical interchange format.

Data format: a single JSON object with ``pullRequests``, ``issues``,
``reviews`` and ``metadata`` keys (see ghactivity_store.models). Every write
rewrites the whole file; the last writer wins and there is no locking.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from ghactivity_store.base import BaseStore, StorageError, ensure_parent_dir, utc_now
from ghactivity_store.models import ActivityData, activity_from_dict, activity_to_dict, empty_activity

logger = logging.getLogger(__name__)


class JSONStore(BaseStore):
    """Stores the activity snapshot as one pretty-printed JSON file.

    save() writes to a temporary file next to the target and renames it over
    the target, so readers never see a half-written snapshot. append() reads
    the full file, filters duplicate ids in memory and saves the result.
    """

    def __init__(self, path: str = "data/activities.json"):
        self._path = str(Path(path).expanduser())
        try:
            ensure_parent_dir(self._path)
        except OSError as e:
            raise StorageError(f"Failed to create directory for {path}: {e}") from e

    @property
    def path(self) -> str:
        return self._path

    def save(self, data: ActivityData) -> None:
        directory = str(Path(self._path).resolve().parent)
        try:
            fd, tmp_path = tempfile.mkstemp(prefix=".activities-", suffix=".tmp", dir=directory)
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(activity_to_dict(data), f, indent=2)
                os.replace(tmp_path, self._path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to save data to {self._path}: {e}") from e

    def load(self) -> ActivityData | None:
        if not os.path.exists(self._path):
            return None
        try:
            with open(self._path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StorageError(f"Failed to load data from {self._path}: {e}") from e
        if not isinstance(raw, dict):
            raise StorageError(f"Failed to load data from {self._path}: expected a JSON object")
        try:
            return activity_from_dict(raw)
        except (KeyError, TypeError, AttributeError) as e:
            raise StorageError(f"Failed to load data from {self._path}: malformed record ({e})") from e

    def append(self, kind: str, items: list) -> None:
        data = self.load()
        if data is None:
            data = empty_activity(last_updated=utc_now())

        existing = data.records(kind)
        existing_ids = {item.id for item in existing}
        new_items = []
        for item in items:
            if item.id in existing_ids:
                continue
            existing_ids.add(item.id)
            new_items.append(item)

        logger.debug("Appending %d new %s (%d duplicates skipped)", len(new_items), kind, len(items) - len(new_items))
        data.set_records(kind, existing + new_items)
        data.metadata.last_updated = utc_now()
        self.save(data)
