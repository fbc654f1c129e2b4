from __future__ import annotations

import glob
import json
import logging
import shutil
import threading
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, List, Mapping, Optional, TypeVar, Union
from uuid import uuid4

from pydantic import BaseModel

from buildledger.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Union[BaseModel, Mapping[str, Any]])
Row = Dict[str, Any]


def _json_default(o: Any) -> Any:
    if isinstance(o, (date, datetime)):
        return o.isoformat()
    if isinstance(o, Decimal):
        return str(o)
    return str(o)


class JsonRepository(Generic[T]):
    """
    Generic JSON list store with a configurable primary key.
    - rotating backups (backup_enabled, backup_keep)
    - skips the write when content did not change
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        entity_name: str = "entity",
        key: str = "id",
        *,
        backup_enabled: bool = True,
        backup_keep: int = 5,
    ) -> None:
        self.filepath = Path(filepath)
        self.entity_name = entity_name
        self.key = key
        self._lock = threading.RLock()
        self.backup_enabled = backup_enabled
        self.backup_keep = max(0, int(backup_keep))

        try:
            self.filepath.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"cannot create {self.filepath.parent}: {e}") from e
        if not self.filepath.exists():
            self._write_raw([])

    # ---------------- low level I/O ---------------- #

    def _read_raw(self) -> List[Row]:
        try:
            with self.filepath.open("r", encoding="utf-8") as f:
                data = json.load(f)
            return data if isinstance(data, list) else []
        except FileNotFoundError:
            return []
        except json.JSONDecodeError:
            # corrupt file: keep a copy aside and start from an empty list
            backup = self.filepath.with_suffix(".corrupt.json")
            logger.warning("%s is corrupt, copied to %s", self.filepath, backup)
            try:
                shutil.copy2(self.filepath, backup)
            except OSError as e:
                logger.warning("Could not copy corrupt file %s: %s", self.filepath, e)
            return []
        except OSError as e:
            raise PersistenceError(f"cannot read {self.filepath}: {e}") from e

    def _rotate_backups(self) -> None:
        if not self.backup_enabled or self.backup_keep <= 0:
            return
        pattern = str(self.filepath.with_suffix(".*.bak.json"))
        files = sorted(glob.glob(pattern))
        # keep the most recent ones
        if len(files) > self.backup_keep:
            for old in files[: len(files) - self.backup_keep]:
                try:
                    Path(old).unlink(missing_ok=True)
                except OSError as e:
                    logger.warning("Could not remove old backup %s: %s", old, e)

    def _write_raw(self, data: Iterable[Mapping[str, Any]]) -> None:
        with self._lock:
            new_dump = json.dumps(list(data), ensure_ascii=False, indent=2, default=_json_default)

            if self.filepath.exists():
                try:
                    if self.filepath.read_text(encoding="utf-8") == new_dump:
                        return
                except OSError:
                    pass

            if self.backup_enabled and self.filepath.exists():
                ts = datetime.now().strftime("%Y%m%d-%H%M%S-%f")
                backup = self.filepath.with_suffix(f".{ts}.bak.json")
                try:
                    shutil.copy2(self.filepath, backup)
                except OSError as e:
                    logger.warning("Backup of %s failed: %s", self.filepath, e)
                self._rotate_backups()

            tmp = self.filepath.with_suffix(".tmp")
            try:
                tmp.write_text(new_dump, encoding="utf-8")
                tmp.replace(self.filepath)
            except OSError as e:
                raise PersistenceError(f"cannot write {self.filepath}: {e}") from e

    # ---------------- Helpers ---------------- #

    @staticmethod
    def _to_dict(item: T) -> Row:
        if isinstance(item, BaseModel):
            return item.model_dump(mode="json")
        if isinstance(item, Mapping):
            return dict(item)
        return dict(item.__dict__)  # type: ignore[arg-type]

    # ---------------- CRUD ---------------- #

    def list_all(self) -> List[Row]:
        return self._read_raw()

    def get_by_id(self, obj_id: Any) -> Optional[Row]:
        k = self.key
        for it in self._read_raw():
            if str(it.get(k)) == str(obj_id):
                return it
        return None

    def add(self, item: T) -> Row:
        record = self._to_dict(item)
        k = self.key
        if not record.get(k):
            record[k] = uuid4().hex
        with self._lock:
            data = self._read_raw()
            if any(str(d.get(k)) == str(record[k]) for d in data):
                raise PersistenceError(f"{self.entity_name} with {k}={record[k]} already exists")
            data.append(record)
            self._write_raw(data)
        return record

    def update(self, item: T) -> Row:
        record = self._to_dict(item)
        k = self.key
        obj_id = record.get(k)
        if not obj_id:
            raise PersistenceError(f"Cannot update {self.entity_name} without '{k}'")
        with self._lock:
            data = self._read_raw()
            for idx, existing in enumerate(data):
                if str(existing.get(k)) == str(obj_id):
                    merged = {**existing, **record}
                    data[idx] = merged
                    self._write_raw(data)
                    return merged
        raise PersistenceError(f"{self.entity_name} with {k}={obj_id} not found")

    def upsert(self, item: T) -> Row:
        record = self._to_dict(item)
        with self._lock:
            if record.get(self.key) and self.get_by_id(record[self.key]) is not None:
                return self.update(record)
            return self.add(record)

    def delete(self, obj_id: Any) -> bool:
        return self.delete_where(lambda d: str(d.get(self.key)) == str(obj_id)) > 0

    def delete_where(self, predicate: Callable[[Row], bool]) -> int:
        with self._lock:
            data = self._read_raw()
            kept = [d for d in data if not predicate(d)]
            removed = len(data) - len(kept)
            if removed:
                self._write_raw(kept)
        return removed

    def replace_where(self, predicate: Callable[[Row], bool], items: Iterable[T]) -> List[Row]:
        """Drop every row matching ``predicate`` and append ``items`` in one write."""
        records = [self._to_dict(it) for it in items]
        with self._lock:
            data = [d for d in self._read_raw() if not predicate(d)]
            data.extend(records)
            self._write_raw(data)
        return records

    # ---------------- Lookups ---------------- #

    def find(self, predicate: Callable[[Row], bool]) -> List[Row]:
        return [r for r in self._read_raw() if predicate(r)]

    def find_one(self, predicate: Callable[[Row], bool]) -> Optional[Row]:
        for r in self._read_raw():
            if predicate(r):
                return r
        return None
