# agrotrade/repositories.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, List, Optional, Protocol, Sequence

from pydantic import TypeAdapter
from sqlalchemy.orm import Session

from agrotrade import models
from agrotrade.config import Settings
from agrotrade.db import make_engine, make_sessionmaker
from agrotrade.errors import RepositoryError
from agrotrade.schemas import Crop

logger = logging.getLogger(__name__)

CropList = TypeAdapter(List[Crop])
SessionFactory = Callable[[], Session]


def dump_crops(crops: Sequence[Crop]) -> list[dict[str, Any]]:
    """Plain JSON-ready dicts, camelCase keys, unset optionals omitted."""
    return CropList.dump_python(list(crops), mode="json", by_alias=True, exclude_none=True)


def load_crops(raw: Optional[list]) -> List[Crop]:
    return CropList.validate_python(raw or [])


class CropRepository(Protocol):
    def load_all(self) -> List[Crop]:
        """Return the whole persisted collection (empty when unavailable)."""
        ...

    def save_all(self, crops: Sequence[Crop]) -> None:
        """Replace the whole persisted collection."""
        ...


class _SnapshotRepository:
    """Shared load/save policy; subclasses only move raw JSON snapshots.

    Loads never raise: a broken store reads as an empty collection. Saves
    raise RepositoryError.
    """

    backend = "base"

    def _read(self) -> Optional[list]:
        raise NotImplementedError

    def _write(self, raw: list[dict[str, Any]]) -> None:
        raise NotImplementedError

    def load_all(self) -> List[Crop]:
        try:
            return load_crops(self._read())
        except Exception:
            logger.exception("Could not load crops from %s store; serving an empty collection", self.backend)
            return []

    def save_all(self, crops: Sequence[Crop]) -> None:
        try:
            self._write(dump_crops(crops))
        except Exception as e:
            logger.error("Could not save %d crops to %s store: %s", len(crops), self.backend, e)
            raise RepositoryError(f"Failed to save crops: {e}") from e


class InMemoryCropRepository(_SnapshotRepository):
    backend = "memory"

    def __init__(self, crops: Sequence[Crop] = ()):
        # snapshots, so callers never share objects with the store
        self._raw: list[dict[str, Any]] = dump_crops(crops)

    def _read(self) -> Optional[list]:
        return self._raw

    def _write(self, raw: list[dict[str, Any]]) -> None:
        self._raw = raw


class KeyValueCropRepository(_SnapshotRepository):
    """Whole collection stored as one JSON value under `key` in the kv_store table."""

    backend = "kv"

    def __init__(self, session_factory: SessionFactory, key: str = "agrotrade:crops"):
        self._session_factory = session_factory
        self.key = key

    @classmethod
    def from_url(cls, database_url: str, key: str = "agrotrade:crops") -> "KeyValueCropRepository":
        return cls(make_sessionmaker(make_engine(database_url)), key=key)

    def _read(self) -> Optional[list]:
        with self._session_factory() as db:
            row = db.get(models.KeyValue, self.key)
            return row.value if row else None

    def _write(self, raw: list[dict[str, Any]]) -> None:
        with self._session_factory() as db:
            row = db.get(models.KeyValue, self.key)
            if row is None:
                db.add(models.KeyValue(key=self.key, value=raw))
            else:
                row.value = raw
                row.updated_at = datetime.now(timezone.utc)
            db.commit()


class JsonFileCropRepository(_SnapshotRepository):
    backend = "file"

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> Optional[list]:
        if not self.path.exists():
            return None
        return json.loads(self.path.read_text(encoding="utf-8"))

    def _write(self, raw: list[dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # one temp file per write, so concurrent saves never share it
        tmp: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=self.path.name + ".",
                suffix=".tmp",
                delete=False,
            ) as fh:
                tmp = Path(fh.name)
                json.dump(raw, fh, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        finally:
            # already gone after a successful replace
            if tmp is not None:
                tmp.unlink(missing_ok=True)


def build_repository(settings: Settings) -> CropRepository:
    backend = settings.storage_backend
    if backend == "memory":
        return InMemoryCropRepository()
    if backend == "kv":
        return KeyValueCropRepository.from_url(settings.database_url, key=settings.kv_key)
    if backend == "file":
        return JsonFileCropRepository(settings.crops_file)
    raise ValueError(f"Unknown storage backend: {backend!r}")
