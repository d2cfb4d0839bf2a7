"""Filesystem-backed state store.

Each key is a file under ``root``.  Atomicity comes from the filesystem:

- ``write`` writes a hidden temp file in the target directory, fsyncs it and
  ``os.replace``-s it over the key, so readers never observe a torn file.
- ``create_exclusive`` writes a complete temp file and hard-links it to the
  key.  ``link`` fails with ``FileExistsError`` when the key exists, which
  makes check-and-create a single atomic step *and* guarantees nobody ever
  reads a half-written lock record.
- ``delete_if_equal`` renames the key to a private tombstone (atomic), then
  verifies the tombstone's bytes.  If another process replaced the key in
  between, the replacement is put back.

Hidden files (leading ``.``) are temp/tombstone artefacts and are never
listed as keys.
"""

from __future__ import annotations

import os
import uuid
from pathlib import Path

import structlog

from venue_refresh.interfaces.state_store import IStateStore

logger = structlog.get_logger(logger_name=__name__)


class FileStateStore(IStateStore):
    """State store rooted at a directory on local disk."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        parts = key.split("/")
        if (
            not key
            or key.startswith("/")
            or "\\" in key
            or any(part in ("", ".", "..") or part.startswith(".") for part in parts)
        ):
            msg = f"Invalid state key: {key!r}"
            raise ValueError(msg)
        return self._root.joinpath(*parts)

    @staticmethod
    def _scratch(path: Path, kind: str) -> Path:
        return path.with_name(f".{path.name}.{uuid.uuid4().hex}.{kind}")

    @staticmethod
    def _write_file(path: Path, data: bytes) -> None:
        with open(path, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())

    # ------------------------------------------------------------------
    # IStateStore implementation
    # ------------------------------------------------------------------

    def read(self, key: str) -> bytes | None:
        try:
            return self._path(key).read_bytes()
        except FileNotFoundError:
            return None

    def write(self, key: str, data: bytes) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._scratch(path, "tmp")
        try:
            self._write_file(tmp, data)
            os.replace(tmp, path)
        finally:
            tmp.unlink(missing_ok=True)

    def create_exclusive(self, key: str, data: bytes) -> bool:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._scratch(path, "tmp")
        try:
            self._write_file(tmp, data)
            os.link(tmp, path)
            return True
        except FileExistsError:
            return False
        finally:
            tmp.unlink(missing_ok=True)

    def delete(self, key: str) -> bool:
        try:
            self._path(key).unlink()
            return True
        except FileNotFoundError:
            return False

    def delete_if_equal(self, key: str, expected: bytes) -> bool:
        path = self._path(key)
        if self.read(key) != expected:
            return False

        tombstone = self._scratch(path, "del")
        try:
            os.rename(path, tombstone)
        except FileNotFoundError:
            return False

        try:
            if tombstone.read_bytes() == expected:
                return True
            # Lost a race: somebody replaced the key between our read and
            # rename.  Restore their bytes unless the key was recreated again.
            try:
                os.link(tombstone, path)
            except FileExistsError:
                logger.warning("state_delete_race_lost", key=key)
            return False
        finally:
            tombstone.unlink(missing_ok=True)

    def list_keys(self, prefix: str) -> list[str]:
        base = self._path(prefix) if prefix else self._root
        if not base.is_dir():
            return []
        keys = []
        for path in base.rglob("*"):
            if path.is_file() and not any(part.startswith(".") for part in path.relative_to(base).parts):
                keys.append(path.relative_to(self._root).as_posix())
        return sorted(keys)

    def get_provider_name(self) -> str:
        return "filesystem"
