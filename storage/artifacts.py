"""
Local artifact storage.

A single-key store: one "current" artifact under a fixed name, with every
superseded version kept beside it as a timestamped backup. Used for:
  - accepting uploads (rotating the previous current into a backup)
  - serving the current artifact

Environment variables:
  - ARTIFACT_DIR (default: ./uploads)
  - ARTIFACT_NAME (default: swagger.yaml)
  - MAX_UPLOAD_BYTES (default: 10 MiB)

Writes go to a temp file first and land with `os.replace`, so readers see
either the old or the new artifact and never a missing or partial one. The
backup is a hard link (or, where links are unsupported, a copy) of the old
current taken before the replace. Backup + replace run under a thread lock
and a `.<name>.lock` file lock, so concurrent uploads from several worker
processes are serialized too.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable

from filelock import FileLock, Timeout

from errors import ArtifactNotFound, ConfigurationError, PartialUploadFailure, StorageError

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
LOCK_TIMEOUT_SECONDS = 30

# link(2) errors meaning "no hard links here"; the backup is copied instead.
_NO_HARDLINK_ERRNOS = {errno.EPERM, errno.ENOTSUP, errno.EOPNOTSUPP, errno.ENOSYS}

# Thread locks per resolved artifact path; the `.<name>.lock` file lock
# serializes uploads across processes.
_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _locks_guard:
        return _locks.setdefault(path, threading.Lock())


def _env(name: str, default: str) -> str:
    val = os.environ.get(name, "").strip()
    return val or default


@dataclass(frozen=True)
class ArtifactSettings:
    """Where the artifact lives and how large an upload may be."""

    directory: Path
    name: str = "swagger.yaml"
    max_upload_bytes: int = 10 * 1024 * 1024

    def __post_init__(self) -> None:
        if not self.name or Path(self.name).name != self.name or self.name in (".", ".."):
            raise ConfigurationError(f"ARTIFACT_NAME must be a bare file name, got {self.name!r}")
        if self.max_upload_bytes <= 0:
            raise ConfigurationError("MAX_UPLOAD_BYTES must be positive")

    @staticmethod
    def from_env() -> "ArtifactSettings":
        raw_max = _env("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))
        try:
            max_upload = int(raw_max)
        except ValueError:
            raise ConfigurationError(f"MAX_UPLOAD_BYTES must be an integer, got {raw_max!r}") from None

        return ArtifactSettings(
            directory=Path(_env("ARTIFACT_DIR", "uploads")),
            name=_env("ARTIFACT_NAME", "swagger.yaml"),
            max_upload_bytes=max_upload,
        )


@dataclass(frozen=True)
class UploadResult:
    name: str
    backup: str | None
    size: int


class ArtifactStore:
    """Versioned storage for the current artifact."""

    def __init__(self, settings: ArtifactSettings, clock: Callable[[], datetime] = datetime.now):
        self._settings = settings
        self._clock = clock
        self._dir = settings.directory
        self._current = self._dir / settings.name
        self._lock = _lock_for(self._current.resolve())
        self._lock_path = self._dir / f".{settings.name}.lock"

    @property
    def settings(self) -> ArtifactSettings:
        return self._settings

    @property
    def current_path(self) -> Path:
        return self._current

    def exists(self) -> bool:
        return self._current.is_file()

    def read(self) -> bytes:
        """Return the current artifact's bytes, or raise `ArtifactNotFound`."""
        try:
            return self._current.read_bytes()
        except FileNotFoundError:
            raise ArtifactNotFound() from None
        except OSError as exc:
            logger.error("Failed to read %s: %s", self._current, exc)
            raise StorageError("Failed to read artifact") from exc

    def backups(self) -> list[str]:
        """Backup file names, oldest first."""
        stem, suffix = self._split_name()
        if not self._dir.is_dir():
            return []
        names = [
            p.name for p in self._dir.iterdir()
            if p.is_file() and p.name != self._current.name
            and p.name.startswith(stem + "_") and p.name.endswith(suffix)
        ]
        return sorted(names, key=self._backup_sort_key)

    def upload(self, data: bytes, filename_hint: str | None = None) -> UploadResult:
        """
        Make `data` the current artifact, keeping the previous one as a backup.

        On failure the previous current artifact is left in place, unless the
        rollback itself fails, in which case `PartialUploadFailure` is raised.
        """

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            tmp_path = self._write_temp(data)
        except OSError as exc:
            logger.error("Failed to stage upload in %s: %s", self._dir, exc)
            raise StorageError() from exc

        try:
            with self._lock, FileLock(self._lock_path, timeout=LOCK_TIMEOUT_SECONDS):
                backup = self._claim_backup()
                try:
                    os.replace(tmp_path, self._current)
                except OSError as exc:
                    logger.error("Failed to install new %s: %s", self._current.name, exc)
                    self._rollback(backup)
                    raise StorageError() from exc
        except Timeout as exc:
            logger.error("Timed out waiting for %s", self._lock_path)
            raise StorageError() from exc
        finally:
            if tmp_path.exists():
                tmp_path.unlink(missing_ok=True)

        logger.info(
            "Stored %s (%d bytes, uploaded as %r), previous kept as %s",
            self._current.name, len(data), filename_hint, backup.name if backup else None,
        )
        return UploadResult(name=self._current.name, backup=backup.name if backup else None, size=len(data))

    def _write_temp(self, data: bytes) -> Path:
        fd, tmp = tempfile.mkstemp(dir=self._dir, prefix=f".{self._current.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
        except OSError:
            Path(tmp).unlink(missing_ok=True)
            raise
        return Path(tmp)

    def _claim_backup(self) -> Path | None:
        """Preserve the current artifact under a fresh backup name.

        Hard-links when the filesystem allows it, copies otherwise. Either way
        the name is claimed exclusively, so an existing backup is never
        overwritten.
        """
        if not self._current.exists():
            return None

        stamp = self._clock().strftime(TIMESTAMP_FORMAT)
        stem, suffix = self._split_name()
        attempt = 0
        while True:
            label = stamp if attempt == 0 else f"{stamp}_{attempt}"
            backup = self._dir / f"{stem}_{label}{suffix}"
            try:
                try:
                    os.link(self._current, backup)
                except OSError as exc:
                    if exc.errno not in _NO_HARDLINK_ERRNOS:
                        raise
                    logger.debug("Hard links unavailable for %s (%s), copying", self._dir, exc)
                    self._copy_backup(backup)
            except FileExistsError:
                attempt += 1
                continue
            except FileNotFoundError:
                return None
            except OSError as exc:
                logger.error("Failed to back up %s: %s", self._current.name, exc)
                raise StorageError() from exc
            return backup

    def _copy_backup(self, backup: Path) -> None:
        fd = os.open(backup, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o644)
        try:
            with os.fdopen(fd, "wb") as dst, self._current.open("rb") as src:
                shutil.copyfileobj(src, dst)
                dst.flush()
                os.fsync(dst.fileno())
        except OSError:
            backup.unlink(missing_ok=True)
            raise

    def _rollback(self, backup: Path | None) -> None:
        if backup is None:
            return
        try:
            backup.unlink()
        except OSError as exc:
            logger.critical(
                "Upload of %s failed and backup %s could not be removed: %s",
                self._current.name, backup.name, exc,
            )
            raise PartialUploadFailure() from exc

    def _split_name(self) -> tuple[str, str]:
        p = Path(self._current.name)
        return p.stem, p.suffix

    def _backup_sort_key(self, name: str) -> tuple[str, int]:
        stem, suffix = self._split_name()
        label = name[len(stem) + 1:len(name) - len(suffix)]
        stamp, _, seq = label.partition("_")
        return stamp, int(seq) if seq.isdigit() else 0
