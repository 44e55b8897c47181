"""JSON backup envelope and the host targets it is written to.

A backup is one UTF-8 JSON object holding the ``logs``, ``plans`` and
``exercises`` collections verbatim. Exports first try a file the user chose
earlier in the session and fall back to dropping ``workout_backup.json`` into
a downloads directory.
"""
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Callable, Optional

from db import WorkoutStore
from errors import BackupCancelled, SnapshotImportError

logger = logging.getLogger(__name__)

SUGGESTED_NAME = "my_workout_backup.json"
DOWNLOAD_NAME = "workout_backup.json"


def encode_snapshot(snapshot: dict, pretty: bool = True) -> bytes:
    """Return ``snapshot`` as UTF-8 JSON bytes with key and array order kept."""
    text = json.dumps(snapshot, indent=2 if pretty else None, ensure_ascii=False)
    return text.encode("utf-8")


def decode_snapshot(data: bytes | str) -> dict:
    """Parse backup bytes into a snapshot dict."""
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        parsed = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        raise SnapshotImportError(f"backup is not valid JSON: {e}")
    if not isinstance(parsed, dict):
        raise SnapshotImportError("backup must be a JSON object")
    return parsed


def _write_atomic(path: str, data: bytes) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


class HandleTarget:
    """Overwrite a file chosen once per session without asking again.

    ``chooser`` is called with the suggested file name and returns a path, or
    ``None`` when the user dismisses the dialog.
    """

    def __init__(
        self,
        chooser: Optional[Callable[[str], Optional[str]]] = None,
        path: Optional[str] = None,
    ) -> None:
        self.chooser = chooser
        self.path = path

    @property
    def available(self) -> bool:
        return self.path is not None or self.chooser is not None

    def write(self, data: bytes) -> Optional[str]:
        """Write ``data`` and return the path, or ``None`` if no file was chosen."""
        if self.path is None:
            if self.chooser is None:
                return None
            chosen = self.chooser(SUGGESTED_NAME)
            if not chosen:
                return None
            self.path = chosen
        _write_atomic(self.path, data)
        return self.path

    def forget(self) -> None:
        self.path = None


class DownloadTarget:
    """Offer the backup as a one-shot download into ``download_dir``."""

    def __init__(self, download_dir: str = ".", filename: str = DOWNLOAD_NAME) -> None:
        self.download_dir = download_dir
        self.filename = filename

    def write(self, data: bytes) -> str:
        os.makedirs(self.download_dir, exist_ok=True)
        path = os.path.join(self.download_dir, self.filename)
        _write_atomic(path, data)
        return path


@dataclass
class BackupResult:
    target: str
    path: str
    size: int


class BackupService:
    """Round-trips the whole store through host files."""

    def __init__(
        self,
        store: WorkoutStore,
        handle: HandleTarget | None = None,
        download: DownloadTarget | None = None,
        pretty: bool = True,
    ) -> None:
        self.store = store
        self.handle = handle or HandleTarget()
        self.download = download or DownloadTarget()
        self.pretty = pretty

    @property
    def has_handle(self) -> bool:
        return self.handle.path is not None

    def forget_handle(self) -> None:
        self.handle.forget()

    def export_to_host(self, snapshot: dict | None = None) -> BackupResult:
        data = encode_snapshot(
            snapshot if snapshot is not None else self.store.export_snapshot(),
            self.pretty,
        )
        if self.handle.available:
            try:
                path = self.handle.write(data)
            except OSError as e:
                logger.warning("backup to chosen file failed, falling back to download: %s", e)
                path = None
            if path is not None:
                logger.info("backup written to %s", path)
                return BackupResult("handle", path, len(data))
            logger.info("no backup file chosen, falling back to download")
        path = self.download.write(data)
        logger.info("backup offered as download at %s", path)
        return BackupResult("download", path, len(data))

    def import_from_host(self, file_bytes: bytes | str | None) -> dict:
        """Replace the store with the backup in ``file_bytes``.

        ``None`` means no file was chosen and raises :class:`BackupCancelled`.
        """
        if file_bytes is None:
            raise BackupCancelled("No file selected.")
        snapshot = decode_snapshot(file_bytes)
        counts = self.store.import_snapshot(snapshot)
        self.forget_handle()
        return counts

    def import_file(self, path: str) -> dict:
        with open(path, "rb") as f:
            return self.import_from_host(f.read())
