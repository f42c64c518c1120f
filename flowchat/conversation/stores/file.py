"""JSON-file implementation of HistoryStore."""

import re
from collections.abc import Callable
from pathlib import Path

from flowchat.conversation.store import HistoryStore, now_ms
from flowchat.observability.logging import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class FileHistoryStore(HistoryStore):
    """Stores each key as ``<directory>/<key>.json``.

    Writes go through a temporary file and a rename so that a crash never
    leaves a half-written record behind.
    """

    backend_name = "file"

    def __init__(
        self,
        key: str,
        directory: str | Path,
        retention_ms: int | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(key, retention_ms=retention_ms, clock=clock)
        self._directory = Path(directory)
        self._path = self._directory / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> str | None:
        try:
            return self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("history_file_unreadable", path=str(self._path), error=str(e))
            return None

    def _write(self, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(".json.tmp")
        tmp_path.write_text(value, encoding="utf-8")
        tmp_path.replace(self._path)

    def _delete(self) -> None:
        self._path.unlink(missing_ok=True)
