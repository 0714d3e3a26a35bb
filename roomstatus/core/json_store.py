"""JSON-file persistence with atomic writes."""

from __future__ import annotations

import contextlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class JsonFileStore:
    """A single JSON object persisted to disk.

    Writes go to a temporary file in the same directory which is then
    os.replace()d into place, so readers never see a half-written file.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> dict[str, Any]:
        """Return the stored object, or an empty dict when missing or unreadable."""
        with self._lock:
            if not self._path.exists():
                return {}
            try:
                with self._path.open("r", encoding="utf-8") as fh:
                    data = json.load(fh)
            except (OSError, json.JSONDecodeError) as exc:
                logger.warning("Failed to read JSON store %s: %s", self._path, exc)
                return {}
            if not isinstance(data, dict):
                logger.warning("JSON store %s root is not an object; ignoring", self._path)
                return {}
            return data

    def write(self, data: dict[str, Any]) -> None:
        """Persist data atomically.

        Raises:
            OSError: The directory cannot be created or the file replaced
        """
        with self._lock:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path: Path | None = None
            try:
                with tempfile.NamedTemporaryFile(
                    "w", dir=self._path.parent, delete=False, encoding="utf-8"
                ) as tf:
                    tmp_path = Path(tf.name)
                    json.dump(data, tf, ensure_ascii=False, indent=2)
                    tf.flush()
                    os.fsync(tf.fileno())
                tmp_path.replace(self._path)
            except OSError:
                if tmp_path is not None:
                    with contextlib.suppress(OSError):
                        tmp_path.unlink()
                raise
        logger.debug("Persisted JSON store %s", self._path)

    def clear(self) -> None:
        """Remove the backing file if present."""
        with self._lock:
            with contextlib.suppress(FileNotFoundError):
                self._path.unlink()
        logger.debug("Cleared JSON store %s", self._path)
