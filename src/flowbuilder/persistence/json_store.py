"""JSON file persistence: one file per keyed record."""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any

from flowbuilder.observability.logging import get_logger

log = get_logger(__name__)

_KEY_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class JsonFilePersistence:
    """Store each record as ``{directory}/{key}.json``.

    Writes go to a temporary file that is renamed over the target, so a
    crash mid-write leaves the previous value intact.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def directory(self) -> Path:
        return self._directory

    def _path_for(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid record key {key!r}: must be alphanumeric/underscores/dashes")
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Any:
        """Return the decoded record, or None if the file does not exist.

        Raises:
            json.JSONDecodeError: If the file exists but is not valid JSON.
        """
        path = self._path_for(key)
        if not path.exists():
            return None
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)

    def write(self, key: str, value: Any) -> None:
        path = self._path_for(key)
        self._directory.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(value, f, indent=2)
                f.write("\n")
            tmp_path.replace(path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise
        log.debug("record_written", backend="json", key=key, path=str(path))

    def close(self) -> None:
        """Nothing to release; files are closed after every access."""
