"""
JSON file backed key/value store.

The whole store lives in one JSON document. Every write rewrites the document
through a temporary file and ``os.replace`` so a crash never leaves a partially
written state file behind.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Union

import structlog

from taqvo_community.exceptions import storage_error
from .interface import KeyValueStore

logger = structlog.get_logger(__name__)


class JsonFileKeyValueStore(KeyValueStore):
    """Key/value store persisted to a single JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise storage_error(f"Corrupt state file: {e}", path=str(self.path))
        except OSError as e:
            raise storage_error(f"Cannot read state file: {e}", path=str(self.path))

        if not isinstance(data, dict):
            raise storage_error("State file must contain a JSON object", path=str(self.path))
        return data

    def _flush(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, indent=2, sort_keys=True, default=str)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            logger.error("State file write failed", path=str(self.path), error=str(e))
            raise storage_error(f"Cannot write state file: {e}", path=str(self.path))

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        if key not in self._data:
            return default
        # round-trip through JSON so callers never mutate the cached document
        return json.loads(json.dumps(self._data[key]))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = json.loads(json.dumps(value, default=str))
        self._flush()

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        self._flush()
        return True

    def keys(self) -> Iterable[str]:
        return list(self._data.keys())
