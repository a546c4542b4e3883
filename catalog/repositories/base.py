"""Repository base class used by all concrete repositories."""
import json
import logging
import os
import tempfile
from typing import Any


class BaseRepository:
    """Provides JSON-backed persistence for a single snapshot file.

    Sub-classes call :meth:`_load` to read initial data from disk and
    :meth:`_save` to atomically persist data back.  All repositories keep an
    in-memory copy in ``self.data``; callers mutate that copy and then call
    :meth:`save` to persist the change.

    The atomic write uses a write-then-rename strategy so the file is never
    left in a partially-written state.
    """

    def __init__(self, file_path: str) -> None:
        self._path = file_path
        self._log = logging.getLogger(f'famtree.repository.{type(self).__name__}')

    @property
    def path(self) -> str:
        return self._path

    def _load(self, default: Any) -> Any:
        """Load JSON from *self._path*, returning *default* on missing/corrupt file."""
        if os.path.exists(self._path):
            try:
                with open(self._path, 'r', encoding='utf-8') as fh:
                    data = json.load(fh)
                if isinstance(data, type(default)):
                    return data
                self._log.warning("Ignoring %s: expected %s, found %s",
                                  self._path, type(default).__name__,
                                  type(data).__name__)
            except (json.JSONDecodeError, IOError) as exc:
                self._log.warning("Could not load %s: %s", self._path, exc)
        return default

    def _save(self, data: Any) -> None:
        """Atomically write *data* as JSON to *self._path*."""
        dir_name = os.path.dirname(os.path.abspath(self._path))
        os.makedirs(dir_name, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_path, self._path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise

    def reload(self) -> None:
        """Re-read the snapshot file, discarding unsaved in-memory changes."""
        self.data = self._load(type(self.data)())

    def save(self) -> None:
        self._save(self.data)
