"""Local artifact store: write-once files and atomic JSON snapshots."""

import json
import logging
import os
import tempfile
from typing import Any

from .errors import ConfigurationError

logger = logging.getLogger("catalog_harvester")


def atomic_write_bytes(path: str, data: bytes):
    """Write ``data`` to a sibling temp file, fsync it, then rename over ``path``.

    Readers never observe a partially written file. The temp file is removed
    if anything fails before the rename.
    """
    directory = os.path.dirname(path) or "."
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def write_json_atomic(path: str, obj: Any, pretty: bool = False):
    text = json.dumps(obj, indent=2 if pretty else None, ensure_ascii=False)
    atomic_write_bytes(path, text.encode("utf-8"))


def read_json(path: str) -> Any:
    """Load a snapshot; anything unreadable is a configuration problem."""
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise ConfigurationError(f"could not open {path}: {e}") from e
    except ValueError as e:
        raise ConfigurationError(f"could not parse {path}: {e}") from e


class ArtifactCache:
    """Destination namespace for downloaded documents, rooted at ``root``."""

    def __init__(self, root: str):
        self.root = root

    def path(self, dest: str) -> str:
        return os.path.join(self.root, dest)

    def exists(self, dest: str) -> bool:
        return os.path.exists(self.path(dest))

    def write_once(self, dest: str, data: bytes) -> str:
        full = self.path(dest)
        if os.path.exists(full):
            raise FileExistsError(full)
        atomic_write_bytes(full, data)
        logger.debug(f"Wrote {full} ({len(data):,} bytes)")
        return full
