"""
Fingerprint cache - content-addressed flat-file store for stage outputs.

Keys are derived by the stage runner from (stage name, version, input); the
cache itself only does exact-match lookups. Entries are never evicted.
"""
import hashlib
import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic_core import to_jsonable_python


logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def stable_json_dumps(obj: Any) -> str:
    """
    Serialize to JSON with deterministic ordering.

    Pydantic models, datetimes and paths are converted to plain JSON values
    first; dict keys are sorted so equal values give byte-identical output.
    """
    return json.dumps(
        to_jsonable_python(obj),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )


def compute_fingerprint(name: str, version: str, data: Any) -> str:
    """SHA-256 over the stage identity and its serialized input."""
    payload = stable_json_dumps({"name": name, "version": version, "input": data})
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def settings_version(version: str, settings: Any) -> str:
    """Stage version qualified by a digest of the settings its output depends on."""
    digest = hashlib.sha256(stable_json_dumps(settings).encode("utf-8")).hexdigest()
    return f"{version}+{digest[:12]}"


def cache_key(name: str, fingerprint: str) -> str:
    """Readable cache key: sanitized stage name plus fingerprint."""
    return f"{_UNSAFE_CHARS.sub('_', name)}_{fingerprint}"


class FileCache:
    """
    Durable key/value store with one JSON file per entry.
    Writes go through a temp file and an atomic rename, so readers never see
    a partially written entry.
    """

    def __init__(self, cache_dir: Path):
        self.cache_dir = Path(cache_dir)
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.cache_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        """Return the stored value, or None if absent or unreadable."""
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Unreadable cache entry {path.name}: {e}")
            return None

    def put(self, key: str, value: str) -> None:
        """Persist a value. Rewriting an existing key with the same value is harmless."""
        fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(value)
            os.replace(tmp_name, self._path(key))
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def __contains__(self, key: str) -> bool:
        return self._path(key).exists()

    def __len__(self) -> int:
        return sum(1 for _ in self.cache_dir.glob("*.json"))
