"""Content checksums and the file-backed dedup ledger.

Layout under ``base_dir`` for every resource key::

    {key}.raw           raw bytes of the last fetched version
    {key}.raw.pending   digest of {key}.raw, written before any sink write
    {key}.raw.sha256    canonical digest, written only after all sinks succeed

Only ``{key}.raw.sha256`` decides whether a resource is skipped, so a crash
between staging and commit leaves the previous digest in place and the
resource is retried on the next run.
"""

from __future__ import annotations

import hashlib
import logging
import os
import threading
from pathlib import Path

logger = logging.getLogger(__name__)


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


class FileChecksumStore:
    """Row-per-key digest store backed by plain files.

    Parameters
    ----------
    base_dir:
        Directory holding raw files and digest files; created on demand.
    """

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # -- paths ----------------------------------------------------------------

    def raw_path(self, key: str) -> Path:
        return self.base_dir / f"{key}.raw"

    def digest_path(self, key: str) -> Path:
        return self.base_dir / f"{key}.raw.sha256"

    def pending_path(self, key: str) -> Path:
        return self.base_dir / f"{key}.raw.pending"

    # -- ledger ---------------------------------------------------------------

    def get(self, key: str) -> str | None:
        """Return the committed digest for *key*, or ``None`` if never ingested."""
        path = self.digest_path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8").strip() or None

    def put(self, key: str, digest: str) -> None:
        """Commit *digest* as the last successfully ingested version of *key*."""
        target = self.digest_path(key)
        tmp = target.with_name(target.name + ".tmp")
        tmp.write_text(digest, encoding="utf-8")
        os.replace(tmp, target)
        self.pending_path(key).unlink(missing_ok=True)
        logger.debug("Committed digest for %s", key)

    def changed(self, key: str, digest: str) -> bool:
        """``True`` when *digest* differs from the committed one (or none exists)."""
        return self.get(key) != digest

    def stage(self, key: str, raw: bytes, digest: str) -> Path:
        """Persist the raw payload and its digest for audit, without committing.

        Returns the path of the raw file.
        """
        raw_path = self.raw_path(key)
        raw_path.write_bytes(raw)
        self.pending_path(key).write_text(digest, encoding="utf-8")
        return raw_path

    # -- concurrency ----------------------------------------------------------

    def lock(self, key: str) -> threading.Lock:
        """Return the process-wide lock serializing work on *key*."""
        with self._locks_guard:
            return self._locks.setdefault(key, threading.Lock())
