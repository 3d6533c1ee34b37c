"""
On-disk caches: repository classification sets and per-checker scan results.

Every write follows the same pattern: take an exclusive ``fcntl`` lock on a
sibling ``.lock`` file, reload the file from disk, merge the change, write a
temporary file and ``os.replace`` it over the original. Concurrent runs can
therefore never interleave partial lines or drop each other's entries.
"""
from __future__ import annotations

import fcntl
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set

from .config import DEFAULT_RESULTS_TTL
from .findings import Finding
from .github.utils import normalize_repo_name, read_repo_list

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%SZ'


class ClassificationKind(str, Enum):
    """Reasons a repository is skipped before scanning."""
    FORK = 'fork'
    ABANDONED = 'abandoned'
    NO_MANIFEST = 'no-manifest'


CLASSIFICATION_FILES = {
    ClassificationKind.FORK: 'forks.txt',
    ClassificationKind.ABANDONED: 'abandoned.txt',
    ClassificationKind.NO_MANIFEST: 'no-gomod.txt',
}


@contextmanager
def file_lock(path: str) -> Iterator[None]:
    """Hold an exclusive advisory lock on ``<path>.lock``."""
    lock_path = f"{path}.lock"
    os.makedirs(os.path.dirname(lock_path) or '.', exist_ok=True)
    with open(lock_path, 'w') as lock_fd:
        fcntl.flock(lock_fd.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_fd.fileno(), fcntl.LOCK_UN)


def atomic_write_text(path: str, text: str) -> None:
    """Write ``text`` to a temp file in the same directory and rename it over ``path``."""
    directory = os.path.dirname(path) or '.'
    os.makedirs(directory, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", suffix='.tmp', dir=directory)
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        if os.path.exists(tmp):
            os.unlink(tmp)
        raise


def _read_lines(path: str) -> Set[str]:
    if not os.path.exists(path):
        return set()
    with open(path, 'r', encoding='utf-8') as f:
        return {line.strip() for line in f if line.strip()}


class ClassificationCache:
    """Fork / abandoned / no-manifest sets plus a read-only blocklist.

    Each set lives in its own sorted, deduplicated text file under ``cache_dir``.
    """

    def __init__(self, cache_dir: str, blocklist_path: Optional[str] = None):
        self.cache_dir = cache_dir
        self._sets: Dict[ClassificationKind, Set[str]] = {}
        self._blocklist: Set[str] = set(read_repo_list(blocklist_path)) if blocklist_path else set()
        if self._blocklist:
            logger.info(f"Loaded {len(self._blocklist)} blocklisted repositories from {blocklist_path}")

    def path(self, kind: ClassificationKind) -> str:
        return os.path.join(self.cache_dir, CLASSIFICATION_FILES[ClassificationKind(kind)])

    def _load(self, kind: ClassificationKind) -> Set[str]:
        kind = ClassificationKind(kind)
        if kind not in self._sets:
            self._sets[kind] = _read_lines(self.path(kind))
        return self._sets[kind]

    def is_classified(self, repo: str, kind: ClassificationKind) -> bool:
        return repo in self._load(kind)

    def record_classification(self, repo: str, kind: ClassificationKind) -> bool:
        """Add ``repo`` to the ``kind`` set. Returns True when it was not present."""
        entries = self._load(kind)
        if repo in entries:
            return False
        entries.add(repo)
        path = self.path(kind)
        try:
            with file_lock(path):
                merged = _read_lines(path) | entries
                atomic_write_text(path, ''.join(f"{name}\n" for name in sorted(merged)))
            self._sets[ClassificationKind(kind)] = merged
        except OSError as e:
            logger.warning(f"Could not update {path}: {e}")
        return True

    def replace(self, kind: ClassificationKind, repos: Iterable[str]) -> None:
        """Overwrite the ``kind`` set with exactly ``repos``."""
        entries = set(repos)
        path = self.path(kind)
        with file_lock(path):
            atomic_write_text(path, ''.join(f"{name}\n" for name in sorted(entries)))
        self._sets[ClassificationKind(kind)] = entries

    def entries(self, kind: ClassificationKind) -> List[str]:
        return sorted(self._load(kind))

    def is_blocklisted(self, repo: str) -> bool:
        name = normalize_repo_name(repo) or repo
        return name in self._blocklist

    def counts(self) -> Dict[str, int]:
        return {kind.value: len(self._load(kind)) for kind in ClassificationKind}


def _format_timestamp(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime(TIMESTAMP_FORMAT)


def _parse_timestamp(value: Any) -> Optional[float]:
    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value, TIMESTAMP_FORMAT).replace(tzinfo=timezone.utc).timestamp()
    except ValueError:
        return None


class ResultsCache:
    """Per-checker scan results keyed by repository.

    Document shape::

        {"timestamp": "...", "repositories": {"owner/repo": {"findings": [...],
         "last_checked": "...", "branch": "main", "language": "Go"}}}

    Freshness is decided once, when the cache is opened: the document is valid
    while its timestamp is younger than ``ttl`` seconds and ``force`` is off.
    """

    def __init__(self, path: str, ttl: int = DEFAULT_RESULTS_TTL, force: bool = False,
                 clock: Callable[[], float] = time.time):
        self.path = path
        self.ttl = ttl
        self.force = force
        self._clock = clock
        self._doc = self._read()
        self._valid = self._compute_valid()
        if self._valid:
            logger.info(f"Results cache {path} is valid; {len(self._doc['repositories'])} cached repositories")
        elif os.path.exists(path):
            reason = "--force flag set" if force else "cache is stale"
            logger.info(f"Ignoring results cache {path} ({reason})")

    def _read(self) -> Dict[str, Any]:
        empty: Dict[str, Any] = {'timestamp': None, 'repositories': {}}
        if not os.path.exists(self.path):
            return empty
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                doc = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable results cache {self.path}: {e}")
            return empty
        if not isinstance(doc, dict) or not isinstance(doc.get('repositories'), dict):
            logger.warning(f"Discarding malformed results cache {self.path}")
            return empty
        return doc

    def _compute_valid(self) -> bool:
        if self.force:
            return False
        ts = _parse_timestamp(self._doc.get('timestamp'))
        if ts is None:
            return False
        return (self._clock() - ts) < self.ttl

    def is_valid(self) -> bool:
        return self._valid

    def get(self, repo: str) -> Optional[List[Finding]]:
        """Cached findings for ``repo``, or None on a miss or an invalid cache."""
        if not self._valid:
            return None
        entry = self._doc['repositories'].get(repo)
        if entry is None:
            return None
        return [Finding.from_dict(item) for item in entry.get('findings', [])]

    def entry(self, repo: str) -> Optional[Dict[str, Any]]:
        if not self._valid:
            return None
        return self._doc['repositories'].get(repo)

    def put(self, repo: str, findings: List[Finding], branch: str, language: Optional[str]) -> None:
        entry = {
            'findings': [f.to_dict() for f in findings],
            'last_checked': _format_timestamp(self._clock()),
            'branch': branch,
            'language': language or '',
        }
        self._doc['repositories'][repo] = entry
        self._save(lambda doc: doc['repositories'].__setitem__(repo, entry))

    def touch(self) -> None:
        """Mark the document as refreshed now."""
        stamp = _format_timestamp(self._clock())
        self._doc['timestamp'] = stamp
        self._save(lambda doc: doc.__setitem__('timestamp', stamp))

    def clear(self) -> None:
        with file_lock(self.path):
            if os.path.exists(self.path):
                os.unlink(self.path)
        self._doc = {'timestamp': None, 'repositories': {}}
        self._valid = False
        logger.info(f"Cleared results cache {self.path}")

    def __len__(self) -> int:
        return len(self._doc['repositories'])

    def _save(self, merge: Callable[[Dict[str, Any]], None]) -> None:
        try:
            with file_lock(self.path):
                doc = self._read()
                merge(doc)
                if not doc.get('timestamp'):
                    doc['timestamp'] = self._doc.get('timestamp') or _format_timestamp(self._clock())
                atomic_write_text(self.path, json.dumps(doc, indent=2, sort_keys=True))
            self._doc['repositories'].update(doc['repositories'])
            if not self._doc.get('timestamp'):
                self._doc['timestamp'] = doc['timestamp']
        except OSError as e:
            logger.warning(f"Could not write results cache {self.path}: {e}")
