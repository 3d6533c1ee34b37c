"""
Content scanning: evaluate ordered regex pattern sets against repository files.

Two strategies share the same pattern definitions and exclusion rules:

* :class:`LocalScanner` walks a checked-out working tree.
* :class:`RemoteScanner` narrows candidates with the code search API and
  verifies each hit by fetching the raw file. Forks are not indexed by code
  search, so the first empty search on a fork switches that repository to a
  walk of its git tree.
"""
from __future__ import annotations

import fnmatch
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Pattern, Sequence, Tuple

import requests

from .findings import Finding
from .github.models import Repository
from .github.rate_limit import SearchThrottle

logger = logging.getLogger(__name__)

EXCLUDED_DIRS = frozenset([
    'vendor', 'testdata', 'mocks', 'mock', '.git', 'test', 'tests', 'e2e', 'testing',
    'fakes', 'fixtures', 'node_modules', '__pycache__', 'venv', '.venv', '__tests__',
])

TEST_FILE_GLOBS = (
    '*_test.go',
    '*_test.py', 'test_*.py', 'conftest.py',
    '*.test.js', '*.spec.js', '*.test.mjs', '*.spec.mjs',
    '*.test.ts', '*.spec.ts', '*.test.mts', '*.spec.mts',
    '*_test.cpp', '*_test.cc',
)

MAX_FILE_BYTES = 2 * 1024 * 1024


@dataclass
class PatternRule:
    """A single ``severity | label | description | regex`` check.

    ``search_query`` is the code-search query used to find candidates in api
    mode; rules without one are only evaluated against local clones.
    """
    severity: str
    label: str
    description: str
    regex: str
    search_query: Optional[str] = None
    compiled: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.compiled = re.compile(self.regex)

    def count_matches(self, text: str) -> int:
        """Number of lines in ``text`` matching the rule."""
        return sum(1 for line in text.splitlines() if self.compiled.search(line))


@dataclass
class LanguageProfile:
    """Which files a pattern set applies to."""
    name: str
    include_globs: Tuple[str, ...]
    rules: List[PatternRule]
    search_language: Optional[str] = None
    test_file_globs: Tuple[str, ...] = TEST_FILE_GLOBS

    def includes(self, path: str) -> bool:
        base = path.rsplit('/', 1)[-1]
        return any(fnmatch.fnmatchcase(base, pattern) for pattern in self.include_globs)


def is_excluded_path(path: str, test_file_globs: Sequence[str] = TEST_FILE_GLOBS,
                     excluded_dirs: frozenset = EXCLUDED_DIRS) -> bool:
    """True for files under an excluded directory or named like a test file."""
    parts = path.replace(os.sep, '/').strip('/').split('/')
    if any(part in excluded_dirs for part in parts[:-1]):
        return True
    return any(fnmatch.fnmatchcase(parts[-1], pattern) for pattern in test_file_globs)


def search_exclusions(excluded_dirs: frozenset = EXCLUDED_DIRS) -> str:
    return ' '.join(f"NOT path:{d}/" for d in sorted(excluded_dirs) if d != '.git')


@dataclass
class CentralizedConfigFilter:
    """Drop files from a finding when they also reference a centralized config marker.

    A hardcoded ``tls.Config`` in a file that consults ``TLSSecurityProfile``
    follows the cluster-wide TLS profile and is not reported.
    """
    label: str
    marker: str

    def apply(self, findings: List[Finding], contains_marker: Callable[[str], bool]) -> List[Finding]:
        result: List[Finding] = []
        for finding in findings:
            if finding.pattern != self.label:
                result.append(finding)
                continue
            kept = [path for path in finding.files if not contains_marker(path)]
            if not kept:
                logger.debug(f"Suppressed '{finding.pattern}': every file references {self.marker}")
                continue
            if len(kept) != len(finding.files):
                # Partially suppressed findings count files rather than lines
                finding.count = len(kept)
                finding.files = kept
            result.append(finding)
        return result


def _read_text(path: str) -> Optional[str]:
    try:
        if os.path.getsize(path) > MAX_FILE_BYTES:
            return None
        with open(path, 'r', encoding='utf-8', errors='ignore') as f:
            return f.read()
    except OSError as e:
        logger.debug(f"Skipping unreadable file {path}: {e}")
        return None


class LocalScanner:
    """Scan a working tree on disk."""

    def __init__(self, excluded_dirs: frozenset = EXCLUDED_DIRS):
        self.excluded_dirs = excluded_dirs

    def candidate_files(self, root: str, profile: LanguageProfile) -> List[str]:
        """Relative POSIX paths of the files ``profile`` applies to, sorted."""
        found: List[str] = []
        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = [d for d in dirnames if d not in self.excluded_dirs]
            rel_dir = os.path.relpath(dirpath, root)
            for name in filenames:
                rel = name if rel_dir == '.' else f"{rel_dir}/{name}".replace(os.sep, '/')
                if not profile.includes(rel):
                    continue
                if is_excluded_path(rel, profile.test_file_globs, self.excluded_dirs):
                    continue
                found.append(rel)
        return sorted(found)

    def scan(self, root: str, profile: LanguageProfile, branch: str = '') -> List[Finding]:
        files = self.candidate_files(root, profile)
        hits: Dict[int, Tuple[List[str], int]] = {}
        for rel in files:
            text = _read_text(os.path.join(root, rel))
            if not text:
                continue
            for index, rule in enumerate(profile.rules):
                count = rule.count_matches(text)
                if count:
                    paths, total = hits.get(index, ([], 0))
                    paths.append(rel)
                    hits[index] = (paths, total + count)
        findings = []
        for index, rule in enumerate(profile.rules):
            if index not in hits:
                continue
            paths, total = hits[index]
            findings.append(Finding(
                severity=rule.severity,
                pattern=rule.label,
                description=rule.description,
                files=paths,
                count=total,
                branch=branch,
            ))
        return findings

    def file_contains(self, root: str, rel: str, marker: str) -> bool:
        text = _read_text(os.path.join(root, rel))
        return bool(text) and marker in text


class RemoteScanner:
    """Scan a repository through the GitHub API without cloning it."""

    def __init__(self, client, throttle: Optional[SearchThrottle] = None,
                 verify_attempts: int = 2, excluded_dirs: frozenset = EXCLUDED_DIRS):
        self.client = client
        self.throttle = throttle or SearchThrottle()
        self.verify_attempts = verify_attempts
        self.excluded_dirs = excluded_dirs
        self._contents: Dict[Tuple[str, str], Optional[str]] = {}

    def fetch(self, repo: Repository, path: str) -> Optional[str]:
        key = (repo.full_name, path)
        if key not in self._contents:
            self._contents[key] = self.client.fetch_raw_file(
                repo.full_name, repo.default_branch, path, attempts=self.verify_attempts)
        return self._contents[key]

    def file_contains(self, repo: Repository, path: str, marker: str) -> bool:
        text = self.fetch(repo, path)
        return bool(text) and marker in text

    def _tree_candidates(self, repo: Repository, profile: LanguageProfile) -> List[str]:
        try:
            paths = self.client.list_tree_paths(repo.full_name, repo.default_branch)
        except requests.RequestException as e:
            logger.warning(f"Could not list tree of {repo.full_name}: {e}")
            return []
        return [p for p in paths if profile.includes(p)]

    def scan(self, repo: Repository, profile: LanguageProfile) -> List[Finding]:
        # Fetched contents stay available to post-filters until the next scan
        self._contents.clear()
        branch = repo.default_branch
        tree_paths: Optional[List[str]] = None
        findings: List[Finding] = []
        for rule in profile.rules:
            if not rule.search_query:
                continue
            if tree_paths is not None:
                candidates = tree_paths
            else:
                self.throttle.wait()
                query = f"{rule.search_query} {search_exclusions(self.excluded_dirs)}"
                candidates = self.client.search_code(query, repo.full_name, profile.search_language)
                if not candidates and repo.is_fork:
                    logger.info(f"Code search returned nothing for fork {repo.full_name}; walking the git tree instead")
                    tree_paths = self._tree_candidates(repo, profile)
                    candidates = tree_paths

            verified = []
            for path in candidates:
                if is_excluded_path(path, profile.test_file_globs, self.excluded_dirs):
                    continue
                text = self.fetch(repo, path)
                if text and rule.count_matches(text):
                    verified.append(path)
            if verified:
                findings.append(Finding(
                    severity=rule.severity,
                    pattern=rule.label,
                    description=rule.description,
                    files=sorted(verified),
                    count=len(verified),
                    branch=branch,
                ))
        return findings
