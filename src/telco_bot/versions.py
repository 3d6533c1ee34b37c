"""
Version parsing and comparison.

Versions are dotted numeric strings with an optional ``v`` or ``go`` prefix,
compared on up to three components (missing components count as zero). Go
module pseudo-versions of the form ``v0.0.0-<timestamp>-<hash>`` sort below
every release and are ordered among themselves by their timestamp.
"""
from __future__ import annotations

import re
from enum import Enum
from typing import Iterable, List, NamedTuple, Optional, Sequence, Tuple

_PREFIX_RE = re.compile(r'^(?:go|v)', re.IGNORECASE)
_PSEUDO_RE = re.compile(r'^0\.0\.0-(?:[0-9A-Za-z.]+\.)?(\d{8,14})-([0-9a-f]+)$')
_VERSION_RE = re.compile(r'^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-([0-9A-Za-z.-]+))?$')

GO_STABLE_TOKEN_RE = re.compile(r'go(\d+\.\d+(?:\.\d+)?)(?![0-9A-Za-z])')
ARCHIVED_MARKER = 'Archived versions'


def _prerelease_key(tag: str) -> Tuple[Tuple[int, int, str], ...]:
    """Dot-separated identifiers; numeric ones compare as integers and rank first."""
    return tuple((0, int(part), '') if part.isdigit() else (1, 0, part)
                 for part in re.split(r'[.-]', tag))


class VersionStatus(str, Enum):
    CURRENT = 'current'
    OUTDATED = 'outdated'
    AHEAD = 'ahead'


class Version(NamedTuple):
    raw: str
    parts: Tuple[int, int, int]
    prerelease: str = ''
    pseudo_timestamp: str = ''

    @property
    def is_pseudo(self) -> bool:
        return bool(self.pseudo_timestamp)

    @property
    def major_minor(self) -> str:
        return f"{self.parts[0]}.{self.parts[1]}"

    def sort_key(self, major_only: bool = False) -> tuple:
        """Key giving a strict total order over parsed versions."""
        if self.is_pseudo:
            return (0, self.pseudo_timestamp)
        parts = self.parts[:2] if major_only else self.parts
        if major_only:
            return (1, parts, 1, ())
        # A pre-release sorts below the release it precedes
        if self.prerelease:
            return (1, parts, 0, _prerelease_key(self.prerelease))
        return (1, parts, 1, ())


def parse_version(value: str) -> Version:
    """Parse ``value`` into a :class:`Version`.

    Raises:
        ValueError: if ``value`` is not a recognizable version
    """
    text = value.strip()
    text = _PREFIX_RE.sub('', text)
    text = text.split('+', 1)[0]  # build metadata such as +incompatible
    pseudo = _PSEUDO_RE.match(text)
    if pseudo:
        return Version(raw=value, parts=(0, 0, 0), pseudo_timestamp=pseudo.group(1))
    match = _VERSION_RE.match(text)
    if not match:
        raise ValueError(f"Not a version: {value!r}")
    major, minor, patch, pre = match.groups()
    return Version(
        raw=value,
        parts=(int(major), int(minor or 0), int(patch or 0)),
        prerelease=pre or '',
    )


def _key(value: str, major_only: bool = False) -> tuple:
    return parse_version(value).sort_key(major_only)


def is_newer(a: str, b: str, major_only: bool = False) -> bool:
    """True when ``a`` sorts strictly after ``b``."""
    return _key(a, major_only) > _key(b, major_only)


def version_lt(a: str, b: str) -> bool:
    return _key(a) < _key(b)


def compare(current: str, latest: str, major_only: bool = False) -> VersionStatus:
    """Classify ``current`` against ``latest``."""
    cur, lat = _key(current, major_only), _key(latest, major_only)
    if cur < lat:
        return VersionStatus.OUTDATED
    if cur > lat:
        return VersionStatus.AHEAD
    return VersionStatus.CURRENT


def sort_versions(values: Iterable[str], major_only: bool = False) -> List[str]:
    return sorted(values, key=lambda v: _key(v, major_only))


def parse_go_stable_versions(html: str) -> List[str]:
    """Stable Go releases listed on https://go.dev/dl/, newest first.

    Only the part of the page before the "Archived versions" heading is
    considered; release candidates and betas are ignored.
    """
    stable_section = html.split(ARCHIVED_MARKER, 1)[0]
    seen = set()
    versions: List[str] = []
    for match in GO_STABLE_TOKEN_RE.finditer(stable_section):
        version = match.group(1)
        if version not in seen:
            seen.add(version)
            versions.append(version)
    return sorted(versions, key=_key, reverse=True)


def stable_lines(stable_versions: Sequence[str]) -> List[str]:
    """Distinct major.minor lines of ``stable_versions``, oldest first."""
    lines = {parse_version(v).major_minor for v in stable_versions}
    return sort_versions(lines)


def classify_against_feed(current: str, stable_versions: Sequence[str],
                          major_only: bool = True) -> Tuple[VersionStatus, Optional[str]]:
    """Compare ``current`` with a feed of stable releases.

    In major-only mode membership is judged on major.minor; otherwise the exact
    version must be listed. Returns the status and, for outdated versions, the
    recommended upgrade: the lowest stable entry strictly newer than ``current``.
    """
    if not stable_versions:
        raise ValueError("Stable version feed is empty")
    candidates = stable_lines(stable_versions) if major_only else sort_versions(stable_versions)
    cur_key = _key(current, major_only)
    if any(_key(v, major_only) == cur_key for v in candidates):
        return VersionStatus.CURRENT, None
    newer = [v for v in candidates if _key(v, major_only) > cur_key]
    if newer:
        return VersionStatus.OUTDATED, newer[0]
    return VersionStatus.AHEAD, None
