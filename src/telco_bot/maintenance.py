"""Rebuilding the classification caches and closing issues on repositories that are no longer scanned."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Sequence, Set

import requests

from .caches import ClassificationCache, ClassificationKind
from .gomod import GO_MOD
from .issues import DesiredState, IssueLifecycleManager, SyncResult

logger = logging.getLogger(__name__)


@dataclass
class CacheRefresh:
    """Fresh classification of every non-archived repository."""
    classified: Dict[ClassificationKind, Set[str]] = field(
        default_factory=lambda: {kind: set() for kind in ClassificationKind})
    active: Set[str] = field(default_factory=set)
    failed_orgs: List[str] = field(default_factory=list)

    def count(self, kind: ClassificationKind) -> int:
        return len(self.classified[kind])


def classify_organizations(client, orgs: Sequence[str], inactivity_days: int,
                           manifest_path: Optional[str] = GO_MOD,
                           now: Optional[datetime] = None) -> CacheRefresh:
    """Classify every repository from scratch, ignoring existing caches."""
    cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=inactivity_days)
    refresh = CacheRefresh()
    for org in orgs:
        logger.info(f"Classifying repositories of {org}")
        try:
            repos = client.list_organization_repositories(org)
        except requests.RequestException as e:
            logger.error(f"Error fetching repositories for {org}: {e}")
            refresh.failed_orgs.append(org)
            continue
        for repo in repos:
            name = repo.full_name
            if repo.is_fork:
                refresh.classified[ClassificationKind.FORK].add(name)
                continue
            last_commit = client.get_last_commit_date(name, repo.default_branch)
            if last_commit is not None and last_commit < cutoff:
                refresh.classified[ClassificationKind.ABANDONED].add(name)
                continue
            if manifest_path and client.fetch_raw_file(name, repo.default_branch, manifest_path) is None:
                refresh.classified[ClassificationKind.NO_MANIFEST].add(name)
                continue
            refresh.active.add(name)
    return refresh


def write_caches(classification: ClassificationCache, refresh: CacheRefresh, merge: bool = False) -> None:
    """Persist a refresh, replacing the cache files unless ``merge`` is set.

    Organizations whose listing failed keep their previous entries.
    """
    for kind in ClassificationKind:
        entries = set(refresh.classified[kind])
        if merge:
            entries |= set(classification.entries(kind))
        elif refresh.failed_orgs:
            prefixes = tuple(f"{org}/" for org in refresh.failed_orgs)
            entries |= {name for name in classification.entries(kind) if name.startswith(prefixes)}
        classification.replace(kind, entries)
        logger.info(f"{classification.path(kind)}: {len(entries)} repositories")


def close_stale_issues(issues: IssueLifecycleManager, repos: Sequence[str],
                       titles: Sequence[str]) -> List[SyncResult]:
    """Close the open issues titled ``titles`` on each of ``repos``."""
    results: List[SyncResult] = []
    for repo in repos:
        for title in titles:
            try:
                result = issues.sync(repo, title, DesiredState.SHOULD_NOT_EXIST)
            except requests.RequestException as e:
                logger.error(f"Could not close '{title}' on {repo}: {e}")
                continue
            results.append(result)
    return results
