"""Base class for checkers that grep repository sources."""
from __future__ import annotations

import logging
from abc import abstractmethod
from typing import List, Optional, Sequence

from ..clones import ensure_repo_updated
from ..findings import Finding
from ..github.models import Repository
from ..pipeline import Checker, ScanError, ScanMode
from ..scanner import CentralizedConfigFilter, LanguageProfile, LocalScanner, RemoteScanner

logger = logging.getLogger(__name__)


class ContentChecker(Checker):
    """Runs language pattern sets through a local clone or the code search API."""

    manifest_path: Optional[str] = None
    post_filters: Sequence[CentralizedConfigFilter] = ()

    def __init__(self, client, mode: ScanMode = ScanMode.API, local_repos_dir: Optional[str] = None,
                 token: Optional[str] = None, local_scanner: Optional[LocalScanner] = None,
                 remote_scanner: Optional[RemoteScanner] = None):
        self.client = client
        self.mode = ScanMode(mode)
        self.local_repos_dir = local_repos_dir
        self.token = token
        self.local_scanner = local_scanner or LocalScanner()
        self.remote_scanner = remote_scanner or RemoteScanner(client)
        if self.mode == ScanMode.CLONE and not local_repos_dir:
            raise ValueError("clone mode needs a local repositories directory")

    @abstractmethod
    def profiles_for(self, repo: Repository) -> List[LanguageProfile]:
        """Pattern sets that apply to ``repo``."""

    def check(self, repo: Repository, manifest: Optional[str]) -> List[Finding]:
        profiles = self.profiles_for(repo)
        if not profiles:
            return []
        if self.mode == ScanMode.CLONE:
            return self._check_clone(repo, profiles)
        return self._check_remote(repo, profiles)

    def _check_clone(self, repo: Repository, profiles: List[LanguageProfile]) -> List[Finding]:
        path = ensure_repo_updated(repo.full_name, repo.default_branch, self.local_repos_dir, self.token)
        if path is None:
            raise ScanError(f"could not clone or update {repo.full_name}")
        findings: List[Finding] = []
        for profile in profiles:
            findings.extend(self.local_scanner.scan(path, profile, branch=repo.default_branch))
        for post_filter in self.post_filters:
            findings = post_filter.apply(
                findings, lambda rel, marker=post_filter.marker: self.local_scanner.file_contains(path, rel, marker))
        return findings

    def _check_remote(self, repo: Repository, profiles: List[LanguageProfile]) -> List[Finding]:
        findings: List[Finding] = []
        for profile in profiles:
            findings.extend(self.remote_scanner.scan(repo, profile))
        for post_filter in self.post_filters:
            findings = post_filter.apply(
                findings, lambda rel, marker=post_filter.marker: self.remote_scanner.file_contains(repo, rel, marker))
        return findings
