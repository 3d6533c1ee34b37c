"""
Issue lifecycle management.

Each (repository, check key) pair owns at most one issue, titled with the
check key. :class:`IssueLifecycleManager` drives it through an explicit state
machine: the issue's current state (none, open, closed) and the desired state
(should exist, should not exist) select one action from :data:`TRANSITIONS`.

A closed issue whose comments contain one reading exactly ``closed`` (case and
surrounding whitespace ignored) is never reopened; its body is still refreshed.
"""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple

from .caches import atomic_write_text, file_lock
from .github.models import Issue, IssueState

logger = logging.getLogger(__name__)

CLOSE_OVERRIDE_COMMENT = 'closed'
DEFAULT_RESOLUTION_COMMENT = (
    "The condition tracked by this issue is no longer detected. "
    "Closing automatically; it will be reopened if the condition returns."
)


class ExistingState(str, Enum):
    NONE = 'none'
    OPEN = 'open'
    CLOSED = 'closed'


class DesiredState(str, Enum):
    SHOULD_EXIST = 'should_exist'
    SHOULD_NOT_EXIST = 'should_not_exist'


class IssueAction(str, Enum):
    CREATE = 'create'
    UPDATE = 'update'
    REOPEN = 'reopen'
    UPDATE_CLOSED = 'update_closed'
    CLOSE = 'close'
    NOOP = 'noop'


TRANSITIONS: Dict[Tuple[ExistingState, DesiredState], IssueAction] = {
    (ExistingState.NONE, DesiredState.SHOULD_EXIST): IssueAction.CREATE,
    (ExistingState.OPEN, DesiredState.SHOULD_EXIST): IssueAction.UPDATE,
    (ExistingState.CLOSED, DesiredState.SHOULD_EXIST): IssueAction.REOPEN,
    (ExistingState.NONE, DesiredState.SHOULD_NOT_EXIST): IssueAction.NOOP,
    (ExistingState.OPEN, DesiredState.SHOULD_NOT_EXIST): IssueAction.CLOSE,
    (ExistingState.CLOSED, DesiredState.SHOULD_NOT_EXIST): IssueAction.NOOP,
}


def existing_state(issue: Optional[Issue]) -> ExistingState:
    if issue is None:
        return ExistingState.NONE
    return ExistingState.OPEN if issue.state == IssueState.OPEN else ExistingState.CLOSED


def has_close_override(comments: Iterable[str]) -> bool:
    return any((c or '').strip().lower() == CLOSE_OVERRIDE_COMMENT for c in comments)


@dataclass
class SyncResult:
    repo: str
    title: str
    action: IssueAction
    number: Optional[int] = None
    url: str = ''


class IssueIndex:
    """Remembers issue numbers per repository and title in a JSON file."""

    def __init__(self, path: str):
        self.path = path
        self._data: Dict[str, Dict[str, int]] = self._read()

    def _read(self) -> Dict[str, Dict[str, int]]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Discarding unreadable issue index {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, repo: str, title: str) -> Optional[int]:
        return self._data.get(repo, {}).get(title)

    def set(self, repo: str, title: str, number: int) -> None:
        if self.get(repo, title) == number:
            return
        self._data.setdefault(repo, {})[title] = number
        try:
            with file_lock(self.path):
                merged = self._read()
                merged.setdefault(repo, {})[title] = number
                atomic_write_text(self.path, json.dumps(merged, indent=2, sort_keys=True))
            self._data = merged
        except OSError as e:
            logger.warning(f"Could not update issue index {self.path}: {e}")

    def forget(self, repo: str, title: str) -> None:
        self._data.get(repo, {}).pop(title, None)


class IssueLifecycleManager:
    """Create, update, reopen and close one issue per (repository, check key)."""

    def __init__(self, client, index: Optional[IssueIndex] = None, dry_run: bool = False,
                 resolution_comment: str = DEFAULT_RESOLUTION_COMMENT):
        self.client = client
        self.index = index
        self.dry_run = dry_run
        self.resolution_comment = resolution_comment

    def find_issue(self, repo: str, title: str) -> Optional[Issue]:
        """Locate the canonical issue for ``title``.

        The remembered number is tried first; otherwise the lowest-numbered
        issue with exactly this title wins.
        """
        if self.index is not None:
            number = self.index.get(repo, title)
            if number is not None:
                issue = self.client.get_issue(repo, number)
                if issue is not None and issue.title == title:
                    return issue
                logger.debug(f"Remembered issue #{number} in {repo} no longer matches '{title}'")
                self.index.forget(repo, title)

        matches = sorted(self.client.search_issues_by_title(repo, title), key=lambda i: i.number)
        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(f"{len(matches)} issues titled '{title}' in {repo}; using #{matches[0].number}")
        issue = matches[0]
        if self.index is not None and not self.dry_run:
            self.index.set(repo, title, issue.number)
        return issue

    def plan(self, repo: str, issue: Optional[Issue], desired: DesiredState,
             reopen: bool = True) -> IssueAction:
        """Pick the transition for ``issue``, honouring the close override."""
        action = TRANSITIONS[(existing_state(issue), DesiredState(desired))]
        if action != IssueAction.REOPEN:
            return action
        if not reopen:
            return IssueAction.UPDATE_CLOSED
        if has_close_override(self.client.list_issue_comments(repo, issue.number)):
            logger.info(f"Issue #{issue.number} in {repo} was closed by request; not reopening")
            return IssueAction.UPDATE_CLOSED
        return action

    def sync(self, repo: str, check_key: str, desired: DesiredState, body: str = '',
             reopen: bool = True) -> SyncResult:
        """Bring the issue titled ``check_key`` in ``repo`` to ``desired``.

        Raises whatever the client raises for failed API calls.
        """
        issue = self.find_issue(repo, check_key)
        action = self.plan(repo, issue, desired, reopen)

        number = issue.number if issue else None
        url = issue.html_url if issue else ''
        if self.dry_run:
            logger.info(f"[dry-run] {action.value} issue '{check_key}' in {repo}")
            return SyncResult(repo, check_key, action, number, url)

        if action == IssueAction.CREATE:
            created = self.client.create_issue(repo, check_key, body)
            number, url = created.number, created.html_url
            if self.index is not None:
                self.index.set(repo, check_key, created.number)
            logger.info(f"Created issue #{number} '{check_key}' in {repo}")
        elif action in (IssueAction.UPDATE, IssueAction.UPDATE_CLOSED):
            if issue.body != body:
                self.client.update_issue(repo, issue.number, body=body)
                logger.info(f"Updated issue #{issue.number} in {repo}")
            else:
                logger.debug(f"Issue #{issue.number} in {repo} already up to date")
        elif action == IssueAction.REOPEN:
            self.client.update_issue(repo, issue.number, body=body, state=IssueState.OPEN.value)
            logger.info(f"Reopened issue #{issue.number} in {repo}")
        elif action == IssueAction.CLOSE:
            self.client.add_issue_comment(repo, issue.number, self.resolution_comment)
            self.client.update_issue(repo, issue.number, state=IssueState.CLOSED.value)
            logger.info(f"Closed issue #{issue.number} in {repo}")
        return SyncResult(repo, check_key, action, number, url)
