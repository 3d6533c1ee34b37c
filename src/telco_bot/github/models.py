"""
Typed views over the REST payloads the scanners consume.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class IssueState(str, Enum):
    OPEN = 'open'
    CLOSED = 'closed'


@dataclass
class Repository:
    """A scan target. Archived repositories never reach the checkers."""
    name: str
    full_name: str
    html_url: str = ""
    description: Optional[str] = None
    # Primary language as detected by GitHub, used for language filters
    language: Optional[str] = None
    pushed_at: Optional[str] = None
    is_fork: bool = False
    is_archived: bool = False
    default_branch: str = "main"
    # Upstream of a fork, when GitHub includes it in the payload
    parent_full_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.html_url:
            self.html_url = f"https://github.com/{self.full_name}"

    @property
    def owner(self) -> str:
        return self.full_name.split('/', 1)[0]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Repository':
        fields = dict(
            name=data.get('name'),
            full_name=data.get('full_name'),
            html_url=data.get('html_url'),
            description=data.get('description'),
            language=data.get('language'),
            pushed_at=data.get('pushed_at'),
            is_fork=bool(data.get('fork')),
            is_archived=bool(data.get('archived')),
            default_branch=data.get('default_branch'),
            parent_full_name=(data.get('parent') or {}).get('full_name'),
        )
        # Missing keys fall back to the dataclass defaults
        return cls(**{key: value for key, value in fields.items() if value is not None})


@dataclass
class Issue:
    number: int
    title: str
    state: IssueState = IssueState.OPEN
    html_url: str = ""
    body: Optional[str] = None

    @property
    def is_open(self) -> bool:
        return self.state == IssueState.OPEN

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Issue':
        return cls(
            number=int(data['number']),
            title=data.get('title', ''),
            state=IssueState(data.get('state', 'open')),
            html_url=data.get('html_url', ''),
            body=data.get('body'),
        )


@dataclass
class PullRequest:
    """Open pull request, matched by title against a remediation pattern."""
    number: int
    title: str
    html_url: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PullRequest':
        return cls(
            number=int(data['number']),
            title=data.get('title', ''),
            html_url=data.get('html_url', ''),
        )
