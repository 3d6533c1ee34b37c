"""Finding records shared by scanners, caches and reports."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class Severity(str, Enum):
    """Severity labels in report order."""
    CRITICAL = 'CRITICAL'
    HIGH = 'HIGH'
    MEDIUM = 'MEDIUM'
    INFO = 'INFO'


SEVERITY_ORDER = [s.value for s in Severity]


def severity_rank(label: str) -> int:
    """Position of a severity label in report order; unknown labels sort last."""
    try:
        return SEVERITY_ORDER.index(label.upper())
    except ValueError:
        return len(SEVERITY_ORDER)


@dataclass
class Finding:
    """One pattern that fired in one repository."""
    severity: str
    pattern: str
    description: str
    files: List[str] = field(default_factory=list)
    count: int = 0
    branch: str = ""
    # Checker specific values such as current and recommended versions
    metadata: Dict[str, str] = field(default_factory=dict)

    @property
    def first_file(self) -> str:
        return self.files[0] if self.files else ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Finding':
        files = data.get('files') or ''
        if isinstance(files, str):
            files = [f for f in files.split(',') if f]
        return cls(
            severity=data.get('severity', Severity.INFO.value),
            pattern=data.get('pattern', ''),
            description=data.get('description', ''),
            files=list(files),
            count=int(data.get('count', 0)),
            branch=data.get('branch', ''),
            metadata=dict(data.get('metadata') or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            'severity': self.severity,
            'pattern': self.pattern,
            'description': self.description,
            'files': ','.join(self.files),
            'count': self.count,
            'branch': self.branch,
        }
        if self.metadata:
            data['metadata'] = dict(self.metadata)
        return data
