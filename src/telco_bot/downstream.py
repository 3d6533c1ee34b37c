"""Heuristics for spotting downstream copies of upstream projects."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from .github.models import Repository

UPSTREAM_PROJECTS = (
    'prometheus', 'grafana', 'thanos', 'alertmanager', 'node-exporter', 'kube-state-metrics',
    'blackbox-exporter', 'pushgateway', 'statsd-exporter', 'configmap-reload', 'telemeter',
    'cluster-monitoring-operator', 'prom-label-proxy', 'apiserver-network-proxy', 'coredns',
    'etcd', 'oauth-proxy', 'opentelemetry', 'jaeger', 'tempo', 'loki', 'cortex', 'mimir',
)

DOWNSTREAM_DESCRIPTION_RE = re.compile(r'downstream|mirror|fork of|based on|vendored', re.IGNORECASE)


@dataclass
class DownstreamCandidate:
    repo: Repository
    reason: str
    upstream: Optional[str] = None


def match_upstream_name(name: str) -> Optional[str]:
    lowered = name.lower()
    for project in UPSTREAM_PROJECTS:
        if project in lowered:
            return project
    return None


def classify_downstream(repo: Repository) -> Optional[DownstreamCandidate]:
    """Why ``repo`` looks like a downstream copy, or None."""
    if repo.is_fork:
        return DownstreamCandidate(repo, 'fork', repo.parent_full_name)
    project = match_upstream_name(repo.name)
    if project:
        return DownstreamCandidate(repo, 'name matches upstream project', project)
    if repo.description and DOWNSTREAM_DESCRIPTION_RE.search(repo.description):
        return DownstreamCandidate(repo, 'description mentions downstream')
    return None


def find_downstream(repos: List[Repository], limit: Optional[int] = None) -> List[DownstreamCandidate]:
    found: List[DownstreamCandidate] = []
    for repo in repos:
        candidate = classify_downstream(repo)
        if candidate is None:
            continue
        found.append(candidate)
        if limit is not None and len(found) >= limit:
            break
    return found


def render_downstream_report(org: str, candidates: List[DownstreamCandidate]) -> str:
    lines = [f"# Downstream Repositories in {org}", "",
             f"**Candidates found:** {len(candidates)}", "",
             "| Repository | Reason | Upstream | Description |", "|---|---|---|---|"]
    for c in candidates:
        description = (c.repo.description or '').replace('|', '\\|').replace('\n', ' ')
        lines.append(f"| [`{c.repo.full_name}`]({c.repo.html_url}) | {c.reason} | {c.upstream or '-'} | {description} |")
    return '\n'.join(lines) + '\n'
