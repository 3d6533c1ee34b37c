"""
GraphQL access to the GitHub security advisory database.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from cachetools import TTLCache

from .rate_limit import make_rate_limited_session

logger = logging.getLogger(__name__)

SECURITY_VULNERABILITIES_QUERY = """
query($ecosystem: SecurityAdvisoryEcosystem!, $package: String!, $cursor: String) {
  securityVulnerabilities(ecosystem: $ecosystem, package: $package, first: 100, after: $cursor) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      severity
      vulnerableVersionRange
      firstPatchedVersion {
        identifier
      }
      advisory {
        ghsaId
      }
    }
  }
}
"""


class GraphQLError(Exception):
    """Raised when a GraphQL response carries errors."""


@dataclass
class Vulnerability:
    """One affected version range of a security advisory."""
    ghsa_id: str
    severity: str
    vulnerable_range: str
    first_patched: Optional[str] = None

    @classmethod
    def from_node(cls, node: Dict[str, Any]) -> 'Vulnerability':
        patched = (node.get('firstPatchedVersion') or {}).get('identifier')
        return cls(
            ghsa_id=(node.get('advisory') or {}).get('ghsaId', ''),
            severity=node.get('severity') or 'UNKNOWN',
            vulnerable_range=node.get('vulnerableVersionRange') or '',
            first_patched=patched.strip() if patched else None,
        )


class GraphQLClient:
    def __init__(self, token: str, api_url: str = "https://api.github.com/graphql",
                 session: Optional[requests.Session] = None):
        self.api_url = api_url
        self.session = session or make_rate_limited_session(token)
        # Advisory data does not change within a run
        self._cache: TTLCache = TTLCache(maxsize=100, ttl=3600)

    def execute_query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """POST a query; raises GraphQLError when the response lists errors."""
        cache_key = query + '|' + json.dumps(variables or {}, sort_keys=True)
        if cache_key in self._cache:
            return self._cache[cache_key]

        payload: Dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = variables
        try:
            response = self.session.post(self.api_url, json=payload, timeout=30)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"GraphQL query failed: {e}")
            raise

        if data.get("errors"):
            raise GraphQLError("; ".join(err.get("message", "unknown error") for err in data["errors"]))
        self._cache[cache_key] = data
        return data

    def list_security_vulnerabilities(self, package: str, ecosystem: str = "GO") -> List[Vulnerability]:
        """Every advisory vulnerability recorded for ``package``, following pagination."""
        found: List[Vulnerability] = []
        cursor: Optional[str] = None
        while True:
            variables = {"ecosystem": ecosystem, "package": package, "cursor": cursor}
            result = self.execute_query(SECURITY_VULNERABILITIES_QUERY, variables)
            connection = (result.get("data") or {}).get("securityVulnerabilities") or {}
            found.extend(Vulnerability.from_node(node) for node in connection.get("nodes") or [])
            page_info = connection.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")
        logger.debug(f"{len(found)} advisory entries for {package}")
        return found
