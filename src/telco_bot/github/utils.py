"""Repository-name handling and REST pagination."""
from __future__ import annotations

import logging
import os
import re
from typing import Any, Dict, List, Optional

from requests import Session

from .rate_limit import request_with_rate_limit

logger = logging.getLogger(__name__)

_REPO_PREFIX_RE = re.compile(r'^(?:https?://)?(?:www\.)?github\.com/', re.IGNORECASE)


def normalize_repo_name(value: str) -> Optional[str]:
    """Reduce ``https://github.com/owner/repo``, ``github.com/owner/repo`` or
    ``owner/repo`` to ``owner/repo``. Returns None for anything else.
    """
    name = _REPO_PREFIX_RE.sub('', value.strip())
    name = name.rstrip('/')
    if name.endswith('.git'):
        name = name[:-4]
    parts = name.split('/')
    if len(parts) != 2 or not all(parts):
        return None
    return name


def read_repo_list(path: str) -> List[str]:
    """Read a repository list file.

    One repository per line in any form accepted by :func:`normalize_repo_name`.
    Blank lines and lines starting with ``#`` or ``//`` are ignored. A missing
    file is treated as an empty list.
    """
    if not path or not os.path.exists(path):
        return []
    repos: List[str] = []
    seen = set()
    with open(path, 'r', encoding='utf-8') as f:
        for line_no, raw in enumerate(f, 1):
            line = raw.strip()
            if not line or line.startswith('#') or line.startswith('//'):
                continue
            name = normalize_repo_name(line)
            if name is None:
                logger.warning(f"{path}:{line_no}: ignoring malformed repository entry {line!r}")
                continue
            if name not in seen:
                seen.add(name)
                repos.append(name)
    return repos


def paginate(
    session: Session,
    url: str,
    params: Optional[Dict[str, Any]] = None,
    timeout: int = 30,
    items_key: Optional[str] = None,
    page_size: int = 100,
) -> List[Dict[str, Any]]:
    """Collect every item of a paged REST listing.

    Follows ``page=N`` until GitHub stops advertising ``rel="next"`` or a
    page comes back empty. ``items_key`` selects the list inside search
    responses (``{"total_count": ..., "items": [...]}``).
    """
    query = dict(params or {}, per_page=min(page_size, 100))
    collected: List[Dict[str, Any]] = []
    page = 1
    while True:
        query['page'] = page
        response = request_with_rate_limit(session, 'GET', url, params=query, timeout=timeout, logger=logger)
        response.raise_for_status()
        body = response.json()
        batch = body.get(items_key, []) if items_key else body
        collected.extend(batch)
        if not batch or 'rel="next"' not in response.headers.get('Link', ''):
            return collected
        page += 1
