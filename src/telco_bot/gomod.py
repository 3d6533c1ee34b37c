"""Minimal go.mod parsing: the ``go`` directive and ``require`` entries."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

GO_MOD = 'go.mod'

_GO_DIRECTIVE_RE = re.compile(r'^go\s+(\d+\.\d+(?:\.\d+)?)', re.MULTILINE)
_REQUIRE_LINE_RE = re.compile(r'^(\S+)\s+(\S+)(.*)$')


@dataclass
class Requirement:
    module: str
    version: str
    indirect: bool = False


def go_directive(go_mod: str) -> Optional[str]:
    """The version named by the ``go`` directive, e.g. ``1.21`` or ``1.22.3``."""
    match = _GO_DIRECTIVE_RE.search(go_mod)
    return match.group(1) if match else None


def _strip_comment(line: str) -> str:
    return line.split('//', 1)[0].strip()


def _parse_requirement(text: str) -> Optional[Requirement]:
    match = _REQUIRE_LINE_RE.match(text.strip())
    if not match:
        return None
    module, version, rest = match.groups()
    if module.startswith('//'):
        return None
    indirect = '// indirect' in rest or rest.strip().endswith('indirect')
    return Requirement(module=module, version=version, indirect=indirect)


def parse_requirements(go_mod: str) -> List[Requirement]:
    """Every ``require`` entry, single-line and block form."""
    requirements: List[Requirement] = []
    in_block = False
    for raw in go_mod.splitlines():
        line = raw.strip()
        if in_block:
            if _strip_comment(line) == ')':
                in_block = False
                continue
            if not _strip_comment(line):
                continue
            req = _parse_requirement(line)
            if req:
                requirements.append(req)
            continue
        if not line.startswith(('require ', 'require\t', 'require(')):
            continue
        rest = line[len('require'):].strip()
        if rest.startswith('('):
            in_block = True
            continue
        if rest:
            req = _parse_requirement(rest)
            if req:
                requirements.append(req)
    return requirements


def direct_requirement(go_mod: str, module: str) -> Optional[Requirement]:
    """The non-indirect requirement on ``module``, if any."""
    for req in parse_requirements(go_mod):
        if req.module == module and not req.indirect:
            return req
    return None
