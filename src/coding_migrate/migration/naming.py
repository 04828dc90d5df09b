"""Target repository and workspace naming."""

import hashlib
import re
from dataclasses import dataclass

_INVALID = re.compile(r'[^A-Za-z0-9._]')


@dataclass(frozen=True)
class NamingRule:
    """How a ``project/repository`` pair becomes a GitHub repository name."""

    separator: str = '-'
    replacement: str = '_'
    lowercase: bool = False
    prefix: str = ''


DEFAULT_RULE = NamingRule()


def normalize_segment(segment: str, rule: NamingRule = DEFAULT_RULE) -> str:
    """Replace every character outside ``[A-Za-z0-9._]`` with ``rule.replacement``.

    Idempotent: normalizing an already normalized segment returns it unchanged.
    """
    normalized = _INVALID.sub(rule.replacement, segment)
    if rule.lowercase:
        normalized = normalized.lower()
    return normalized


def target_name(group: str, unit: str, rule: NamingRule = DEFAULT_RULE) -> str:
    """GitHub repository name for repository ``unit`` of project ``group``.

    >>> target_name('teamA', 'svc-x')
    'teamA-svc_x'
    """
    return (
        f'{rule.prefix}{normalize_segment(group, rule)}'
        f'{rule.separator}{normalize_segment(unit, rule)}'
    )


def workspace_name(group: str, unit: str) -> str:
    """Directory name of the local workspace for ``group/unit``.

    The digest of the raw pair keeps names unique even when normalization
    maps two pairs onto the same readable part.
    """
    digest = hashlib.sha1(f'{group}/{unit}'.encode('utf-8')).hexdigest()[:10]
    return f'{normalize_segment(group)}_{normalize_segment(unit)}_{digest}'
