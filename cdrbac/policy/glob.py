"""
Segment-wise glob matching for resource identifiers.

Resource ids are ``/`` separated paths such as ``myapp/prod``. A pattern
matches only ids with the same number of segments; inside a segment the usual
``fnmatch`` wildcards apply, so ``*`` never crosses a ``/``. Empty segments
(``""``, ``myapp/``, ``/prod``) are never matched, not even by ``*``.
"""

from fnmatch import fnmatchcase
from functools import lru_cache
from typing import Tuple

SEPARATOR = "/"
_GLOB_CHARS = frozenset("*?[")


@lru_cache(maxsize=1024)
def _segments(value: str) -> Tuple[str, ...]:
    return tuple(value.split(SEPARATOR))


def has_glob(segment: str) -> bool:
    """True if the segment contains a wildcard character."""
    return any(ch in _GLOB_CHARS for ch in segment)


def match_resource(pattern: str, resource_id: str) -> bool:
    """Check whether ``resource_id`` matches the glob ``pattern``."""
    pattern_parts = _segments(pattern)
    id_parts = _segments(resource_id)

    if len(pattern_parts) != len(id_parts):
        return False

    return all(
        part and fnmatchcase(part, pat)
        for pat, part in zip(pattern_parts, id_parts)
    )


def pattern_covers(general: str, specific: str) -> bool:
    """
    True if every id matched by ``specific`` is also matched by ``general``.

    Conservative: only a bare ``*`` segment or an identical segment counts as
    covering a wildcard segment.
    """
    general_parts = _segments(general)
    specific_parts = _segments(specific)

    if len(general_parts) != len(specific_parts):
        return False

    for gen, narrow in zip(general_parts, specific_parts):
        if gen == "*" or gen == narrow:
            continue
        if has_glob(narrow) or not fnmatchcase(narrow, gen):
            return False

    return True
