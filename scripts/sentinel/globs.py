"""Path glob matching for ignore rules and sibling discovery.

minimatch semantics: `*` stays within one segment, `**` spans segments,
`{a,b}` alternates, and wildcards never match a leading dot.
"""

from __future__ import annotations

from typing import Iterable

from wcmatch import glob

GLOB_FLAGS = glob.GLOBSTAR | glob.BRACE


def matches_glob(path: str, pattern: str) -> bool:
    return glob.globmatch(path, pattern, flags=GLOB_FLAGS)


def matches_ignore_pattern(path: str, patterns: Iterable[str]) -> str | None:
    """Return the first pattern that matches `path`, if any."""
    for pattern in patterns:
        if matches_glob(path, pattern):
            return pattern
    return None


def check_glob(pattern: str) -> None:
    """Raise ValueError if wcmatch cannot compile `pattern`."""
    try:
        glob.translate(pattern, flags=GLOB_FLAGS)
    except Exception as exc:  # wcmatch raises re.error, ValueError or PatternLimitException
        raise ValueError(str(exc) or type(exc).__name__) from exc
