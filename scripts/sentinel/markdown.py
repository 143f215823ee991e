"""Markdown helpers for review comments.

Keep surface area small: severity icons, the effort meter and blob links.
"""

from __future__ import annotations

import os
from urllib.parse import quote

_SEVERITY_ICON = {
    "critical": "\U0001F534",  # red circle
    "warning": "\U0001F7E1",  # yellow circle
    "suggestion": "\U0001F4A1",  # light bulb
    "nitpick": "\U0001F4DD",  # memo
}
_DEFAULT_ICON = "ℹ️"

STAR_FULL = "★"
STAR_EMPTY = "☆"


def severity_icon(severity: str | None) -> str:
    text = str(severity or "").strip().lower()
    return _SEVERITY_ICON.get(text, _DEFAULT_ICON)


def effort_stars(score: int, *, out_of: int = 5) -> str:
    """Five-slot meter, e.g. 3 -> ★★★☆☆."""
    filled = max(0, min(out_of, score))
    return STAR_FULL * filled + STAR_EMPTY * (out_of - filled)


def repo_context(
    *,
    server: str | None = None,
    repo: str | None = None,
    sha: str | None = None,
) -> tuple[str, str, str]:
    """Resolve GitHub context used for blob links."""
    resolved_server = (server or os.environ.get("GITHUB_SERVER_URL") or "https://github.com").rstrip(
        "/"
    )
    resolved_repo = (repo or os.environ.get("GITHUB_REPOSITORY") or "").strip()
    resolved_sha = (sha or os.environ.get("GITHUB_SHA") or "").strip()
    return resolved_server, resolved_repo, resolved_sha


def blob_url(
    path: str,
    *,
    server: str,
    repo: str,
    sha: str,
    line: int | None = None,
) -> str | None:
    server = (server or "").rstrip("/")
    repo = (repo or "").strip()
    sha = (sha or "").strip()
    path = (path or "").strip()

    if not (server and repo and sha and path):
        return None
    url = f"{server}/{repo}/blob/{sha}/{quote(path, safe='/')}"
    if line is not None and line > 0:
        url += f"#L{line}"
    return url


def _location_label(path: str, line: int | None) -> str:
    path = (path or "").strip()
    if line is not None and line > 0:
        return f"{path}:{line}"
    return path


def location_link(
    path: str,
    line: int | None,
    *,
    server: str = "",
    repo: str = "",
    sha: str = "",
) -> str:
    """`path:line` in backticks, linked to the blob when repo context is known."""
    label = _location_label(path, line)
    url = blob_url(path, server=server, repo=repo, sha=sha, line=line)
    if not url:
        return f"`{label}`"
    return f"[`{label}`]({url})"
