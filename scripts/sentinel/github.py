"""GitHub read access through the gh CLI.

All calls go through `_run_gh`, which retries transient 5xx responses and
turns permission/auth failures into typed exceptions.
"""
from __future__ import annotations

import base64
import json
import random
import subprocess
import time
from pathlib import Path
from typing import Mapping
from urllib.parse import quote

from . import log
from .pull_request import FILE_STATUSES, ChangedFile, PullRequest


class GitHubAuthError(Exception):
    """gh is not authenticated (missing or invalid token)."""


class CommentPermissionError(Exception):
    """Token lacks pull-requests: write permission."""


class TransientGitHubError(Exception):
    """GitHub API returned a transient error (5xx)."""


class PullRequestContextError(Exception):
    """No pull request number could be determined for this run."""


def _is_transient_error(stderr: str) -> bool:
    """Check if error is a transient GitHub API error (5xx)."""
    transient_codes = ("502", "503", "504")
    lower_stderr = stderr.lower()
    # Handle both gh CLI format "(http 503)" and raw "HTTP 503" formats
    return any(
        f"(http {code})" in lower_stderr or f"http {code}" in lower_stderr
        for code in transient_codes
    )


def _is_auth_error(stderr: str) -> bool:
    lower_stderr = stderr.lower()
    return any(
        s in lower_stderr
        for s in ("http 401", "bad credentials", "gh auth login", "authentication required")
    )


def _run_gh(
    args: list[str],
    *,
    check: bool = True,
    max_retries: int = 3,
    base_delay: float = 1.0,
) -> subprocess.CompletedProcess[str]:
    """Run a gh CLI command with retry logic for transient errors.

    Raises:
        GitHubAuthError: gh has no usable token
        CommentPermissionError: Token lacks pull-requests: write permission
        TransientGitHubError: GitHub API returned 5xx after all retries
        subprocess.CalledProcessError: Other gh CLI failures
    """
    for attempt in range(max_retries):
        result = subprocess.run(
            ["gh", *args], capture_output=True, text=True, check=False
        )

        if result.returncode == 0:
            return result

        stderr = result.stderr or ""

        if _is_auth_error(stderr):
            raise GitHubAuthError(
                "GitHub authentication failed. Provide github_token to the action "
                "(exported as GH_TOKEN for the gh CLI)."
            )

        # Check for permission errors (don't retry these)
        if any(s in stderr.lower() for s in ("403", "resource not accessible", "insufficient")):
            raise CommentPermissionError(
                "Unable to write to the pull request: token lacks permission.\n"
                "Add this to your workflow:\n"
                "permissions:\n"
                "  contents: read\n"
                "  pull-requests: write"
            )

        if _is_transient_error(stderr):
            if attempt < max_retries - 1:
                # Exponential backoff with jitter: 1s, 2s, 4s + random jitter
                delay = base_delay * (2 ** attempt) + random.uniform(0, 0.5)
                log.warn(
                    f"GitHub API error (attempt {attempt + 1}/{max_retries}), "
                    f"retrying in {delay:.1f}s..."
                )
                time.sleep(delay)
                continue
            raise TransientGitHubError(
                f"GitHub API returned transient error after {max_retries} attempts: "
                f"{stderr}"
            )

        if check:
            raise subprocess.CalledProcessError(
                result.returncode, result.args, result.stdout, result.stderr
            )
        return result

    # The loop must either return or raise. This code should be unreachable.
    raise RuntimeError("_run_gh retry loop exited unexpectedly")


def _api_json(endpoint: str, *extra: str) -> object:
    result = _run_gh(["api", *extra, endpoint])
    return json.loads(result.stdout or "null")


def resolve_pr_number(env: Mapping[str, str], explicit: int | None = None) -> int:
    """PR number from an explicit value or the workflow event payload."""
    if explicit:
        return explicit
    event_path = env.get("GITHUB_EVENT_PATH", "")
    if event_path:
        try:
            event = json.loads(Path(event_path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise PullRequestContextError(f"unable to read event payload {event_path}: {exc}") from exc
        pr = event.get("pull_request") if isinstance(event, dict) else None
        number = pr.get("number") if isinstance(pr, dict) else None
        if isinstance(number, int) and number > 0:
            return number
    raise PullRequestContextError("This action must be run on a pull_request event")


def list_pr_files(repo: str, pr_number: int) -> list[dict]:
    # --paginate without --slurp does not produce valid JSON.
    pages = _api_json(f"repos/{repo}/pulls/{pr_number}/files?per_page=100", "--paginate", "--slurp")
    if not isinstance(pages, list):
        return []
    files: list[dict] = []
    for page in pages:
        if isinstance(page, list):
            for item in page:
                if isinstance(item, dict):
                    files.append(item)
    return files


def _changed_file(item: dict) -> ChangedFile | None:
    filename = item.get("filename")
    if not isinstance(filename, str) or not filename.strip():
        return None
    patch = item.get("patch")
    previous = item.get("previous_filename")
    status = str(item.get("status") or "modified")
    if status not in FILE_STATUSES:
        status = "changed"
    return ChangedFile(
        filename=filename.strip(),
        status=status,
        additions=int(item.get("additions") or 0),
        deletions=int(item.get("deletions") or 0),
        patch=patch if isinstance(patch, str) else None,
        previous_filename=previous if isinstance(previous, str) and previous.strip() else None,
    )


def fetch_pull_request(repo: str, pr_number: int) -> PullRequest:
    data = _api_json(f"repos/{repo}/pulls/{pr_number}")
    if not isinstance(data, dict):
        raise PullRequestContextError(f"unexpected pull request payload for {repo}#{pr_number}")

    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    base = data.get("base") if isinstance(data.get("base"), dict) else {}
    head = data.get("head") if isinstance(data.get("head"), dict) else {}
    files = tuple(
        f for f in (_changed_file(item) for item in list_pr_files(repo, pr_number)) if f is not None
    )

    return PullRequest(
        number=pr_number,
        title=str(data.get("title") or ""),
        body=str(data.get("body") or ""),
        author=str(user.get("login") or "unknown"),
        base_branch=str(base.get("ref") or ""),
        head_branch=str(head.get("ref") or ""),
        base_sha=str(base.get("sha") or ""),
        head_sha=str(head.get("sha") or ""),
        files=files,
    )


def fetch_file_content(repo: str, path: str, ref: str | None = None) -> str | None:
    """Contents API read. Returns None for directories, binaries and errors."""
    endpoint = f"repos/{repo}/contents/{quote(path, safe='/')}"
    if ref:
        endpoint += f"?ref={quote(ref, safe='')}"
    try:
        data = _api_json(endpoint)
    except (subprocess.CalledProcessError, TransientGitHubError, json.JSONDecodeError) as exc:
        log.debug(f"Failed to fetch file {path} from GitHub: {exc}")
        return None
    if not isinstance(data, dict) or data.get("encoding") != "base64":
        return None
    try:
        return base64.b64decode(str(data.get("content") or "")).decode("utf-8")
    except (ValueError, UnicodeDecodeError) as exc:
        log.debug(f"Failed to decode {path}: {exc}")
        return None
