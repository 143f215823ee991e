"""GitHub PR publishing utilities.

This module is intentionally small: create a PR review (optionally with
inline comments) and add labels.
"""

from __future__ import annotations

import json
import os
import tempfile
from typing import Sequence

from . import github as gh
from .pull_request import ReviewComment


def _post_json(endpoint: str, payload: dict[str, object]) -> dict:
    with tempfile.NamedTemporaryFile("w", encoding="utf-8", suffix=".json", delete=False) as handle:
        json.dump(payload, handle)
        handle.flush()
        tmp_path = handle.name

    try:
        result = gh._run_gh(["api", "-X", "POST", endpoint, "--input", tmp_path])
    finally:
        os.unlink(tmp_path)
    data = json.loads(result.stdout or "{}")
    return data if isinstance(data, dict) else {}


def create_pr_review(
    *,
    repo: str,
    pr_number: int,
    body: str,
    comments: Sequence[ReviewComment] = (),
    commit_id: str | None = None,
) -> dict:
    payload: dict[str, object] = {"event": "COMMENT"}
    if body:
        payload["body"] = body
    if commit_id:
        payload["commit_id"] = commit_id
    if comments:
        payload["comments"] = [
            {"path": c.path, "line": c.line, "side": c.side, "body": c.body} for c in comments
        ]
    return _post_json(f"repos/{repo}/pulls/{pr_number}/reviews", payload)


def add_labels(*, repo: str, pr_number: int, labels: Sequence[str]) -> dict | list:
    result = gh._run_gh(
        [
            "api",
            "-X",
            "POST",
            f"repos/{repo}/issues/{pr_number}/labels",
            *[arg for label in labels for arg in ("-f", f"labels[]={label}")],
        ]
    )
    return json.loads(result.stdout or "[]")
