from __future__ import annotations

from pathlib import Path

import sentinel.github as gh
import sentinel.github_reviews as github_reviews
from sentinel.github_platform import GitHubPlatform
from sentinel.pull_request import ReviewComment


def _tree(tmp_path: Path) -> None:
    for rel in ("src/a.ts", "src/b.ts", "src/c.py", "src/nested/d.ts", "node_modules/x/e.ts"):
        path = tmp_path / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")


def test_reads_local_checkout_first(tmp_path, monkeypatch):
    _tree(tmp_path)
    monkeypatch.setattr(gh, "fetch_file_content", lambda *a: "remote")

    platform = GitHubPlatform("o/r", 1, tmp_path)
    assert platform.get_file_content("src/a.ts") == "src/a.ts"
    assert platform.get_file_content("src/missing.ts") == "remote"


def test_remote_fallback_uses_head_sha(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(gh, "fetch_file_content", lambda repo, path, ref: calls.append((repo, path, ref)))

    platform = GitHubPlatform("o/r", 1, tmp_path)
    platform._head_sha = "h1"
    assert platform.get_file_content("x.py") is None
    assert calls == [("o/r", "x.py", "h1")]


def test_lists_siblings_by_glob_skipping_vendor_dirs(tmp_path):
    _tree(tmp_path)
    platform = GitHubPlatform("o/r", 1, tmp_path)

    assert platform.list_files_in_directory("src", "src/*.ts") == ["src/a.ts", "src/b.ts"]
    assert platform.list_files_in_directory(".", "**/*.ts") == [
        "src/a.ts",
        "src/b.ts",
        "src/nested/d.ts",
    ]
    assert platform.list_files_in_directory("nope") == []


def test_sibling_glob_skips_dotfiles(tmp_path):
    _tree(tmp_path)
    (tmp_path / "src" / ".hidden.ts").write_text("x", encoding="utf-8")
    platform = GitHubPlatform("o/r", 1, tmp_path)

    assert platform.list_files_in_directory("src", "src/*.ts") == ["src/a.ts", "src/b.ts"]


def test_post_methods_delegate_to_reviews(tmp_path, monkeypatch):
    reviews = []
    labels = []
    monkeypatch.setattr(github_reviews, "create_pr_review", lambda **kw: reviews.append(kw))
    monkeypatch.setattr(github_reviews, "add_labels", lambda **kw: labels.append(kw))

    platform = GitHubPlatform("o/r", 3, tmp_path)
    platform._head_sha = "h1"
    platform.post_review_summary("summary")
    platform.post_inline_comments([ReviewComment(path="a.py", line=1, body="b")])
    platform.post_inline_comments([])
    platform.add_labels(["effort:2"])
    platform.add_labels([])

    assert reviews[0] == {"repo": "o/r", "pr_number": 3, "body": "summary"}
    assert reviews[1]["commit_id"] == "h1"
    assert len(reviews) == 2
    assert labels == [{"repo": "o/r", "pr_number": 3, "labels": ["effort:2"]}]
