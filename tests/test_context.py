from __future__ import annotations

from sentinel.config import IgnoreConfig, SentinelConfig, parse_config
from sentinel.context import (
    MAX_RELATED_FILES,
    ROLE_CHANGED,
    ROLE_SIBLING,
    ContextAssembler,
    build_diff,
    sibling_pattern,
    truncate_for_context,
)
from sentinel.globs import matches_glob
from sentinel.pull_request import ChangedFile, PullRequest


class FakePlatform:
    name = "fake"

    def __init__(self, contents: dict[str, str], listings: dict[str, list[str]] | None = None) -> None:
        self.contents = contents
        self.listings = listings or {}
        self.listed: list[tuple[str, str | None]] = []

    def get_file_content(self, path, ref=None):
        return self.contents.get(path)

    def list_files_in_directory(self, directory, pattern=None):
        self.listed.append((directory, pattern))
        listing = self.listings.get(directory)
        if isinstance(listing, Exception):
            raise listing
        return list(listing or [])


def _pr(files, author: str = "alice") -> PullRequest:
    return PullRequest(
        number=7,
        title="Add feature",
        body="",
        author=author,
        base_branch="main",
        head_branch="feature",
        base_sha="base",
        head_sha="head",
        files=tuple(files),
    )


def _file(name: str, status: str = "modified", patch: str | None = "@@ -1 +1 @@\n+x") -> ChangedFile:
    return ChangedFile(filename=name, status=status, patch=patch)


def test_glob_star_stays_within_segment() -> None:
    assert matches_glob("src/a.ts", "src/*.ts")
    assert not matches_glob("src/lib/a.ts", "src/*.ts")
    assert matches_glob("src/lib/a.ts", "src/**")
    assert matches_glob("a.test.ts", "**/*.test.ts")
    assert matches_glob("src/deep/a.test.ts", "**/*.test.ts")
    assert not matches_glob("src/a.ts", "**/*.test.ts")
    assert matches_glob("dist/bundle.js", "dist/**")
    assert matches_glob("a1.py", "a?.py")
    assert not matches_glob("a/.py", "a?.py")


def test_glob_supports_brace_alternation() -> None:
    assert matches_glob("src/a.spec.ts", "**/*.{test,spec}.ts")
    assert matches_glob("a.test.ts", "**/*.{test,spec}.ts")
    assert not matches_glob("src/a.ts", "**/*.{test,spec}.ts")


def test_glob_wildcards_skip_dotfiles() -> None:
    assert not matches_glob(".eslintrc.js", "**/*.js")
    assert not matches_glob("src/.hidden.ts", "src/*.ts")
    assert matches_glob(".eslintrc.js", ".eslintrc.js")


def test_brace_ignore_pattern_filters_spec_and_test_files() -> None:
    config = SentinelConfig(ignore=IgnoreConfig(paths=("**/*.{test,spec}.ts",)))
    platform = FakePlatform({"src/a.ts": "a", "src/a.test.ts": "t", "src/a.spec.ts": "s"})
    files = [_file("src/a.ts"), _file("src/a.test.ts"), _file("src/a.spec.ts")]
    kept = ContextAssembler(platform, config).filter_files(files)
    assert [f.filename for f in kept] == ["src/a.ts"]


def test_ignore_pattern_filters_test_files() -> None:
    config = SentinelConfig(ignore=IgnoreConfig(paths=("**/*.test.ts",)))
    platform = FakePlatform({"src/a.ts": "a", "src/a.test.ts": "t"})
    ctx = ContextAssembler(platform, config).collect(_pr([_file("src/a.ts"), _file("src/a.test.ts")]))

    assert [fc.path for fc in ctx.changed_files] == ["src/a.ts"]
    assert ctx.changed_files[0].role == ROLE_CHANGED
    assert "a.test.ts" not in ctx.diff


def test_deleted_files_are_dropped() -> None:
    platform = FakePlatform({"keep.py": "k", "gone.py": "g"})
    ctx = ContextAssembler(platform, SentinelConfig()).collect(
        _pr([_file("gone.py", status="deleted"), _file("keep.py")])
    )
    assert [fc.path for fc in ctx.changed_files] == ["keep.py"]
    assert [f.filename for f in ctx.reviewed_files] == ["keep.py"]


def test_ignored_author_gets_no_files() -> None:
    config = parse_config({"ignore": {"authors": ["dependabot"]}})
    platform = FakePlatform({"a.py": "a"})
    ctx = ContextAssembler(platform, config).collect(_pr([_file("a.py")], author="dependabot"))
    assert ctx.changed_files == ()
    assert ctx.diff == ""


def test_fetch_failures_are_excluded_not_fatal() -> None:
    platform = FakePlatform({"b.py": "b"})
    ctx = ContextAssembler(platform, SentinelConfig()).collect(_pr([_file("a.py"), _file("b.py")]))

    assert [fc.path for fc in ctx.changed_files] == ["b.py"]
    assert [f.filename for f in ctx.reviewed_files] == ["b.py"]
    # The combined diff still covers every eligible file.
    assert "diff --git a/a.py b/a.py" in ctx.diff


def test_build_diff_preserves_order_and_skips_missing_patches() -> None:
    diff = build_diff([_file("b.py", patch="P1"), _file("a.py", patch=None), _file("c.py", patch="P3")])
    assert diff == "diff --git a/b.py b/b.py\nP1\ndiff --git a/c.py b/c.py\nP3"


def test_review_context_carries_config_and_conventions() -> None:
    config = parse_config(
        {
            "instructions": ["No print statements."],
            "patterns": [{"category": "style", "pattern": "Use f-strings"}],
        }
    )
    ctx = ContextAssembler(FakePlatform({}), config, "House rules").collect(_pr([]))
    assert ctx.review_context.conventions == "House rules"
    assert ctx.review_context.instructions == ("No print statements.",)
    assert ctx.review_context.patterns[0].pattern == "Use f-strings"


def test_sibling_pattern() -> None:
    assert sibling_pattern("src/api/user.ts") == ("src/api", "src/api/*.ts")
    assert sibling_pattern("setup.py") == (".", "*.py")


def test_siblings_capped_per_file_and_exclude_changed() -> None:
    platform = FakePlatform(
        {
            "src/a.ts": "a",
            "src/b.ts": "b",
            "src/c.ts": "c",
            "src/d.ts": "d",
            "src/e.ts": "e",
        },
        listings={"src": ["src/a.ts", "src/b.ts", "src/c.ts", "src/d.ts", "src/e.ts"]},
    )
    ctx = ContextAssembler(platform, SentinelConfig()).collect(_pr([_file("src/a.ts"), _file("src/b.ts")]))

    related = [fc.path for fc in ctx.related_files]
    assert "src/a.ts" not in related
    assert "src/b.ts" not in related
    # two from the first changed file, then the next two unseen for the second
    assert related == ["src/c.ts", "src/d.ts", "src/e.ts"]
    assert all(fc.role == ROLE_SIBLING for fc in ctx.related_files)
    assert platform.listed[0] == ("src", "src/*.ts")


def test_related_files_capped_overall() -> None:
    files = [_file(f"pkg{i}/main.py") for i in range(4)]
    contents = {f"pkg{i}/{name}.py": name for i in range(4) for name in ("main", "x", "y", "z")}
    listings = {f"pkg{i}": [f"pkg{i}/x.py", f"pkg{i}/y.py", f"pkg{i}/z.py"] for i in range(4)}
    platform = FakePlatform(contents, listings)

    ctx = ContextAssembler(platform, SentinelConfig()).collect(_pr(files))

    assert len(ctx.related_files) == MAX_RELATED_FILES
    assert [fc.path for fc in ctx.related_files][:2] == ["pkg0/x.py", "pkg0/y.py"]


def test_sibling_listing_failure_is_best_effort() -> None:
    platform = FakePlatform({"src/a.ts": "a"}, listings={"src": OSError("boom")})
    ctx = ContextAssembler(platform, SentinelConfig()).collect(_pr([_file("src/a.ts")]))
    assert [fc.path for fc in ctx.changed_files] == ["src/a.ts"]
    assert ctx.related_files == ()


def test_sibling_content_is_truncated() -> None:
    long_text = "\n".join(f"line {i}" for i in range(150))
    platform = FakePlatform({"src/a.ts": "a", "src/big.ts": long_text}, listings={"src": ["src/big.ts"]})
    ctx = ContextAssembler(platform, SentinelConfig()).collect(_pr([_file("src/a.ts")]))

    content = ctx.related_files[0].content
    assert content.endswith("... (truncated, 50 more lines)")
    assert "line 99" in content
    assert "line 100" not in content


def test_truncate_for_context_short_content_untouched() -> None:
    assert truncate_for_context("a\nb", max_lines=2) == "a\nb"
    assert truncate_for_context("a\nb\nc", max_lines=2) == "a\nb\n... (truncated, 1 more lines)"
