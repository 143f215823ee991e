#!/usr/bin/env python3
"""Run one Code Sentinel review pass over a pull request.

Loads .sentinel.yml, collects context, asks the configured model for a
structured review, gates and formats the result, anchors inline comments to
the diff and publishes everything back to the PR.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path
from typing import Mapping, Sequence
from uuid import uuid4

from sentinel import log
from sentinel.analyzer import AnalysisResult, ReviewAnalyzer
from sentinel.config import (
    DEFAULT_CONFIG_PATH,
    ConfigError,
    SentinelConfig,
    find_conventions_file,
    load_config,
    merge_action_inputs,
    resolve_config_path,
)
from sentinel.findings import count_by_severity
from sentinel.formatter import OutputFormatter, anchor_inline_comments
from sentinel.github import resolve_pr_number
from sentinel.github_platform import GitHubPlatform
from sentinel.markdown import repo_context
from sentinel.providers import LLMProvider, create_provider
from sentinel.pull_request import PlatformAdapter, PullRequest


def append_output(path: Path, key: str, value: str) -> None:
    """Append one step output using the heredoc form so multi-line values survive."""
    delimiter = f"SENTINEL_{key.upper()}_{uuid4().hex}"
    while delimiter in value:
        delimiter = f"SENTINEL_{key.upper()}_{uuid4().hex}"
    with path.open("a", encoding="utf-8") as fh:
        fh.write(f"{key}<<{delimiter}\n")
        fh.write(value)
        if not value.endswith("\n"):
            fh.write("\n")
        fh.write(f"{delimiter}\n")


def set_outputs(outputs: Mapping[str, object], env: Mapping[str, str]) -> None:
    output_path = (env.get("GITHUB_OUTPUT") or "").strip()
    if not output_path:
        for key, value in outputs.items():
            log.debug(f"output {key}={value}")
        return
    for key, value in outputs.items():
        append_output(Path(output_path), key, str(value))


def skipped_outputs(result: AnalysisResult) -> dict[str, object]:
    return {
        "summary": result.skip_reason or "",
        "issues_count": 0,
        "critical_count": 0,
        "warning_count": 0,
        "effort_score": result.response.effort_score,
    }


def review_outputs(result: AnalysisResult) -> dict[str, object]:
    counts = count_by_severity(result.filtered_issues)
    return {
        "summary": result.response.summary,
        "issues_count": len(result.filtered_issues),
        "critical_count": counts["critical"],
        "warning_count": counts["warning"],
        "effort_score": result.response.effort_score,
    }


def load_settings(config_path: str, working_dir: Path, env: Mapping[str, str]) -> tuple[SentinelConfig, str | None]:
    """Config (with action inputs applied) plus the conventions document text."""
    path = resolve_config_path(config_path, working_dir)
    try:
        config = load_config(path)
    except ConfigError as exc:
        log.warn(f"Invalid config in {path}, using defaults: {exc}")
        config = SentinelConfig()

    conventions: str | None = None
    conventions_path = find_conventions_file(config, working_dir)
    if conventions_path is not None:
        try:
            conventions = conventions_path.read_text(encoding="utf-8")
            log.info(f"Loaded conventions from {conventions_path}")
        except (OSError, UnicodeDecodeError) as exc:
            log.warn(f"Unable to read {conventions_path}: {exc}")

    return merge_action_inputs(config, env), conventions


def publish(
    platform: PlatformAdapter,
    config: SentinelConfig,
    provider: LLMProvider,
    pr: PullRequest,
    result: AnalysisResult,
    env: Mapping[str, str],
    *,
    repo: str,
    dry_run: bool,
) -> None:
    server, repo_name, _ = repo_context(server=env.get("GITHUB_SERVER_URL"), repo=repo)
    formatter = OutputFormatter(config, provider.name, server=server, repo=repo_name, sha=pr.head_sha)
    output = formatter.format(result.response, result.filtered_issues)

    reviewed = result.context.reviewed_files if result.context is not None else ()
    anchored = anchor_inline_comments(
        output.inline_comments,
        reviewed,
        max_distance=config.review.comment_search_radius,
    )
    if anchored.moved:
        log.debug(f"Moved {anchored.moved} inline comment(s) to the nearest diff line")
    for comment in anchored.dropped:
        log.notice(f"Dropped inline comment on {comment.path}:{comment.line} (no commentable line nearby)")

    if dry_run:
        log.info("Dry run: not posting to PR")
        print(output.summary)
        return

    if config.output.summary:
        platform.post_review_summary(output.summary)
    if config.output.inline_comments and anchored.comments:
        platform.post_inline_comments(anchored.comments)
    if config.output.labels.enabled and output.labels:
        platform.add_labels(output.labels)


def run(
    platform: PlatformAdapter,
    provider: LLMProvider,
    config: SentinelConfig,
    env: Mapping[str, str],
    *,
    conventions: str | None = None,
    repo: str = "",
    dry_run: bool = False,
) -> AnalysisResult:
    pr = platform.get_pull_request()
    log.info(f"Reviewing PR #{pr.number}: {pr.title}")

    result = ReviewAnalyzer(platform, provider, config, conventions).analyze(pr)
    if result.skipped:
        log.info(f"Skipping review: {result.skip_reason}")
        set_outputs(skipped_outputs(result), env)
        return result

    publish(platform, config, provider, pr, result, env, repo=repo, dry_run=dry_run)
    set_outputs(review_outputs(result), env)

    counts = count_by_severity(result.filtered_issues)
    if counts["critical"]:
        log.warn(f"Found {counts['critical']} critical issue(s)")
    log.info(f"Review complete: {len(result.filtered_issues)} issue(s) reported")
    return result


def parse_args(argv: Sequence[str] | None, env: Mapping[str, str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a Code Sentinel review on a pull request.")
    parser.add_argument(
        "--config",
        default=(env.get("INPUT_CONFIG_PATH") or "").strip() or DEFAULT_CONFIG_PATH,
        help="Path to .sentinel.yml (relative to --working-dir).",
    )
    parser.add_argument(
        "--working-dir",
        default=(env.get("GITHUB_WORKSPACE") or "").strip() or os.getcwd(),
        help="Repository checkout root.",
    )
    parser.add_argument("--repo", default=(env.get("GITHUB_REPOSITORY") or "").strip(), help="owner/repo")
    parser.add_argument("--pr", type=int, default=None, help="PR number (default: from event payload)")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=(env.get("INPUT_DRY_RUN") or "").strip().lower() == "true",
        help="Print the summary instead of posting to the PR.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None, env: Mapping[str, str] | None = None) -> int:
    env = os.environ if env is None else env
    args = parse_args(argv, env)
    working_dir = Path(args.working_dir)

    try:
        if not args.repo:
            raise ValueError("missing repository (set --repo or GITHUB_REPOSITORY)")
        config, conventions = load_settings(args.config, working_dir, env)
        pr_number = resolve_pr_number(env, args.pr)
        platform = GitHubPlatform(args.repo, pr_number, working_dir)
        provider = create_provider(config, env)
        log.info(f"Using {provider.name} provider")
        run(
            platform,
            provider,
            config,
            env,
            conventions=conventions,
            repo=args.repo,
            dry_run=args.dry_run,
        )
    except Exception as exc:
        log.error(f"Code Sentinel failed: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
