from pathlib import Path

import pytest

from sentinel.config import (
    ConfigError,
    SentinelConfig,
    find_conventions_file,
    load_config,
    merge_action_inputs,
    parse_config,
    resolve_config_path,
)


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / ".sentinel.yml"
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    cfg = load_config(tmp_path / "nope.yml")
    assert cfg == SentinelConfig()
    assert cfg.llm.provider == "openai"
    assert cfg.review.categories == ("security", "architecture", "bugs")
    assert cfg.review.min_severity == "suggestion"
    assert cfg.review.comment_search_radius == 3
    assert cfg.output.max_inline_comments == 15
    assert cfg.output.labels.effort_prefix == "effort:"


def test_empty_document_yields_defaults(tmp_path: Path) -> None:
    assert load_config(_write(tmp_path, "")) == SentinelConfig()


def test_full_config_round_trips_into_dataclasses(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        """
llm:
  provider: ollama
  model: llama3
  base_url: http://ollama:11434
review:
  categories: [security, performance]
  min_severity: warning
  skip_if_effort_below: 2
  comment_search_radius: 5
ignore:
  paths: ["**/*.test.ts", "dist/**"]
  authors: [dependabot]
instructions:
  - Prefer early returns.
patterns:
  - category: naming
    pattern: Services end in Service
    examples: [UserService]
output:
  summary: false
  max_inline_comments: 5
  labels:
    enabled: false
    security_issue: sec
    effort_prefix: "effort/"
    needs_review: ignored
conventions:
  enabled: false
""",
    )
    cfg = load_config(path)

    assert cfg.llm.provider == "ollama"
    assert cfg.llm.model == "llama3"
    assert cfg.review.categories == ("security", "performance")
    assert cfg.review.min_severity == "warning"
    assert cfg.review.skip_if_effort_below == 2
    assert cfg.review.comment_search_radius == 5
    assert cfg.ignore.paths == ("**/*.test.ts", "dist/**")
    assert cfg.ignore.authors == ("dependabot",)
    assert cfg.instructions == ("Prefer early returns.",)
    assert cfg.patterns[0].examples == ("UserService",)
    assert cfg.output.summary is False
    assert cfg.output.inline_comments is True
    assert cfg.output.max_inline_comments == 5
    assert cfg.output.labels.enabled is False
    assert cfg.output.labels.security_issue == "sec"
    assert cfg.conventions.enabled is False


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ({"llm": {"provider": "gemini"}}, "config.llm.provider"),
        ({"review": {"min_severity": "major"}}, "config.review.min_severity"),
        ({"review": {"categories": ["style"]}}, "config.review.categories[0]"),
        ({"review": {"skip_if_effort_below": 6}}, "config.review.skip_if_effort_below"),
        ({"review": {"comment_search_radius": -1}}, "config.review.comment_search_radius"),
        ({"output": {"max_inline_comments": 0}}, "config.output.max_inline_comments"),
        ({"output": {"labels": {"enabled": "yes"}}}, "config.output.labels.enabled"),
        ({"patterns": [{"category": "naming"}]}, "config.patterns[0].pattern"),
        ({"ignore": {"paths": "src"}}, "config.ignore.paths"),
        (["not", "a", "mapping"], "config"),
    ],
)
def test_invalid_values_raise_with_dotted_context(raw, message: str) -> None:
    with pytest.raises(ConfigError, match=message.replace("[", r"\[").replace("]", r"\]")):
        parse_config(raw)


def test_unusable_ignore_glob_raises_config_error() -> None:
    # 2**11 brace expansions exceeds the matcher's pattern limit.
    exploding = "src/" + "{a,b}" * 11 + ".ts"
    with pytest.raises(ConfigError, match=r"config\.ignore\.paths\[1\]: invalid glob"):
        parse_config({"ignore": {"paths": ["dist/**", exploding]}})


def test_brace_ignore_globs_are_accepted() -> None:
    cfg = parse_config({"ignore": {"paths": ["**/*.{test,spec}.ts"]}})
    assert cfg.ignore.paths == ("**/*.{test,spec}.ts",)


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="invalid YAML"):
        load_config(_write(tmp_path, "llm: [unclosed"))


def test_claude_md_key_is_accepted_for_conventions() -> None:
    cfg = parse_config({"claude_md": {"enabled": False}})
    assert cfg.conventions.enabled is False


def test_resolve_config_path(tmp_path: Path) -> None:
    assert resolve_config_path(".sentinel.yml", tmp_path) == tmp_path / ".sentinel.yml"
    absolute = tmp_path / "elsewhere.yml"
    assert resolve_config_path(str(absolute), Path("/unused")) == absolute


def test_find_conventions_file_prefers_root_then_fallbacks(tmp_path: Path) -> None:
    cfg = SentinelConfig()
    assert find_conventions_file(cfg, tmp_path) is None

    (tmp_path / "docs").mkdir()
    (tmp_path / "docs" / "CLAUDE.md").write_text("docs", encoding="utf-8")
    assert find_conventions_file(cfg, tmp_path) == tmp_path / "docs" / "CLAUDE.md"

    (tmp_path / "CLAUDE.md").write_text("root", encoding="utf-8")
    assert find_conventions_file(cfg, tmp_path) == tmp_path / "CLAUDE.md"


def test_find_conventions_file_honors_explicit_path_and_disable(tmp_path: Path) -> None:
    (tmp_path / "STYLE.md").write_text("style", encoding="utf-8")
    (tmp_path / "CLAUDE.md").write_text("root", encoding="utf-8")

    explicit = parse_config({"conventions": {"path": "STYLE.md"}})
    assert find_conventions_file(explicit, tmp_path) == tmp_path / "STYLE.md"

    disabled = parse_config({"conventions": {"enabled": False}})
    assert find_conventions_file(disabled, tmp_path) is None


def test_merge_action_inputs_openai_key_selects_openai() -> None:
    base = parse_config({"llm": {"provider": "ollama"}})
    merged = merge_action_inputs(base, {"INPUT_OPENAI_API_KEY": "sk-x", "INPUT_OPENAI_MODEL": "gpt-4o-mini"})
    assert merged.llm.provider == "openai"
    assert merged.llm.model == "gpt-4o-mini"


def test_merge_action_inputs_ollama_url_selects_ollama() -> None:
    merged = merge_action_inputs(
        SentinelConfig(),
        {"INPUT_OLLAMA_BASE_URL": "http://gpu:11434", "INPUT_OLLAMA_MODEL": "qwen2.5-coder"},
    )
    assert merged.llm.provider == "ollama"
    assert merged.llm.base_url == "http://gpu:11434"
    assert merged.llm.model == "qwen2.5-coder"


def test_merge_action_inputs_without_inputs_keeps_file_config() -> None:
    base = parse_config({"llm": {"provider": "ollama", "model": "llama3"}})
    assert merge_action_inputs(base, {}) == base
