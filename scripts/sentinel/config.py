"""Typed loader for .sentinel.yml.

Centralizes parsing/validation so pipeline stages receive one frozen value
object instead of reading YAML or the environment themselves.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from .findings import CATEGORIES, SEVERITIES
from .globs import check_glob

PROVIDERS = ("openai", "ollama", "anthropic")
PATTERN_CATEGORIES = ("naming", "architecture", "testing", "style", "other")
CONVENTIONS_CANDIDATES = ("CLAUDE.md", ".claude/CLAUDE.md", "docs/CLAUDE.md")
DEFAULT_CONFIG_PATH = ".sentinel.yml"


class ConfigError(RuntimeError):
    """Invalid .sentinel.yml content."""
    pass


@dataclass(frozen=True)
class LLMConfig:
    provider: str = "openai"
    model: str | None = None
    base_url: str | None = None


@dataclass(frozen=True)
class ReviewConfig:
    categories: tuple[str, ...] = ("security", "architecture", "bugs")
    min_severity: str = "suggestion"
    skip_if_effort_below: int = 1
    comment_search_radius: int = 3


@dataclass(frozen=True)
class IgnoreConfig:
    paths: tuple[str, ...] = ()
    authors: tuple[str, ...] = ()


@dataclass(frozen=True)
class Pattern:
    category: str
    pattern: str
    examples: tuple[str, ...] = ()


@dataclass(frozen=True)
class LabelConfig:
    enabled: bool = True
    security_issue: str = "security"
    effort_prefix: str = "effort:"


@dataclass(frozen=True)
class OutputConfig:
    summary: bool = True
    inline_comments: bool = True
    max_inline_comments: int = 15
    labels: LabelConfig = field(default_factory=LabelConfig)


@dataclass(frozen=True)
class ConventionsConfig:
    enabled: bool = True
    path: str | None = None


@dataclass(frozen=True)
class SentinelConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    review: ReviewConfig = field(default_factory=ReviewConfig)
    ignore: IgnoreConfig = field(default_factory=IgnoreConfig)
    instructions: tuple[str, ...] = ()
    patterns: tuple[Pattern, ...] = ()
    output: OutputConfig = field(default_factory=OutputConfig)
    conventions: ConventionsConfig = field(default_factory=ConventionsConfig)


def _require_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise ConfigError(f"{ctx}: expected mapping")
    return value


def _optional_mapping(value: Any, ctx: str) -> dict[str, Any]:
    if value is None:
        return {}
    return _require_mapping(value, ctx)


def _require_list(value: Any, ctx: str) -> list[Any]:
    if not isinstance(value, list):
        raise ConfigError(f"{ctx}: expected list")
    return value


def _require_str(value: Any, ctx: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    if not s:
        raise ConfigError(f"{ctx}: must be non-empty")
    return s


def _require_str_list(value: Any, ctx: str) -> tuple[str, ...]:
    raw = _require_list(value, ctx)
    return tuple(_require_str(item, f"{ctx}[{idx}]") for idx, item in enumerate(raw))


def _require_glob_list(value: Any, ctx: str) -> tuple[str, ...]:
    patterns = _require_str_list(value, ctx)
    for idx, pattern in enumerate(patterns):
        try:
            check_glob(pattern)
        except ValueError as exc:
            raise ConfigError(f"{ctx}[{idx}]: invalid glob '{pattern}': {exc}") from exc
    return patterns


def _require_choice(value: Any, choices: tuple[str, ...], ctx: str) -> str:
    s = _require_str(value, ctx)
    if s not in choices:
        raise ConfigError(f"{ctx}: expected one of {', '.join(choices)} (got '{s}')")
    return s


def _require_bool(value: Any, ctx: str) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f"{ctx}: expected boolean")
    return value


def _require_int_range(value: Any, ctx: str, *, low: int, high: int | None = None) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{ctx}: expected integer")
    if value < low:
        raise ConfigError(f"{ctx}: must be >= {low}")
    if high is not None and value > high:
        raise ConfigError(f"{ctx}: must be <= {high}")
    return value


def _optional_str(value: Any, ctx: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigError(f"{ctx}: expected string")
    s = value.strip()
    return s or None


def _load_yaml(path: Path) -> Any:
    try:
        return yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ConfigError(f"missing config file: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid YAML in {path}: {e}") from e


def _parse_llm(raw: dict[str, Any]) -> LLMConfig:
    llm = LLMConfig()
    provider = llm.provider
    if raw.get("provider") is not None:
        provider = _require_choice(raw["provider"], PROVIDERS, "config.llm.provider")
    return LLMConfig(
        provider=provider,
        model=_optional_str(raw.get("model"), "config.llm.model"),
        base_url=_optional_str(raw.get("base_url"), "config.llm.base_url"),
    )


def _parse_review(raw: dict[str, Any]) -> ReviewConfig:
    review = ReviewConfig()
    categories = review.categories
    if raw.get("categories") is not None:
        categories = _require_str_list(raw["categories"], "config.review.categories")
        for idx, category in enumerate(categories):
            _require_choice(category, CATEGORIES, f"config.review.categories[{idx}]")

    min_severity = review.min_severity
    if raw.get("min_severity") is not None:
        min_severity = _require_choice(raw["min_severity"], SEVERITIES, "config.review.min_severity")

    skip_below = review.skip_if_effort_below
    if raw.get("skip_if_effort_below") is not None:
        skip_below = _require_int_range(
            raw["skip_if_effort_below"], "config.review.skip_if_effort_below", low=1, high=5
        )

    radius = review.comment_search_radius
    if raw.get("comment_search_radius") is not None:
        radius = _require_int_range(
            raw["comment_search_radius"], "config.review.comment_search_radius", low=0
        )

    return ReviewConfig(
        categories=categories,
        min_severity=min_severity,
        skip_if_effort_below=skip_below,
        comment_search_radius=radius,
    )


def _parse_patterns(raw: Any) -> tuple[Pattern, ...]:
    out: list[Pattern] = []
    for idx, item in enumerate(_require_list(raw, "config.patterns")):
        ctx = f"config.patterns[{idx}]"
        entry = _require_mapping(item, ctx)
        examples: tuple[str, ...] = ()
        if entry.get("examples") is not None:
            examples = _require_str_list(entry["examples"], f"{ctx}.examples")
        out.append(
            Pattern(
                category=_require_choice(entry.get("category"), PATTERN_CATEGORIES, f"{ctx}.category"),
                pattern=_require_str(entry.get("pattern"), f"{ctx}.pattern"),
                examples=examples,
            )
        )
    return tuple(out)


def _parse_output(raw: dict[str, Any]) -> OutputConfig:
    defaults = OutputConfig()
    label_defaults = LabelConfig()
    labels_raw = _optional_mapping(raw.get("labels"), "config.output.labels")

    labels = LabelConfig(
        enabled=_require_bool(labels_raw.get("enabled", label_defaults.enabled), "config.output.labels.enabled"),
        security_issue=_require_str(
            labels_raw.get("security_issue", label_defaults.security_issue),
            "config.output.labels.security_issue",
        ),
        effort_prefix=_require_str(
            labels_raw.get("effort_prefix", label_defaults.effort_prefix),
            "config.output.labels.effort_prefix",
        ),
    )

    return OutputConfig(
        summary=_require_bool(raw.get("summary", defaults.summary), "config.output.summary"),
        inline_comments=_require_bool(
            raw.get("inline_comments", defaults.inline_comments), "config.output.inline_comments"
        ),
        max_inline_comments=_require_int_range(
            raw.get("max_inline_comments", defaults.max_inline_comments),
            "config.output.max_inline_comments",
            low=1,
            high=50,
        ),
        labels=labels,
    )


def _parse_conventions(raw: dict[str, Any]) -> ConventionsConfig:
    return ConventionsConfig(
        enabled=_require_bool(raw.get("enabled", True), "config.conventions.enabled"),
        path=_optional_str(raw.get("path"), "config.conventions.path"),
    )


def parse_config(raw: Any) -> SentinelConfig:
    """Validate a parsed YAML document. An empty document yields defaults."""
    if raw is None:
        return SentinelConfig()
    cfg = _require_mapping(raw, "config")

    instructions: tuple[str, ...] = ()
    if cfg.get("instructions") is not None:
        instructions = _require_str_list(cfg["instructions"], "config.instructions")

    patterns: tuple[Pattern, ...] = ()
    if cfg.get("patterns") is not None:
        patterns = _parse_patterns(cfg["patterns"])

    ignore_raw = _optional_mapping(cfg.get("ignore"), "config.ignore")
    ignore = IgnoreConfig(
        paths=_require_glob_list(ignore_raw.get("paths", []), "config.ignore.paths"),
        authors=_require_str_list(ignore_raw.get("authors", []), "config.ignore.authors"),
    )

    # `claude_md` is the historical key for the conventions section.
    conventions_raw = cfg.get("conventions", cfg.get("claude_md"))

    return SentinelConfig(
        llm=_parse_llm(_optional_mapping(cfg.get("llm"), "config.llm")),
        review=_parse_review(_optional_mapping(cfg.get("review"), "config.review")),
        ignore=ignore,
        instructions=instructions,
        patterns=patterns,
        output=_parse_output(_optional_mapping(cfg.get("output"), "config.output")),
        conventions=_parse_conventions(_optional_mapping(conventions_raw, "config.conventions")),
    )


def resolve_config_path(config_path: str, working_dir: Path) -> Path:
    path = Path(config_path)
    return path if path.is_absolute() else working_dir / path


def load_config(path: Path) -> SentinelConfig:
    """Load config; a missing file means defaults."""
    if not path.exists():
        return SentinelConfig()
    return parse_config(_load_yaml(path))


def find_conventions_file(config: SentinelConfig, working_dir: Path) -> Path | None:
    if not config.conventions.enabled:
        return None
    if config.conventions.path:
        candidate = working_dir / config.conventions.path
        return candidate if candidate.is_file() else None
    for name in CONVENTIONS_CANDIDATES:
        candidate = working_dir / name
        if candidate.is_file():
            return candidate
    return None


def merge_action_inputs(config: SentinelConfig, env: Mapping[str, str]) -> SentinelConfig:
    """Overlay workflow inputs on the file config.

    An OpenAI key without an Ollama URL selects openai; the reverse selects
    ollama. The model override follows whichever provider is active.
    """
    openai_key = (env.get("INPUT_OPENAI_API_KEY") or "").strip()
    openai_model = (env.get("INPUT_OPENAI_MODEL") or "").strip()
    ollama_url = (env.get("INPUT_OLLAMA_BASE_URL") or "").strip()
    ollama_model = (env.get("INPUT_OLLAMA_MODEL") or "").strip()

    provider = config.llm.provider
    if openai_key and not ollama_url:
        provider = "openai"
    elif ollama_url and not openai_key:
        provider = "ollama"

    model_override = openai_model if provider == "openai" else ollama_model
    llm = replace(
        config.llm,
        provider=provider,
        model=model_override or config.llm.model,
        base_url=ollama_url or config.llm.base_url,
    )
    return replace(config, llm=llm)
