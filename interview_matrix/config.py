# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Configuration loading and validation.

This module handles reading `interviews.yaml`, validating required keys, and
normalizing paths so that downstream actions can rely on a typed config object.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from interview_matrix.guide import GuideError, load_guide_file, parse_guide
from interview_matrix.models import GuideItem


@dataclass(frozen=True)
class SegmentationConfig:
    """
    Configuration for transcript segmentation.

    All sizes are token budgets (converted to characters at 4 chars/token).

    Attributes:
        chunk_tokens:
            Target chunk size.
        chunk_overlap_tokens:
            Context repeated at the start of the next chunk.
        window_tokens:
            Target window size inside a chunk.
        window_step_tokens:
            Distance between consecutive window starts.
        boundary_slack_tokens:
            Search range around a target offset for sentence/paragraph
            boundaries.
    """

    chunk_tokens: int = 1800
    chunk_overlap_tokens: int = 200
    window_tokens: int = 400
    window_step_tokens: int = 200
    boundary_slack_tokens: int = 100


@dataclass(frozen=True)
class RetrievalConfig:
    """
    Configuration for window retrieval.

    Attributes:
        top_k:
            Number of windows kept per question and transcript.
        embed_batch_size:
            Number of window texts per embedding call.
    """

    top_k: int = 8
    embed_batch_size: int = 8


@dataclass(frozen=True)
class ConcurrencyConfig:
    """
    Capacities of the two task pools.

    Attributes:
        chat:
            Concurrent extraction (chat completion) calls.
        embed:
            Concurrent embedding calls.
    """

    chat: int = 6
    embed: int = 4


@dataclass(frozen=True)
class RetryConfig:
    """
    Retry/backoff policy for extraction calls.

    Attributes:
        attempts:
            Maximum number of attempts per call (including the first).
        initial_delay_ms:
            Upper bound of the first jittered delay.
        max_delay_ms:
            Cap for the exponential delay.
        multiplier:
            Exponential base.
    """

    attempts: int = 6
    initial_delay_ms: int = 400
    max_delay_ms: int = 8000
    multiplier: float = 2.0


@dataclass(frozen=True)
class AnalysisConfig:
    """
    Configuration for the extraction step.

    Attributes:
        exclude_interviewer:
            If True, interviewer/moderator turns are removed before
            segmentation.
        temperature:
            Sampling temperature for extraction calls.
        min_composite_score:
            Usability threshold. Answers scoring below it are not reported.
    """

    exclude_interviewer: bool = True
    temperature: float = 0.1
    min_composite_score: float = 0.0


@dataclass(frozen=True)
class InterviewConfig:
    """
    Parsed configuration for an interview matrix run.

    Attributes:
        config_path:
            Path to the YAML config file used for this run.
        base_dir:
            Directory that relative paths and glob patterns are resolved against.
        include:
            Glob patterns for transcript files to include.
        exclude:
            Glob patterns for transcript files to exclude.
        workdir:
            Directory for intermediate outputs.
        outfile:
            Target path for the analysis result (JSON or YAML).
        guide:
            Ordered discussion guide items.
        vocabulary:
            Additional or overriding theme vocabularies per guide theme.
    """

    config_path: Path
    base_dir: Path
    include: list[str]
    exclude: list[str]
    workdir: Path
    outfile: Path
    guide: list[GuideItem]
    segmentation: SegmentationConfig = field(default_factory=SegmentationConfig)
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    concurrency: ConcurrencyConfig = field(default_factory=ConcurrencyConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    vocabulary: dict[str, list[str]] = field(default_factory=dict)


class ConfigError(RuntimeError):
    """
    Raised when the YAML configuration is missing, invalid, or cannot be parsed.
    """

    pass


RESULT_SUFFIXES = {".json", ".yaml", ".yml"}


def find_config_path(cli_path: str | None) -> Path:
    """
    Determine which YAML config file to use.

    Args:
        cli_path:
            Optional config path provided on the command line.

    Returns:
        The resolved Path object (not necessarily existing).
    """

    if cli_path:
        return Path(cli_path)

    return Path.cwd() / "interviews.yaml"


def load_config(path: Path) -> InterviewConfig:
    """
    Load and validate an `interviews.yaml` configuration file.

    Args:
        path:
            Path to the YAML config file.

    Returns:
        A validated InterviewConfig instance.

    Raises:
        ConfigError:
            If the file is missing, unreadable, cannot be parsed as YAML, or is
            missing required keys.
    """

    if not path.exists():
        raise ConfigError(
            "No interviews.yaml found in current directory and no --config provided. "
            "Use the 'template' command to create one or pass --config PATH."
        )
    if not path.is_file():
        raise ConfigError(f"Config path is not a file: {path}")

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ConfigError(f"Failed to read YAML config: {path}: {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError("Config YAML must contain a mapping at the top level")

    missing = [k for k in ("include", "workdir", "outfile", "guide") if k not in raw]
    if missing:
        raise ConfigError(f"Config is missing required key(s): {', '.join(missing)}")

    include = _parse_patterns(raw.get("include"), key="include")
    if not include:
        raise ConfigError("'include' must be a non-empty string or list of strings")

    exclude = _parse_patterns(raw.get("exclude"), key="exclude")

    workdir = raw.get("workdir")
    if not isinstance(workdir, str) or not workdir.strip():
        raise ConfigError("'workdir' must be a non-empty string")

    outfile = raw.get("outfile")
    if not isinstance(outfile, str) or not outfile.strip():
        raise ConfigError("'outfile' must be a non-empty string")
    if Path(outfile).suffix.lower() not in RESULT_SUFFIXES:
        raise ConfigError("'outfile' must end with .json, .yaml or .yml")

    # Interpret workdir/outfile, guide file and glob patterns relative to the
    # config file location.
    base_dir = path.parent.resolve()

    guide = _parse_guide(raw.get("guide"), base_dir=base_dir)

    return InterviewConfig(
        config_path=path.resolve(),
        base_dir=base_dir,
        include=include,
        exclude=exclude,
        workdir=(base_dir / workdir).resolve(),
        outfile=(base_dir / outfile).resolve(),
        guide=guide,
        segmentation=_parse_segmentation(raw.get("segmentation")),
        retrieval=_parse_retrieval(raw.get("retrieval")),
        concurrency=_parse_concurrency(raw.get("concurrency")),
        retry=_parse_retry(raw.get("retry")),
        analysis=_parse_analysis(raw.get("analysis")),
        vocabulary=_parse_vocabulary(raw.get("vocabulary")),
    )


def _parse_patterns(value: Any, *, key: str) -> list[str]:
    """Parse a glob pattern option that can be a string or a list of strings."""

    if value is None:
        return []

    if isinstance(value, str):
        if not value.strip():
            raise ConfigError(f"'{key}' must be a non-empty string if provided")
        return [value.strip()]

    if not isinstance(value, list) or not all(isinstance(x, str) and x.strip() for x in value):
        raise ConfigError(f"'{key}' must be a string or a list of non-empty strings")

    return [x.strip() for x in value]


def _parse_guide(value: Any, *, base_dir: Path) -> list[GuideItem]:
    """
    Parse the `guide` option.

    Supported formats:
    - an inline list of `{theme, question}` mappings (or plain question strings),
    - a path to a `.yaml`/`.yml` file containing such a list,
    - a path to a `.txt`/`.md` file with a free-text discussion guide.

    Raises:
        ConfigError:
            If the guide cannot be read or contains no questions.
    """

    try:
        if isinstance(value, str):
            guide_path = (base_dir / value.strip()).resolve()
            if not guide_path.is_file():
                raise ConfigError(f"Guide file not found: {guide_path}")
            return load_guide_file(guide_path)

        if isinstance(value, list):
            return parse_guide(value)
    except GuideError as exc:
        raise ConfigError(f"Invalid guide: {exc}") from exc

    raise ConfigError("'guide' must be a list of {theme, question} entries or a path to a guide file")


def _section(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping if provided")
    return value


def _int_option(section: dict[str, Any], name: str, key: str, default: int, *, minimum: int) -> int:
    value = section.get(key, default)
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(f"{name}.{key} must be an integer")
    if value < minimum:
        raise ConfigError(f"{name}.{key} must be >= {minimum}")
    return value


def _float_option(
    section: dict[str, Any],
    name: str,
    key: str,
    default: float,
    *,
    minimum: float,
    maximum: float | None = None,
) -> float:
    value = section.get(key, default)
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        raise ConfigError(f"{name}.{key} must be a number")
    if value < minimum or (maximum is not None and value > maximum):
        upper = f" and <= {maximum}" if maximum is not None else ""
        raise ConfigError(f"{name}.{key} must be >= {minimum}{upper}")
    return float(value)


def _parse_segmentation(value: Any) -> SegmentationConfig:
    """
    Parse and validate the optional `segmentation` section.

    Raises:
        ConfigError:
            If the section exists but is not valid.
    """

    section = _section(value, "segmentation")
    defaults = SegmentationConfig()

    chunk_tokens = _int_option(section, "segmentation", "chunk_tokens", defaults.chunk_tokens, minimum=1)
    chunk_overlap = _int_option(
        section, "segmentation", "chunk_overlap_tokens", defaults.chunk_overlap_tokens, minimum=0
    )
    window_tokens = _int_option(section, "segmentation", "window_tokens", defaults.window_tokens, minimum=1)
    window_step = _int_option(
        section, "segmentation", "window_step_tokens", defaults.window_step_tokens, minimum=1
    )
    slack = _int_option(
        section, "segmentation", "boundary_slack_tokens", defaults.boundary_slack_tokens, minimum=0
    )

    if chunk_overlap >= chunk_tokens:
        raise ConfigError("segmentation.chunk_overlap_tokens must be < segmentation.chunk_tokens")
    if window_step >= window_tokens:
        raise ConfigError("segmentation.window_step_tokens must be < segmentation.window_tokens")
    if window_tokens > chunk_tokens:
        raise ConfigError("segmentation.window_tokens must be <= segmentation.chunk_tokens")
    # A snapped window must still end after the next window starts.
    if slack >= window_tokens - window_step:
        raise ConfigError(
            "segmentation.boundary_slack_tokens must be < "
            "segmentation.window_tokens - segmentation.window_step_tokens"
        )

    return SegmentationConfig(
        chunk_tokens=chunk_tokens,
        chunk_overlap_tokens=chunk_overlap,
        window_tokens=window_tokens,
        window_step_tokens=window_step,
        boundary_slack_tokens=slack,
    )


def _parse_retrieval(value: Any) -> RetrievalConfig:
    section = _section(value, "retrieval")
    defaults = RetrievalConfig()
    return RetrievalConfig(
        top_k=_int_option(section, "retrieval", "top_k", defaults.top_k, minimum=1),
        embed_batch_size=_int_option(
            section, "retrieval", "embed_batch_size", defaults.embed_batch_size, minimum=1
        ),
    )


def _parse_concurrency(value: Any) -> ConcurrencyConfig:
    section = _section(value, "concurrency")
    defaults = ConcurrencyConfig()
    return ConcurrencyConfig(
        chat=_int_option(section, "concurrency", "chat", defaults.chat, minimum=1),
        embed=_int_option(section, "concurrency", "embed", defaults.embed, minimum=1),
    )


def _parse_retry(value: Any) -> RetryConfig:
    section = _section(value, "retry")
    defaults = RetryConfig()

    initial = _int_option(section, "retry", "initial_delay_ms", defaults.initial_delay_ms, minimum=0)
    maximum = _int_option(section, "retry", "max_delay_ms", defaults.max_delay_ms, minimum=0)
    if maximum < initial:
        raise ConfigError("retry.max_delay_ms must be >= retry.initial_delay_ms")

    return RetryConfig(
        attempts=_int_option(section, "retry", "attempts", defaults.attempts, minimum=1),
        initial_delay_ms=initial,
        max_delay_ms=maximum,
        multiplier=_float_option(section, "retry", "multiplier", defaults.multiplier, minimum=1.0),
    )


def _parse_analysis(value: Any) -> AnalysisConfig:
    """
    Parse and validate the optional `analysis` section.

    Raises:
        ConfigError:
            If the section exists but is not valid.
    """

    section = _section(value, "analysis")
    defaults = AnalysisConfig()

    exclude_interviewer = section.get("exclude_interviewer", defaults.exclude_interviewer)
    if not isinstance(exclude_interviewer, bool):
        raise ConfigError("analysis.exclude_interviewer must be a boolean")

    return AnalysisConfig(
        exclude_interviewer=exclude_interviewer,
        temperature=_float_option(
            section, "analysis", "temperature", defaults.temperature, minimum=0.0, maximum=2.0
        ),
        min_composite_score=_float_option(
            section,
            "analysis",
            "min_composite_score",
            defaults.min_composite_score,
            minimum=0.0,
            maximum=1.0,
        ),
    )


def _parse_vocabulary(value: Any) -> dict[str, list[str]]:
    """
    Parse the optional `vocabulary` section.

    Format:
        vocabulary:
          Warm-up: [Experience/Setting, Role/Unit, Patient Mix]
          Pricing: [Price level, Reimbursement]
    """

    if value is None:
        return {}

    if not isinstance(value, dict):
        raise ConfigError("'vocabulary' must be a mapping of theme -> list of labels")

    out: dict[str, list[str]] = {}
    for theme, labels in value.items():
        if not isinstance(theme, str) or not theme.strip():
            raise ConfigError("vocabulary keys must be non-empty strings")
        if not isinstance(labels, list) or not all(isinstance(x, str) and x.strip() for x in labels):
            raise ConfigError(f"vocabulary for theme '{theme}' must be a list of non-empty strings")
        out[theme.strip()] = [x.strip() for x in labels]

    return out
