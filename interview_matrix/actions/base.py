from __future__ import annotations

"""
Action protocol of the subcommands and the path helpers they share.
"""

import argparse
from pathlib import Path
from typing import Protocol

from interview_matrix.config import InterviewConfig


class Action(Protocol):
    """
    One `interview-matrix` subcommand.

    `name` becomes the subcommand, `help` its one-line description. When
    `requires_config` is set, the CLI adds `--config` and passes the loaded
    project configuration to `run()`.
    """

    name: str
    help: str
    requires_config: bool

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        """Add the options of this subcommand to its subparser."""

    def run(self, args: argparse.Namespace, config: InterviewConfig | None) -> None:
        """
        Run the subcommand.

        Raises:
            ConfigError:
                For problems the user can fix in the project setup.
            PipelineError:
                When the analysis run cannot complete.
        """


def rel_posix(base_dir: Path, path: Path) -> str:
    """Path relative to `base_dir` in POSIX form, or the absolute path when outside."""

    resolved = path.resolve()
    try:
        return resolved.relative_to(base_dir.resolve()).as_posix()
    except ValueError:
        return resolved.as_posix()


def resolve_from_base(base_dir: Path, path_value: str) -> Path:
    """Resolve a path read from a work file against the project directory."""

    p = Path(path_value)
    return p if p.is_absolute() else (base_dir / p).resolve()
