from __future__ import annotations

"""
Working directory cleanup action.

The `clean` subcommand removes all files and directories inside the configured
working directory (`workdir`) without removing the directory itself. Without
`--force`, interactive sessions are asked for confirmation and non-interactive
sessions abort.
"""

import argparse
import shutil
from dataclasses import dataclass
from pathlib import Path

from interview_matrix.cli_io import confirm
from interview_matrix.config import ConfigError, InterviewConfig


def is_dangerous_workdir(path: Path) -> bool:
    """Return True for paths too dangerous to empty (filesystem root, home)."""

    resolved = path.resolve()
    if resolved == Path(resolved.anchor):
        return True

    try:
        return resolved == Path.home().resolve()
    except RuntimeError:
        # Home cannot be determined, don't treat the path as safe.
        return True


def empty_directory(directory: Path) -> int:
    """
    Remove all entries within a directory.

    Returns:
        Number of entries removed.

    Raises:
        ConfigError:
            If the path is not a directory or deletion fails.
    """

    if not directory.exists():
        return 0
    if not directory.is_dir():
        raise ConfigError(f"workdir is not a directory: {directory}")

    removed = 0
    for child in directory.iterdir():
        try:
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
            else:
                child.unlink()
        except OSError as exc:
            raise ConfigError(f"Failed to remove '{child}': {exc}") from exc
        removed += 1

    return removed


@dataclass(frozen=True)
class CleanAction:
    """
    `clean` subcommand.

    Removes all files and directories inside the configured `workdir`.
    """

    name: str = "clean"
    help: str = "Empty the configured working directory"
    requires_config: bool = True

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-f",
            "--force",
            action="store_true",
            help="Do not prompt for confirmation",
        )

    def run(self, args: argparse.Namespace, config: InterviewConfig | None) -> None:
        """
        Execute the cleanup.

        Raises:
            ConfigError:
                If the workdir is unsafe, cannot be cleaned, or if confirmation
                is required but cannot be requested.
        """

        if config is None:
            raise RuntimeError("CleanAction requires a config, but none was provided")

        workdir = config.workdir
        if is_dangerous_workdir(workdir):
            raise ConfigError(f"Refusing to clean dangerous workdir: {workdir}")

        if not confirm(f"This will delete all contents of '{workdir}'. Continue?", force=bool(args.force)):
            print("Aborted.")
            return

        removed = empty_directory(workdir)
        print(f"Cleaned {removed} item(s) from: {workdir}")
