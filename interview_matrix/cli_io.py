# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Small CLI interaction helpers.

Destructive actions (overwriting the result file, emptying the workdir) ask
for confirmation in interactive terminals. In non-interactive contexts (CI,
pipes) they refuse to run unless `--force` is given.
"""

import sys

from interview_matrix.config import ConfigError


def is_interactive_tty() -> bool:
    """Return True if both stdin and stdout are connected to a TTY."""

    try:
        return sys.stdin.isatty() and sys.stdout.isatty()
    except (AttributeError, ValueError):
        return False


def _ask_yes_no(question: str) -> bool:
    """Ask until the answer is yes or no. An empty answer means no."""

    answers = {"y": True, "yes": True, "n": False, "no": False, "": False}
    answer = None
    while answer not in answers:
        answer = input(f"{question} [y/N] ").strip().lower()
    return answers[answer]


def confirm(question: str, *, force: bool) -> bool:
    """
    Confirm a destructive step.

    Args:
        question:
            Question shown in interactive terminals.
        force:
            Skip the question (from `--force`).

    Returns:
        True if the step may proceed, False if the user declined.

    Raises:
        ConfigError:
            If confirmation is required but the session is not interactive.
    """

    if force:
        return True

    if not is_interactive_tty():
        raise ConfigError(f"{question} Refusing to continue without confirmation. Re-run with --force.")

    return _ask_yes_no(question)
