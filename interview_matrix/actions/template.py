# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Template configuration generator.

This action writes a ready-to-edit `interviews.yaml` file into the current
directory (or a user-specified path).
"""

import argparse
from dataclasses import dataclass
from pathlib import Path

from interview_matrix.config import ConfigError, InterviewConfig

TEMPLATE_YAML = "\n".join(
    [
        "# Glob patterns for transcript files to include/exclude",
        "# Supported transcript formats: .odt, .txt, .md",
        "# 'include' can be a string or a list of strings (at most 20 transcripts).",
        'include: ["transcripts/**/*.odt", "transcripts/**/*.txt", "transcripts/**/*.md"]',
        "# 'exclude' is optional and can be a string or a list of strings.",
        'exclude: "private/**"',
        "",
        "# Working directory for intermediate files",
        "workdir: ./work",
        "",
        "# Final output file (.json, .yaml or .yml)",
        "outfile: matrix.json",
        "",
        "# Transcript metadata (optional, one paragraph each, anywhere in the file):",
        "#   interviewer = Name1, Name2   -> turns of these speakers are ignored",
        "#   respondent = Nurse A         -> label used in the result (default: file name)",
        "",
        "# Discussion guide",
        "#",
        "# Either an inline list of {theme, question} entries (theme defaults to",
        "# 'General'), or a path to a guide file:",
        "#   guide: guide.md     # free text with '# Section' headers and bullet questions",
        "#   guide: guide.yaml   # the same list as below",
        "guide:",
        "  - theme: Warm-up",
        "    question: Tell me about your role and the unit you work in.",
        "  - theme: Current Practices",
        "    question: How do you currently assess and treat a new patient?",
        "  - theme: Supply/Budget",
        "    question: How are products selected and stocked in your facility?",
        "  - theme: Challenges",
        "    question: What are the biggest challenges in your daily work?",
        "",
        "# Controlled theme vocabulary (optional). Adds or overrides the allowed",
        "# answer themes per guide theme. 'Other' is always allowed.",
        "# vocabulary:",
        "#   Warm-up: [Experience/Setting, Role/Unit, Patient Mix]",
        "",
        "# Segmentation options in tokens (optional; defaults shown)",
        "# segmentation:",
        "#   chunk_tokens: 1800",
        "#   chunk_overlap_tokens: 200",
        "#   window_tokens: 400",
        "#   window_step_tokens: 200",
        "#   boundary_slack_tokens: 100",
        "",
        "# Retrieval options (optional; defaults shown)",
        "# retrieval:",
        "#   top_k: 8",
        "#   embed_batch_size: 8",
        "",
        "# Concurrent requests to the LLM service (optional; defaults shown)",
        "# concurrency:",
        "#   chat: 6",
        "#   embed: 4",
        "",
        "# Retry policy for extraction calls (optional; defaults shown)",
        "# retry:",
        "#   attempts: 6",
        "#   initial_delay_ms: 400",
        "#   max_delay_ms: 8000",
        "#   multiplier: 2",
        "",
        "# Analysis options (optional; defaults shown)",
        "# analysis:",
        "#   # If true, interviewer/moderator turns are removed before segmentation.",
        "#   exclude_interviewer: true",
        "#   temperature: 0.1",
        "#   # Answers with a lower composite score are not reported.",
        "#   min_composite_score: 0.0",
        "",
    ]
)


@dataclass(frozen=True)
class TemplateAction:
    """
    `template` subcommand.

    This action does not require a YAML config because it produces one.
    """

    name: str = "template"
    help: str = "Write a template interviews.yaml config"
    requires_config: bool = False

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "path",
            nargs="?",
            default="interviews.yaml",
            help="Destination path for the template (default: ./interviews.yaml)",
        )
        parser.add_argument(
            "-f",
            "--force",
            action="store_true",
            help="Allow overwriting an existing file",
        )

    def run(self, args: argparse.Namespace, config: InterviewConfig | None) -> None:
        """
        Execute the template writer.

        Raises:
            ConfigError:
                If the destination exists and `--force` is not set.
        """

        _ = config
        dest = Path(args.path)

        if dest.exists() and not args.force:
            raise ConfigError(f"Refusing to overwrite existing file: {dest} (use --force)")

        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_text(TEMPLATE_YAML, encoding="utf-8")
        print(f"Wrote template config to: {dest}")
