# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Smoke-test helpers.

Run via:

    python -m interview_matrix.smoke --config interviews.yaml

This is intentionally lightweight: it validates the configuration, the guide
and the theme vocabulary, and segments a sample text (no LLM calls).
"""

import argparse
import json
from pathlib import Path

from interview_matrix.config import ConfigError, load_config
from interview_matrix.segmenter import Segmenter, filter_moderator_turns
from interview_matrix.vocabulary import OTHER_THEME, ThemeVocabulary

SAMPLE_TRANSCRIPT = "\n".join(
    [
        "Interviewer: Can you tell me about your role?",
        "Respondent: I am a nurse in the ER. I have worked there for 6 years.",
        "Interviewer: How do you assess new patients?",
        "Respondent: We use a triage protocol and a wound assessment device.",
    ]
)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Interview Matrix smoke test")
    parser.add_argument(
        "--config",
        default="interviews.yaml",
        help="Path to interviews.yaml (default: ./interviews.yaml)",
    )
    parser.add_argument(
        "--print-guide",
        action="store_true",
        help="Print the parsed guide with the allowed themes as JSON",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    config_path = Path(str(args.config))

    try:
        cfg = load_config(config_path)
    except ConfigError as exc:
        print(f"CONFIG ERROR: {exc}")
        return 2

    vocabulary = ThemeVocabulary(cfg.vocabulary)
    themes = list(dict.fromkeys(item.theme for item in cfg.guide))

    print(f"Config: {cfg.config_path}")
    print(f"Base dir: {cfg.base_dir}")
    print(f"Guide questions: {len(cfg.guide)}")
    print(f"Guide themes: {len(themes)}")

    missing_other = [t for t in themes if OTHER_THEME not in vocabulary.allowed_themes(t)]
    if missing_other:
        print(f"INTERNAL ERROR: vocabulary without '{OTHER_THEME}' for themes: {missing_other}")
        return 3

    filtered = filter_moderator_turns(SAMPLE_TRANSCRIPT)
    if "Interviewer:" in filtered:
        print("INTERNAL ERROR: speaker filter kept interviewer turns")
        return 3

    chunks = Segmenter(cfg.segmentation).segment(filtered, "smoke")
    windows = sum(len(c.windows) for c in chunks)
    print(f"Sample segmentation: {len(chunks)} chunk(s), {windows} window(s)")
    if not chunks or not windows:
        print("INTERNAL ERROR: sample transcript produced no windows")
        return 3

    if bool(args.print_guide):
        guide = [
            {
                "theme": item.theme,
                "question": item.question,
                "allowed_themes": list(vocabulary.allowed_themes(item.theme)),
            }
            for item in cfg.guide
        ]
        print(json.dumps(guide, ensure_ascii=False, indent=2))

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
