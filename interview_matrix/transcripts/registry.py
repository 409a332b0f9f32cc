# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Selects the transcript parser by file suffix and reads transcripts."""

from pathlib import Path

from interview_matrix.config import ConfigError
from interview_matrix.transcripts.base import ParserError, TranscriptParser
from interview_matrix.transcripts.odt_parser import OdtTranscriptParser
from interview_matrix.transcripts.statement_blocks import ParsedTranscript, parse_statement_blocks
from interview_matrix.transcripts.text_parser import TextTranscriptParser

# Stored in the segment index. Changing it re-segments unchanged transcripts.
TRANSCRIPT_PARSING_VERSION = 1

MAX_TRANSCRIPT_CHARS = 1_000_000

_PARSERS_BY_SUFFIX: dict[str, TranscriptParser] = {
    suffix: parser
    for parser in (OdtTranscriptParser(), TextTranscriptParser())
    for suffix in parser.suffixes
}


def get_transcript_parser(path: Path) -> TranscriptParser:
    """Return the parser for the transcript's file suffix.

    Raises:
        ConfigError:
            If no parser supports the suffix.
    """

    try:
        return _PARSERS_BY_SUFFIX[path.suffix.lower()]
    except KeyError:
        supported = ", ".join(sorted(_PARSERS_BY_SUFFIX))
        raise ConfigError(f"Unsupported transcript format: {path} (supported: {supported})") from None


def read_transcript(path: Path) -> ParsedTranscript:
    """Read a transcript into its text and metadata.

    Interviewer speech is still part of the text. It is removed later by the
    segmenter's speaker filter.

    Raises:
        ConfigError:
            If the file cannot be read or has more than `MAX_TRANSCRIPT_CHARS`
            characters.
    """

    try:
        blocks = get_transcript_parser(path).read_blocks(path)
    except ParserError as exc:
        raise ConfigError(str(exc)) from exc

    parsed = parse_statement_blocks(blocks)
    if len(parsed.text) > MAX_TRANSCRIPT_CHARS:
        raise ConfigError(
            f"Transcript has {len(parsed.text)} characters, the limit is {MAX_TRANSCRIPT_CHARS}: {path}"
        )

    return parsed
