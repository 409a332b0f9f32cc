"""Transcript reading.

The segmentation step can read transcripts from different source formats.
Each parser extracts raw text blocks (paragraphs) from the source file. The
blocks are then joined into one transcript text, with metadata lines such as
`interviewer = Name1, Name2` or `respondent = Nurse A` taken out.
"""

from interview_matrix.transcripts.base import TranscriptParser
from interview_matrix.transcripts.registry import get_transcript_parser, read_transcript
from interview_matrix.transcripts.statement_blocks import ParsedTranscript, TranscriptMetadata

__all__ = [
    "ParsedTranscript",
    "TranscriptMetadata",
    "TranscriptParser",
    "get_transcript_parser",
    "read_transcript",
]
