"""
Unit tests for token estimation, boundary snapping and segmentation.
"""
import pytest

from interview_matrix.config import SegmentationConfig
from interview_matrix.segmenter import Segmenter, filter_moderator_turns, snap_boundary
from interview_matrix.tokenizer import token_count, tokens_to_chars

SMALL = SegmentationConfig(
    chunk_tokens=50,
    chunk_overlap_tokens=10,
    window_tokens=20,
    window_step_tokens=10,
    boundary_slack_tokens=5,
)


def _long_transcript(sentences: int = 60) -> str:
    return " ".join(
        f"Respondent sentence number {i} talks about wound care and triage." for i in range(sentences)
    )


class TestTokenizer:
    """Test the token estimate."""

    def test_empty_text(self):
        assert token_count("") == 0

    def test_four_chars_per_token(self):
        assert token_count("abcd") == 1
        assert token_count("abcde") == 2

    def test_whitespace_is_collapsed(self):
        assert token_count("ab   \n\n  cd") == token_count("ab cd")

    def test_tokens_to_chars(self):
        assert tokens_to_chars(400) == 1600


class TestSnapBoundary:
    """Test cut point snapping."""

    def test_prefers_sentence_end(self):
        text = "First sentence. Second sentence here."
        cut = snap_boundary(text, 13, 5)
        assert text[:cut] == "First sentence."

    def test_falls_back_to_paragraph_break(self):
        text = "aaaa\n\nbbbb"
        assert snap_boundary(text, 5, 3) == 6

    def test_keeps_target_without_boundary(self):
        assert snap_boundary("abcdefghij", 5, 2) == 5

    def test_target_beyond_end(self):
        assert snap_boundary("short", 100, 10) == 5


class TestSegmenter:
    """Test chunk and window generation."""

    def test_whitespace_only_input(self):
        assert Segmenter(SMALL).segment("   \n\t  ", "doc") == []

    def test_short_text_is_one_chunk_with_one_window(self):
        chunks = Segmenter(SMALL).segment("Hello world.", "doc")

        assert len(chunks) == 1
        assert chunks[0].id == "doc_c00"
        assert [w.id for w in chunks[0].windows] == ["doc_c00_w0"]
        assert chunks[0].windows[0].text == "Hello world."

    def test_chunks_cover_the_whole_text(self):
        text = _long_transcript()
        chunks = Segmenter(SMALL).segment(text, "doc")

        assert len(chunks) > 1
        assert chunks[0].start_offset == 0
        assert chunks[-1].end_offset == len(text)
        for prev, nxt in zip(chunks, chunks[1:]):
            # Overlapping or adjacent, never a gap.
            assert nxt.start_offset <= prev.end_offset
            assert nxt.start_offset > prev.start_offset

    def test_offsets_match_text(self):
        text = _long_transcript()
        for chunk in Segmenter(SMALL).segment(text, "doc"):
            assert chunk.text == text[chunk.start_offset : chunk.end_offset]
            for window in chunk.windows:
                assert window.text == text[window.start_offset : window.end_offset]
                assert window.chunk_id == chunk.id

    @pytest.mark.parametrize(
        "config, sentences",
        [(SMALL, 60), (SegmentationConfig(), 400)],
        ids=["small", "default"],
    )
    def test_consecutive_windows_overlap(self, config, sentences):
        text = _long_transcript(sentences)
        step_chars = tokens_to_chars(config.window_step_tokens)
        chunks = Segmenter(config).segment(text, "doc")

        assert any(len(c.windows) > 1 for c in chunks)
        for chunk in chunks:
            windows = chunk.windows
            assert windows
            assert windows[0].start_offset == chunk.start_offset
            assert windows[-1].end_offset == chunk.end_offset
            for prev, nxt in zip(windows, windows[1:]):
                assert nxt.start_offset < prev.end_offset
                assert 0 < nxt.start_offset - prev.start_offset <= step_chars

    def test_ids_are_stable_and_positional(self):
        text = _long_transcript()
        first = Segmenter(SMALL).segment(text, "doc")
        second = Segmenter(SMALL).segment(text, "doc")

        assert [c.id for c in first] == [c.id for c in second]
        assert [c.id for c in first][:3] == ["doc_c00", "doc_c01", "doc_c02"]
        assert [w.id for w in first[1].windows][:2] == ["doc_c01_w0", "doc_c01_w1"]

    def test_text_without_boundaries_terminates(self):
        text = "x" * 1000
        chunks = Segmenter(SMALL).segment(text, "doc")

        assert chunks[-1].end_offset == 1000
        assert all(len(c.text) <= tokens_to_chars(SMALL.chunk_tokens) for c in chunks)

    def test_source_id_whitespace_is_replaced(self):
        chunks = Segmenter(SMALL).segment("Hello world.", "nurse a")
        assert chunks[0].id == "nurse_a_c00"


class TestModeratorFilter:
    """Test removal of interviewer turns."""

    def test_removes_interviewer_turns_with_continuation_lines(self):
        text = "\n".join(
            [
                "Interviewer: How long have you worked there?",
                "And in which unit?",
                "Respondent: Six years, in the ER.",
                "It is a busy unit.",
                "Q: Anything else?",
                "Nurse: No.",
            ]
        )

        filtered = filter_moderator_turns(text)

        assert filtered.splitlines() == [
            "Respondent: Six years, in the ER.",
            "It is a busy unit.",
            "Nurse: No.",
        ]

    def test_keeps_unlabeled_text_outside_moderator_turns(self):
        text = "Some intro notes.\nRespondent: Hello."
        assert filter_moderator_turns(text) == text

    def test_custom_interviewer_labels(self):
        text = "Dr. Smith: Which products do you use?\nAnna: Mostly foam dressings."

        filtered = filter_moderator_turns(text, interviewer_labels=["Dr. Smith"], respondent_labels=["Anna"])

        assert filtered == "Anna: Mostly foam dressings."

    def test_labels_are_case_insensitive(self):
        text = "INTERVIEWER: Hello?\nrespondent: Hi."
        assert filter_moderator_turns(text) == "respondent: Hi."

    @pytest.mark.parametrize("line", ["I think: it works.", "Quite often: yes."])
    def test_sentences_with_colons_are_not_labels(self, line):
        assert filter_moderator_turns(line) == line
