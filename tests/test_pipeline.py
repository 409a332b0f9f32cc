"""
End-to-end tests of the extraction pipeline with in-memory services.
"""
import asyncio

import pytest

from interview_matrix.config import SegmentationConfig
from interview_matrix.errors import EmbeddingUnavailableError, PipelineError
from interview_matrix.extraction import AnswerExtractor
from interview_matrix.models import GuideItem, TranscriptDocument
from interview_matrix.pipeline import ExtractionOrchestrator
from interview_matrix.retrieval import RetrievalEngine
from interview_matrix.retry import RetryCaller
from interview_matrix.segmenter import Segmenter
from interview_matrix.task_pool import TaskPool

ROLE_QUESTION = GuideItem(theme="Warm-up", question="What is your current role as a nurse?")
BUDGET_QUESTION = GuideItem(theme="Supply/Budget", question="How is the wound care budget managed?")


def _transcript(label: str, text: str, segmentation: SegmentationConfig | None = None) -> TranscriptDocument:
    chunks = Segmenter(segmentation).segment(text, label.lower().replace(" ", "_"))
    return TranscriptDocument(file_id=label, label=label, chunks=tuple(chunks))


def _orchestrator(chat, embedder, *, chat_capacity=6, min_composite_score=0.0, sleep=None):
    retry_caller = RetryCaller(sleep=sleep) if sleep is not None else RetryCaller()
    return ExtractionOrchestrator(
        RetrievalEngine(embedder, TaskPool(4, name="embed")),
        AnswerExtractor(chat, retry_caller),
        TaskPool(chat_capacity, name="chat"),
        min_composite_score=min_composite_score,
    )


class TestExtractionOrchestrator:
    """Test the full question-by-respondent run."""

    def test_single_respondent_nurse_answer(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer)
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        nurse = _transcript("Nurse A", "Respondent: I am a nurse in the ER. I have worked there for 6 years.")

        result = asyncio.run(_orchestrator(chat, embedder).run([nurse], [ROLE_QUESTION]))

        assert len(result.questions) == 1
        row = result.questions[0]
        assert row.question_type == "Warm-up"
        assert row.question == ROLE_QUESTION.question

        answer = row.respondents["Nurse A"]
        assert answer.quote == "I am a nurse in the ER."
        assert answer.theme == "Role/Unit"
        assert answer.source.participant_label == "Nurse A"
        assert answer.source.window_id == "nurse_a_c00_w0"
        assert answer.source.chunk_id == "nurse_a_c00"

        meta = result.metadata
        assert meta.answered_question_count == 1
        assert meta.total_question_count == 1
        assert meta.total_respondent_count == 1
        assert meta.supported_quote_count == 1
        assert meta.total_tokens == 42
        assert meta.retry_count == 0

    def test_respondent_without_matching_text_is_missing(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer)
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        nurse = _transcript("Nurse A", "I am a nurse in the ER.")
        other = _transcript("Doctor B", "We discussed the weather all day.")

        result = asyncio.run(_orchestrator(chat, embedder).run([nurse, other], [ROLE_QUESTION]))

        assert list(result.questions[0].respondents) == ["Nurse A"]
        assert result.metadata.total_respondent_count == 2
        # Only the matching transcript was sent to the model.
        assert len(chat.calls) == 1
        assert len(embedder.single_calls) == 1

    def test_unusable_model_output_leaves_cell_empty(self, fake_chat, fake_embedder):
        chat = fake_chat(lambda system, user: {"summary": "no quote"})
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        nurse = _transcript("Nurse A", "I am a nurse in the ER.")

        result = asyncio.run(_orchestrator(chat, embedder).run([nurse], [ROLE_QUESTION, BUDGET_QUESTION]))

        assert [q.respondents for q in result.questions] == [{}, {}]
        assert result.metadata.answered_question_count == 0
        assert result.metadata.total_question_count == 2
        assert result.metadata.total_tokens == 42

    def test_questions_keep_guide_order(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer)
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        nurse = _transcript("Nurse A", "I am a nurse. The wound care budget is managed by the ward.")
        seen = []

        result = asyncio.run(
            _orchestrator(chat, embedder).run(
                [nurse],
                [BUDGET_QUESTION, ROLE_QUESTION],
                progress=lambda idx, total, item: seen.append((idx, total, item.question)),
            )
        )

        assert [q.question for q in result.questions] == [BUDGET_QUESTION.question, ROLE_QUESTION.question]
        assert seen == [(1, 2, BUDGET_QUESTION.question), (2, 2, ROLE_QUESTION.question)]

    def test_chat_pool_limits_concurrent_calls(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer, delay=0.01)
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        small = SegmentationConfig(
            chunk_tokens=50,
            chunk_overlap_tokens=10,
            window_tokens=20,
            window_step_tokens=10,
            boundary_slack_tokens=5,
        )
        text = " ".join(f"As a nurse I handled case {i} today." for i in range(40))
        transcripts = [_transcript(f"Nurse {n}", text, small) for n in "ABC"]

        result = asyncio.run(_orchestrator(chat, embedder, chat_capacity=2).run(transcripts, [ROLE_QUESTION]))

        assert chat.peak_active <= 2
        assert len(chat.calls) == 3 * 8
        assert set(result.questions[0].respondents) == {"Nurse A", "Nurse B", "Nurse C"}
        assert result.metadata.total_tokens == 3 * 8 * 42

    def test_retries_are_summed(self, fake_chat, fake_embedder, nurse_answer, recording_sleep):
        from interview_matrix.retry import CallError, Err, ErrorKind

        failures = {"left": 2}

        def responder(system, user):
            if failures["left"]:
                failures["left"] -= 1
                return Err(CallError(ErrorKind.RATE_LIMITED, "429"))
            return nurse_answer

        chat = fake_chat(responder)
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        nurse = _transcript("Nurse A", "I am a nurse in the ER.")

        result = asyncio.run(_orchestrator(chat, embedder, sleep=recording_sleep).run([nurse], [ROLE_QUESTION]))

        assert result.metadata.retry_count == 2
        assert result.metadata.rate_limit_hit_count == 2
        assert result.metadata.answered_question_count == 1

    def test_threshold_filters_weak_answers(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer)
        embedder = fake_embedder(lambda text: [1.0, 0.5])
        nurse = _transcript("Nurse A", "I am a nurse in the ER.")

        result = asyncio.run(
            _orchestrator(chat, embedder, min_composite_score=0.99).run([nurse], [ROLE_QUESTION])
        )

        assert result.questions[0].respondents == {}

    def test_total_embedding_outage_aborts_the_run(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer)
        embedder = fake_embedder(lambda text: [])
        nurse = _transcript("Nurse A", "I am a nurse in the ER.")

        with pytest.raises(EmbeddingUnavailableError):
            asyncio.run(_orchestrator(chat, embedder).run([nurse], [ROLE_QUESTION]))

        assert chat.calls == []

    @pytest.mark.parametrize(
        "transcripts, guide",
        [
            ([], [ROLE_QUESTION]),
            (None, []),
            ("duplicate", [ROLE_QUESTION]),
        ],
    )
    def test_invalid_input(self, fake_chat, fake_embedder, transcripts, guide):
        nurse = _transcript("Nurse A", "I am a nurse in the ER.")
        if transcripts is None:
            transcripts = [nurse]
        elif transcripts == "duplicate":
            transcripts = [nurse, nurse]

        orchestrator = _orchestrator(fake_chat(lambda s, u: None), fake_embedder(lambda t: [1.0]))

        with pytest.raises(PipelineError):
            asyncio.run(orchestrator.run(transcripts, guide))

    def test_role_question_with_known_similarity(self, fake_chat, fake_embedder):
        question = GuideItem(theme="Warm-up", question="What is your role?")
        chat = fake_chat(
            lambda system, user: {
                "quote": "I am a nurse in the ER.",
                "summary": "Works as an ER nurse.",
                "theme": "Role/Unit",
                "supported_by_quote": True,
                "confidence": 0.9,
            }
        )
        embedder = fake_embedder(lambda text: [1.0, 0.0] if text == question.question else [0.8, 0.6])
        respondent = _transcript("R1", "Respondent: My role? I am a nurse in the ER.")

        result = asyncio.run(_orchestrator(chat, embedder).run([respondent], [question]))

        assert result.questions[0].respondents["R1"].quote == "I am a nurse in the ER."
        assert result.metadata.answered_question_count == 1

    def test_failed_question_embedding_leaves_only_that_question_empty(self, fake_chat, fake_embedder, nurse_answer):
        chat = fake_chat(lambda system, user: nurse_answer)
        calls = {"n": 0}

        def vectorize(text):
            calls["n"] += 1
            return [] if calls["n"] == 1 else [1.0, 0.5]

        embedder = fake_embedder(vectorize)
        nurse = _transcript("Nurse A", "I am a nurse. The wound care budget is managed by the ward.")

        result = asyncio.run(_orchestrator(chat, embedder).run([nurse], [ROLE_QUESTION, BUDGET_QUESTION]))

        assert result.questions[0].respondents == {}
        assert list(result.questions[1].respondents) == ["Nurse A"]
        assert result.metadata.answered_question_count == 1
        assert len(chat.calls) == 1
