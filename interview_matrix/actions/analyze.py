# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Matrix analysis action.

This action reads the segmentation work files from the work directory, runs
retrieval and LLM extraction for every guide question and respondent, and
writes the question-by-respondent matrix to the configured output file.
"""

import argparse
import asyncio
import time
from dataclasses import dataclass
from typing import Any, Sequence

from interview_matrix.actions.base import resolve_from_base
from interview_matrix.cli_io import confirm
from interview_matrix.config import ConfigError, InterviewConfig
from interview_matrix.matrix import log_run_metrics, run_metrics
from interview_matrix.models import AnalysisResult, GuideItem, TranscriptDocument, chunk_from_dict
from interview_matrix.pipeline import create_orchestrator
from interview_matrix.yaml_io import read_yaml_mapping, write_result_file


def unique_labels(labels: Sequence[str]) -> list[str]:
    """Make respondent labels unique by numbering duplicates: `A`, `A (2)`, ..."""

    seen: set[str] = set()
    out: list[str] = []
    for label in labels:
        candidate = label
        n = 1
        while candidate in seen:
            n += 1
            candidate = f"{label} ({n})"
        seen.add(candidate)
        out.append(candidate)
    return out


def load_transcript_documents(config: InterviewConfig) -> list[TranscriptDocument]:
    """
    Load segmented transcripts listed in the segmentation index.

    Raises:
        ConfigError:
            If the index is missing or a work file is malformed.
    """

    segments_index = config.workdir / "segments" / "index.yaml"
    if not segments_index.exists():
        raise ConfigError(f"No segmentation index found. Run the 'segment' command first: {segments_index}")

    print(f"Loading segmentation index: {segments_index}")
    index = read_yaml_mapping(segments_index)
    documents = index.get("documents")
    if not isinstance(documents, list):
        raise ConfigError(f"Segmentation index has no document list: {segments_index}")

    loaded: list[tuple[str, str, list[Any]]] = []
    for idx, entry in enumerate(documents, start=1):
        if not isinstance(entry, dict) or entry.get("status") == "failed":
            print(f"Skipping failed or invalid document entry at index {idx}")
            continue

        segments_file = entry.get("segments_file")
        if not isinstance(segments_file, str) or not segments_file.strip():
            print(f"Skipping document entry without segments_file at index {idx}")
            continue

        segments_path = resolve_from_base(config.base_dir, segments_file)
        if not segments_path.exists():
            print(f"Skipping missing segments file: {segments_path}")
            continue

        seg_doc = read_yaml_mapping(segments_path)
        doc_id = seg_doc.get("document_id")
        chunks = seg_doc.get("chunks")
        if not isinstance(doc_id, str) or not isinstance(chunks, list):
            raise ConfigError(f"Malformed segments file: {segments_path}")

        label = seg_doc.get("label")
        loaded.append((doc_id, label if isinstance(label, str) and label.strip() else doc_id, chunks))

    labels = unique_labels([label for _, label, _ in loaded])

    transcripts: list[TranscriptDocument] = []
    for (doc_id, _, chunks), label in zip(loaded, labels):
        try:
            parsed_chunks = tuple(chunk_from_dict(c) for c in chunks)
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"Malformed chunk in segments file of '{doc_id}': {exc}") from exc
        transcripts.append(TranscriptDocument(file_id=doc_id, label=label, chunks=parsed_chunks))

    return transcripts


@dataclass(frozen=True)
class AnalyzeAction:
    """
    `analyze` subcommand.

    Builds the matrix of best-supported quotes per guide question and
    respondent.
    """

    name: str = "analyze"
    help: str = "Extract answers per question and respondent using the LLM"
    requires_config: bool = True

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        parser.add_argument(
            "-f",
            "--force",
            action="store_true",
            help="Overwrite an existing output file without asking",
        )

    def run(self, args: argparse.Namespace, config: InterviewConfig | None) -> None:
        """
        Execute the analysis.

        Raises:
            ConfigError:
                If inputs are missing or the LLM environment is not configured.
            PipelineError:
                If the run cannot be completed.
        """

        if config is None:
            raise RuntimeError("AnalyzeAction requires a config, but none was provided")

        outfile = config.outfile
        if outfile.exists() and not confirm(f"Output file already exists: {outfile}. Overwrite?", force=bool(args.force)):
            print("Aborted.")
            return

        transcripts = load_transcript_documents(config)
        print(f"Analyzing {len(transcripts)} transcript(s) against {len(config.guide)} guide question(s)")

        started = time.perf_counter()
        result = asyncio.run(self._run_async(config, transcripts))
        latency_ms = int((time.perf_counter() - started) * 1000)

        log_run_metrics(run_metrics(result, latency_ms=latency_ms))

        write_result_file(outfile, result.to_dict())

        meta = result.metadata
        print(
            f"Answered {meta.answered_question_count}/{meta.total_question_count} question(s), "
            f"{meta.supported_quote_count} supported quote(s), {meta.total_tokens} token(s). "
            f"Wrote result: {outfile}"
        )

    async def _run_async(self, config: InterviewConfig, transcripts: list[TranscriptDocument]) -> AnalysisResult:
        try:
            orchestrator = create_orchestrator(config)
        except RuntimeError as exc:
            raise ConfigError(str(exc)) from exc

        def _progress(idx: int, total: int, item: GuideItem) -> None:
            print(f"[{idx}/{total}] {item.theme}: {item.question}")

        return await orchestrator.run(transcripts, config.guide, progress=_progress)
