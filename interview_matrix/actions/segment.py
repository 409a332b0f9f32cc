# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Data segmentation action.

This action reads the transcript documents, removes interviewer turns, and cuts
the remaining text into chunks and overlapping windows with stable IDs. The
result is written to one YAML work file per transcript plus an index file:

    <workdir>/segments/<document_id>.yaml
    <workdir>/segments/index.yaml

Unchanged transcripts (same MD5 and same segmentation settings) are skipped.
"""

import argparse
import fnmatch
import glob
import hashlib
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from interview_matrix.actions.base import rel_posix
from interview_matrix.config import ConfigError, InterviewConfig
from interview_matrix.hash_utils import md5_file, settings_fingerprint
from interview_matrix.segmenter import Segmenter, filter_moderator_turns
from interview_matrix.transcripts.registry import TRANSCRIPT_PARSING_VERSION, read_transcript
from interview_matrix.yaml_io import read_yaml_mapping, write_yaml_mapping

MAX_TRANSCRIPTS = 20


def normalize_glob_pattern(pattern: str) -> str:
    """
    Normalize user-provided glob patterns to Python's recursive glob syntax.

    Patterns like `**.odt` are not standard recursive glob segments and are
    converted to `**/*.odt`.
    """

    p = pattern.strip()
    if p.startswith("**.") and "/" not in p:
        return f"**/*.{p[3:]}"
    if p in {"**", "**/"}:
        return "**/*"
    return p


def discover_input_files(config: InterviewConfig) -> list[Path]:
    """
    Find transcript files based on include/exclude patterns.

    Patterns are resolved relative to the directory containing the YAML
    configuration.

    Returns:
        Sorted list of paths to transcript files.

    Raises:
        ConfigError:
            If more transcripts match than can be analyzed in one run.
    """

    base_dir = config.base_dir

    paths: list[Path] = []
    for pattern in config.include:
        include_glob = (base_dir / normalize_glob_pattern(pattern)).as_posix()
        paths.extend(Path(p) for p in glob.glob(include_glob, recursive=True))

    if config.exclude:
        excludes = [normalize_glob_pattern(p) for p in config.exclude]
        paths = [p for p in paths if not any(fnmatch.fnmatch(rel_posix(base_dir, p), ex) for ex in excludes)]

    files = sorted({p.resolve() for p in paths if p.is_file()})
    if len(files) > MAX_TRANSCRIPTS:
        raise ConfigError(f"Maximum of {MAX_TRANSCRIPTS} transcripts allowed, found {len(files)}")

    return files


def document_id(base_dir: Path, input_path: Path) -> str:
    """Compute a stable, filesystem-friendly identifier from the file path."""

    rel = rel_posix(base_dir, input_path)
    digest = hashlib.sha1(rel.encode("utf-8"), usedforsecurity=False).hexdigest()[:10]
    safe = "".join(ch if ch.isalnum() or ch in {"-", "_"} else "_" for ch in input_path.stem)
    safe = safe.strip("_") or "document"
    return f"{safe}-{digest}"


def segmentation_settings(config: InterviewConfig) -> dict[str, Any]:
    """Settings that influence the segment work files."""

    return {
        **asdict(config.segmentation),
        "exclude_interviewer": config.analysis.exclude_interviewer,
        "transcript_parsing_version": TRANSCRIPT_PARSING_VERSION,
    }


@dataclass(frozen=True)
class SegmentAction:
    """
    `segment` subcommand.

    Segments transcripts into chunks and windows for retrieval.
    """

    name: str = "segment"
    help: str = "Filter and segment transcripts into chunks and windows"
    requires_config: bool = True

    def add_arguments(self, parser: argparse.ArgumentParser) -> None:
        _ = parser

    def run(self, args: argparse.Namespace, config: InterviewConfig | None) -> None:
        """
        Execute data segmentation.

        Raises:
            ConfigError:
                If input files cannot be discovered.
        """

        if config is None:
            raise RuntimeError("SegmentAction requires a config, but none was provided")

        _ = args
        out_dir = config.workdir / "segments"
        out_dir.mkdir(parents=True, exist_ok=True)

        input_files = discover_input_files(config)
        if not input_files:
            print("No input transcript files found.")
            return

        settings = segmentation_settings(config)
        fingerprint = settings_fingerprint(settings)
        segmenter = Segmenter(config.segmentation)

        index: dict[str, Any] = {
            "schema_version": 1,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "config": {
                "path": rel_posix(config.base_dir, config.config_path),
            },
            "segmentation": {**settings, "fingerprint": fingerprint},
            "documents": [],
        }

        updated = 0
        skipped = 0
        failed = 0
        for input_path in input_files:
            doc_record, did_update = self._segment_one_file(
                config=config,
                segmenter=segmenter,
                input_path=input_path,
                out_dir=out_dir,
                settings=settings,
                fingerprint=fingerprint,
            )
            index["documents"].append(doc_record)
            if doc_record.get("status") == "failed":
                failed += 1
            elif did_update:
                updated += 1
            else:
                skipped += 1

        index_path = out_dir / "index.yaml"
        write_yaml_mapping(index_path, index)

        print(
            f"Processed {len(input_files)} transcript(s): updated {updated}, skipped {skipped}, "
            f"failed {failed}. Wrote index: {index_path}"
        )

    def _segment_one_file(
        self,
        *,
        config: InterviewConfig,
        segmenter: Segmenter,
        input_path: Path,
        out_dir: Path,
        settings: dict[str, Any],
        fingerprint: str,
    ) -> tuple[dict[str, Any], bool]:
        """
        Segment one transcript file and write its YAML work file.

        Returns:
            A document entry for the index file and whether the work file was
            (re)written.
        """

        doc_id = document_id(config.base_dir, input_path)
        rel_path = rel_posix(config.base_dir, input_path)
        out_path = out_dir / f"{doc_id}.yaml"

        transcript_md5 = md5_file(input_path)
        if out_path.exists():
            existing = read_yaml_mapping(out_path)
            if self._segments_up_to_date(
                existing, rel_path=rel_path, transcript_md5=transcript_md5, fingerprint=fingerprint
            ):
                print(f"Skipping unchanged transcript: {rel_path}")
                return self._index_record(config, existing, out_path), False

        print(f"Segmenting: {rel_path} ", end="", flush=True)

        try:
            parsed = read_transcript(input_path)
        except ConfigError as exc:
            print()  # finish progress line
            print(f"WARNING: Skipping transcript due to parse error: {rel_path}\n{exc}")
            return (
                {
                    "document_id": doc_id,
                    "source_path": rel_path,
                    "status": "failed",
                    "error": str(exc),
                },
                False,
            )

        metadata = parsed.metadata
        text = parsed.text
        if config.analysis.exclude_interviewer:
            text = filter_moderator_turns(
                text,
                interviewer_labels=metadata.interviewers,
                respondent_labels=[metadata.respondent] if metadata.respondent else (),
            )

        chunks = segmenter.segment(text, doc_id)
        windows_total = sum(len(c.windows) for c in chunks)

        print("." * len(chunks) + f" ({len(chunks)} chunk(s), {windows_total} window(s))")
        if not chunks:
            print(f"WARNING: No respondent text left after filtering: {rel_path}")

        payload: dict[str, Any] = {
            "schema_version": 1,
            "generated_at": datetime.now(timezone.utc).isoformat(),
            "source": {
                "path": rel_path,
                "md5": transcript_md5,
            },
            "document_id": doc_id,
            "label": metadata.respondent or input_path.stem,
            "metadata": metadata.to_dict(),
            "segmentation": {**settings, "fingerprint": fingerprint},
            "source_chars": len(parsed.text),
            "filtered_chars": len(text),
            "chunks_total": len(chunks),
            "windows_total": windows_total,
            "chunks": [c.to_dict() for c in chunks],
        }
        write_yaml_mapping(out_path, payload)

        return self._index_record(config, payload, out_path), True

    def _index_record(self, config: InterviewConfig, payload: dict[str, Any], out_path: Path) -> dict[str, Any]:
        source = payload.get("source") if isinstance(payload.get("source"), dict) else {}
        return {
            "document_id": payload.get("document_id"),
            "label": payload.get("label"),
            "source_path": source.get("path"),
            "segments_file": rel_posix(config.base_dir, out_path),
            "chunks_total": int(payload.get("chunks_total") or 0),
            "windows_total": int(payload.get("windows_total") or 0),
        }

    def _segments_up_to_date(
        self,
        existing: dict[str, Any],
        *,
        rel_path: str,
        transcript_md5: str,
        fingerprint: str,
    ) -> bool:
        """Return True if an existing segment work file matches current inputs."""

        source = existing.get("source")
        if not isinstance(source, dict):
            return False

        if str(source.get("path") or "") != rel_path:
            return False

        if str(source.get("md5") or "") != transcript_md5:
            return False

        seg_cfg = existing.get("segmentation")
        if not isinstance(seg_cfg, dict):
            return False

        return str(seg_cfg.get("fingerprint") or "") == fingerprint
