"""
Tests of the CLI subcommands on a small project in a temporary directory.
"""
import json

import pytest
import yaml

from interview_matrix import app
from interview_matrix.actions import analyze as analyze_action
from interview_matrix.actions.analyze import load_transcript_documents, unique_labels
from interview_matrix.actions.segment import MAX_TRANSCRIPTS, discover_input_files, normalize_glob_pattern
from interview_matrix.config import ConfigError, load_config
from interview_matrix.pipeline import create_orchestrator

CONFIG = """\
include: "transcripts/**/*.txt"
exclude: "transcripts/private/*"
workdir: ./work
outfile: matrix.json
guide:
  - theme: Warm-up
    question: What is your current role as a nurse?
"""

NURSE = """\
respondent = Nurse A

Interviewer: What is your current role?

Respondent: I am a nurse in the ER.
"""

DOCTOR = """\
Interviewer: What do you do?

Doctor: I lead the wound clinic.
"""


@pytest.fixture
def project(tmp_path):
    transcripts = tmp_path / "transcripts"
    (transcripts / "private").mkdir(parents=True)
    (transcripts / "nurse.txt").write_text(NURSE, encoding="utf-8")
    (transcripts / "doctor.txt").write_text(DOCTOR, encoding="utf-8")
    (transcripts / "private" / "secret.txt").write_text("Respondent: secret", encoding="utf-8")

    config_path = tmp_path / "interviews.yaml"
    config_path.write_text(CONFIG, encoding="utf-8")
    return config_path


@pytest.fixture
def fake_services(monkeypatch, fake_chat, fake_embedder, nurse_answer):
    chat = fake_chat(lambda system, user: nurse_answer)
    embedder = fake_embedder(lambda text: [1.0, 0.5])

    monkeypatch.setattr(
        analyze_action,
        "create_orchestrator",
        lambda config: create_orchestrator(config, chat=chat, embedder=embedder),
    )
    return chat, embedder


class TestHelpers:
    """Test small action helpers."""

    def test_unique_labels(self):
        assert unique_labels(["A", "B", "A", "A"]) == ["A", "B", "A (2)", "A (3)"]

    @pytest.mark.parametrize(
        "pattern, expected",
        [("**.odt", "**/*.odt"), ("**", "**/*"), ("a/*.txt", "a/*.txt")],
    )
    def test_normalize_glob_pattern(self, pattern, expected):
        assert normalize_glob_pattern(pattern) == expected

    def test_discover_respects_excludes(self, project):
        files = discover_input_files(load_config(project))
        assert sorted(p.name for p in files) == ["doctor.txt", "nurse.txt"]

    def test_too_many_transcripts(self, project):
        transcripts = project.parent / "transcripts"
        for i in range(MAX_TRANSCRIPTS):
            (transcripts / f"extra{i}.txt").write_text("Respondent: hi", encoding="utf-8")

        with pytest.raises(ConfigError, match="Maximum"):
            discover_input_files(load_config(project))


class TestTemplateCommand:
    """Test the template subcommand."""

    def test_writes_loadable_template(self, tmp_path):
        dest = tmp_path / "interviews.yaml"

        assert app.main(["template", str(dest)]) == 0
        config = load_config(dest)

        assert len(config.guide) == 4
        assert config.outfile.name == "matrix.json"

    def test_refuses_to_overwrite(self, tmp_path):
        dest = tmp_path / "interviews.yaml"
        dest.write_text("keep", encoding="utf-8")

        assert app.main(["template", str(dest)]) == 2
        assert dest.read_text(encoding="utf-8") == "keep"


class TestSegmentCommand:
    """Test the segment subcommand."""

    def test_writes_work_files(self, project):
        assert app.main(["segment", "--config", str(project)]) == 0

        index = yaml.safe_load((project.parent / "work" / "segments" / "index.yaml").read_text(encoding="utf-8"))
        labels = sorted(d["label"] for d in index["documents"])
        assert labels == ["Nurse A", "doctor"]

        nurse_entry = next(d for d in index["documents"] if d["label"] == "Nurse A")
        work_file = yaml.safe_load((project.parent / nurse_entry["segments_file"]).read_text(encoding="utf-8"))
        text = work_file["chunks"][0]["text"]
        assert "Interviewer" not in text
        assert "I am a nurse in the ER." in text
        assert work_file["metadata"]["respondent"] == "Nurse A"

    def test_unchanged_transcripts_are_skipped(self, project, capsys):
        app.main(["segment", "--config", str(project)])
        capsys.readouterr()

        app.main(["segment", "--config", str(project)])

        out = capsys.readouterr().out
        assert out.count("Skipping unchanged transcript") == 2

    def test_changed_transcript_is_segmented_again(self, project, capsys):
        app.main(["segment", "--config", str(project)])
        (project.parent / "transcripts" / "doctor.txt").write_text(DOCTOR + "\nDoctor: More.\n", encoding="utf-8")
        capsys.readouterr()

        app.main(["segment", "--config", str(project)])

        out = capsys.readouterr().out
        assert out.count("Skipping unchanged transcript") == 1
        assert "Segmenting: transcripts/doctor.txt" in out

    def test_loads_documents_with_labels(self, project):
        app.main(["segment", "--config", str(project)])

        documents = load_transcript_documents(load_config(project))

        assert sorted(d.label for d in documents) == ["Nurse A", "doctor"]
        assert all(d.windows for d in documents)


class TestAnalyzeCommand:
    """Test the analyze subcommand with in-memory services."""

    def test_requires_segmentation(self, project, fake_services):
        assert app.main(["analyze", "--config", str(project)]) == 2

    def test_writes_result_file(self, project, fake_services):
        chat, _ = fake_services
        app.main(["segment", "--config", str(project)])

        assert app.main(["analyze", "--config", str(project)]) == 0

        result = json.loads((project.parent / "matrix.json").read_text(encoding="utf-8"))
        row = result["questions"][0]
        assert row["question_type"] == "Warm-up"
        assert list(row["respondents"]) == ["Nurse A"]
        assert row["respondents"]["Nurse A"]["quote"] == "I am a nurse in the ER."
        assert result["metadata"]["answeredQuestionCount"] == 1
        assert result["metadata"]["totalRespondentCount"] == 2
        assert len(chat.calls) == 1

    def test_existing_output_needs_force(self, project, fake_services, monkeypatch):
        monkeypatch.setattr("interview_matrix.cli_io.is_interactive_tty", lambda: False)
        app.main(["segment", "--config", str(project)])
        (project.parent / "matrix.json").write_text("{}", encoding="utf-8")

        assert app.main(["analyze", "--config", str(project)]) == 2
        assert app.main(["analyze", "--config", str(project), "--force"]) == 0

    def test_total_embedding_outage_fails_the_run(self, project, monkeypatch, fake_chat, fake_embedder):
        chat = fake_chat(lambda system, user: None)
        embedder = fake_embedder(lambda text: [])
        monkeypatch.setattr(
            analyze_action,
            "create_orchestrator",
            lambda config: create_orchestrator(config, chat=chat, embedder=embedder),
        )
        app.main(["segment", "--config", str(project)])

        assert app.main(["analyze", "--config", str(project)]) == 1
        assert not (project.parent / "matrix.json").exists()


class TestCleanCommand:
    """Test the clean subcommand."""

    def test_force_empties_workdir(self, project):
        app.main(["segment", "--config", str(project)])
        workdir = project.parent / "work"

        assert app.main(["clean", "--config", str(project), "--force"]) == 0
        assert workdir.exists()
        assert list(workdir.iterdir()) == []

    def test_non_interactive_without_force(self, project, monkeypatch):
        monkeypatch.setattr("interview_matrix.cli_io.is_interactive_tty", lambda: False)
        app.main(["segment", "--config", str(project)])

        assert app.main(["clean", "--config", str(project)]) == 2
        assert list((project.parent / "work").iterdir())


class TestSmokeCheck:
    """Test the offline smoke check."""

    def test_template_config_passes(self, tmp_path, capsys):
        from interview_matrix import smoke

        dest = tmp_path / "interviews.yaml"
        app.main(["template", str(dest)])

        assert smoke.main(["--config", str(dest), "--print-guide"]) == 0
        assert '"allowed_themes"' in capsys.readouterr().out

    def test_missing_config(self, tmp_path):
        from interview_matrix import smoke

        assert smoke.main(["--config", str(tmp_path / "missing.yaml")]) == 2


class TestGlobalOptions:
    """Test options of the top-level parser."""

    def test_verbose_flag_is_accepted(self, tmp_path):
        assert app.main(["--verbose", "template", str(tmp_path / "interviews.yaml")]) == 0

    def test_missing_command_is_a_usage_error(self):
        with pytest.raises(SystemExit) as exc_info:
            app.main([])
        assert exc_info.value.code == 2
