# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Discussion guide parsing.

A guide is either given as a structured list of `{theme, question}` entries or
as free text as it is typically written for moderators:

    # Warm-up
    - Tell me about your role and the unit you work in.

    # Current Practices
    ## Assessment
    1. How do you assess a new patient today?

Free text is parsed into sections and subsections first, then flattened into
ordered guide items whose theme is the section title.
"""

import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Sequence

import yaml

from interview_matrix.models import GuideItem

DEFAULT_THEME = "General"

MAX_GUIDE_QUESTIONS = 100
MAX_GUIDE_TEXT_CHARS = 50_000
MIN_QUESTION_CHARS = 11

_BOILERPLATE_KEYWORDS = (
    "thank you",
    "gdpr",
    "consent",
    "minutes",
    "introduction",
    "confidential",
    "recording",
    "disclosure",
    "welcome",
    "agenda",
)

_SUBSECTION_RE = re.compile(r"^#{2,}\s*(?P<title>.+?)\s*#*$")
_MD_SECTION_RE = re.compile(r"^#\s*(?P<title>.+?)\s*#*$")
_NAMED_SECTION_RE = re.compile(r"^section\s+\d+\s*[:.\-]\s*(?P<title>.+)$", re.IGNORECASE)
_LETTER_SECTION_RE = re.compile(r"^(?:[A-Z]|[IVX]+)\.\s+(?P<title>.+)$")
_CAPS_SECTION_RE = re.compile(r"^(?P<title>[A-Z][A-Z0-9 /&\-]{2,}):$")

_BULLET_RE = re.compile(r"^[*\-•]\s+(?P<text>.+)$")
_NUMBERED_RE = re.compile(r"^(?:\d+[.)]|Q\d*[:.)])\s*(?P<text>.+)$", re.IGNORECASE)


class GuideError(ValueError):
    """Raised for guides that cannot be parsed or exceed the limits."""

    pass


@dataclass(frozen=True)
class GuideSubsection:
    title: str
    questions: tuple[str, ...] = ()


@dataclass(frozen=True)
class GuideSection:
    title: str
    questions: tuple[str, ...] = ()
    subsections: tuple[GuideSubsection, ...] = ()


# Immutable builders. Each returns a new tuple of sections and never modifies
# the given one.


def add_section(sections: Sequence[GuideSection], title: str) -> tuple[GuideSection, ...]:
    return (*sections, GuideSection(title=title.strip()))


def add_subsection(
    sections: Sequence[GuideSection],
    section_index: int,
    title: str,
) -> tuple[GuideSection, ...]:
    section = sections[section_index]
    updated = replace(section, subsections=(*section.subsections, GuideSubsection(title=title.strip())))
    return _replace_at(sections, section_index, updated)


def add_question(
    sections: Sequence[GuideSection],
    question: str,
    *,
    section_index: int,
    subsection_index: int | None = None,
) -> tuple[GuideSection, ...]:
    """
    Add a question to a section or to one of its subsections.

    Args:
        sections:
            Current guide structure.
        question:
            Question text.
        section_index:
            Index of the target section.
        subsection_index:
            Index of the target subsection within the section, or None to add
            the question to the section itself.

    Returns:
        The new guide structure.

    Raises:
        IndexError:
            If an index does not exist.
    """

    section = sections[section_index]
    text = question.strip()

    if subsection_index is None:
        updated = replace(section, questions=(*section.questions, text))
    else:
        sub = section.subsections[subsection_index]
        new_sub = replace(sub, questions=(*sub.questions, text))
        updated = replace(section, subsections=_replace_at(section.subsections, subsection_index, new_sub))

    return _replace_at(sections, section_index, updated)


def _replace_at(items: Sequence[Any], index: int, value: Any) -> tuple[Any, ...]:
    if not -len(items) <= index < len(items):
        raise IndexError(f"Index out of range: {index}")
    out = list(items)
    out[index] = value
    return tuple(out)


def flatten_guide(sections: Sequence[GuideSection]) -> list[GuideItem]:
    """
    Turn a sectioned guide into ordered guide items.

    Section questions come before subsection questions. The theme of every
    item is the title of its top-level section.
    """

    items: list[GuideItem] = []
    for section in sections:
        items.extend(GuideItem(theme=section.title, question=q) for q in section.questions)
        for sub in section.subsections:
            items.extend(GuideItem(theme=section.title, question=q) for q in sub.questions)
    return items


def _section_title(line: str) -> str | None:
    if line.endswith("?"):
        return None
    for pattern in (_MD_SECTION_RE, _NAMED_SECTION_RE, _LETTER_SECTION_RE, _CAPS_SECTION_RE):
        match = pattern.match(line)
        if match:
            return match.group("title").strip().rstrip(":").strip()
    return None


def _question_text(line: str) -> str | None:
    for pattern in (_BULLET_RE, _NUMBERED_RE):
        match = pattern.match(line)
        if match:
            return match.group("text").strip()
    if line.endswith("?"):
        return line
    return None


def _is_boilerplate(text: str) -> bool:
    lowered = text.lower()
    return any(k in lowered for k in _BOILERPLATE_KEYWORDS)


def parse_guide_sections(text: str) -> tuple[GuideSection, ...]:
    """
    Parse free-text guide into sections and subsections.

    Recognized section headers are `# Title`, `Section 3: Title`, `A. Title`,
    `IV. Title` and `TITLE:`. `## Title` starts a subsection. Bulleted,
    numbered and `?`-terminated lines are questions. Boilerplate (consent,
    recording, thank you, ...) and very short items are skipped. Questions
    before the first header go to a `General` section.
    """

    sections: tuple[GuideSection, ...] = ()
    subsection_index: int | None = None

    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line:
            continue

        sub_match = _SUBSECTION_RE.match(line)
        if sub_match:
            if not sections:
                sections = add_section(sections, DEFAULT_THEME)
            sections = add_subsection(sections, len(sections) - 1, sub_match.group("title"))
            subsection_index = len(sections[-1].subsections) - 1
            continue

        title = _section_title(line)
        if title:
            sections = add_section(sections, title)
            subsection_index = None
            continue

        question = _question_text(line)
        if question is None or len(question) < MIN_QUESTION_CHARS or _is_boilerplate(question):
            continue

        if not sections:
            sections = add_section(sections, DEFAULT_THEME)
        sections = add_question(
            sections,
            question,
            section_index=len(sections) - 1,
            subsection_index=subsection_index,
        )

    return sections


def parse_guide_text(text: str) -> list[GuideItem]:
    """
    Parse a free-text guide into guide items.

    Raises:
        GuideError:
            If the text is too long, contains no questions, or too many.
    """

    if len(text) > MAX_GUIDE_TEXT_CHARS:
        raise GuideError(f"Guide text exceeds {MAX_GUIDE_TEXT_CHARS} characters")

    return _check_items(flatten_guide(parse_guide_sections(text)))


def parse_guide(value: Any) -> list[GuideItem]:
    """
    Parse a guide given as list or free text.

    List entries can be mappings with `question` and optional `theme` (default
    `General`) or plain question strings.

    Raises:
        GuideError:
            If the guide format is invalid or limits are exceeded.
    """

    if isinstance(value, str):
        return parse_guide_text(value)

    if not isinstance(value, list):
        raise GuideError("Guide must be a list of {theme, question} entries or a string")

    if len(value) > MAX_GUIDE_QUESTIONS:
        raise GuideError(f"Maximum of {MAX_GUIDE_QUESTIONS} guide questions allowed")

    items: list[GuideItem] = []
    for idx, entry in enumerate(value, start=1):
        if isinstance(entry, str):
            question, theme = entry, DEFAULT_THEME
        elif isinstance(entry, dict):
            question = entry.get("question")
            theme = entry.get("theme") or entry.get("question_type") or DEFAULT_THEME
        else:
            raise GuideError(f"Guide entry #{idx} must be a mapping or a string")

        if not isinstance(question, str) or not question.strip():
            raise GuideError(f"Guide entry #{idx} must have a non-empty question")
        if not isinstance(theme, str) or not theme.strip():
            raise GuideError(f"Guide entry #{idx} has an invalid theme")

        items.append(GuideItem(theme=theme.strip(), question=question.strip()))

    return _check_items(items)


def load_guide_file(path: Path) -> list[GuideItem]:
    """
    Load a guide from a YAML (`.yaml`, `.yml`) or text (`.txt`, `.md`) file.

    A YAML file may contain the list directly or a mapping with a `guide` key.

    Raises:
        GuideError:
            If the file cannot be read or parsed.
    """

    suffix = path.suffix.lower()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise GuideError(f"Failed to read guide file '{path}': {exc}") from exc

    if suffix in {".yaml", ".yml"}:
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise GuideError(f"Failed to parse guide YAML '{path}': {exc}") from exc
        if isinstance(raw, dict):
            raw = raw.get("guide")
        return parse_guide(raw)

    if suffix in {".txt", ".md"}:
        return parse_guide_text(text)

    raise GuideError(f"Unsupported guide format: {path} (supported: .md, .txt, .yaml, .yml)")


def _check_items(items: list[GuideItem]) -> list[GuideItem]:
    if not items:
        raise GuideError("The guide contains no questions")
    if len(items) > MAX_GUIDE_QUESTIONS:
        raise GuideError(f"Maximum of {MAX_GUIDE_QUESTIONS} guide questions allowed")
    return items
