# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Controlled theme vocabulary.

Each guide theme category (the `question_type` of a guide item) has a small
set of allowed answer themes. Extracted answers whose theme is not in the set
are re-labelled as `Other`.
"""

from typing import Mapping, Sequence

OTHER_THEME = "Other"

DEFAULT_VOCABULARY: dict[str, tuple[str, ...]] = {
    "Warm-up": ("Experience/Setting", "Role/Unit", "Patient Mix", OTHER_THEME),
    "Current Practices": ("Workflow", "Assessment", "Products", "Outcomes", "Complications", OTHER_THEME),
    "Supply/Budget": ("Stocking", "Formulary", "Procurement", "Off-Formulary", "Budget", OTHER_THEME),
    "Trials": ("Criteria", "Duration", "Metrics", "Training", "Adoption", OTHER_THEME),
    "Challenges": ("Access", "Staffing/Training", "Evidence", "Workflow", "Budget", OTHER_THEME),
}

FALLBACK_VOCABULARY: tuple[str, ...] = ("Experience", "Process", "Outcome", "Challenge", OTHER_THEME)


class ThemeVocabulary:
    """
    Lookup of allowed themes per guide theme category.

    Args:
        overrides:
            Additional or replacing vocabularies from the configuration.
            `Other` is always allowed and does not need to be listed.
    """

    def __init__(self, overrides: Mapping[str, Sequence[str]] | None = None) -> None:
        vocab: dict[str, tuple[str, ...]] = dict(DEFAULT_VOCABULARY)
        for category, labels in (overrides or {}).items():
            vocab[category] = _with_other(labels)
        self._vocab = vocab
        self._by_casefold = {k.casefold(): v for k, v in vocab.items()}

    @property
    def categories(self) -> list[str]:
        return list(self._vocab)

    def allowed_themes(self, category: str) -> tuple[str, ...]:
        """
        Return the allowed themes for a category.

        Exact category names win over case-insensitive matches. Unknown
        categories get the generic fallback vocabulary.
        """

        if category in self._vocab:
            return self._vocab[category]
        return self._by_casefold.get(category.strip().casefold(), FALLBACK_VOCABULARY)


def _with_other(labels: Sequence[str]) -> tuple[str, ...]:
    cleaned = list(dict.fromkeys(x.strip() for x in labels if x.strip()))
    if OTHER_THEME not in cleaned:
        cleaned.append(OTHER_THEME)
    return tuple(cleaned)
