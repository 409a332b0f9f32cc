# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Token count estimation.

Only used to size chunks and windows. The estimate assumes roughly four
characters per token for English text, which is good enough for budgeting.
"""

import math

CHARS_PER_TOKEN = 4


def token_count(text: str) -> int:
    """Estimate the token count of a text (whitespace collapsed)."""

    if not text:
        return 0
    cleaned = " ".join(text.split())
    return math.ceil(len(cleaned) / CHARS_PER_TOKEN)


def tokens_to_chars(tokens: int) -> int:
    """Convert a token budget into a character budget."""

    return tokens * CHARS_PER_TOKEN
