# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Hash utilities.

MD5 hashes are only used to detect changes of transcripts and settings
between runs, never for security.
"""

import hashlib
import json
from pathlib import Path
from typing import Any


def _md5() -> Any:
    # FIPS-mode OpenSSL builds reject MD5 unless flagged as non-security use.
    return hashlib.md5(usedforsecurity=False)


def md5_file(path: Path) -> str:
    """Compute the lowercase hex MD5 digest of a file."""

    hasher = _md5()
    with path.open("rb") as handle:
        for block in iter(lambda: handle.read(1024 * 1024), b""):
            hasher.update(block)
    return hasher.hexdigest()


def md5_text(text: str) -> str:
    """Compute the MD5 digest of a text string (UTF-8 encoded)."""

    hasher = _md5()
    hasher.update(text.encode("utf-8"))
    return hasher.hexdigest()


def settings_fingerprint(settings: dict[str, Any]) -> str:
    """Stable digest of a settings mapping (key order does not matter)."""

    return md5_text(json.dumps(settings, sort_keys=True, ensure_ascii=False, default=str))
