# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Logging setup for the CLI.

Library modules only use `logging.getLogger(__name__)`. The CLI calls
`setup_logging()` once at startup. The level is taken from `LOG_LEVEL`
(`DEBUG`, `INFO`, `WARNING`, `ERROR`, or `NONE` to silence logging).

URLs in log messages are masked because the endpoint URL of a self-hosted
OpenAI-compatible service may contain tokens.
"""

import logging
import os
import re
from urllib.parse import urlsplit, urlunsplit

_URL_RE = re.compile(r"\bhttps?://[^\s<>'\")\]]+", re.IGNORECASE)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _mask_url(url: str) -> str:
    """Keep scheme, host and last path segment. Drop query and fragment."""

    try:
        parts = urlsplit(url)
    except ValueError:
        return "<url-hidden>"

    segments = [s for s in (parts.path or "").split("/") if s]
    masked_path = f"/.../{segments[-1]}" if segments else "/"
    return urlunsplit((parts.scheme, parts.netloc, masked_path, "", ""))


def mask_urls_in_text(text: str) -> str:
    return _URL_RE.sub(lambda m: _mask_url(m.group(0)), text)


class MaskUrlsFilter(logging.Filter):
    """A logging filter that masks any http(s) URLs inside log messages."""

    def filter(self, record: logging.LogRecord) -> bool:
        msg = record.getMessage()
        masked = mask_urls_in_text(msg)
        if masked != msg:
            # Replace the message after formatting the args.
            record.msg = masked
            record.args = ()
        return True


def log_level_from_env() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    if name == "NONE":
        return logging.CRITICAL + 1
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: int | None = None) -> None:
    """Configure the root logger. An explicit level overrides `LOG_LEVEL`."""

    if level is None:
        level = log_level_from_env()

    logging.basicConfig(level=level, format=LOG_FORMAT)

    # Handler filters also apply to records propagated from child loggers.
    url_filter = MaskUrlsFilter()
    for handler in logging.getLogger().handlers:
        handler.addFilter(url_filter)

    # HTTP client request lines are only interesting when debugging.
    if level > logging.DEBUG:
        for name in ("httpx", "httpcore", "openai"):
            logging.getLogger(name).setLevel(max(level, logging.WARNING))
