# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Work file and result file I/O.

Work files (segments, index) are YAML. The final result is written as JSON or
YAML depending on the output file suffix.
"""

import json
from pathlib import Path
from typing import Any

import yaml

from interview_matrix.config import ConfigError


def read_yaml_mapping(path: Path) -> dict[str, Any]:
    """Read a YAML file into a dictionary.

    Args:
        path:
            YAML file path.

    Returns:
        Parsed YAML mapping.

    Raises:
        ConfigError:
            If the file cannot be read or does not contain a mapping.
    """

    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to read YAML file '{path}': {exc}") from exc

    if not isinstance(raw, dict):
        raise ConfigError(f"YAML file must contain a mapping: {path}")

    return raw


def write_yaml_mapping(path: Path, data: dict[str, Any]) -> None:
    """Write a mapping as YAML, keeping key order."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(data, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


def write_result_file(path: Path, data: dict[str, Any]) -> None:
    """Write the analysis result as `.json` or `.yaml`/`.yml`.

    Raises:
        ConfigError:
            If the suffix is not supported.
    """

    suffix = path.suffix.lower()
    if suffix == ".json":
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    elif suffix in {".yaml", ".yml"}:
        write_yaml_mapping(path, data)
    else:
        raise ConfigError(f"Unsupported output format: {path} (use .json, .yaml or .yml)")
