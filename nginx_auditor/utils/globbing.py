"""Case-insensitive glob matching with ``**`` directory wildcards."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Iterable, List, Sequence

from ..config import DEFAULT_EXCLUDE_PATTERNS, DEFAULT_INCLUDE_PATTERNS


def _split(pattern: str) -> List[str]:
    return [part for part in pattern.replace("\\", "/").lower().split("/") if part]


def _match_parts(parts: Sequence[str], pattern: Sequence[str]) -> bool:
    if not pattern:
        return not parts
    head, rest = pattern[0], pattern[1:]
    if head == "**":
        # zero or more whole path segments
        return any(_match_parts(parts[index:], rest) for index in range(len(parts) + 1))
    if not parts:
        return False
    return fnmatch.fnmatchcase(parts[0], head) and _match_parts(parts[1:], rest)


def glob_match(relative_path: str, pattern: str) -> bool:
    """Return True when ``relative_path`` (``/``-separated) matches ``pattern``."""

    return _match_parts(_split(relative_path), _split(pattern))


def match_files(
    base_path: str | Path,
    include: Iterable[str] | None = None,
    exclude: Iterable[str] | None = None,
) -> List[Path]:
    """List files under ``base_path`` matching any include and no exclude pattern.

    Paths are absolute and sorted case-insensitively.
    """
    base = Path(base_path)
    if not base.is_dir():
        raise FileNotFoundError(f"Directory not found: {base}")
    includes = list(include) if include is not None else list(DEFAULT_INCLUDE_PATTERNS)
    excludes = list(exclude) if exclude is not None else list(DEFAULT_EXCLUDE_PATTERNS)

    matched: List[Path] = []
    for root, _dirs, files in os.walk(base):
        for name in files:
            full = Path(root) / name
            relative = full.relative_to(base).as_posix()
            if not any(glob_match(relative, pattern) for pattern in includes):
                continue
            if any(glob_match(relative, pattern) for pattern in excludes):
                continue
            matched.append(full.resolve())
    return sorted(matched, key=lambda path: str(path).lower())
