"""
Helper utilities for the uploader service.

Common functions used across domains.
"""

import fnmatch
import re
from pathlib import Path
from typing import Iterable


def get_file_extension(path: Path) -> str:
    """Get file extension without dot."""
    return path.suffix.lstrip('.')


def is_file_extension_matched(name: str, *extensions: str) -> bool:
    """
    Check whether a file name has one of the given extensions.

    Comparison is case-insensitive and extensions are given without dot.

    Args:
        name: File name or path
        extensions: Extensions to check against

    Returns:
        True if the extension matches, False otherwise
    """
    ext = get_file_extension(Path(name)).lower()
    if not ext:
        return False
    return ext in {e.lower() for e in extensions}


def format_bytes(bytes_count: int) -> str:
    """Format bytes as human-readable string."""
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if bytes_count < 1024.0:
            return f"{bytes_count:.1f} {unit}"
        bytes_count /= 1024.0
    return f"{bytes_count:.1f} PB"


def compile_name_pattern(pattern: str) -> re.Pattern:
    """
    Compile a glob file name pattern into a case-insensitive regex.

    Raises:
        ValueError: If the pattern is empty, contains a path separator or
            can't be translated into a regular expression
    """
    if not pattern:
        raise ValueError("empty pattern")
    if '/' in pattern:
        raise ValueError("pattern must match file names, not paths")
    _check_character_classes(pattern)
    try:
        return re.compile(fnmatch.translate(pattern.lower()))
    except re.error as e:
        raise ValueError(str(e)) from e


def _check_character_classes(pattern: str) -> None:
    # fnmatch treats an unterminated '[' as a literal; reject it instead.
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c != '[':
            continue
        j = i
        if j < n and pattern[j] in '!^':
            j += 1
        if j < n and pattern[j] == ']':
            j += 1
        while j < n and pattern[j] != ']':
            j += 1
        if j >= n:
            raise ValueError(f"unterminated character class in {pattern!r}")
        i = j + 1


def match_name(name: str, patterns: Iterable[re.Pattern]) -> bool:
    """
    Check a file name against compiled name patterns.

    Any match qualifies; an empty pattern list matches every name.
    """
    patterns = list(patterns)
    if not patterns:
        return True
    lowered = name.lower()
    return any(p.match(lowered) for p in patterns)
