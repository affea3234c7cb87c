"""
Tag derivation strategies.

Every upload task carries a list of taggers; each one maps the path of a new
file to zero or more tags. The set of taggers is fixed:

- PlainTagger: a static list of tags
- RegexpTagger: tags captured by regular expression groups
- ExprTagger: tags computed by sandboxed expressions over file metadata
"""

import os
import re
import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from domains.file_upload.taggers.expressions import Program, compile_expression, run_expression
from service.models.schemas import TagRules
from service.utils.errors import ConfigError, TagEvaluationError


class Tagger(ABC):
    """Maps a file path to a list of tags."""

    @abstractmethod
    def tags(self, path: str) -> List[str]:
        ...


class PlainTagger(Tagger):
    """Returns the configured tags for every file."""

    def __init__(self, tags: Sequence[str]):
        self._tags = list(tags)

    def tags(self, path: str) -> List[str]:
        return list(self._tags)


class RegexpTagger(Tagger):
    """Builds tags from the capture groups of regular expressions."""

    def __init__(self, patterns: Sequence[str]):
        """
        Compile tag regexps.

        Args:
            patterns: Regular expressions, each with at least one group

        Raises:
            ConfigError: If a pattern is invalid or has no groups
        """
        self._regexps: List[re.Pattern] = []
        for pattern in patterns:
            try:
                regexp = re.compile(pattern)
            except re.error as e:
                raise ConfigError(f"tag regexp [{pattern}]: {e}") from e
            if regexp.groups == 0:
                raise ConfigError(f"tag regexp must have groups: {pattern}")
            self._regexps.append(regexp)

    def tags(self, path: str) -> List[str]:
        """
        Tag a file.

        Each matching regexp contributes one tag per participating group: the
        group name (empty for unnamed groups) followed by the captured text.
        """
        tags = []
        for regexp in self._regexps:
            match = regexp.search(path)
            if match is None:
                continue
            group_names = {index: name for name, index in regexp.groupindex.items()}
            for index in range(1, regexp.groups + 1):
                value = match.group(index)
                if value is None:
                    continue
                tag = (group_names.get(index, "") + value).strip()
                if tag:
                    tags.append(tag)
        return tags


@dataclass(frozen=True)
class FileInfo:
    """File metadata exposed to tag expressions as ``file``."""

    name: str
    stem: str
    ext: str
    size: int
    mode: str
    is_dir: bool
    mtime: datetime
    ctime: datetime

    @classmethod
    def from_path(cls, path: str) -> "FileInfo":
        st = os.stat(path)
        p = Path(path)
        return cls(
            name=p.name,
            stem=p.stem,
            ext=p.suffix.lstrip("."),
            size=st.st_size,
            mode=stat.filemode(st.st_mode),
            is_dir=stat.S_ISDIR(st.st_mode),
            mtime=datetime.fromtimestamp(st.st_mtime),
            ctime=datetime.fromtimestamp(st.st_ctime),
        )


def sprintf(fmt: str, *args) -> str:
    """printf-style formatting helper for tag expressions."""
    return fmt % args


def strftime(fmt: str, value) -> str:
    """Format a datetime or a POSIX timestamp."""
    if not isinstance(value, datetime):
        value = datetime.fromtimestamp(value)
    return value.strftime(fmt)


class ExprTagger(Tagger):
    """Builds tags by evaluating expressions for each file."""

    def __init__(self, expressions: Sequence[str]):
        """
        Compile tag expressions.

        Raises:
            ConfigError: If an expression can't be compiled
        """
        self._programs: List[Program] = [compile_expression(e) for e in expressions]

    def tags(self, path: str) -> List[str]:
        """
        Tag a file.

        An expression that fails, or yields None or False, contributes
        nothing; failures are logged. When the file can't be stat'ed ``file``
        is None, so only expressions touching its metadata fail.
        """
        if not self._programs:
            return []

        file_info: Optional[FileInfo] = None
        try:
            file_info = FileInfo.from_path(path)
        except OSError as e:
            logger.error(f"Can't stat file {path}: {e}")

        env = {
            "path": path,
            "file": file_info,
            "sprintf": sprintf,
            "strftime": strftime,
        }

        tags = []
        for program in self._programs:
            try:
                value = run_expression(program, env)
            except TagEvaluationError as e:
                logger.error(f"Can't tag file {path}: {e}")
                continue
            if value is None or value is False:
                continue
            tag = str(value).strip()
            if tag:
                tags.append(tag)
        return tags


def build_taggers(rules: TagRules) -> List[Tagger]:
    """
    Create the taggers of one upload task.

    Raises:
        ConfigError: If a tag rule is malformed
    """
    return [
        PlainTagger(rules.plain),
        RegexpTagger(rules.regexp),
        ExprTagger(rules.expr),
    ]
