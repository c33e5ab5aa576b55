# Copyright Red Hat
#
# spritediff/diff/textdiff.py - Checkpoint differ line diff engine
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Line-based content diffs using a longest common subsequence alignment.
"""
from typing import Any, Dict, List, Optional, Tuple
from dataclasses import dataclass
import logging
import json

from spritediff import (
    SPRITEDIFF_SUBSYSTEM_TEXTDIFF,
    SpriteDiffLimitError,
    get_total_memory,
)

from .difftypes import LineType
from .options import DiffOptions

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Approximate cost of one DP table cell in bytes
_DP_CELL_SIZE = 8

#: Largest fraction of system memory the DP table may occupy
_MAX_MEMORY_FRACTION = 1 / 3

#: Default hunk split threshold
_MAX_HUNK_LINES = 50


def _log_debug_textdiff(msg, *args, **kwargs):
    """A wrapper for textdiff subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": SPRITEDIFF_SUBSYSTEM_TEXTDIFF}, **kwargs)


#: A matched line: (index in A, index in B, line content)
Alignment = List[Tuple[int, int, str]]

_LINE_PREFIX = {
    LineType.CONTEXT: " ",
    LineType.ADD: "+",
    LineType.DELETE: "-",
}


@dataclass(frozen=True)
class DiffLine:
    """
    A single line within a hunk.
    """

    type: LineType
    content: str

    def __str__(self):
        return _LINE_PREFIX[self.type] + self.content

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffLine`` into a dictionary representation.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {"type": self.type.value, "content": self.content}


@dataclass(frozen=True)
class Hunk:
    """
    A contiguous block of diff lines with 1-based start positions in each
    input.
    """

    start_a: int
    start_b: int
    lines: Tuple[DiffLine, ...]

    def __str__(self):
        header = f"@@ -{self.start_a} +{self.start_b} @@"
        return "\n".join([header] + [str(line) for line in self.lines])

    @property
    def has_changes(self) -> bool:
        """
        ``True`` if this hunk contains at least one added or deleted line.
        """
        return any(line.type != LineType.CONTEXT for line in self.lines)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``Hunk`` into a dictionary representation.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "start_a": self.start_a,
            "start_b": self.start_b,
            "lines": [line.to_dict() for line in self.lines],
        }


@dataclass(frozen=True)
class FileDiff:
    """
    The line diff of two versions of a text file.
    """

    filename: str
    lines_before: int
    lines_after: int
    hunks: Tuple[Hunk, ...] = ()

    def _count(self, line_type: LineType) -> int:
        return sum(
            1 for hunk in self.hunks for line in hunk.lines if line.type == line_type
        )

    @property
    def additions(self) -> int:
        """
        The number of added lines across all hunks.
        """
        return self._count(LineType.ADD)

    @property
    def deletions(self) -> int:
        """
        The number of deleted lines across all hunks.
        """
        return self._count(LineType.DELETE)

    @property
    def has_changes(self) -> bool:
        """
        ``True`` if the two inputs differ.
        """
        return bool(self.hunks)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``FileDiff`` into a dictionary representation suitable
        for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "filename": self.filename,
            "lines_before": self.lines_before,
            "lines_after": self.lines_after,
            "hunks": [hunk.to_dict() for hunk in self.hunks],
            "additions": self.additions,
            "deletions": self.deletions,
        }

    def json(self, pretty: bool = False) -> str:
        """
        Return JSON representation of this ``FileDiff``.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: JSON string description of the line diff.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)

    def diff(self) -> str:
        """
        Return this ``FileDiff`` as unified diff text.

        :returns: Unified diff string, empty if the inputs are identical.
        :rtype: ``str``
        """
        if not self.hunks:
            return ""
        out = [f"--- a/{self.filename}", f"+++ b/{self.filename}"]
        out.extend(str(hunk) for hunk in self.hunks)
        return "\n".join(out)


def longest_common_subsequence(lines_a: List[str], lines_b: List[str]) -> Alignment:
    """
    Compute a longest common subsequence of two line lists.

    Lines match on exact string equality. When backtracking through the
    table ties are resolved by stepping back in ``lines_a`` first.

    :param lines_a: The original lines.
    :type lines_a: ``List[str]``
    :param lines_b: The updated lines.
    :type lines_b: ``List[str]``
    :returns: Matched ``(index_a, index_b, line)`` triples with both indexes
              strictly increasing.
    :rtype: ``List[Tuple[int, int, str]]``
    """
    n = len(lines_a)
    m = len(lines_b)

    dp = [[0] * (m + 1) for _ in range(n + 1)]
    for i in range(1, n + 1):
        row = dp[i]
        prev = dp[i - 1]
        line_a = lines_a[i - 1]
        for j in range(1, m + 1):
            if line_a == lines_b[j - 1]:
                row[j] = prev[j - 1] + 1
            else:
                row[j] = max(prev[j], row[j - 1])

    alignment: Alignment = []
    i, j = n, m
    while i > 0 and j > 0:
        if lines_a[i - 1] == lines_b[j - 1]:
            alignment.append((i - 1, j - 1, lines_a[i - 1]))
            i -= 1
            j -= 1
        elif dp[i - 1][j] >= dp[i][j - 1]:
            i -= 1
        else:
            j -= 1

    alignment.reverse()
    _log_debug_textdiff(
        "LCS of %d x %d lines has length %d", n, m, len(alignment)
    )
    return alignment


def build_hunks(
    lines_a: List[str],
    lines_b: List[str],
    alignment: Alignment,
    max_hunk_lines: int = _MAX_HUNK_LINES,
) -> List[Hunk]:
    """
    Walk an LCS alignment and group the resulting context, addition and
    deletion lines into hunks.

    A hunk is closed once it holds more than ``max_hunk_lines`` lines and
    the step that grew it contained a change. Context left over after a
    split is kept as a final hunk; when nothing changed no hunks are
    returned.

    :param lines_a: The original lines.
    :type lines_a: ``List[str]``
    :param lines_b: The updated lines.
    :type lines_b: ``List[str]``
    :param alignment: The alignment returned by ``longest_common_subsequence``.
    :type alignment: ``List[Tuple[int, int, str]]``
    :param max_hunk_lines: Split threshold for hunks.
    :type max_hunk_lines: ``int``
    :returns: The list of hunks in input order.
    :rtype: ``List[Hunk]``
    """
    hunks: List[Hunk] = []
    buffer: List[DiffLine] = []
    i = j = 0

    for ai, bj, line in alignment:
        changes = [DiffLine(LineType.DELETE, text) for text in lines_a[i:ai]]
        changes.extend(DiffLine(LineType.ADD, text) for text in lines_b[j:bj])
        buffer.extend(changes)
        buffer.append(DiffLine(LineType.CONTEXT, line))

        if len(buffer) > max_hunk_lines and changes:
            hunks.append(Hunk(i + 1, j + 1, tuple(buffer)))
            buffer = []

        i = ai + 1
        j = bj + 1

    buffer.extend(DiffLine(LineType.DELETE, text) for text in lines_a[i:])
    buffer.extend(DiffLine(LineType.ADD, text) for text in lines_b[j:])

    final = Hunk(i + 1, j + 1, tuple(buffer))
    if buffer and (hunks or final.has_changes):
        hunks.append(final)

    _log_debug_textdiff("Built %d hunks", len(hunks))
    return hunks


def _should_diff(lines_before: int, lines_after: int, options: DiffOptions) -> None:
    """
    Check that a line diff of the given dimensions is within the configured
    line limit and would fit comfortably in system memory.

    :param lines_before: Number of lines in the original text.
    :type lines_before: ``int``
    :param lines_after: Number of lines in the updated text.
    :type lines_after: ``int``
    :param options: The effective options for this run.
    :type options: ``DiffOptions``
    :raises: ``SpriteDiffLimitError`` if the diff should not be attempted.
    """
    limit = options.max_diff_lines
    if limit and max(lines_before, lines_after) > limit:
        raise SpriteDiffLimitError(
            f"Input too large for line diff: {lines_before}/{lines_after} "
            f"lines (limit {limit})"
        )

    memtotal = get_total_memory()
    if not memtotal:
        _log_warn("Cannot determine available system memory!")
        return

    table_size = (lines_before + 1) * (lines_after + 1) * _DP_CELL_SIZE
    if table_size > memtotal * _MAX_MEMORY_FRACTION:
        _log_error(
            "Cannot compute diff: table size exceeds safe threshold "
            "of system memory (%d > %d bytes)",
            table_size,
            int(memtotal * _MAX_MEMORY_FRACTION),
        )
        raise SpriteDiffLimitError(
            f"Line diff of {lines_before}x{lines_after} lines exceeds "
            "available memory"
        )


def unified_diff(
    content_a: str,
    content_b: str,
    filename: str = "file",
    options: Optional[DiffOptions] = None,
) -> FileDiff:
    """
    Compute a line diff of two strings.

    Both inputs are split on newline characters; a trailing newline yields
    a final empty line that takes part in the diff like any other.

    :param content_a: The original text.
    :type content_a: ``str``
    :param content_b: The updated text.
    :type content_b: ``str``
    :param filename: The file name recorded in the result.
    :type filename: ``str``
    :param options: Options controlling limits and hunk splitting.
    :type options: ``Optional[DiffOptions]``
    :returns: The diff of ``content_a`` and ``content_b``.
    :rtype: ``FileDiff``
    :raises: ``SpriteDiffLimitError`` if the inputs are too large.
    """
    options = options or DiffOptions()
    lines_a = content_a.split("\n")
    lines_b = content_b.split("\n")

    _should_diff(len(lines_a), len(lines_b), options)

    alignment = longest_common_subsequence(lines_a, lines_b)
    hunks = build_hunks(lines_a, lines_b, alignment, options.max_hunk_lines)
    file_diff = FileDiff(filename, len(lines_a), len(lines_b), tuple(hunks))
    _log_debug_textdiff(
        "Diffed %s: +%d -%d in %d hunks",
        filename,
        file_diff.additions,
        file_diff.deletions,
        len(hunks),
    )
    return file_diff
