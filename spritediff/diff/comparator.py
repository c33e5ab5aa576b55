# Copyright Red Hat
#
# spritediff/diff/comparator.py - Checkpoint differ manifest comparator
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Manifest comparison engine
"""
from typing import Any, ClassVar, Dict, Iterator, List, Optional, Set, Tuple
from dataclasses import dataclass, field
from datetime import datetime
import logging
import json

from spritediff import SPRITEDIFF_SUBSYSTEM_COMPARE, signed_size_fmt, size_fmt

from .difftypes import DiffType, EntryType
from .manifest import Manifest, ManifestEntry
from .options import DiffOptions

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_compare(msg, *args, **kwargs):
    """A wrapper for compare subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": SPRITEDIFF_SUBSYSTEM_COMPARE}, **kwargs)


#: Status letters used in short output
_STATUS_CHARS = {
    DiffType.ADDED: "A",
    DiffType.MODIFIED: "M",
    DiffType.DELETED: "D",
}

#: Width at which paths are truncated in short output
_SHORT_PATH_WIDTH = 50


@dataclass(frozen=True)
class DiffChange:
    """
    A single path that differs between two manifests.
    """

    path: str
    status: DiffType
    type: EntryType
    size_before: Optional[int] = None
    size_after: Optional[int] = None
    sha256_before: Optional[str] = None
    sha256_after: Optional[str] = None

    @classmethod
    def added(cls, entry: ManifestEntry) -> "DiffChange":
        """
        Return a ``DiffChange`` describing ``entry`` appearing.
        """
        return cls(
            entry.path,
            DiffType.ADDED,
            entry.type,
            size_after=entry.size,
            sha256_after=entry.sha256,
        )

    @classmethod
    def deleted(cls, entry: ManifestEntry) -> "DiffChange":
        """
        Return a ``DiffChange`` describing ``entry`` disappearing.
        """
        return cls(
            entry.path,
            DiffType.DELETED,
            entry.type,
            size_before=entry.size,
            sha256_before=entry.sha256,
        )

    @classmethod
    def modified(cls, entry_a: ManifestEntry, entry_b: ManifestEntry) -> "DiffChange":
        """
        Return a ``DiffChange`` describing a file whose content changed.
        """
        return cls(
            entry_b.path,
            DiffType.MODIFIED,
            EntryType.FILE,
            size_before=entry_a.size,
            size_after=entry_b.size,
            sha256_before=entry_a.sha256,
            sha256_after=entry_b.sha256,
        )

    @property
    def size_delta(self) -> int:
        """
        The signed change in size of this path in bytes.
        """
        return (self.size_after or 0) - (self.size_before or 0)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffChange`` into a dictionary representation
        suitable for encoding as JSON. Only the before/after fields that
        apply to this change's status are included.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        out: Dict[str, Any] = {
            "path": self.path,
            "status": self.status.value,
            "type": self.type.value,
        }
        if self.status != DiffType.ADDED:
            out["size_before"] = self.size_before
        if self.status != DiffType.DELETED:
            out["size_after"] = self.size_after
        if self.status != DiffType.ADDED:
            out["sha256_before"] = self.sha256_before
        if self.status != DiffType.DELETED:
            out["sha256_after"] = self.sha256_after
        return out


@dataclass(frozen=True)
class DiffSummary:
    """
    Aggregate statistics for a manifest comparison.
    """

    files_added: int = 0
    files_modified: int = 0
    files_deleted: int = 0
    bytes_added: int = 0
    bytes_removed: int = 0
    total_files_a: int = 0
    total_files_b: int = 0
    similarity_score: float = 1.0

    @property
    def total_changes(self) -> int:
        """
        The number of changed paths.
        """
        return self.files_added + self.files_modified + self.files_deleted

    @property
    def bytes_delta(self) -> int:
        """
        The net change in bytes.
        """
        return self.bytes_added - self.bytes_removed

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffSummary`` into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "files_added": self.files_added,
            "files_modified": self.files_modified,
            "files_deleted": self.files_deleted,
            "total_changes": self.total_changes,
            "bytes_added": self.bytes_added,
            "bytes_removed": self.bytes_removed,
            "bytes_delta": self.bytes_delta,
            "total_files_a": self.total_files_a,
            "total_files_b": self.total_files_b,
            "similarity_score": self.similarity_score,
        }


@dataclass(frozen=True)
class DiffResult:
    """Container for manifest diff results with formatting methods."""

    #: Constant for the names of the string diff formats
    DIFF_FORMATS: ClassVar[List[str]] = [
        "paths",
        "short",
        "summary",
        "json",
    ]

    checkpoint_a: Optional[str]
    checkpoint_b: Optional[str]
    summary: DiffSummary
    changes: Tuple[DiffChange, ...] = field(default_factory=tuple)

    # List-like interface
    def __iter__(self) -> Iterator[DiffChange]:
        """
        Implement iter(self).
        """
        return iter(self.changes)

    def __len__(self):
        """
        Implement len(self).
        """
        return len(self.changes)

    def __getitem__(self, index: int) -> DiffChange:
        """
        Return self[index]

        :param index: The index to return.
        :type index: ``int``
        """
        return self.changes[index]

    @property
    def added(self) -> List[DiffChange]:
        """
        Return added changes in this ``DiffResult`` instance.

        :returns: Changes with ``DiffType.ADDED`` status.
        :rtype: ``List[DiffChange]``
        """
        return [c for c in self.changes if c.status == DiffType.ADDED]

    @property
    def modified(self) -> List[DiffChange]:
        """
        Return modified changes in this ``DiffResult`` instance.

        :returns: Changes with ``DiffType.MODIFIED`` status.
        :rtype: ``List[DiffChange]``
        """
        return [c for c in self.changes if c.status == DiffType.MODIFIED]

    @property
    def deleted(self) -> List[DiffChange]:
        """
        Return deleted changes in this ``DiffResult`` instance.

        :returns: Changes with ``DiffType.DELETED`` status.
        :rtype: ``List[DiffChange]``
        """
        return [c for c in self.changes if c.status == DiffType.DELETED]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``DiffResult`` into a dictionary representation
        suitable for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        return {
            "checkpoint_a": self.checkpoint_a,
            "checkpoint_b": self.checkpoint_b,
            "summary": self.summary.to_dict(),
            "changes": [change.to_dict() for change in self.changes],
        }

    # Output formats
    def paths(self) -> List[str]:
        """
        Return a list of paths that changed in this ``DiffResult``.

        :returns: Path list.
        :rtype: ``List[str]``
        """
        return [change.path for change in self.changes]

    def json(self, pretty: bool = False) -> str:
        """
        Return JSON representation of this ``DiffResult``.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: JSON string description of manifest changes.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)

    def summary_text(self) -> str:
        """
        Return a summary of this ``DiffResult`` instance.

        :returns: A string summarizing this instance.
        :rtype: ``str``
        """
        summary = self.summary
        return (
            f"Comparing {self.checkpoint_a} -> {self.checkpoint_b}\n"
            f"Files changed:  {summary.total_changes}\n"
            f"  Files added:    {summary.files_added}\n"
            f"  Files modified: {summary.files_modified}\n"
            f"  Files deleted:  {summary.files_deleted}\n"
            f"Size delta:     {signed_size_fmt(summary.bytes_delta)}\n"
            f"Similarity:     {round(summary.similarity_score * 100, 1)}%"
        )

    def short(self, max_changes: int = 50) -> str:
        """
        Return a brief listing of the changes in this instance, one line per
        changed path.

        :param max_changes: Maximum number of changes to list (0 lists all).
        :type max_changes: ``int``
        :returns: Brief string description of manifest changes.
        :rtype: ``str``
        """

        def _truncate(path: str) -> str:
            if len(path) <= _SHORT_PATH_WIDTH:
                return path
            return path[: _SHORT_PATH_WIDTH - 3] + "..."

        def _size_info(change: DiffChange) -> str:
            if change.status == DiffType.ADDED:
                return "+" + size_fmt(change.size_after)
            if change.status == DiffType.DELETED:
                return "-" + size_fmt(change.size_before)
            return signed_size_fmt(change.size_delta)

        if not self.changes:
            return "No changes detected."

        shown = self.changes[:max_changes] if max_changes else self.changes
        lines = [
            f"  {_STATUS_CHARS[change.status]}  {_truncate(change.path)}  "
            f"{_size_info(change)}"
            for change in shown
        ]
        remaining = len(self.changes) - len(shown)
        if remaining > 0:
            lines.append(f"  ... ({remaining} more files)")
        return "\n".join(lines)


def calculate_similarity(
    index_a: Dict[str, ManifestEntry], index_b: Dict[str, ManifestEntry]
) -> float:
    """
    Return the Jaccard similarity of the sets of content hashes present in
    two manifest indexes.

    Entries without a hash (directories, unreadable files) take no part.
    Two indexes with no hashable content at all are considered identical
    and score 1.0.

    :param index_a: The first manifest index.
    :type index_a: ``Dict[str, ManifestEntry]``
    :param index_b: The second manifest index.
    :type index_b: ``Dict[str, ManifestEntry]``
    :returns: Similarity in [0, 1] rounded to 4 decimal places.
    :rtype: ``float``
    """

    def _hashes(index: Dict[str, ManifestEntry]) -> Set[str]:
        return {entry.sha256 for entry in index.values() if entry.sha256 is not None}

    hashes_a = _hashes(index_a)
    hashes_b = _hashes(index_b)

    union = hashes_a | hashes_b
    if not union:
        return 1.0
    return round(len(hashes_a & hashes_b) / len(union), 4)


def _is_modified(entry_a: ManifestEntry, entry_b: ManifestEntry) -> bool:
    """
    Return ``True`` if the file at a common path has different content.

    Only file/file pairs can be modified: directory metadata changes and
    file/directory type changes are not reported. A hash that is missing on
    one side only counts as a change.

    :param entry_a: The original entry.
    :param entry_b: The updated entry.
    :rtype: ``bool``
    """
    if not (entry_a.is_file and entry_b.is_file):
        return False
    return entry_a.sha256 != entry_b.sha256 or entry_a.size != entry_b.size


def compare_manifests(
    manifest_a: Manifest, manifest_b: Manifest, options: Optional[DiffOptions] = None
) -> DiffResult:
    """
    Compare two manifests and return a ``DiffResult`` describing the paths
    that were added, modified and deleted going from ``manifest_a`` to
    ``manifest_b``.

    :param manifest_a: The first (left hand) manifest to compare.
    :type manifest_a: ``Manifest``
    :param manifest_b: The second (right hand) manifest to compare.
    :type manifest_b: ``Manifest``
    :param options: Options to apply to the comparison.
    :type options: ``Optional[DiffOptions]``
    :returns: The diff results for the comparison.
    :rtype: ``DiffResult``
    """
    options = options or DiffOptions()
    start_time = datetime.now()

    index_a = manifest_a.index
    index_b = manifest_b.index
    _log_debug_compare(
        "Comparing %s (%d paths) with %s (%d paths)",
        manifest_a.checkpoint_id,
        len(index_a),
        manifest_b.checkpoint_id,
        len(index_b),
    )

    paths_a = set(index_a.keys())
    paths_b = set(index_b.keys())

    added = [DiffChange.added(index_b[path]) for path in sorted(paths_b - paths_a)]
    deleted = [DiffChange.deleted(index_a[path]) for path in sorted(paths_a - paths_b)]
    modified = [
        DiffChange.modified(index_a[path], index_b[path])
        for path in sorted(paths_a & paths_b)
        if _is_modified(index_a[path], index_b[path])
    ]

    bytes_added = sum(c.size_after or 0 for c in added) + sum(
        max(0, c.size_delta) for c in modified
    )
    bytes_removed = sum(c.size_before or 0 for c in deleted) + sum(
        max(0, -c.size_delta) for c in modified
    )

    summary = DiffSummary(
        files_added=len(added),
        files_modified=len(modified),
        files_deleted=len(deleted),
        bytes_added=bytes_added,
        bytes_removed=bytes_removed,
        total_files_a=len([e for e in manifest_a.files if e.is_file]),
        total_files_b=len([e for e in manifest_b.files if e.is_file]),
        similarity_score=calculate_similarity(index_a, index_b),
    )

    result = DiffResult(
        manifest_a.checkpoint_id,
        manifest_b.checkpoint_id,
        summary,
        tuple(added + modified + deleted),
    )

    end_time = datetime.now()
    if not options.quiet:
        _log_info(
            "Found %d differences in %s", summary.total_changes, end_time - start_time
        )
    return result
