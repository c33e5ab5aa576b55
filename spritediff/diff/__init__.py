# Copyright Red Hat
#
# spritediff/diff/__init__.py - Checkpoint differ diff package
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Checkpoint diff package.

Provides manifest loading, manifest comparison and line-based content diffs.
The main entry points are ``load_manifest``, ``compare_manifests`` and
``unified_diff``.
"""
from .comparator import (
    DiffChange,
    DiffResult,
    DiffSummary,
    calculate_similarity,
    compare_manifests,
)
from .difftypes import DiffType, EntryType, LineType
from .manifest import Manifest, ManifestEntry, index_by_path, load_manifest
from .options import DiffOptions, SPRITEDIFF_CONFIG_FILE
from .textdiff import (
    DiffLine,
    FileDiff,
    Hunk,
    build_hunks,
    longest_common_subsequence,
    unified_diff,
)

__all__ = [
    "DiffChange",
    "DiffLine",
    "DiffOptions",
    "DiffResult",
    "DiffSummary",
    "DiffType",
    "EntryType",
    "FileDiff",
    "Hunk",
    "LineType",
    "Manifest",
    "ManifestEntry",
    "SPRITEDIFF_CONFIG_FILE",
    "build_hunks",
    "calculate_similarity",
    "compare_manifests",
    "index_by_path",
    "load_manifest",
    "longest_common_subsequence",
    "unified_diff",
]
