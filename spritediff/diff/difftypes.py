# Copyright Red Hat
#
# spritediff/diff/difftypes.py - Checkpoint differ diff types
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Checkpoint diff types
"""
from enum import Enum


class EntryType(Enum):
    """
    Enum for manifest entry types.
    """

    FILE = "file"
    DIRECTORY = "directory"


class DiffType(Enum):
    """
    Enum for different difference types.
    """

    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


class LineType(Enum):
    """
    Enum for the kinds of line in a content diff hunk.
    """

    CONTEXT = "context"
    ADD = "add"
    DELETE = "delete"
