# Copyright Red Hat
#
# spritediff/diff/manifest.py - Checkpoint differ manifests
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Checkpoint manifest model and index.

A manifest is a complete inventory of the files and directories beneath a
base path at the time a checkpoint was taken. Manifests are produced by an
external scanner and arrive here as decoded JSON documents (or as files
containing them): this module turns them into immutable ``Manifest``
objects and indexes their entries by path.
"""
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from dataclasses import dataclass, field, replace
import logging
import json
import lzma
import os

import zstandard as zstd

from spritediff import (
    SPRITEDIFF_SUBSYSTEM_MANIFEST,
    SpriteDiffManifestError,
    SpriteDiffNotFoundError,
    SpriteDiffParseError,
    size_fmt,
)

from .difftypes import EntryType

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_manifest(msg, *args, **kwargs):
    """A wrapper for manifest subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": SPRITEDIFF_SUBSYSTEM_MANIFEST}, **kwargs)


#: Manifest file extensions mapped to their compression type
_COMPRESSION_EXTENSIONS: Dict[str, Optional[str]] = {
    ".json": None,
    ".xz": "lzma",
    ".zst": "zstd",
}


@dataclass(frozen=True)
class ManifestEntry:
    """
    A single file or directory recorded in a manifest.
    """

    #: Absolute path of the entry
    path: str
    #: Entry type: file or directory
    type: EntryType = EntryType.FILE
    #: Size in bytes (files only)
    size: Optional[int] = None
    #: Modification time as an ISO-8601 string or UNIX epoch value
    mtime: Optional[Union[str, int, float]] = None
    #: Permission string, e.g. "644"
    mode: Optional[str] = None
    #: Lowercase hex SHA-256 of the content, or None if unavailable
    sha256: Optional[str] = None

    @property
    def is_file(self) -> bool:
        """
        ``True`` if this entry describes a regular file.
        """
        return self.type == EntryType.FILE

    @property
    def is_dir(self) -> bool:
        """
        ``True`` if this entry describes a directory.
        """
        return self.type == EntryType.DIRECTORY

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ManifestEntry":
        """
        Build a ``ManifestEntry`` from its JSON dictionary form.

        :param data: The decoded entry dictionary.
        :type data: ``Dict[str, Any]``
        :returns: A new ``ManifestEntry``.
        :rtype: ``ManifestEntry``
        :raises: ``SpriteDiffManifestError`` if the entry is malformed.
        """
        if not isinstance(data, dict):
            raise SpriteDiffManifestError(f"Manifest entry is not an object: {data!r}")

        path = data.get("path")
        if not path or not isinstance(path, str):
            raise SpriteDiffManifestError(f"Manifest entry has no path: {data!r}")

        try:
            entry_type = EntryType(data.get("type") or EntryType.FILE.value)
        except ValueError as err:
            raise SpriteDiffManifestError(
                f"Unknown entry type for {path}: {data.get('type')!r}"
            ) from err

        size = data.get("size")
        if size is not None:
            if isinstance(size, bool) or not isinstance(size, int) or size < 0:
                raise SpriteDiffManifestError(f"Invalid size for {path}: {size!r}")
        if entry_type == EntryType.DIRECTORY:
            size = None

        return cls(
            path=path,
            type=entry_type,
            size=size,
            mtime=data.get("mtime"),
            mode=data.get("mode"),
            sha256=data.get("sha256"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``ManifestEntry`` into a dictionary representation
        suitable for encoding as JSON. Unset optional fields are omitted.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        out: Dict[str, Any] = {"path": self.path, "type": self.type.value}
        if self.size is not None:
            out["size"] = self.size
        if self.mtime is not None:
            out["mtime"] = self.mtime
        if self.mode is not None:
            out["mode"] = self.mode
        if self.is_file:
            out["sha256"] = self.sha256
        return out


def index_by_path(entries: Iterable[ManifestEntry]) -> Dict[str, ManifestEntry]:
    """
    Build a path -> entry lookup for a collection of manifest entries.

    Paths are expected to be unique. If a manifest repeats a path (for
    example because the scanner raced with a rename) the later entry wins.

    :param entries: The manifest entries to index.
    :type entries: ``Iterable[ManifestEntry]``
    :returns: A dictionary mapping each path to its entry.
    :rtype: ``Dict[str, ManifestEntry]``
    """
    return {entry.path: entry for entry in entries}


@dataclass(frozen=True)
class Manifest:
    """
    A point-in-time inventory of a checkpoint's file system.
    """

    #: Opaque identifier of the checkpoint this manifest describes
    checkpoint_id: Optional[str] = None
    #: Creation time of the manifest (ISO-8601)
    created_at: Optional[str] = None
    #: Root of the scanned tree
    base_path: Optional[str] = None
    #: Manifest entries in arbitrary order
    files: Tuple[ManifestEntry, ...] = field(default_factory=tuple)
    #: Count of file entries
    total_files: int = 0
    #: Sum of file sizes in bytes
    total_size: int = 0
    #: Name of the sprite the checkpoint belongs to, if known
    sprite: Optional[str] = None
    #: Count of directory entries, if recorded
    total_dirs: Optional[int] = None

    def __str__(self) -> str:
        """
        Return a human readable description of this manifest.

        :returns: A multi-line summary string.
        :rtype: ``str``
        """
        return (
            f"Checkpoint: {self.checkpoint_id or ''}\n"
            f"Created: {self.created_at or ''}\n"
            f"Base Path: {self.base_path or ''}\n"
            f"Total Files: {self.total_files}\n"
            f"Total Size: {size_fmt(self.total_size)}"
        )

    @classmethod
    def from_entries(
        cls,
        checkpoint_id: Optional[str],
        entries: Iterable[ManifestEntry],
        created_at: Optional[str] = None,
        base_path: Optional[str] = None,
        sprite: Optional[str] = None,
    ) -> "Manifest":
        """
        Build a ``Manifest`` from a collection of entries, deriving the
        file count and total size.

        :param checkpoint_id: The checkpoint identifier.
        :param entries: The manifest entries.
        :param created_at: Optional creation timestamp.
        :param base_path: Optional scanned root.
        :param sprite: Optional sprite name.
        :returns: A new ``Manifest``.
        :rtype: ``Manifest``
        """
        files = tuple(entries)
        file_entries = [entry for entry in files if entry.is_file]
        dir_count = len([entry for entry in files if entry.is_dir])
        return cls(
            checkpoint_id=checkpoint_id,
            created_at=created_at,
            base_path=base_path,
            files=files,
            total_files=len(file_entries),
            total_size=sum(entry.size or 0 for entry in file_entries),
            sprite=sprite,
            total_dirs=dir_count if dir_count else None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Manifest":
        """
        Build a ``Manifest`` from its decoded JSON dictionary form.

        A document without a ``files`` collection decodes to an empty
        manifest so that partial or legacy manifests can still be compared.
        A declared ``total_size`` that disagrees with the sum of the file
        entry sizes is rejected.

        :param data: The decoded manifest dictionary.
        :type data: ``Dict[str, Any]``
        :returns: A new ``Manifest``.
        :rtype: ``Manifest``
        :raises: ``SpriteDiffManifestError`` if the document is malformed.
        """
        if not isinstance(data, dict):
            raise SpriteDiffManifestError("Manifest document is not an object")

        raw_files = data.get("files")
        if raw_files is None:
            _log_debug_manifest(
                "Manifest %s has no files collection: treating as empty",
                data.get("checkpoint_id"),
            )
            raw_files = []
        elif not isinstance(raw_files, list):
            raise SpriteDiffManifestError("Manifest files collection is not a list")

        manifest = cls.from_entries(
            data.get("checkpoint_id"),
            (ManifestEntry.from_dict(item) for item in raw_files),
            created_at=data.get("created_at"),
            base_path=data.get("base_path"),
            sprite=data.get("sprite"),
        )

        declared_size = data.get("total_size")
        if declared_size is not None and declared_size != manifest.total_size:
            raise SpriteDiffManifestError(
                f"Manifest {manifest.checkpoint_id} total_size {declared_size} "
                f"does not match file sizes ({manifest.total_size})"
            )

        if data.get("total_dirs") is not None:
            manifest = replace(manifest, total_dirs=data["total_dirs"])

        _log_debug_manifest(
            "Decoded manifest %s with %d entries (%d files, %d bytes)",
            manifest.checkpoint_id,
            len(manifest.files),
            manifest.total_files,
            manifest.total_size,
        )
        return manifest

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert this ``Manifest`` into a dictionary representation suitable
        for encoding as JSON.

        :returns: A dictionary mapping this instance's keys to values.
        :rtype: ``Dict[str, Any]``
        """
        out: Dict[str, Any] = {"checkpoint_id": self.checkpoint_id}
        if self.sprite is not None:
            out["sprite"] = self.sprite
        out.update(
            {
                "created_at": self.created_at,
                "base_path": self.base_path,
                "files": [entry.to_dict() for entry in self.files],
                "total_files": self.total_files,
            }
        )
        if self.total_dirs is not None:
            out["total_dirs"] = self.total_dirs
        out["total_size"] = self.total_size
        return out

    def json(self, pretty: bool = False) -> str:
        """
        Return a string representation of this ``Manifest`` in JSON
        notation.

        :param pretty: Indent JSON to be human readable.
        :type pretty: ``bool``
        :returns: A JSON representation of this instance.
        :rtype: ``str``
        """
        return json.dumps(self.to_dict(), indent=4 if pretty else None)

    @property
    def index(self) -> Dict[str, ManifestEntry]:
        """
        A path -> entry lookup for this manifest's entries.
        """
        return index_by_path(self.files)

    @property
    def paths(self) -> List[str]:
        """
        The sorted list of paths recorded in this manifest.
        """
        return sorted(self.index.keys())


def _compression_for(path: str) -> Optional[str]:
    """
    Return the compression type implied by the extension of ``path``.

    :param path: The manifest file path.
    :type path: ``str``
    :returns: "lzma", "zstd" or ``None`` for plain JSON.
    :rtype: ``Optional[str]``
    """
    _, ext = os.path.splitext(path)
    return _COMPRESSION_EXTENSIONS.get(ext)


def _read_manifest_bytes(path: str) -> bytes:
    """
    Read and decompress the raw content of the manifest file at ``path``.

    :param path: The manifest file path.
    :type path: ``str``
    :returns: The uncompressed manifest bytes.
    :rtype: ``bytes``
    """
    compression = _compression_for(path)
    if compression == "lzma":
        with lzma.open(path, "rb") as fp:
            return fp.read()
    if compression == "zstd":
        with open(path, "rb") as fp:
            dctx = zstd.ZstdDecompressor()
            with dctx.stream_reader(fp) as reader:
                return reader.read()
    with open(path, "rb") as fp:
        return fp.read()


def load_manifest(path: str) -> Manifest:
    """
    Load a manifest from a JSON file, optionally compressed with xz
    (``.json.xz``) or zstd (``.json.zst``).

    :param path: The manifest file path.
    :type path: ``str``
    :returns: The decoded ``Manifest``.
    :rtype: ``Manifest``
    :raises: ``SpriteDiffNotFoundError`` if the file does not exist,
             ``SpriteDiffParseError`` if it cannot be read or decoded and
             ``SpriteDiffManifestError`` if the document is malformed.
    """
    if not os.path.exists(path):
        raise SpriteDiffNotFoundError(f"Manifest file not found: {path}")

    _log_debug_manifest("Loading manifest from '%s'", path)
    try:
        content = _read_manifest_bytes(path)
    except (OSError, lzma.LZMAError, zstd.ZstdError) as err:
        raise SpriteDiffParseError(f"Could not read manifest {path}: {err}") from err

    try:
        data = json.loads(content.decode("utf8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as err:
        raise SpriteDiffParseError(f"Invalid JSON in manifest {path}: {err}") from err

    return Manifest.from_dict(data)
