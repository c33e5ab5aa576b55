# Copyright Red Hat
#
# spritediff/_spritediff.py - Checkpoint differ global definitions
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Global definitions for the top-level spritediff package.
"""
import logging
import math

_log = logging.getLogger("spritediff")

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

# Spritediff debugging subsystem mask (legacy interface)
SPRITEDIFF_DEBUG_MANIFEST = 1
SPRITEDIFF_DEBUG_COMPARE = 2
SPRITEDIFF_DEBUG_TEXTDIFF = 4
SPRITEDIFF_DEBUG_COMMAND = 8
SPRITEDIFF_DEBUG_ALL = (
    SPRITEDIFF_DEBUG_MANIFEST
    | SPRITEDIFF_DEBUG_COMPARE
    | SPRITEDIFF_DEBUG_TEXTDIFF
    | SPRITEDIFF_DEBUG_COMMAND
)

# Spritediff debugging subsystem names
SPRITEDIFF_SUBSYSTEM_MANIFEST = "spritediff.manifest"
SPRITEDIFF_SUBSYSTEM_COMPARE = "spritediff.compare"
SPRITEDIFF_SUBSYSTEM_TEXTDIFF = "spritediff.textdiff"
SPRITEDIFF_SUBSYSTEM_COMMAND = "spritediff.command"

_DEBUG_MASK_TO_SUBSYSTEM = {
    SPRITEDIFF_DEBUG_MANIFEST: SPRITEDIFF_SUBSYSTEM_MANIFEST,
    SPRITEDIFF_DEBUG_COMPARE: SPRITEDIFF_SUBSYSTEM_COMPARE,
    SPRITEDIFF_DEBUG_TEXTDIFF: SPRITEDIFF_SUBSYSTEM_TEXTDIFF,
    SPRITEDIFF_DEBUG_COMMAND: SPRITEDIFF_SUBSYSTEM_COMMAND,
}

_debug_subsystems = set()

#: Location of the meminfo file in procfs
_PROC_MEMINFO: str = "/proc/meminfo"


def get_total_memory() -> int:
    """
    Read the ``MemTotal`` value from procfs and convert it to bytes.

    Used to bound the size of line diff tables. Swap is not counted.

    :returns: Physical memory size in bytes, or 0 if procfs is unreadable
              or carries no parseable ``MemTotal`` line.
    :rtype: ``int``
    """
    try:
        with open(_PROC_MEMINFO, "r", encoding="utf8") as fp:
            for line in fp:
                if not line.startswith("MemTotal"):
                    continue
                try:
                    _, kib_str, _ = line.split()
                    return int(kib_str) * 2**10
                except ValueError as err:
                    _log_debug(
                        "Could not parse %s line '%s': %s", _PROC_MEMINFO, line, err
                    )
    except OSError as err:
        _log_warn("Could not read %s: %s", _PROC_MEMINFO, err)
    return 0


class SubsystemFilter(logging.Filter):
    """
    Logging filter that gates subsystem tagged DEBUG records.

    Records logged through the ``_log_debug_<subsystem>`` wrappers carry a
    ``subsystem`` attribute and are passed only when that subsystem is
    enabled in the debug mask. Untagged records and records at any other
    level always pass.
    """

    def __init__(self, name=""):
        super().__init__(name)
        self.enabled_subsystems = set(_debug_subsystems)

    def filter(self, record):
        if record.levelno != logging.DEBUG:
            return True

        # Untagged debug output is not subject to the mask.
        if not hasattr(record, "subsystem"):
            return True

        return record.subsystem in self.enabled_subsystems

    def set_debug_subsystems(self, subsystems):
        """Replace the set of subsystem names this filter passes."""
        self.enabled_subsystems = set(subsystems)


def get_debug_mask():
    """
    Return the ``SPRITEDIFF_DEBUG_*`` bits that are currently enabled.

    The result merges the module level selection with any subsystems
    enabled on ``SubsystemFilter`` instances attached to the ``spritediff``
    logger's handlers.

    :returns: The logical OR of the enabled ``SPRITEDIFF_DEBUG_*`` values.
    :rtype: int
    """
    enabled_subsystems = set(_debug_subsystems)
    spritediff_log = logging.getLogger("spritediff")

    for handler in spritediff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                enabled_subsystems.update(f.enabled_subsystems)

    subsystem_to_mask = {v: k for k, v in _DEBUG_MASK_TO_SUBSYSTEM.items()}
    mask = 0
    for subsystem_name in enabled_subsystems:
        mask |= subsystem_to_mask.get(subsystem_name, 0)
    return mask


def set_debug_mask(mask):
    """
    Enable debug output for the manifest, compare, textdiff and command
    subsystems selected by ``mask``.

    Filters already attached to the ``spritediff`` logger are updated in
    place; filters created later pick up the new selection.

    :param mask: The logical OR of the ``SPRITEDIFF_DEBUG_*`` values to
                 enable, or 0 to silence all subsystem debug output.
    :raises: ``ValueError`` if ``mask`` has bits outside
             ``SPRITEDIFF_DEBUG_ALL``.
    :rtype: None
    """
    # pylint: disable=global-statement
    global _debug_subsystems

    if mask < 0 or mask > SPRITEDIFF_DEBUG_ALL:
        raise ValueError(f"Invalid spritediff debug mask: {mask}")

    enabled_subsystems = [
        subsystem_name
        for flag, subsystem_name in _DEBUG_MASK_TO_SUBSYSTEM.items()
        if mask & flag
    ]

    spritediff_log = logging.getLogger("spritediff")
    for handler in spritediff_log.handlers:
        for f in handler.filters:
            if isinstance(f, SubsystemFilter):
                f.set_debug_subsystems(enabled_subsystems)

    _debug_subsystems = set(enabled_subsystems)


#
# Spritediff exception types
#


class SpriteDiffError(Exception):
    """
    Base class for checkpoint differ errors.
    """


class SpriteDiffManifestError(SpriteDiffError):
    """
    A manifest document is structurally invalid.
    """


class SpriteDiffParseError(SpriteDiffError):
    """
    An error decoding a manifest file.
    """


class SpriteDiffNotFoundError(SpriteDiffError):
    """
    The requested manifest or file does not exist.
    """


class SpriteDiffLimitError(SpriteDiffError):
    """
    A configured resource limit would be exceeded.
    """


class SpriteDiffArgumentError(SpriteDiffError):
    """
    An invalid argument was passed to a spritediff API call.
    """


def size_fmt(value):
    """
    Format a size in bytes as a human readable string.

    :param value: The integer value to format.
    :returns: A human readable string reflecting value.
    """
    suffixes = ["B", "KiB", "MiB", "GiB", "TiB", "PiB", "EiB", "ZiB"]
    if not value:
        return "0B"
    magnitude = math.floor(math.log(abs(value), 1024))
    val = value / math.pow(1024, magnitude)
    if magnitude > 7:
        return f"{val:.1f}YiB"
    return f"{val:3.1f}{suffixes[magnitude]}"


def signed_size_fmt(value):
    """
    Format a signed size delta in bytes as a human readable string with an
    explicit leading sign.

    :param value: The integer delta to format.
    :returns: A human readable string reflecting value, e.g. "+1.5KiB".
    """
    value = value or 0
    sign = "-" if value < 0 else "+"
    return f"{sign}{size_fmt(abs(value)).strip()}"


__all__ = [
    "SPRITEDIFF_DEBUG_MANIFEST",
    "SPRITEDIFF_DEBUG_COMPARE",
    "SPRITEDIFF_DEBUG_TEXTDIFF",
    "SPRITEDIFF_DEBUG_COMMAND",
    "SPRITEDIFF_DEBUG_ALL",
    # Memory usage
    "get_total_memory",
    # Debug logging - subsystem name interface
    "SubsystemFilter",
    "SPRITEDIFF_SUBSYSTEM_MANIFEST",
    "SPRITEDIFF_SUBSYSTEM_COMPARE",
    "SPRITEDIFF_SUBSYSTEM_TEXTDIFF",
    "SPRITEDIFF_SUBSYSTEM_COMMAND",
    # Debug logging - legacy interface
    "set_debug_mask",
    "get_debug_mask",
    "SpriteDiffError",
    "SpriteDiffManifestError",
    "SpriteDiffParseError",
    "SpriteDiffNotFoundError",
    "SpriteDiffLimitError",
    "SpriteDiffArgumentError",
    "size_fmt",
    "signed_size_fmt",
]
