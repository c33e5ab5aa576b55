# Copyright Red Hat
#
# spritediff/command.py - Checkpoint differ command interface
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""The ``spritediff.command`` module provides both the spritediff command
line interface infrastructure, and a simple procedural interface to the
``spritediff`` library modules.

The procedural interface is used by the ``spritediff`` command line tool,
and may be used by application programs, or interactively in the Python
shell by users who do not require all the features present in the
spritediff object API.
"""
from argparse import ArgumentParser
from typing import Optional
from os.path import basename, exists
import logging
import sys

from spritediff import (
    SpriteDiffError,
    SpriteDiffNotFoundError,
    SPRITEDIFF_DEBUG_MANIFEST,
    SPRITEDIFF_DEBUG_COMPARE,
    SPRITEDIFF_DEBUG_TEXTDIFF,
    SPRITEDIFF_DEBUG_COMMAND,
    SPRITEDIFF_DEBUG_ALL,
    SPRITEDIFF_SUBSYSTEM_COMMAND,
    SubsystemFilter,
    set_debug_mask,
    __version__,
)
from spritediff.diff import (
    SPRITEDIFF_CONFIG_FILE,
    DiffOptions,
    DiffResult,
    FileDiff,
    Manifest,
    compare_manifests,
    load_manifest,
    unified_diff,
)

DIFF_FORMATS = DiffResult.DIFF_FORMATS
FILE_DIFF_FORMATS = ["diff", "json"]

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error


def _log_debug_command(msg, *args, **kwargs):
    """A wrapper for command subsystem debug logs."""
    _log.debug(msg, *args, extra={"subsystem": SPRITEDIFF_SUBSYSTEM_COMMAND}, **kwargs)


_DEFAULT_LOG_LEVEL = logging.WARNING
_CONSOLE_HANDLER = None

#: Command names
DIFF_CMD = "diff"
FILE_CMD = "file"
SHOW_CMD = "show"


def _read_text(path: str) -> str:
    """
    Read the text file at ``path``, replacing undecodable bytes.

    :param path: The file to read.
    :type path: ``str``
    :returns: The file content.
    :rtype: ``str``
    """
    if not exists(path):
        raise SpriteDiffNotFoundError(f"File not found: {path}")
    try:
        with open(path, "r", encoding="utf8", errors="replace") as fp:
            return fp.read()
    except OSError as err:
        raise SpriteDiffError(f"Error reading {path}: {err}") from err


def show_manifest(path: str) -> Manifest:
    """
    Load and return the manifest stored at ``path``.

    :param path: Path to a ``.json``, ``.json.xz`` or ``.json.zst`` manifest.
    :type path: ``str``
    :returns: The loaded manifest.
    :rtype: ``Manifest``
    """
    return load_manifest(path)


def diff_manifests(
    path_a: str, path_b: str, options: Optional[DiffOptions] = None
) -> DiffResult:
    """
    Find differences between two checkpoint manifests.

    :param path_a: Path to the manifest to use as the left side of the
                   comparison.
    :type path_a: ``str``
    :param path_b: Path to the manifest to use as the right side of the
                   comparison.
    :type path_b: ``str``
    :param options: Options controlling the comparison.
    :type options: ``Optional[DiffOptions]``
    :returns: The manifest diff results.
    :rtype: ``DiffResult``
    """
    manifest_a = load_manifest(path_a)
    manifest_b = load_manifest(path_b)
    return compare_manifests(manifest_a, manifest_b, options=options)


def diff_files(
    path_a: str,
    path_b: str,
    options: Optional[DiffOptions] = None,
    filename: Optional[str] = None,
) -> FileDiff:
    """
    Compute a line diff between two text files.

    :param path_a: Path to the original file.
    :type path_a: ``str``
    :param path_b: Path to the updated file.
    :type path_b: ``str``
    :param options: Options controlling limits and hunk splitting.
    :type options: ``Optional[DiffOptions]``
    :param filename: The name to report for the file (default: the base
                     name of ``path_b``).
    :type filename: ``Optional[str]``
    :returns: The line diff of the two files.
    :rtype: ``FileDiff``
    """
    content_a = _read_text(path_a)
    content_b = _read_text(path_b)
    return unified_diff(
        content_a, content_b, filename=filename or basename(path_b), options=options
    )


def _load_options(cmd_args) -> DiffOptions:
    """
    Build the effective ``DiffOptions`` for a command: the configuration
    file values overridden by any options given on the command line.
    """
    config_file = cmd_args.config or SPRITEDIFF_CONFIG_FILE
    if cmd_args.config and not exists(config_file):
        raise SpriteDiffNotFoundError(f"Configuration file not found: {config_file}")
    base = DiffOptions.from_file(config_file)
    return DiffOptions.from_cmd_args(cmd_args, base=base)


def _diff_cmd(cmd_args):
    """
    Diff manifests command handler.

    Compare two checkpoint manifests.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = _load_options(cmd_args)
    output_formats = cmd_args.output_format or ["short"]
    pretty = cmd_args.pretty

    if pretty and "json" not in output_formats:
        _log_error(
            "Option --pretty only supported with --output-format=json",
        )
        return 1

    results = diff_manifests(cmd_args.manifest_a, cmd_args.manifest_b, options)

    spacer = ""
    for output_format in output_formats:
        print(spacer, end="")
        if output_format == "paths":
            print("\n".join(results.paths()))
        elif output_format == "short":
            print(results.short(max_changes=options.max_listed_changes))
        elif output_format == "summary":
            print(results.summary_text())
        elif output_format == "json":
            print(results.json(pretty=pretty))
        spacer = "\n"
    return 0


def _file_cmd(cmd_args):
    """
    Diff text files command handler.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    options = _load_options(cmd_args)
    output_format = cmd_args.output_format or "diff"

    if cmd_args.pretty and output_format != "json":
        _log_error(
            "Option --pretty only supported with --output-format=json",
        )
        return 1

    file_diff = diff_files(
        cmd_args.old_file, cmd_args.new_file, options, filename=cmd_args.filename
    )

    if output_format == "json":
        print(file_diff.json(pretty=cmd_args.pretty))
        return 0

    if not options.quiet:
        print(
            f"{file_diff.filename}: {file_diff.additions} additions, "
            f"{file_diff.deletions} deletions"
        )
    if file_diff.has_changes:
        print(file_diff.diff())
    return 0


def _show_cmd(cmd_args):
    """
    Show manifest command handler.

    :param cmd_args: Command line arguments for the command
    :returns: integer status code returned from ``main()``
    """
    if cmd_args.pretty and not cmd_args.json:
        _log_error("Option --pretty only supported with --json")
        return 1

    manifest = show_manifest(cmd_args.manifest)
    if cmd_args.json:
        print(manifest.json(pretty=cmd_args.pretty))
    else:
        print(manifest)
    return 0


def setup_logging(cmd_args):
    """
    Set up spritediff logging.
    """
    # pylint: disable=global-statement
    global _CONSOLE_HANDLER
    level = _DEFAULT_LOG_LEVEL
    if cmd_args.verbose and cmd_args.verbose > 1:
        level = logging.DEBUG
    elif cmd_args.verbose and cmd_args.verbose > 0:
        level = logging.INFO

    spritediff_log = logging.getLogger("spritediff")
    formatter = logging.Formatter("%(levelname)s - %(message)s")
    spritediff_log.setLevel(level)
    if spritediff_log.hasHandlers():
        spritediff_log.handlers.clear()

    # Subsystem log filtering
    _spritediff_subsystem_filter = SubsystemFilter("spritediff")

    # Main console handler
    _CONSOLE_HANDLER = logging.StreamHandler()

    _CONSOLE_HANDLER.setLevel(level)
    _CONSOLE_HANDLER.setFormatter(formatter)
    _CONSOLE_HANDLER.addFilter(_spritediff_subsystem_filter)

    spritediff_log.addHandler(_CONSOLE_HANDLER)


def shutdown_logging():
    """
    Shut down spritediff logging.
    """
    logging.shutdown()


def set_debug(debug_arg):
    """
    Set debugging mask from command line argument.
    """
    if not debug_arg:
        return

    mask_map = {
        "manifest": SPRITEDIFF_DEBUG_MANIFEST,
        "compare": SPRITEDIFF_DEBUG_COMPARE,
        "textdiff": SPRITEDIFF_DEBUG_TEXTDIFF,
        "command": SPRITEDIFF_DEBUG_COMMAND,
        "all": SPRITEDIFF_DEBUG_ALL,
    }

    mask = 0
    for name in debug_arg.split(","):
        if name not in mask_map:
            raise ValueError(f"Unknown debug option: {name}")
        mask |= mask_map[name]
    set_debug_mask(mask)


def _add_limit_args(parser):
    """
    Add line diff limit arguments.
    """
    parser.add_argument(
        "-z",
        "--max-lines",
        type=int,
        dest="max_diff_lines",
        default=None,
        help="Maximum number of lines per file for line diffs (0=unlimited)",
    )
    parser.add_argument(
        "--max-hunk-lines",
        type=int,
        dest="max_hunk_lines",
        default=None,
        help="Number of lines after which a hunk is split",
    )


def _add_diff_subparser(type_subparser):
    """
    Add subparser for the 'diff' command.

    :param type_subparser: Command type subparser
    """
    diff_parser = type_subparser.add_parser(
        DIFF_CMD, help="Compare two checkpoint manifests"
    )
    diff_parser.set_defaults(func=_diff_cmd)
    diff_parser.add_argument(
        "manifest_a",
        metavar="MANIFEST_A",
        type=str,
        action="store",
        help="The manifest to use as the left side of the comparison",
    )
    diff_parser.add_argument(
        "manifest_b",
        metavar="MANIFEST_B",
        type=str,
        action="store",
        help="The manifest to use as the right side of the comparison",
    )
    diff_parser.add_argument(
        "-o",
        "--output-format",
        type=str,
        action="append",
        choices=DIFF_FORMATS,
        help=f"Output format ({', '.join(DIFF_FORMATS)})",
    )
    diff_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print JSON output",
    )
    diff_parser.add_argument(
        "-l",
        "--max-listed",
        type=int,
        dest="max_listed_changes",
        default=None,
        help="Maximum number of changes listed in short output (0=unlimited)",
    )
    diff_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=None,
        help="Do not output status information",
    )


def _add_file_subparser(type_subparser):
    """
    Add subparser for the 'file' command.

    :param type_subparser: Command type subparser
    """
    file_parser = type_subparser.add_parser(
        FILE_CMD, help="Compute a line diff of two text files"
    )
    file_parser.set_defaults(func=_file_cmd)
    file_parser.add_argument(
        "old_file",
        metavar="OLD",
        type=str,
        action="store",
        help="The original version of the file",
    )
    file_parser.add_argument(
        "new_file",
        metavar="NEW",
        type=str,
        action="store",
        help="The updated version of the file",
    )
    file_parser.add_argument(
        "--filename",
        type=str,
        default=None,
        help="File name to report in the diff (default: base name of NEW)",
    )
    file_parser.add_argument(
        "-o",
        "--output-format",
        type=str,
        choices=FILE_DIFF_FORMATS,
        default=None,
        help=f"Output format ({', '.join(FILE_DIFF_FORMATS)})",
    )
    file_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print JSON output",
    )
    file_parser.add_argument(
        "-q",
        "--quiet",
        action="store_true",
        default=None,
        help="Do not output status information",
    )
    _add_limit_args(file_parser)


def _add_show_subparser(type_subparser):
    """
    Add subparser for the 'show' command.

    :param type_subparser: Command type subparser
    """
    show_parser = type_subparser.add_parser(SHOW_CMD, help="Describe a manifest")
    show_parser.set_defaults(func=_show_cmd)
    show_parser.add_argument(
        "manifest",
        metavar="MANIFEST",
        type=str,
        action="store",
        help="The manifest to describe",
    )
    show_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the manifest as JSON",
    )
    show_parser.add_argument(
        "--pretty",
        action="store_true",
        help="Pretty-print JSON output",
    )


def main(args):
    """
    Main entry point for spritediff.
    """
    parser = ArgumentParser(description="Checkpoint Differ", prog=basename(args[0]))

    # Global arguments
    parser.add_argument(
        "-d",
        "--debug",
        metavar="DEBUGOPTS",
        type=str,
        help="A list of debug options to enable",
    )
    parser.add_argument("-v", "--verbose", help="Enable verbose output", action="count")
    parser.add_argument(
        "-V",
        "--version",
        action="version",
        help="Report the version number of spritediff",
        version=__version__,
    )
    parser.add_argument(
        "-c",
        "--config",
        metavar="CONFIG",
        type=str,
        default=None,
        help=f"Path to configuration file (default: {SPRITEDIFF_CONFIG_FILE})",
    )
    # Subparser for command type
    type_subparser = parser.add_subparsers(dest="type", help="Command type")

    _add_diff_subparser(type_subparser)

    _add_file_subparser(type_subparser)

    _add_show_subparser(type_subparser)

    cmd_args = parser.parse_args(args[1:])

    status = 1

    try:
        set_debug(cmd_args.debug)
    except ValueError as err:
        print(err)
        parser.print_help()
        return status

    setup_logging(cmd_args)

    _log_debug_command("Parsed %s", " ".join(args[1:]))

    if "func" not in cmd_args:
        parser.print_help()
        return status

    if cmd_args.debug:
        status = cmd_args.func(cmd_args)
    else:
        try:
            status = cmd_args.func(cmd_args)
        # pylint: disable=broad-except
        except KeyboardInterrupt:  # pragma: no cover
            _log_info("Exiting on user cancel")
        except Exception as err:
            _log_error("Command failed: %s", err)

    shutdown_logging()
    return status


def run():
    """
    Console script entry point for spritediff.
    """
    sys.exit(main(sys.argv))


# vim: set et ts=4 sw=4 :
