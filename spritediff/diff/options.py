# Copyright Red Hat
#
# spritediff/diff/options.py - Checkpoint differ diff options
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Checkpoint diff options.
"""
from dataclasses import dataclass, fields, replace
from configparser import ConfigParser, Error as ConfigParserError
from typing import Optional
from argparse import Namespace
from os.path import exists
import logging

from spritediff import SpriteDiffArgumentError

_log = logging.getLogger(__name__)

_log_debug = _log.debug
_log_info = _log.info
_log_warn = _log.warning
_log_error = _log.error

#: Default configuration file location
SPRITEDIFF_CONFIG_FILE = "/etc/spritediff/spritediff.conf"

#: Configuration file section for diff options
_SPRITEDIFF_CFG_DIFF = "diff"


@dataclass(frozen=True)
class DiffOptions:
    """
    Checkpoint comparison options.
    """

    #: Maximum number of lines accumulated in a hunk before it is split
    max_hunk_lines: int = 50
    #: Maximum number of lines per side for content diffs (0=unlimited)
    max_diff_lines: int = 10000
    #: Maximum number of changes listed in short output (0=unlimited)
    max_listed_changes: int = 50
    #: Do not output status updates
    quiet: bool = False

    def __post_init__(self):
        if self.max_hunk_lines < 1:
            raise SpriteDiffArgumentError(
                f"max_hunk_lines must be positive: {self.max_hunk_lines}"
            )
        if self.max_diff_lines < 0:
            raise SpriteDiffArgumentError(
                f"max_diff_lines cannot be negative: {self.max_diff_lines}"
            )
        if self.max_listed_changes < 0:
            raise SpriteDiffArgumentError(
                f"max_listed_changes cannot be negative: {self.max_listed_changes}"
            )

    def __str__(self):
        """
        Return a human readable string representation of this
        ``DiffOptions`` instance.

        :returns: A human readable string.
        :rtype: ``str``
        """
        return "\n".join(f"{key}={val}" for key, val in self.__dict__.items())

    @classmethod
    def from_cmd_args(
        cls, cmd_args: Namespace, base: Optional["DiffOptions"] = None
    ) -> "DiffOptions":
        """
        Initialise DiffOptions from command line arguments.

        Construct a new ``DiffOptions`` object from the command line
        arguments in ``cmd_args``. Arguments that are absent or ``None``
        keep the value from ``base`` (or the built-in default).

        :param cmd_args: The command line selection arguments.
        :type cmd_args: ``Namespace``
        :param base: Options to start from, e.g. loaded from a config file.
        :type base: ``Optional[DiffOptions]``
        :returns: A new ``DiffOptions`` instance
        :rtype: ``DiffOptions``
        """
        field_names = {f.name for f in fields(cls)}
        kwargs = {
            name: getattr(cmd_args, name)
            for name in field_names
            if getattr(cmd_args, name, None) is not None
        }
        options = replace(base or cls(), **kwargs)
        _log_debug("Initialised DiffOptions from arguments: %s", repr(options))
        return options

    @classmethod
    def from_file(cls, config_file: str = SPRITEDIFF_CONFIG_FILE) -> "DiffOptions":
        """
        Load ``DiffOptions`` from an INI-style configuration file located at
        ``config_file``. A missing file yields the default options.

        :param config_file: path to spritediff.conf
        :type config_file: ``str``.
        :returns: A ``DiffOptions`` instance initialised from ``config_file``.
        :rtype: ``DiffOptions``
        :raises: ``SpriteDiffArgumentError`` if the file cannot be parsed or
                 contains invalid values.
        """
        if not exists(config_file):
            return cls()

        _log_debug("Loading configuration from '%s'", config_file)
        cfg = ConfigParser()
        try:
            cfg.read([config_file])
        except ConfigParserError as err:
            raise SpriteDiffArgumentError(
                f"Malformed configuration file {config_file}: {err}"
            ) from err

        if not cfg.has_section(_SPRITEDIFF_CFG_DIFF):
            return cls()

        kwargs = {}
        section = cfg[_SPRITEDIFF_CFG_DIFF]
        for opt in fields(cls):
            if opt.name not in section:
                continue
            try:
                if opt.type in (bool, "bool"):
                    kwargs[opt.name] = section.getboolean(opt.name)
                else:
                    kwargs[opt.name] = section.getint(opt.name)
            except ValueError as err:
                raise SpriteDiffArgumentError(
                    f"Invalid value for '{opt.name}' in {config_file}: {err}"
                ) from err

        for key in section:
            if key not in kwargs:
                _log_warn("Ignoring unknown option '%s' in %s", key, config_file)

        return cls(**kwargs)
