# Copyright Red Hat
#
# spritediff/__init__.py - Checkpoint differ package initialisation
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
"""
Spritediff top-level package.
"""
from ._spritediff import *  # noqa: F401, F403
from ._spritediff import __all__  # noqa: F401

__version__ = "0.1.0"
