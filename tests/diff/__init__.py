# Copyright Red Hat
#
# tests/diff/__init__.py - Checkpoint differ diff package tests
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
