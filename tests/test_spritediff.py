# Copyright Red Hat
#
# tests/test_spritediff.py - spritediff package unit tests
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import mock_open, patch
import logging

import spritediff

log = logging.getLogger()


class SpriteDiffTestsSimple(unittest.TestCase):
    """Test spritediff module"""

    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)

    def tearDown(self):
        log.debug("Tearing down (%s)", self._testMethodName)
        spritediff.set_debug_mask(0)

    def test_set_debug_mask(self):
        spritediff.set_debug_mask(spritediff.SPRITEDIFF_DEBUG_ALL)
        self.assertEqual(spritediff.get_debug_mask(), spritediff.SPRITEDIFF_DEBUG_ALL)

    def test_set_debug_mask_partial(self):
        mask = spritediff.SPRITEDIFF_DEBUG_COMPARE | spritediff.SPRITEDIFF_DEBUG_TEXTDIFF
        spritediff.set_debug_mask(mask)
        self.assertEqual(spritediff.get_debug_mask(), mask)

    def test_set_debug_mask_bad_mask(self):
        with self.assertRaises(ValueError):
            spritediff.set_debug_mask(spritediff.SPRITEDIFF_DEBUG_ALL + 1)
        with self.assertRaises(ValueError):
            spritediff.set_debug_mask(-1)

    def test_SubsystemFilter(self):
        # Start with no subsystems enabled
        spritediff.set_debug_mask(0)
        sf = spritediff.SubsystemFilter("spritediff")
        self.assertEqual(sf.enabled_subsystems, set())
        # Enable a couple and ensure new filters initialise from cache
        spritediff.set_debug_mask(
            spritediff.SPRITEDIFF_DEBUG_COMMAND | spritediff.SPRITEDIFF_DEBUG_MANIFEST
        )
        sf2 = spritediff.SubsystemFilter("spritediff")
        self.assertIn(spritediff.SPRITEDIFF_SUBSYSTEM_COMMAND, sf2.enabled_subsystems)
        self.assertIn(spritediff.SPRITEDIFF_SUBSYSTEM_MANIFEST, sf2.enabled_subsystems)

    def test_SubsystemFilter_filter(self):
        spritediff.set_debug_mask(spritediff.SPRITEDIFF_DEBUG_COMPARE)
        sf = spritediff.SubsystemFilter("spritediff")

        def _record(level, subsystem=None):
            record = logging.LogRecord("spritediff", level, __file__, 1, "msg", (), None)
            if subsystem:
                record.subsystem = subsystem
            return record

        self.assertTrue(sf.filter(_record(logging.INFO)))
        self.assertTrue(sf.filter(_record(logging.DEBUG)))
        self.assertTrue(
            sf.filter(_record(logging.DEBUG, spritediff.SPRITEDIFF_SUBSYSTEM_COMPARE))
        )
        self.assertFalse(
            sf.filter(_record(logging.DEBUG, spritediff.SPRITEDIFF_SUBSYSTEM_TEXTDIFF))
        )

    def test_error_hierarchy(self):
        for err_class in (
            spritediff.SpriteDiffManifestError,
            spritediff.SpriteDiffParseError,
            spritediff.SpriteDiffNotFoundError,
            spritediff.SpriteDiffLimitError,
            spritediff.SpriteDiffArgumentError,
        ):
            self.assertTrue(issubclass(err_class, spritediff.SpriteDiffError))

    def test_size_fmt(self):
        self.assertEqual(spritediff.size_fmt(512), "512.0B")
        self.assertEqual(spritediff.size_fmt(1536), "1.5KiB")
        self.assertEqual(spritediff.size_fmt(3 * 2**30), "3.0GiB")

    def test_size_fmt_zero(self):
        self.assertEqual(spritediff.size_fmt(0), "0B")
        self.assertEqual(spritediff.size_fmt(None), "0B")

    def test_size_fmt_yib(self):
        self.assertEqual(spritediff.size_fmt(1000000000000000000000000000), "827.2YiB")

    def test_signed_size_fmt(self):
        self.assertEqual(spritediff.signed_size_fmt(1536), "+1.5KiB")
        self.assertEqual(spritediff.signed_size_fmt(-1536), "-1.5KiB")
        self.assertEqual(spritediff.signed_size_fmt(0), "+0B")

    @patch(
        "builtins.open",
        new_callable=mock_open,
        read_data="MemTotal:       16384000 kB\nMemFree:         1024 kB\n",
    )
    def test_get_total_memory_16GiB(self, mock_file):
        """Test reading total system memory."""
        # 16384000 kB * 1024 = 16777216000 bytes
        self.assertEqual(spritediff.get_total_memory(), 16777216000)

    @patch("builtins.open", new_callable=mock_open, read_data="MemTotal:   bad kB\n")
    def test_get_total_memory_malformed(self, mock_file):
        self.assertEqual(spritediff.get_total_memory(), 0)

    @patch("builtins.open", side_effect=OSError("No such file"))
    def test_get_total_memory_fail(self, mock_file):
        """Test MemTotal failure handling."""
        self.assertEqual(spritediff.get_total_memory(), 0)
