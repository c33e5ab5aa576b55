# Copyright Red Hat
#
# tests/test_command.py - CLI layer tests
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
import unittest
from unittest.mock import MagicMock, patch
from contextlib import redirect_stdout
from io import StringIO
import tempfile
import logging
import json
import os

import spritediff
import spritediff.command as command
from spritediff.diff import DiffOptions

from tests import MockArgs
from tests.diff._util import make_entry, make_manifest, write_manifest

log = logging.getLogger()


class CommandTestsBase(unittest.TestCase):
    def setUp(self):
        log.debug("Preparing %s", self._testMethodName)
        self._tmpdir = tempfile.TemporaryDirectory()
        self.tmp = self._tmpdir.name

    def tearDown(self):
        log.debug("Tearing down (%s)", self._testMethodName)
        self._tmpdir.cleanup()
        spritediff.set_debug_mask(0)

    def get_main_args(self):
        """
        Return an argument array (in the form of sys.argv) reflecting the
        ``spritediff`` command.

        :returns: A list of command arguments.
        """
        return ["spritediff", "-c", os.path.join(self.tmp, "spritediff.conf")]

    def get_debug_main_args(self):
        """
        Return an argument array (in the form of sys.argv) reflecting the
        ``spritediff`` command, with verbose logging and debug enabled.

        :returns: A list of command arguments.
        """
        return self.get_main_args() + ["-vv", "--debug=all"]

    def run_main(self, args):
        """
        Run ``command.main()`` with ``args`` and return a tuple of the exit
        status and captured standard output.
        """
        out = StringIO()
        with redirect_stdout(out):
            status = command.main(args)
        return status, out.getvalue()

    def write_text(self, name, text):
        path = os.path.join(self.tmp, name)
        with open(path, "w", encoding="utf8") as fp:
            fp.write(text)
        return path

    def write_manifests(self, ext=".json"):
        manifest_a = make_manifest("cp-a", [make_entry("/x", size=10, sha256="h1")])
        manifest_b = make_manifest(
            "cp-b",
            [make_entry("/x", size=12, sha256="h2"), make_entry("/y", size=5, sha256="h3")],
        )
        return (
            write_manifest(self.tmp, "a" + ext, manifest_a),
            write_manifest(self.tmp, "b" + ext, manifest_b),
        )


class CommandTestsSimple(CommandTestsBase):
    """
    Test command interfaces
    """

    def setUp(self):
        super().setUp()
        self.write_text("spritediff.conf", "[diff]\nmax_listed_changes = 50\n")

    def test_main_no_command(self):
        status, _ = self.run_main(self.get_main_args())
        self.assertEqual(status, 1)

    def test_main_version(self):
        with self.assertRaises(SystemExit) as cm:
            with redirect_stdout(StringIO()):
                command.main(["spritediff", "--version"])
        self.assertEqual(cm.exception.code, 0)

    def test_main_bad_debug(self):
        status, out = self.run_main(["spritediff", "--debug=nosuchthing", "show", "x"])
        self.assertEqual(status, 1)
        self.assertIn("Unknown debug option", out)

    def test_set_debug(self):
        command.set_debug("manifest,compare")
        self.assertEqual(
            spritediff.get_debug_mask(),
            spritediff.SPRITEDIFF_DEBUG_MANIFEST | spritediff.SPRITEDIFF_DEBUG_COMPARE,
        )
        command.set_debug("all")
        self.assertEqual(spritediff.get_debug_mask(), spritediff.SPRITEDIFF_DEBUG_ALL)

    def test_set_debug_unknown(self):
        with self.assertRaises(ValueError):
            command.set_debug("manifest,bogus")

    def test_setup_logging(self):
        args = MockArgs()
        args.verbose = 2
        command.setup_logging(args)
        sd_log = logging.getLogger("spritediff")
        self.assertEqual(sd_log.level, logging.DEBUG)
        self.assertEqual(len(sd_log.handlers), 1)
        args.verbose = 1
        command.setup_logging(args)
        self.assertEqual(sd_log.level, logging.INFO)
        self.assertEqual(len(sd_log.handlers), 1)

    def test_diff_default_short(self):
        path_a, path_b = self.write_manifests()
        status, out = self.run_main(self.get_main_args() + ["diff", path_a, path_b])
        self.assertEqual(status, 0)
        self.assertIn("  A  /y  +5.0B", out)
        self.assertIn("  M  /x  +2.0B", out)

    def test_diff_json(self):
        path_a, path_b = self.write_manifests(ext=".json.zst")
        status, out = self.run_main(
            self.get_main_args() + ["diff", path_a, path_b, "-o", "json", "--pretty"]
        )
        self.assertEqual(status, 0)
        data = json.loads(out)
        self.assertEqual(data["summary"]["files_added"], 1)
        self.assertEqual(data["summary"]["files_modified"], 1)
        self.assertEqual(data["summary"]["bytes_added"], 7)
        self.assertEqual([c["path"] for c in data["changes"]], ["/y", "/x"])

    def test_diff_paths_and_summary(self):
        path_a, path_b = self.write_manifests(ext=".json.xz")
        status, out = self.run_main(
            self.get_debug_main_args()
            + ["diff", path_a, path_b, "-o", "paths", "-o", "summary"]
        )
        self.assertEqual(status, 0)
        self.assertTrue(out.startswith("/y\n/x\n"))
        self.assertIn("Files changed:  2", out)
        self.assertIn("Similarity:     0.0%", out)

    def test_diff_pretty_without_json(self):
        path_a, path_b = self.write_manifests()
        status, _ = self.run_main(
            self.get_main_args() + ["diff", path_a, path_b, "-o", "paths", "--pretty"]
        )
        self.assertEqual(status, 1)

    def test_diff_missing_manifest(self):
        path_a, _ = self.write_manifests()
        missing = os.path.join(self.tmp, "missing.json")
        status, out = self.run_main(self.get_main_args() + ["diff", path_a, missing])
        self.assertEqual(status, 1)
        self.assertEqual(out, "")

    def test_diff_missing_manifest_debug_raises(self):
        path_a, _ = self.write_manifests()
        missing = os.path.join(self.tmp, "missing.json")
        with self.assertRaises(spritediff.SpriteDiffNotFoundError):
            self.run_main(self.get_debug_main_args() + ["diff", path_a, missing])

    def test_diff_missing_config(self):
        path_a, path_b = self.write_manifests()
        args = ["spritediff", "-c", os.path.join(self.tmp, "nope.conf")]
        status, _ = self.run_main(args + ["diff", path_a, path_b])
        self.assertEqual(status, 1)

    def test_file_diff(self):
        old = self.write_text("old.txt", "a\nb\nc\n")
        new = self.write_text("new.txt", "a\nx\nc\n")
        status, out = self.run_main(self.get_main_args() + ["file", old, new])
        self.assertEqual(status, 0)
        self.assertIn("new.txt: 1 additions, 1 deletions", out)
        self.assertIn("--- a/new.txt\n+++ b/new.txt\n@@ -5 +5 @@\n a\n-b\n+x\n c\n", out)

    def test_file_diff_json(self):
        old = self.write_text("old.txt", "")
        new = self.write_text("new.txt", "a\nb\n")
        status, out = self.run_main(
            self.get_main_args()
            + ["file", old, new, "--filename", "etc/app.conf", "-o", "json"]
        )
        self.assertEqual(status, 0)
        data = json.loads(out)
        self.assertEqual(data["filename"], "etc/app.conf")
        self.assertEqual(data["additions"], 2)
        self.assertEqual(data["deletions"], 0)

    def test_file_diff_quiet_identical(self):
        old = self.write_text("old.txt", "same\n")
        new = self.write_text("new.txt", "same\n")
        status, out = self.run_main(self.get_main_args() + ["file", "-q", old, new])
        self.assertEqual(status, 0)
        self.assertEqual(out, "")

    def test_file_diff_line_limit(self):
        old = self.write_text("old.txt", "1\n2\n3\n")
        new = self.write_text("new.txt", "1\n")
        status, _ = self.run_main(self.get_main_args() + ["file", "-z", "2", old, new])
        self.assertEqual(status, 1)

    def test_file_diff_missing(self):
        new = self.write_text("new.txt", "1\n")
        missing = os.path.join(self.tmp, "old.txt")
        status, _ = self.run_main(self.get_main_args() + ["file", missing, new])
        self.assertEqual(status, 1)

    def test_show(self):
        path_a, _ = self.write_manifests()
        status, out = self.run_main(self.get_main_args() + ["show", path_a])
        self.assertEqual(status, 0)
        self.assertIn("Checkpoint: cp-a", out)
        self.assertIn("Total Files: 1", out)

    def test_show_json(self):
        path_a, _ = self.write_manifests()
        status, out = self.run_main(self.get_main_args() + ["show", path_a, "--json"])
        self.assertEqual(status, 0)
        self.assertEqual(json.loads(out)["checkpoint_id"], "cp-a")

    def test_show_pretty_without_json(self):
        path_a, _ = self.write_manifests()
        status, _ = self.run_main(self.get_main_args() + ["show", path_a, "--pretty"])
        self.assertEqual(status, 1)


class CommandHandlerTests(CommandTestsBase):
    """
    Test command handlers directly
    """

    def _get_diff_args(self):
        args = MockArgs()
        args.manifest_a = "a.json"
        args.manifest_b = "b.json"
        args.config = os.path.join(self.tmp, "spritediff.conf")
        self.write_text("spritediff.conf", "[diff]\nmax_listed_changes = 1\n")
        return args

    @patch("spritediff.command.diff_manifests")
    def test__diff_cmd_success(self, mock_diff):
        """Test _diff_cmd success path."""
        args = self._get_diff_args()

        mock_res = MagicMock()
        mock_res.short.return_value = "short output"
        mock_diff.return_value = mock_res

        with redirect_stdout(StringIO()) as out:
            ret = command._diff_cmd(args)
        self.assertEqual(ret, 0)
        self.assertEqual(out.getvalue(), "short output\n")
        mock_diff.assert_called_once()
        options = mock_diff.call_args[0][2]
        self.assertEqual(options.max_listed_changes, 1)
        mock_res.short.assert_called_once_with(max_changes=1)

    @patch("spritediff.command.diff_manifests")
    def test__diff_cmd_args_override_config(self, mock_diff):
        args = self._get_diff_args()
        args.max_listed_changes = 7
        mock_diff.return_value = MagicMock()

        with redirect_stdout(StringIO()):
            command._diff_cmd(args)
        self.assertEqual(mock_diff.call_args[0][2].max_listed_changes, 7)

    def test__diff_cmd_validation_errors(self):
        """Test _diff_cmd argument validation errors."""
        args = self._get_diff_args()

        # Error: pretty without json
        args.pretty = True
        args.output_format = ["short"]
        self.assertEqual(command._diff_cmd(args), 1)

    def test__file_cmd_validation_errors(self):
        args = self._get_diff_args()
        args.old_file = "old"
        args.new_file = "new"
        args.pretty = True
        args.output_format = "diff"
        self.assertEqual(command._file_cmd(args), 1)

    def test_diff_manifests(self):
        path_a, path_b = self.write_manifests()
        result = command.diff_manifests(path_a, path_b, DiffOptions(quiet=True))
        self.assertEqual(result.paths(), ["/y", "/x"])

    def test_diff_files_default_filename(self):
        old = self.write_text("old.conf", "x=1\n")
        new = self.write_text("new.conf", "x=2\n")
        file_diff = command.diff_files(old, new)
        self.assertEqual(file_diff.filename, "new.conf")
        self.assertEqual(file_diff.additions, 1)

    def test_diff_files_replaces_invalid_utf8(self):
        old = os.path.join(self.tmp, "old.bin")
        with open(old, "wb") as fp:
            fp.write(b"\xff\xfe\n")
        new = self.write_text("new.txt", "text\n")
        file_diff = command.diff_files(old, new)
        self.assertEqual(file_diff.deletions, 1)

    def test_show_manifest(self):
        path_a, _ = self.write_manifests()
        self.assertEqual(command.show_manifest(path_a).checkpoint_id, "cp-a")
