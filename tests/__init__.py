# Copyright Red Hat
#
# tests/__init__.py - Checkpoint differ test package
#
# This file is part of the spritediff project.
#
# SPDX-License-Identifier: Apache-2.0
import logging
import os
import time

log = logging.getLogger()
log.setLevel(logging.DEBUG)
formatter = logging.Formatter('%(asctime)s %(levelname)s %(name)s %(message)s')
file_handler = logging.FileHandler("test.log")
file_handler.setFormatter(formatter)
console_handler = logging.StreamHandler()
console_handler.setFormatter(formatter)
log.addHandler(file_handler)
log.addHandler(console_handler)

os.environ["TZ"] = "UTC"
time.tzset()


class MockArgs(object):
    debug = None
    verbose = 0
    version = False
    config = None
    output_format = None
    pretty = False
    json = False
    quiet = None
    filename = None
    max_hunk_lines = None
    max_diff_lines = None
    max_listed_changes = None
