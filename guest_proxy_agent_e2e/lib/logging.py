# Azure Guest Proxy Agent extension tests
#
# Copyright 2018 Microsoft Corporation
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

#
# This module defines a single object, 'log', of type ExtensionTestLogger, which the extension tests and libraries use
# for logging.
#

import sys

from logging import FileHandler, Formatter, Handler, Logger, StreamHandler, INFO
from pathlib import Path
from typing import Optional


class ExtensionTestLogger(Logger):
    """
    ExtensionTestLogger is a Logger customized for the scripts that validate the extension on the test VM. By default it
    outputs to stdout, which the test framework collects from the remote command (errors go to stderr, see
    remote_test.py). When the script is executed by hand, set_log_file() can be used to send the log to a file
    instead.
    """
    def __init__(self):
        super().__init__(name="guest-proxy-agent-e2e", level=INFO)
        self._formatter: Formatter = Formatter('%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s', datefmt="%Y-%m-%dT%H:%M:%SZ")
        self._default_handler: Handler = StreamHandler(sys.stdout)
        self._default_handler.setFormatter(self._formatter)
        self._file_handler: Optional[FileHandler] = None
        self.addHandler(self._default_handler)

    def set_log_file(self, log_file: Path) -> None:
        """
        Redirects the log to the given file; the file is appended to if it already exists.
        """
        self.close_log_file()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        self._file_handler = FileHandler(str(log_file))
        self._file_handler.setFormatter(self._formatter)
        self.removeHandler(self._default_handler)
        self.addHandler(self._file_handler)

    def close_log_file(self) -> None:
        """
        Closes the log file (if any) and restores logging to stdout.
        """
        if self._file_handler is None:
            return
        self.removeHandler(self._file_handler)
        self._file_handler.close()
        self._file_handler = None
        self.addHandler(self._default_handler)


log: ExtensionTestLogger = ExtensionTestLogger()
