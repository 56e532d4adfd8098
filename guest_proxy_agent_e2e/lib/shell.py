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
from subprocess import Popen, PIPE
from typing import Any, List, Tuple

from guest_proxy_agent_e2e.lib.logging import log


class CommandError(Exception):
    """
    Exception raised by run_command when the command returns an error
    """
    def __init__(self, command: Any, exit_code: int, stdout: str, stderr: str):
        super().__init__(f"'{command}' failed (exit code: {exit_code}): {stderr}")
        self.command: Any = command
        self.exit_code: int = exit_code
        self.stdout: str = stdout
        self.stderr: str = stderr

    def __str__(self):
        return f"'{self.command}' failed (exit code: {self.exit_code})\nstdout:\n{self.stdout}\nstderr:\n{self.stderr}\n"


def execute(command: Any, shell=False) -> Tuple[int, str, str]:
    """
    Executes the given command and returns a tuple with its exit code, stdout and stderr. Unlike run_command, a
    non-zero exit code is not an error; this is used for commands like pgrep, which report "not found" through
    the exit code.
    """
    process = Popen(command, stdout=PIPE, stderr=PIPE, shell=shell, text=True)

    stdout, stderr = process.communicate()

    return process.returncode, stdout, stderr


def run_command(command: Any, shell=False) -> str:
    """
    This function is a thin wrapper around Popen/communicate in the subprocess module. It executes the given command
    and returns its stdout. If the command returns a non-zero exit code, the function raises a CommandError.

    Similarly to Popen, the 'command' can be a string or a list of strings, and 'shell' indicates whether to execute
    the command through the shell.

    NOTE: The command's stdout and stderr are read as text streams.
    """
    exit_code, stdout, stderr = execute(command, shell=shell)

    if exit_code != 0:
        raise CommandError(command, exit_code, stdout, stderr)

    return stdout


def run_sudo_command(command: List[str]) -> str:
    """
    Executes the command with sudo; the command is logged along with its output.
    """
    log.info("Executing: sudo %s", " ".join(command))
    output = run_command(["sudo"] + command)
    log.info("%s", output.rstrip())
    return output
