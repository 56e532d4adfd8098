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
import re

from pathlib import Path

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.shell import CommandError, run_command

OS_RELEASE_FILE = Path("/etc/os-release")


def _parse_hostnamectl(output: str) -> str:
    for line in output.splitlines():
        match = re.match(r'^\s*Operating System:\s*(.+)$', line)
        if match is not None:
            return match.group(1).strip()
    return ""


def _parse_os_release(content: str) -> str:
    for line in content.splitlines():
        if line.startswith("PRETTY_NAME="):
            return line.split("=", 1)[1].strip().strip('"')
    return ""


def get_operating_system(os_release_file: Path = OS_RELEASE_FILE) -> str:
    """
    Returns the name of the operating system as reported by hostnamectl (e.g. "Ubuntu 22.04.3 LTS"). If hostnamectl
    is not available, or does not report it, falls back to PRETTY_NAME in /etc/os-release. Returns an empty string
    if neither source has the information.
    """
    try:
        name = _parse_hostnamectl(run_command(["hostnamectl"]))
        if name != "":
            return name
        log.warning("hostnamectl did not report the Operating System; checking %s", os_release_file)
    except (CommandError, OSError) as e:
        log.warning("Could not execute hostnamectl; checking %s. Error: %s", os_release_file, e)

    try:
        return _parse_os_release(os_release_file.read_text())
    except OSError as e:
        log.warning("Could not read %s: %s", os_release_file, e)
        return ""


def is_ubuntu(os_name: str) -> bool:
    return "Ubuntu" in os_name
