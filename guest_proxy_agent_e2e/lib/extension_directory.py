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
# Helpers to work with the directory where the Guest Agent installs the extension, e.g.
#
#     /var/lib/waagent/Microsoft.CPlat.ProxyAgent.ProxyAgentLinux-1.0.23
#
# The Guest Agent downloads the extension package to the zip file next to it, named after the directory with '-'
# replaced by '__' (Microsoft.CPlat.ProxyAgent.ProxyAgentLinux__1.0.23.zip).
#
import os
import re
import shutil

from pathlib import Path
from typing import List, Optional

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.poll import PollConfig, PollResult, poll_until
from guest_proxy_agent_e2e.lib.shell import run_command

WAAGENT_LIB_DIR = Path("/var/lib/waagent")
EXTENSION_NAME = "Microsoft.CPlat.ProxyAgent.ProxyAgentLinux"


def find_extension_directories(lib_dir: Path = WAAGENT_LIB_DIR, extension_name: str = EXTENSION_NAME) -> List[Path]:
    """
    Returns all the directories under 'lib_dir' (recursively) whose name contains the extension name
    """
    matches = []
    for root, dirs, _ in os.walk(str(lib_dir)):
        for d in dirs:
            if extension_name in d:
                matches.append(Path(root) / d)
    return sorted(matches)


def wait_for_extension_directory(config: PollConfig, lib_dir: Path = WAAGENT_LIB_DIR, extension_name: str = EXTENSION_NAME) -> PollResult[List[Path]]:
    """
    Waits for exactly one directory matching the extension name to exist under 'lib_dir'
    """
    log.info("Waiting for the %s directory under %s", extension_name, lib_dir)
    result = poll_until(lambda: find_extension_directories(lib_dir, extension_name), lambda dirs: len(dirs) == 1, config)
    if result.succeeded:
        log.info("Extension directory: %s", result.last_observed_value[0])
    else:
        log.warning("Timeout reached after %.0f secs; extension directories found: %s", result.elapsed_time, [str(d) for d in result.last_observed_value])
    return result


def get_extension_version(extension_directory: Path) -> Optional[str]:
    match = re.search(r'(\d+\.\d+\.\d+)$', extension_directory.name)
    return match.group(1) if match is not None else None


def get_extension_zip_path(extension_directory: Path) -> Path:
    return extension_directory.parent / (extension_directory.name.replace("-", "__") + ".zip")


def find_status_directory(extension_directory: Path) -> Optional[Path]:
    """
    Returns the 'status' directory of the extension (the first one found, searching recursively), or None if it does not exist
    """
    for root, dirs, _ in os.walk(str(extension_directory)):
        if "status" in dirs:
            return Path(root) / "status"
    return None


def clear_directory(directory: Path) -> None:
    """
    Deletes all the files and subdirectories inside the given directory (but not the directory itself)
    """
    if not directory.is_dir():
        log.warning("%s is not a directory; nothing to clear", directory)
        return
    for entry in directory.iterdir():
        log.info("Deleting %s", entry)
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(str(entry))
        else:
            entry.unlink()


def get_proxy_agent_path(extension_directory: Path, is_ubuntu: bool) -> Path:
    binary = "GuestProxyAgent.exe" if is_ubuntu else "azure-proxy-agent"
    return extension_directory / "ProxyAgent" / "ProxyAgent" / binary


def get_proxy_agent_version(extension_directory: Path, is_ubuntu: bool) -> str:
    """
    Returns the output of 'azure-proxy-agent --version' for the proxy agent included in the extension
    """
    return run_command([str(get_proxy_agent_path(extension_directory, is_ubuntu)), "--version"]).strip()
