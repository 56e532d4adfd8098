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
from abc import ABC, abstractmethod
from typing import List

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.os_info import is_ubuntu
from guest_proxy_agent_e2e.lib.poll import PollConfig, poll_until
from guest_proxy_agent_e2e.lib.shell import CommandError, execute, run_sudo_command


class PackageManager(ABC):
    """
    Minimal interface to the distro's package manager
    """
    name: str = ""

    @abstractmethod
    def install(self, package: str) -> None:
        """
        Installs the given package. Raises CommandError if the package manager fails.
        """

    @abstractmethod
    def is_installed(self, package: str) -> bool:
        """
        Returns True if the package is installed.
        """

    @staticmethod
    def _list_installed(command: List[str]) -> str:
        exit_code, stdout, stderr = execute(command)
        log.info("%s [exit code: %s]:\n%s%s", " ".join(command), exit_code, stdout, stderr)
        # yum returns an error when the package is not installed; that is not an error for our purposes
        return stdout if exit_code == 0 else ""


class AptPackageManager(PackageManager):
    name = "apt-get"

    def install(self, package: str) -> None:
        run_sudo_command(["apt", "update"])
        run_sudo_command(["apt-get", "install", "-y", package])

    def is_installed(self, package: str) -> bool:
        # e.g. "jq/jammy-updates,jammy-security,now 1.6-2.1ubuntu3 amd64 [installed]"
        output = self._list_installed(["apt", "list", "--installed", package])
        return any(line.startswith(f"{package}/") for line in output.splitlines())


class YumPackageManager(PackageManager):
    name = "yum"

    def install(self, package: str) -> None:
        run_sudo_command(["yum", "-y", "install", package])

    def is_installed(self, package: str) -> bool:
        # e.g. "jq.x86_64    1.6-16.el9    @appstream"
        output = self._list_installed(["yum", "list", "--installed", package])
        return any(line.startswith(f"{package}.") for line in output.splitlines())


def get_package_manager(os_name: str) -> PackageManager:
    """
    Returns the package manager for the given operating system (as returned by os_info.get_operating_system()).
    Only Ubuntu uses apt; all other distros are assumed to use yum.
    """
    if is_ubuntu(os_name):
        return AptPackageManager()
    return YumPackageManager()


def ensure_package_installed(package_manager: PackageManager, package: str, attempts: int = 3, delay: float = 10) -> bool:
    """
    Installs the package if needed, retrying up to 'attempts' times, and returns True if the package ends up installed.
    Failures of the package manager are logged and retried; they are not raised.
    """
    count: List[int] = [0]

    def install_and_check() -> bool:
        count[0] += 1
        if package_manager.is_installed(package):
            return True
        log.info("Installing %s via %s [attempt %s/%s]", package, package_manager.name, count[0], attempts)
        try:
            package_manager.install(package)
        except CommandError as e:
            log.warning("Failed to install %s: %s", package, e)
        return package_manager.is_installed(package)

    result = poll_until(install_and_check, lambda installed: installed, PollConfig(interval=delay, timeout=float("inf"), attempts=attempts))

    if result.succeeded:
        log.info("%s installed successfully", package)
    else:
        log.warning("Could not install %s after %s attempts", package, result.attempts)
    return result.succeeded
