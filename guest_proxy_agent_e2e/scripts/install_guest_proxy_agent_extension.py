#!/usr/bin/env python3

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
# Verifies that the published (PIR) version of the Guest Proxy Agent extension installed successfully and then
# replaces its package with the development build, so that the Guest Agent re-installs the extension from it.
#
# The URL of the development package is given base64-encoded, either with --package-url or in the devExtensionSas
# environment variable.
#
import argparse
import os
import shutil

from pathlib import Path
from typing import List, Optional

from assertpy import fail

from guest_proxy_agent_e2e.lib.download import decode_url, download_file
from guest_proxy_agent_e2e.lib.extension_directory import EXTENSION_NAME, WAAGENT_LIB_DIR, clear_directory, \
    find_status_directory, get_extension_version, get_extension_zip_path, get_proxy_agent_version, \
    wait_for_extension_directory
from guest_proxy_agent_e2e.lib.extension_status import AGGREGATE_STATUS_FILE, get_status_files, read_aggregate_status, \
    wait_for_extension_status
from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.os_info import get_operating_system, is_ubuntu
from guest_proxy_agent_e2e.lib.package_manager import ensure_package_installed, get_package_manager
from guest_proxy_agent_e2e.lib.poll import PollConfig
from guest_proxy_agent_e2e.lib.process import is_process_running, kill_process
from guest_proxy_agent_e2e.lib.remote_test import run_remote_test
from guest_proxy_agent_e2e.lib.shell import CommandError

PACKAGE_URL_ENVIRONMENT_VARIABLE = "devExtensionSas"
EXTENSION_PROCESS_NAME = "ProxyAgentExt"
HELPER_PACKAGE = "jq"


class InstallExtensionContext:
    """
    Settings for the install script; see _create_argument_parser() for the meaning of each item.
    """
    def __init__(
            self,
            package_url: str,
            lib_dir: Path = WAAGENT_LIB_DIR,
            extension_name: str = EXTENSION_NAME,
            process_name: str = EXTENSION_PROCESS_NAME,
            helper_package: str = HELPER_PACKAGE,
            aggregate_status_file: Path = AGGREGATE_STATUS_FILE,
            timeout: float = 300,
            interval: float = 5,
            install_attempts: int = 3,
            install_delay: float = 10,
            delete_extension_folder: bool = False,
            strict: bool = False,
            log_file: Optional[Path] = None):
        self.package_url: str = package_url
        self.lib_dir: Path = lib_dir
        self.extension_name: str = extension_name
        self.process_name: str = process_name
        self.helper_package: str = helper_package
        self.aggregate_status_file: Path = aggregate_status_file
        self.poll_config: PollConfig = PollConfig(interval=interval, timeout=timeout)
        self.install_attempts: int = install_attempts
        self.install_delay: float = install_delay
        self.delete_extension_folder: bool = delete_extension_folder
        self.strict: bool = strict
        self.log_file: Optional[Path] = log_file

    @staticmethod
    def _create_argument_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(description="Verifies the install of the Guest Proxy Agent extension and re-installs it from a development package")
        parser.add_argument('-u', '--package-url', dest="package_url", required=False, default=os.getenv(PACKAGE_URL_ENVIRONMENT_VARIABLE),
                            help=f"Base64-encoded URL of the replacement package (default: ${PACKAGE_URL_ENVIRONMENT_VARIABLE})")
        parser.add_argument('-l', '--lib-dir', dest="lib_dir", required=False, default=str(WAAGENT_LIB_DIR))
        parser.add_argument('-e', '--extension-name', dest="extension_name", required=False, default=EXTENSION_NAME)
        parser.add_argument('-p', '--process-name', dest="process_name", required=False, default=EXTENSION_PROCESS_NAME)
        parser.add_argument('--helper-package', dest="helper_package", required=False, default=HELPER_PACKAGE)
        parser.add_argument('--aggregate-status-file', dest="aggregate_status_file", required=False, default=str(AGGREGATE_STATUS_FILE))
        parser.add_argument('-t', '--timeout', dest="timeout", required=False, type=float, default=300)
        parser.add_argument('-i', '--interval', dest="interval", required=False, type=float, default=5)
        parser.add_argument('--delete-extension-folder', dest="delete_extension_folder", action='store_true',
                            help="Delete the extension directory along with its package before downloading the replacement")
        parser.add_argument('--strict', action='store_true', help="Fail if any of the waits times out")
        parser.add_argument('--log-file', dest="log_file", required=False, default=None)
        return parser

    @staticmethod
    def from_args(argv: Optional[List[str]] = None) -> 'InstallExtensionContext':
        """
        Creates an InstallExtensionContext from the command line arguments
        """
        args = InstallExtensionContext._create_argument_parser().parse_args(argv)
        if args.package_url is None or args.package_url.strip() == "":
            raise ValueError(f"The URL of the package must be given with --package-url or ${PACKAGE_URL_ENVIRONMENT_VARIABLE}")
        return InstallExtensionContext(
            package_url=args.package_url,
            lib_dir=Path(args.lib_dir),
            extension_name=args.extension_name,
            process_name=args.process_name,
            helper_package=args.helper_package,
            aggregate_status_file=Path(args.aggregate_status_file),
            timeout=args.timeout,
            interval=args.interval,
            delete_extension_folder=args.delete_extension_folder,
            strict=args.strict,
            log_file=Path(args.log_file) if args.log_file is not None else None)


class InstallGuestProxyAgentExtension:
    """
    Executes the steps of the test; failed waits are logged and recorded in 'timeouts' and the test continues
    """
    def __init__(self, context: InstallExtensionContext):
        self._context: InstallExtensionContext = context
        self.timeouts: List[str] = []

    def run(self) -> None:
        log.info("Starting install guest proxy agent extension script")
        url = decode_url(self._context.package_url)

        os_name = get_operating_system()
        log.info("Operating System: %s", os_name)

        extension_directory = self._get_extension_directory()

        version = get_extension_version(extension_directory)
        log.info("PIR extension version: %s", version)
        self._log_proxy_agent_version(extension_directory, is_ubuntu(os_name))

        status_directory = find_status_directory(extension_directory)
        if status_directory is None:
            fail(f"Could not find the status directory of the extension under {extension_directory}")
        log.info("Status directory: %s", status_directory)

        log.info("Deleting status files of the PIR version")
        clear_directory(status_directory)

        self._install_helper_package(os_name)

        self._check_extension_status(status_directory)
        self._check_extension_process()
        self._log_aggregate_status()

        self._replace_package(extension_directory, url)

        log.info("Killing %s so that the Guest Agent re-installs the extension", self._context.process_name)
        kill_process(self._context.process_name)

        log.info("Deleting status files inside the status directory")
        clear_directory(status_directory)

        if len(self.timeouts) > 0:
            if self._context.strict:
                fail(f"The following checks did not complete: {self.timeouts}")
            log.warning("The following checks did not complete: %s", self.timeouts)

    def _get_extension_directory(self) -> Path:
        result = wait_for_extension_directory(self._context.poll_config, self._context.lib_dir, self._context.extension_name)
        if not result.succeeded:
            fail(f"Could not find a unique directory for {self._context.extension_name} under {self._context.lib_dir}: {[str(d) for d in result.last_observed_value]}")
        return result.last_observed_value[0]

    def _log_proxy_agent_version(self, extension_directory: Path, ubuntu: bool) -> None:
        try:
            log.info("Proxy agent version: %s", get_proxy_agent_version(extension_directory, ubuntu))
        except (CommandError, OSError) as e:
            log.warning("Could not get the version of the proxy agent: %s", e)

    def _check_extension_status(self, status_directory: Path) -> None:
        log.info("Check that status file is success with %.0f secs timeout", self._context.poll_config.timeout)
        result = wait_for_extension_status(status_directory, self._context.poll_config)
        for status_file in get_status_files(status_directory)[-1:]:
            try:
                log.info("Contents of status file %s:\n%s", status_file, status_file.read_text())
            except OSError as e:
                log.warning("Could not read %s: %s", status_file, e)
        if not result.succeeded:
            self.timeouts.append("extension status")

    def _install_helper_package(self, os_name: str) -> None:
        package_manager = get_package_manager(os_name)
        log.info("Installing %s via %s", self._context.helper_package, package_manager.name)
        if not ensure_package_installed(package_manager, self._context.helper_package, self._context.install_attempts, self._context.install_delay):
            self.timeouts.append(f"{self._context.helper_package} install")

    def _check_extension_process(self) -> None:
        if is_process_running(self._context.process_name):
            log.info("Process %s is running", self._context.process_name)
        else:
            log.warning("Process %s is not running", self._context.process_name)
            self.timeouts.append(f"{self._context.process_name} process")

    def _log_aggregate_status(self) -> None:
        if not self._context.aggregate_status_file.exists():
            log.info("%s does not exist; skipping the aggregate status", self._context.aggregate_status_file)
            return
        try:
            status = read_aggregate_status(self._context.aggregate_status_file).proxy_agent_status
            log.info("Proxy agent %s status: %s; modules: %s", status.version, status.status.value, {k: v.value for k, v in status.get_module_states().items()})
        except (AttributeError, KeyError, OSError, TypeError, ValueError) as e:
            log.warning("Could not parse %s: %s", self._context.aggregate_status_file, e)

    def _replace_package(self, extension_directory: Path, url: str) -> None:
        zip_file = get_extension_zip_path(extension_directory)
        log.info("Deleting PIR extension zip %s", zip_file)
        if zip_file.exists():
            zip_file.unlink()
        if self._context.delete_extension_folder:
            log.info("Deleting PIR extension folder %s", extension_directory)
            shutil.rmtree(str(extension_directory), ignore_errors=True)

        download_file(url, zip_file)

        if extension_directory.exists():
            log.info("Contents of %s: %s", extension_directory, sorted(p.name for p in extension_directory.iterdir()))


def main(argv: Optional[List[str]] = None) -> None:
    context = InstallExtensionContext.from_args(argv)
    if context.log_file is not None:
        log.set_log_file(context.log_file)
    InstallGuestProxyAgentExtension(context).run()


def run() -> None:
    run_remote_test(main)


if __name__ == "__main__":
    run()
