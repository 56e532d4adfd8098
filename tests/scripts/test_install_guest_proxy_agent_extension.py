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
import base64
import os
import shutil
import unittest
from pathlib import Path

from guest_proxy_agent_e2e.lib.shell import CommandError
from guest_proxy_agent_e2e.scripts.install_guest_proxy_agent_extension import InstallExtensionContext, \
    InstallGuestProxyAgentExtension, main
from tests.tools import AgentTestCase, data_dir, patch

_PACKAGE_URL = "https://gpatest.blob.core.windows.net/packages/ProxyAgentLinux.zip?sv=2022-11-02&sig=abc"
_ENCODED_PACKAGE_URL = base64.b64encode(_PACKAGE_URL.encode("utf-8")).decode("utf-8")

_SCRIPT = "guest_proxy_agent_e2e.scripts.install_guest_proxy_agent_extension"


class TestInstallExtensionContext(unittest.TestCase):
    def test_from_args_should_use_the_defaults(self):
        with patch.dict(os.environ, {"devExtensionSas": _ENCODED_PACKAGE_URL}):
            context = InstallExtensionContext.from_args([])

        self.assertEqual(_ENCODED_PACKAGE_URL, context.package_url)
        self.assertEqual(Path("/var/lib/waagent"), context.lib_dir)
        self.assertEqual("Microsoft.CPlat.ProxyAgent.ProxyAgentLinux", context.extension_name)
        self.assertEqual("ProxyAgentExt", context.process_name)
        self.assertEqual("jq", context.helper_package)
        self.assertEqual(5, context.poll_config.interval)
        self.assertEqual(300, context.poll_config.timeout)
        self.assertFalse(context.delete_extension_folder)
        self.assertFalse(context.strict)
        self.assertIsNone(context.log_file)

    def test_from_args_should_parse_the_command_line(self):
        context = InstallExtensionContext.from_args([
            "--package-url", _ENCODED_PACKAGE_URL, "--lib-dir", "/tmp/waagent", "--timeout", "60", "--interval", "1",
            "--delete-extension-folder", "--strict", "--log-file", "/tmp/install.log"])

        self.assertEqual(Path("/tmp/waagent"), context.lib_dir)
        self.assertEqual(1, context.poll_config.interval)
        self.assertEqual(60, context.poll_config.timeout)
        self.assertTrue(context.delete_extension_folder)
        self.assertTrue(context.strict)
        self.assertEqual(Path("/tmp/install.log"), context.log_file)

    def test_from_args_should_require_the_package_url(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ValueError):
                InstallExtensionContext.from_args([])


class TestInstallGuestProxyAgentExtension(AgentTestCase):
    def setUp(self):
        AgentTestCase.setUp(self)
        self.extension_directory = self.create_extension_directory()
        self.lib_dir = self.extension_directory.parent
        self.status_directory = self.extension_directory / "status"
        self.write_status_file(self.status_directory, 0, "success")
        self.zip_file = self.lib_dir / "Microsoft.CPlat.ProxyAgent.ProxyAgentLinux__1.0.23.zip"
        self.zip_file.write_bytes(b"PIR package")
        self.aggregate_status_file = Path(self.tmp_dir) / "status.json"
        shutil.copyfile(os.path.join(data_dir, "proxy_agent", "status.json"), str(self.aggregate_status_file))

        self.patchers = []
        self.mocks = {}

        def extension_reports_status(*_, **__):
            # the extension rewrites its status after the script clears the status directory
            self.write_status_file(self.status_directory, 1, "success")
            return True

        def download(_, output):
            output.write_bytes(b"development package")

        self._patch("get_operating_system", return_value="Ubuntu 22.04.3 LTS")
        self._patch("get_proxy_agent_version", return_value="1.0.23")
        self._patch("ensure_package_installed", side_effect=extension_reports_status)
        self._patch("is_process_running", return_value=True)
        self._patch("kill_process", return_value=[1234])
        self._patch("download_file", side_effect=download)

    def tearDown(self):
        for p in self.patchers:
            p.stop()
        AgentTestCase.tearDown(self)

    def _patch(self, name, **kwargs):
        patcher = patch("{0}.{1}".format(_SCRIPT, name), **kwargs)
        self.mocks[name] = patcher.start()
        self.patchers.append(patcher)

    def _create_context(self, **kwargs):
        return InstallExtensionContext(
            package_url=_ENCODED_PACKAGE_URL,
            lib_dir=self.lib_dir,
            aggregate_status_file=self.aggregate_status_file,
            timeout=0.05,
            interval=0.01,
            install_delay=0.01,
            **kwargs)

    def test_it_should_replace_the_extension_package(self):
        test = InstallGuestProxyAgentExtension(self._create_context())
        test.run()

        self.assertEqual([], test.timeouts)
        self.mocks["get_proxy_agent_version"].assert_called_once_with(self.extension_directory, True)
        self.assertEqual("jq", self.mocks["ensure_package_installed"].call_args[0][1])
        self.mocks["is_process_running"].assert_called_once_with("ProxyAgentExt")
        self.mocks["download_file"].assert_called_once_with(_PACKAGE_URL, self.zip_file)
        self.mocks["kill_process"].assert_called_once_with("ProxyAgentExt")
        self.assertEqual(b"development package", self.zip_file.read_bytes())
        self.assertTrue(self.extension_directory.is_dir(), "The extension directory should not be deleted by default")
        self.assertEqual([], list(self.status_directory.iterdir()), "The status directory should be cleared at the end of the test")

    def test_it_should_delete_the_extension_folder_when_requested(self):
        InstallGuestProxyAgentExtension(self._create_context(delete_extension_folder=True)).run()

        self.assertFalse(self.extension_directory.exists())
        self.assertEqual(b"development package", self.zip_file.read_bytes())

    def test_it_should_continue_when_the_checks_do_not_complete(self):
        self.mocks["ensure_package_installed"].side_effect = None
        self.mocks["ensure_package_installed"].return_value = False
        self.mocks["is_process_running"].return_value = False
        self.mocks["get_proxy_agent_version"].side_effect = CommandError(["azure-proxy-agent", "--version"], 127, "", "not found")

        test = InstallGuestProxyAgentExtension(self._create_context())
        test.run()

        self.assertEqual(["jq install", "extension status", "ProxyAgentExt process"], test.timeouts)
        self.mocks["download_file"].assert_called_once_with(_PACKAGE_URL, self.zip_file)
        self.mocks["kill_process"].assert_called_once_with("ProxyAgentExt")

    def test_it_should_fail_when_the_checks_do_not_complete_in_strict_mode(self):
        self.mocks["is_process_running"].return_value = False

        with self.assertRaises(AssertionError) as context:
            InstallGuestProxyAgentExtension(self._create_context(strict=True)).run()

        self.assertIn("ProxyAgentExt process", str(context.exception))
        self.mocks["download_file"].assert_called_once()

    def test_it_should_fail_when_the_extension_directory_is_not_found(self):
        shutil.rmtree(str(self.extension_directory))

        with self.assertRaises(AssertionError) as context:
            InstallGuestProxyAgentExtension(self._create_context()).run()

        self.assertIn("Could not find a unique directory", str(context.exception))
        self.assertEqual(0, self.mocks["download_file"].call_count)

    def test_it_should_use_the_proxy_agent_binary_for_the_distro(self):
        self.mocks["get_operating_system"].return_value = "Red Hat Enterprise Linux 9.3 (Plow)"

        InstallGuestProxyAgentExtension(self._create_context()).run()

        self.mocks["get_proxy_agent_version"].assert_called_once_with(self.extension_directory, False)

    def test_it_should_continue_when_the_aggregate_status_cannot_be_parsed(self):
        self.aggregate_status_file.write_text("not json")

        test = InstallGuestProxyAgentExtension(self._create_context())
        test.run()

        self.assertEqual([], test.timeouts)
        self.mocks["download_file"].assert_called_once_with(_PACKAGE_URL, self.zip_file)

    def test_it_should_not_hide_unexpected_errors_while_reading_the_aggregate_status(self):
        with patch("{0}.read_aggregate_status".format(_SCRIPT), side_effect=RuntimeError("unexpected")):
            with self.assertRaises(RuntimeError):
                InstallGuestProxyAgentExtension(self._create_context()).run()

        self.assertEqual(0, self.mocks["download_file"].call_count)

    def test_main_should_read_the_package_url_from_the_environment(self):
        with patch.dict(os.environ, {"devExtensionSas": _ENCODED_PACKAGE_URL}):
            with patch("{0}.InstallGuestProxyAgentExtension".format(_SCRIPT)) as test_class:
                main(["--lib-dir", str(self.lib_dir)])

        context = test_class.call_args[0][0]
        self.assertEqual(self.lib_dir, context.lib_dir)
        self.assertEqual(_ENCODED_PACKAGE_URL, context.package_url)
        test_class.return_value.run.assert_called_once_with()

    def test_main_should_reject_invalid_package_urls(self):
        with self.assertRaises(ValueError):
            main(["--package-url", "not base64!", "--lib-dir", str(self.lib_dir)])
        self.assertEqual(0, self.mocks["download_file"].call_count)


if __name__ == '__main__':
    unittest.main()
