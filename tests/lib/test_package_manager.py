import unittest

from guest_proxy_agent_e2e.lib.package_manager import AptPackageManager, YumPackageManager, PackageManager, \
    ensure_package_installed, get_package_manager
from guest_proxy_agent_e2e.lib.shell import CommandError
from tests.tools import call, patch

_APT_INSTALLED = "Listing... Done\njq/jammy-updates,jammy-security,now 1.6-2.1ubuntu3 amd64 [installed]\n"
_APT_NOT_INSTALLED = "Listing... Done\n"
_YUM_INSTALLED = "Installed Packages\njq.x86_64                 1.6-16.el9                 @appstream\n"
_YUM_NOT_INSTALLED_ERROR = "Error: No matching Packages to list\n"


class _MockPackageManager(PackageManager):
    name = "mock"

    def __init__(self, installed_after=1, fail_install=False):
        self.installed_after = installed_after
        self.fail_install = fail_install
        self.install_calls = 0

    def install(self, package):
        self.install_calls += 1
        if self.fail_install:
            raise CommandError(["install", package], 100, "", "Could not get lock /var/lib/dpkg/lock-frontend")

    def is_installed(self, package):
        return self.install_calls >= self.installed_after


class TestPackageManager(unittest.TestCase):
    def test_get_package_manager_should_use_apt_on_ubuntu_and_yum_elsewhere(self):
        self.assertIsInstance(get_package_manager("Ubuntu 22.04.3 LTS"), AptPackageManager)
        self.assertIsInstance(get_package_manager("Red Hat Enterprise Linux 9.3 (Plow)"), YumPackageManager)
        self.assertIsInstance(get_package_manager("CBL-Mariner/Linux"), YumPackageManager)

    def test_apt_should_update_and_install(self):
        with patch("guest_proxy_agent_e2e.lib.package_manager.run_sudo_command") as run_sudo:
            AptPackageManager().install("jq")

        self.assertEqual([call(["apt", "update"]), call(["apt-get", "install", "-y", "jq"])], run_sudo.call_args_list)

    def test_apt_should_check_the_installed_packages(self):
        with patch("guest_proxy_agent_e2e.lib.package_manager.execute", return_value=(0, _APT_INSTALLED, "")) as execute:
            self.assertTrue(AptPackageManager().is_installed("jq"))
        execute.assert_called_once_with(["apt", "list", "--installed", "jq"])

        with patch("guest_proxy_agent_e2e.lib.package_manager.execute", return_value=(0, _APT_NOT_INSTALLED, "WARNING: apt does not have a stable CLI interface.")):
            self.assertFalse(AptPackageManager().is_installed("jq"))

    def test_yum_should_install(self):
        with patch("guest_proxy_agent_e2e.lib.package_manager.run_sudo_command") as run_sudo:
            YumPackageManager().install("jq")

        run_sudo.assert_called_once_with(["yum", "-y", "install", "jq"])

    def test_yum_should_check_the_installed_packages(self):
        with patch("guest_proxy_agent_e2e.lib.package_manager.execute", return_value=(0, _YUM_INSTALLED, "")) as execute:
            self.assertTrue(YumPackageManager().is_installed("jq"))
        execute.assert_called_once_with(["yum", "list", "--installed", "jq"])

        with patch("guest_proxy_agent_e2e.lib.package_manager.execute", return_value=(1, "", _YUM_NOT_INSTALLED_ERROR)):
            self.assertFalse(YumPackageManager().is_installed("jq"))


class TestEnsurePackageInstalled(unittest.TestCase):
    def setUp(self):
        self.sleep_patcher = patch("guest_proxy_agent_e2e.lib.poll.time.sleep")
        self.sleep = self.sleep_patcher.start()

    def tearDown(self):
        self.sleep_patcher.stop()

    def test_it_should_not_install_packages_that_are_already_installed(self):
        package_manager = _MockPackageManager(installed_after=0)

        self.assertTrue(ensure_package_installed(package_manager, "jq"))
        self.assertEqual(0, package_manager.install_calls)

    def test_it_should_retry_the_install(self):
        package_manager = _MockPackageManager(installed_after=2)

        self.assertTrue(ensure_package_installed(package_manager, "jq", attempts=3, delay=10))
        self.assertEqual(2, package_manager.install_calls)
        self.sleep.assert_called_once_with(10)

    def test_it_should_give_up_after_the_given_number_of_attempts(self):
        package_manager = _MockPackageManager(fail_install=True, installed_after=100)

        self.assertFalse(ensure_package_installed(package_manager, "jq", attempts=3, delay=10))
        self.assertEqual(3, package_manager.install_calls)
        self.assertEqual(2, self.sleep.call_count)


if __name__ == '__main__':
    unittest.main()
