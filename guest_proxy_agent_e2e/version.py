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

TEST_NAME = "GuestProxyAgentE2E"
TEST_LONG_NAME = "Azure Guest Proxy Agent extension tests"
TEST_VERSION = '1.0.0'
TEST_LONG_VERSION = "{0}-{1}".format(TEST_NAME, TEST_VERSION)
TEST_DESCRIPTION = """
Scripts that run on a test VM to validate the install of the Azure Guest
Proxy Agent VM extension and to re-install it from a development package.
"""
