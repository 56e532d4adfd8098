#!/usr/bin/env python
#
# Azure Guest Proxy Agent extension tests setup.py
#
# Copyright 2013 Microsoft Corporation
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

import os
from guest_proxy_agent_e2e.version import TEST_NAME, TEST_VERSION, TEST_DESCRIPTION
import setuptools # pylint: disable=C0411
from setuptools import find_packages # pylint: disable=C0411

root_dir = os.path.dirname(os.path.abspath(__file__)) # pylint: disable=invalid-name
os.chdir(root_dir)

requires = [ # pylint: disable=invalid-name
    'assertpy',
    'dataclasses-json',
]

test_requires = [ # pylint: disable=invalid-name
    'pytest',
]

setuptools.setup(
    name=TEST_NAME,
    version=TEST_VERSION,
    long_description=TEST_DESCRIPTION,
    author='Microsoft Corporation',
    platforms='Linux',
    license='Apache License Version 2.0',
    python_requires='>=3.8',
    packages=find_packages(exclude=["tests*"]),
    install_requires=requires,
    extras_require={
        'test': test_requires
    },
    entry_points={
        'console_scripts': [
            'install-guest-proxy-agent-extension=guest_proxy_agent_e2e.scripts.install_guest_proxy_agent_extension:run',
        ]
    }
)
