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
import os
import signal

from typing import List

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.shell import CommandError, execute


def get_pids(process_name: str) -> List[int]:
    """
    Returns the PIDs of the processes matching the given name (as reported by pgrep), or an empty list if there are none
    """
    exit_code, stdout, stderr = execute(["pgrep", process_name])
    # pgrep exits with 1 when no processes match
    if exit_code == 1:
        return []
    if exit_code != 0:
        raise CommandError(["pgrep", process_name], exit_code, stdout, stderr)
    return [int(pid) for pid in stdout.split()]


def is_process_running(process_name: str) -> bool:
    return len(get_pids(process_name)) > 0


def kill_process(process_name: str, sig: int = signal.SIGKILL) -> List[int]:
    """
    Sends the given signal (SIGKILL by default) to all the processes matching the name and returns their PIDs.
    Processes that exit before they are signaled are ignored.
    """
    pids = get_pids(process_name)
    for pid in pids:
        log.info("Sending signal %s to %s (PID %s)", sig, process_name, pid)
        try:
            os.kill(pid, sig)
        except ProcessLookupError:
            log.info("Process %s has already exited", pid)
    return pids
