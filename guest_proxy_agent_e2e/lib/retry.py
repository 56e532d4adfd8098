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
from typing import Any, Callable, List

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.poll import PollConfig, poll_until


def _attempts_config(attempts: int, delay: float) -> PollConfig:
    # the attempt count is the only limit
    return PollConfig(interval=delay, timeout=float("inf"), attempts=attempts)


def retry_if_false(operation: Callable[[], bool], attempts: int = 5, delay: float = 30) -> bool:
    """
    This method attempts the given operation retrying a few times
    (after a short delay)
    Note: Method used for operations which are return True or False. Exceptions are retried too, except on the
    last attempt, where they are re-raised.
    """
    config = _attempts_config(attempts, delay)
    count: List[int] = [0]

    def observe() -> bool:
        count[0] += 1
        try:
            success = operation()
        except Exception as e:
            log.warning("Error in operation: %s", e)
            if count[0] >= attempts:
                raise
            return False
        if not success and count[0] < attempts:
            log.info("Current operation failed, retrying in %s secs.", delay)
        return success

    return poll_until(observe, lambda success: success, config).succeeded


def retry(operation: Callable[[], Any], attempts: int = 5, delay: float = 30) -> Any:
    """
    This method attempts the given operation retrying a few times on exceptions. Returns the value returned by the operation.
    """
    config = _attempts_config(attempts, delay)
    count: List[int] = [0]

    def observe() -> Any:
        count[0] += 1
        try:
            return True, operation()
        except Exception as e:
            if count[0] >= attempts:
                raise
            log.warning("Error in operation, retrying in %s secs: %s", delay, e)
            return False, None

    result = poll_until(observe, lambda outcome: outcome[0], config)
    return result.last_observed_value[1]
