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
# Bounded polling: the tests on the VM repeatedly wait for some external state (a directory created by the Guest
# Agent, a status file reporting success, a package showing up as installed). poll_until() is the single
# implementation of that wait; the retry helpers in retry.py are built on top of it.
#
import threading
import time

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Type, TypeVar

from guest_proxy_agent_e2e.lib.logging import log

T = TypeVar("T")


@dataclass(frozen=True)
class PollConfig:
    """
    Interval and timeout (both in seconds) for poll_until(). 'attempts', if given, also limits the number of
    evaluations of the observation function.

    A timeout shorter than the interval is allowed; in that case the condition is evaluated exactly once.
    """
    interval: float
    timeout: float
    attempts: Optional[int] = None

    def __post_init__(self):
        if self.interval <= 0:
            raise ValueError(f"The polling interval must be greater than 0 [{self.interval}]")
        if self.timeout <= 0:
            raise ValueError(f"The polling timeout must be greater than 0 [{self.timeout}]")
        if self.attempts is not None and self.attempts <= 0:
            raise ValueError(f"The number of attempts must be greater than 0 [{self.attempts}]")


@dataclass(frozen=True)
class PollResult(Generic[T]):
    """
    Outcome of poll_until(); 'last_observed_value' is the value returned by the last evaluation, regardless of
    whether the poll succeeded.
    """
    succeeded: bool
    last_observed_value: Optional[T]
    elapsed_time: float
    attempts: int
    cancelled: bool = False

    @property
    def timed_out(self) -> bool:
        return not self.succeeded and not self.cancelled


def poll_until(
        observe: Callable[[], T],
        is_success: Callable[[T], bool],
        config: PollConfig,
        cancellation: Optional[threading.Event] = None) -> PollResult[T]:
    """
    Evaluates 'observe' immediately and then every 'config.interval' seconds until 'is_success' returns True for the
    observed value, the timeout elapses, the attempts are exhausted, or 'cancellation' is set.

    The timeout is checked after waiting for the interval, so the poll can overshoot it by up to one interval.

    Timeouts are not errors; the caller must check PollResult.succeeded. Exceptions raised by 'observe' or
    'is_success' are not handled and propagate to the caller (see tolerate_errors()).
    """
    start = time.monotonic()
    elapsed: float = 0.0
    attempts: int = 0
    value: Optional[T] = None

    while True:
        if cancellation is not None and cancellation.is_set():
            return PollResult(succeeded=False, last_observed_value=value, elapsed_time=elapsed, attempts=attempts, cancelled=True)

        value = observe()
        attempts += 1
        if is_success(value):
            return PollResult(succeeded=True, last_observed_value=value, elapsed_time=time.monotonic() - start, attempts=attempts)

        if config.attempts is not None and attempts >= config.attempts:
            return PollResult(succeeded=False, last_observed_value=value, elapsed_time=time.monotonic() - start, attempts=attempts)

        if cancellation is not None:
            if cancellation.wait(config.interval):
                return PollResult(succeeded=False, last_observed_value=value, elapsed_time=time.monotonic() - start, attempts=attempts, cancelled=True)
        else:
            time.sleep(config.interval)

        elapsed = time.monotonic() - start
        if elapsed >= config.timeout:
            return PollResult(succeeded=False, last_observed_value=value, elapsed_time=elapsed, attempts=attempts)


def tolerate_errors(observe: Callable[[], T], *errors: Type[Exception]) -> Callable[[], Optional[T]]:
    """
    Wraps an observation function so that the given exceptions are reported as None ("not available yet") instead
    of ending the poll; for example, a status file that the extension has not created yet. Other exceptions still
    propagate.
    """
    handled = errors if len(errors) > 0 else (Exception,)

    def wrapper() -> Optional[T]:
        try:
            return observe()
        except handled as e:
            log.warning("Error in operation: %s", e)
            return None

    return wrapper
