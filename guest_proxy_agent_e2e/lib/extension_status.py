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
# Models for the status reported by the extension:
#
#   * The handler status file (<extension directory>/status/<sequence number>.status), which the extension writes
#     for the Guest Agent. It is a JSON list; the first item has the status of the current operation.
#   * The aggregate status of the Guest Proxy Agent (/var/log/azure-proxy-agent/status.json), which the proxy agent
#     service writes periodically.
#
import json

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from dataclasses_json import LetterCase, config, dataclass_json  # pylint: disable=E0401

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.poll import PollConfig, PollResult, poll_until, tolerate_errors

AGGREGATE_STATUS_FILE = Path("/var/log/azure-proxy-agent/status.json")


class ExtensionStatusValue(Enum):
    TRANSITIONING = "transitioning"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class FormattedMessage:
    lang: str = "en-US"
    message: str = ""


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class SubStatus:
    name: str = ""
    status: str = ""
    code: int = 0
    formatted_message: Optional[FormattedMessage] = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class ExtensionStatus:
    name: str = ""
    operation: str = ""
    status: str = ""
    code: int = 0
    formatted_message: Optional[FormattedMessage] = None
    substatus: List[SubStatus] = field(default_factory=list)

    @property
    def message(self) -> str:
        return self.formatted_message.message if self.formatted_message is not None else ""


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class HandlerStatusReport:
    version: str = ""
    timestamp_utc: str = field(default="", metadata=config(field_name="timestampUTC"))
    status: ExtensionStatus = field(default_factory=ExtensionStatus)


def _sequence_number(status_file: Path) -> int:
    try:
        return int(status_file.stem)
    except ValueError:
        return -1


def get_status_files(status_directory: Path) -> List[Path]:
    """
    Returns the status files in the directory, ordered by sequence number
    """
    return sorted(status_directory.glob("*.status"), key=lambda f: (_sequence_number(f), f.name))


def read_extension_status(status_file: Path) -> ExtensionStatus:
    """
    Parses the handler status file and returns the status of its first item. Raises ValueError if the file is not
    a valid status file (e.g. if it is empty because the extension is in the middle of writing it).
    """
    content = status_file.read_text()
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise ValueError(f"{status_file} is not a valid JSON file: {e}")
    if not isinstance(data, list) or len(data) == 0 or not isinstance(data[0], dict):
        raise ValueError(f"{status_file} does not contain a status report: {content}")
    try:
        return HandlerStatusReport.from_dict(data[0]).status  # pylint: disable=no-member
    except (AttributeError, KeyError, TypeError) as e:
        raise ValueError(f"{status_file} contains an invalid status report: {e}")


def get_extension_status(status_file: Path) -> str:
    """
    Returns the value of status.status for the first item in the status file (e.g. "success")
    """
    return read_extension_status(status_file).status


def get_latest_extension_status(status_directory: Path) -> Optional[str]:
    """
    Returns the status reported by the status file with the highest sequence number, or None if there are no status files
    """
    status_files = get_status_files(status_directory)
    if len(status_files) == 0:
        return None
    return get_extension_status(status_files[-1])


def wait_for_extension_status(status_directory: Path, config: PollConfig, expected: str = ExtensionStatusValue.SUCCESS.value) -> PollResult[Optional[str]]:
    """
    Waits for the latest status file in the directory to report the expected status. Missing or partially-written
    files are treated as "no status yet".
    """
    log.info("Waiting for the status files in %s to report status '%s'", status_directory, expected)
    result = poll_until(tolerate_errors(lambda: get_latest_extension_status(status_directory), OSError, ValueError), lambda status: status == expected, config)
    if result.succeeded:
        log.info("The status is %s.", expected)
    else:
        log.warning("Timeout reached after %.0f secs; the last status was: %s", result.elapsed_time, result.last_observed_value)
    return result


class ModuleState(Enum):
    UNKNOWN = "UNKNOWN"
    RUNNING = "RUNNING"
    STOPPED = "STOPPED"


class OverallState(Enum):
    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    UNKNOWN = "UNKNOWN"


@dataclass_json
@dataclass
class ProxyAgentDetailStatus:
    status: ModuleState
    message: str
    states: Optional[Dict[str, str]] = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class ProxyAgentStatus:
    version: str
    status: OverallState
    monitor_status: ProxyAgentDetailStatus
    key_latch_status: ProxyAgentDetailStatus
    ebpf_program_status: ProxyAgentDetailStatus
    proxy_listener_status: ProxyAgentDetailStatus
    telemetry_logger_status: ProxyAgentDetailStatus
    proxy_connections_count: int

    def get_module_states(self) -> Dict[str, ModuleState]:
        return {
            "monitor": self.monitor_status.status,
            "keyLatch": self.key_latch_status.status,
            "ebpfProgram": self.ebpf_program_status.status,
            "proxyListener": self.proxy_listener_status.status,
            "telemetryLogger": self.telemetry_logger_status.status,
        }


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class ProxyConnectionSummary:
    user_name: str
    ip: str
    port: int
    process_cmd_line: str
    response_status: str
    count: int
    user_groups: Optional[List[str]] = None
    process_full_path: Optional[str] = None


@dataclass_json(letter_case=LetterCase.CAMEL)
@dataclass
class GuestProxyAgentAggregateStatus:
    timestamp: str
    proxy_agent_status: ProxyAgentStatus
    proxy_connection_summary: List[ProxyConnectionSummary] = field(default_factory=list)
    failed_authenticate_summary: List[ProxyConnectionSummary] = field(default_factory=list)


def read_aggregate_status(status_file: Path = AGGREGATE_STATUS_FILE) -> GuestProxyAgentAggregateStatus:
    """
    Parses the aggregate status file written by the Guest Proxy Agent service
    """
    return GuestProxyAgentAggregateStatus.from_json(status_file.read_text())  # pylint: disable=no-member
