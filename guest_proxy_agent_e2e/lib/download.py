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
import base64
import binascii

from http import client as http_client
from pathlib import Path
from urllib.parse import urljoin, urlparse

from guest_proxy_agent_e2e.lib.logging import log
from guest_proxy_agent_e2e.lib.retry import retry

REDIRECT_CODES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 10


class DownloadError(Exception):
    """
    Raised when the server returns an unexpected response
    """
    def __init__(self, url: str, status: int, reason: str):
        super().__init__(f"GET {_redact(url)} failed: {status} - {reason}")
        self.status: int = status


def _redact(url: str) -> str:
    # the package URLs include SAS tokens, which should not go to the logs
    p = urlparse(url)
    return f"{p.scheme}://{p.netloc}{p.path}" + ("?<redacted>" if p.query else "")


def decode_url(encoded_url: str) -> str:
    """
    Decodes a base64-encoded URL (the test framework passes the package URL encoded to avoid quoting issues with the
    SAS token)
    """
    try:
        url = base64.b64decode("".join(encoded_url.split()), validate=True).decode("utf-8").strip()
    except (binascii.Error, UnicodeDecodeError) as e:
        raise ValueError(f"The package URL is not valid base64: {e}")
    if urlparse(url).scheme not in ("http", "https"):
        raise ValueError(f"The package URL must be an http(s) URL: {_redact(url)}")
    return url


def _get(url: str, output: Path, timeout: int) -> None:
    for _ in range(MAX_REDIRECTS + 1):
        p = urlparse(url)
        relative_uri = p.path if p.path else "/"
        if p.query:
            relative_uri = "{0}?{1}".format(relative_uri, p.query)

        if p.scheme == "https":
            connection = http_client.HTTPSConnection(p.hostname, p.port, timeout=timeout)
        else:
            connection = http_client.HTTPConnection(p.hostname, p.port, timeout=timeout)
        try:
            connection.request("GET", url=relative_uri)
            response = connection.getresponse()
            if response.status in REDIRECT_CODES:
                location = response.getheader("Location")
                if location is None:
                    raise DownloadError(url, response.status, "redirect without a Location header")
                url = urljoin(url, location)
                continue
            if response.status != 200:
                raise DownloadError(url, response.status, response.reason)
            with open(output, 'wb') as output_file:
                output_file.write(response.read())
            return
        finally:
            connection.close()
    raise DownloadError(url, 0, f"too many redirects (> {MAX_REDIRECTS})")


def download_file(url: str, output: Path, tries: int = 3, delay: float = 5, timeout: int = 30) -> None:
    """
    Downloads the given URL into 'output', following redirects and retrying on errors
    """
    log.info("Downloading %s to %s", _redact(url), output)
    retry(lambda: _get(url, output, timeout), attempts=tries, delay=delay)
    log.info("Downloaded %s bytes", output.stat().st_size)
