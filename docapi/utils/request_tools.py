# Copyright DataStax, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from __future__ import annotations

import logging
from typing import Any

import httpx

from docapi.exceptions import _TimeoutContext

logger = logging.getLogger(__name__)


class HttpMethod:
    GET = "GET"
    POST = "POST"


def log_httpx_request(
    http_method: str,
    full_url: str,
    request_params: dict[str, Any] | None,
    redacted_request_headers: dict[str, str],
    encoded_payload: str | None,
    timeout_context: _TimeoutContext,
) -> None:
    """
    Log (at debug level) the details of an outgoing HTTP request.

    Args:
        http_method: the HTTP verb, e.g. "POST".
        full_url: the complete URL targeted by the request.
        request_params: query parameters, if any.
        redacted_request_headers: headers, with secrets already masked.
            They are logged as they are.
        encoded_payload: the JSON-encoded body, if any.
        timeout_context: the timeout the request is subject to.
    """
    logger.debug(f"Request URL: {http_method} {full_url}")
    if request_params:
        logger.debug(f"Request params: '{request_params}'")
    if redacted_request_headers:
        logger.debug(f"Request headers: '{redacted_request_headers}'")
    if encoded_payload is not None:
        logger.debug(f"Request payload: '{encoded_payload}'")
    if timeout_context:
        logger.debug(
            f"Timeout (ms): request {timeout_context.request_ms or '(unset)'}, "
            f"operation {timeout_context.nominal_ms or '(unset)'}"
        )


def log_httpx_response(response: httpx.Response) -> None:
    logger.debug(f"Response status code: {response.status_code}")
    logger.debug(f"Response headers: '{response.headers}'")
    logger.debug(f"Response text: '{response.text}'")


def to_httpx_timeout(timeout_context: _TimeoutContext) -> httpx.Timeout | None:
    # zero and None both stand for 'no timeout'
    if not timeout_context.request_ms:
        return None
    return httpx.Timeout(timeout_context.request_ms / 1000)
