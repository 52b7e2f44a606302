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

import json
import logging
from typing import Any, Dict, Iterable, Sequence, cast

import httpx

from docapi.constants import CallerType
from docapi.exceptions import (
    DataAPIHttpException,
    DataAPIResponseException,
    UnexpectedDataAPIResponseException,
    _TimeoutContext,
    to_dataapi_timeout_exception,
)
from docapi.settings.defaults import (
    DEFAULT_REDACTED_HEADER_NAMES,
    FIXED_SECRET_PLACEHOLDER,
)
from docapi.utils.request_tools import (
    HttpMethod,
    log_httpx_request,
    log_httpx_response,
    to_httpx_timeout,
)
from docapi.utils.user_agents import (
    compose_full_user_agent,
    detect_docapi_user_agent,
)

logger = logging.getLogger(__name__)


class APICommander:
    """
    Issues JSON commands to one Data API endpoint (e.g. a collection) over
    HTTP, and turns the responses into dictionaries or typed exceptions.

    All instances share a single `httpx.Client`, hence its connection pool.
    A commander holds no per-request state and can be used from several
    threads at once.
    """

    client = httpx.Client()

    def __init__(
        self,
        *,
        api_endpoint: str,
        path: str,
        headers: dict[str, str | None] = {},
        callers: Sequence[CallerType] = [],
        redacted_header_names: Iterable[str] | None = None,
    ) -> None:
        self.api_endpoint = api_endpoint.rstrip("/")
        self.path = path.lstrip("/")
        self.headers = headers
        self.callers = callers
        self.redacted_header_names = set(redacted_header_names or [])
        self._upper_redacted_names = {
            header_name.upper()
            for header_name in self.redacted_header_names
            | DEFAULT_REDACTED_HEADER_NAMES
        }

        user_agent = compose_full_user_agent(
            list(self.callers) + [detect_docapi_user_agent()]
        )
        base_headers: dict[str, str | None] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": user_agent,
        }
        self.full_headers: dict[str, str] = {
            k: v for k, v in {**base_headers, **self.headers}.items() if v is not None
        }
        self._loggable_headers = {
            k: (FIXED_SECRET_PLACEHOLDER if k.upper() in self._upper_redacted_names else v)
            for k, v in self.full_headers.items()
        }
        self.full_path = "/".join([self.api_endpoint, self.path]).rstrip("/")

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}(api_endpoint={self.api_endpoint}, "
            f"path={self.path}, callers={self.callers})"
        )

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, APICommander):
            return False
        return (
            self.api_endpoint,
            self.path,
            self.headers,
            list(self.callers),
            self.redacted_header_names,
        ) == (
            other.api_endpoint,
            other.path,
            other.headers,
            list(other.callers),
            other.redacted_header_names,
        )

    def _copy(
        self,
        *,
        api_endpoint: str | None = None,
        path: str | None = None,
        headers: dict[str, str | None] | None = None,
        callers: Sequence[CallerType] | None = None,
        redacted_header_names: Iterable[str] | None = None,
    ) -> APICommander:
        # an empty (but not-None) override replaces the current value
        return APICommander(
            api_endpoint=self.api_endpoint if api_endpoint is None else api_endpoint,
            path=self.path if path is None else path,
            headers=self.headers if headers is None else headers,
            callers=self.callers if callers is None else callers,
            redacted_header_names=(
                self.redacted_header_names
                if redacted_header_names is None
                else redacted_header_names
            ),
        )

    @staticmethod
    def _encode_payload(payload: dict[str, Any] | None) -> str | None:
        if payload is None:
            return None
        return json.dumps(
            payload,
            allow_nan=False,
            separators=(",", ":"),
            ensure_ascii=False,
        )

    def _raw_response_to_json(
        self,
        raw_response: httpx.Response,
        raise_api_errors: bool,
        payload: dict[str, Any] | None,
    ) -> dict[str, Any]:
        try:
            response_json = cast(Dict[str, Any], json.loads(raw_response.text))
        except ValueError:
            command_desc = "/".join(sorted(payload.keys())) if payload else "(none)"
            raise UnexpectedDataAPIResponseException(
                text=f"Unparseable response from API '{command_desc}' command.",
                raw_response={"raw_response": raw_response.text},
            )
        if not isinstance(response_json, dict):
            raise UnexpectedDataAPIResponseException(
                text="Response from the API is not a JSON object.",
                raw_response={"raw_response": raw_response.text},
            )

        if raise_api_errors and "errors" in response_json:
            logger.warning(
                f"APICommander about to raise from: {response_json['errors']}"
            )
            raise DataAPIResponseException.from_response(
                command=payload,
                raw_response=response_json,
            )

        warnings = (response_json.get("status") or {}).get("warnings") or []
        for warning in warnings:
            logger.warning(f"The Data API returned a warning: {warning}")

        return response_json

    def raw_request(
        self,
        *,
        http_method: str = HttpMethod.POST,
        payload: dict[str, Any] | None = None,
        request_params: dict[str, Any] = {},
        timeout_context: _TimeoutContext | None = None,
    ) -> httpx.Response:
        """
        Perform the HTTP round trip, returning the response if its status
        code is a success. Timeouts and HTTP error statuses are turned into
        DataAPITimeoutException and DataAPIHttpException respectively.
        """
        _timeout_context = timeout_context or _TimeoutContext(request_ms=None)
        encoded_payload = self._encode_payload(payload)
        log_httpx_request(
            http_method=http_method,
            full_url=self.full_path,
            request_params=request_params,
            redacted_request_headers=self._loggable_headers,
            encoded_payload=encoded_payload,
            timeout_context=_timeout_context,
        )
        try:
            raw_response = self.client.request(
                method=http_method,
                url=self.full_path,
                content=(
                    encoded_payload.encode() if encoded_payload is not None else None
                ),
                params=request_params,
                timeout=to_httpx_timeout(_timeout_context),
                headers=self.full_headers,
            )
        except httpx.TimeoutException as timeout_exc:
            raise to_dataapi_timeout_exception(
                timeout_exc, timeout_context=_timeout_context
            )

        try:
            raw_response.raise_for_status()
        except httpx.HTTPStatusError as http_exc:
            raise DataAPIHttpException.from_httpx_error(http_exc)
        log_httpx_response(response=raw_response)
        return raw_response

    def request(
        self,
        *,
        http_method: str = HttpMethod.POST,
        payload: dict[str, Any] | None = None,
        request_params: dict[str, Any] = {},
        raise_api_errors: bool = True,
        timeout_context: _TimeoutContext | None = None,
    ) -> dict[str, Any]:
        raw_response = self.raw_request(
            http_method=http_method,
            payload=payload,
            request_params=request_params,
            timeout_context=timeout_context,
        )
        return self._raw_response_to_json(
            raw_response, raise_api_errors=raise_api_errors, payload=payload
        )
