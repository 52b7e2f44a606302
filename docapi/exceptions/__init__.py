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

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from docapi.exceptions.collection_exceptions import (
    CollectionDeleteManyException,
    CollectionUpdateManyException,
    TooManyDocumentsToCountException,
)
from docapi.exceptions.data_api_exceptions import (
    CursorException,
    DataAPIException,
    DataAPIHttpException,
    DataAPIResponseException,
    DataAPITimeoutException,
    UnexpectedDataAPIResponseException,
)
from docapi.exceptions.error_descriptors import (
    DataAPIErrorDescriptor,
    DataAPIWarningDescriptor,
)

if TYPE_CHECKING:
    from docapi.utils.api_options import FullTimeoutOptions


def _min_labeled_timeout(
    *timeouts: tuple[int | None, str | None],
) -> tuple[int, str | None]:
    _non_null = [(to, lb) for to, lb in timeouts if to is not None]
    if _non_null:
        return min(_non_null, key=lambda pair: pair[0])
    return (0, None)


def _select_singlereq_timeout_gm(
    *,
    timeout_options: FullTimeoutOptions,
    general_method_timeout_ms: int | None,
    request_timeout_ms: int | None = None,
    timeout_ms: int | None = None,
) -> tuple[int, str | None]:
    """
    Determine (and label) the timeout for a method issuing a single request.

    If none of the int args is passed, pick the least of the two relevant
    settings in the timeout options. Otherwise pick the least of the passed
    arguments, disregarding the options altogether.
    """
    if all(
        iarg is None
        for iarg in (general_method_timeout_ms, request_timeout_ms, timeout_ms)
    ):
        return _min_labeled_timeout(
            (timeout_options.request_timeout_ms, "request_timeout_ms"),
            (timeout_options.general_method_timeout_ms, "general_method_timeout_ms"),
        )
    return _min_labeled_timeout(
        (general_method_timeout_ms, "general_method_timeout_ms"),
        (request_timeout_ms, "request_timeout_ms"),
        (timeout_ms, "timeout_ms"),
    )


def _first_valid_timeout(
    *items: tuple[int | None, str | None],
) -> tuple[int, str | None]:
    # items are (timeout ms, label) pairs. A zero result means 'no timeout'.
    for timeout, label in items:
        if timeout is not None:
            return (timeout, label)
    return (0, None)


def _timeout_honoured_text(
    text: str, timeout_ms: int | None, timeout_label: str | None
) -> str:
    if not timeout_ms:
        return text
    if timeout_label:
        return f"{text} (timeout honoured: {timeout_label} = {timeout_ms} ms)"
    return f"{text} (timeout honoured: {timeout_ms} ms)"


def to_dataapi_timeout_exception(
    httpx_timeout: httpx.TimeoutException,
    timeout_context: _TimeoutContext,
) -> DataAPITimeoutException:
    text = _timeout_honoured_text(
        str(httpx_timeout) or "timed out",
        timeout_context.nominal_ms or timeout_context.request_ms,
        timeout_context.label,
    )
    timeout_type: str
    if isinstance(httpx_timeout, httpx.ConnectTimeout):
        timeout_type = "connect"
    elif isinstance(httpx_timeout, httpx.ReadTimeout):
        timeout_type = "read"
    elif isinstance(httpx_timeout, httpx.WriteTimeout):
        timeout_type = "write"
    elif isinstance(httpx_timeout, httpx.PoolTimeout):
        timeout_type = "pool"
    else:
        timeout_type = "generic"
    endpoint: str | None = None
    raw_payload: str | None = None
    # accessing .request on a bare httpx exception raises RuntimeError
    try:
        request = httpx_timeout.request
    except RuntimeError:
        request = None
    if request is not None:
        endpoint = str(request.url)
        if isinstance(request.content, bytes):
            raw_payload = request.content.decode()
    return DataAPITimeoutException(
        text=text,
        timeout_type=timeout_type,
        endpoint=endpoint,
        raw_payload=raw_payload,
    )


@dataclass
class _TimeoutContext:
    """
    A timeout value to obey, enriched with what is needed to produce a helpful
    error message should it expire: the name of the setting responsible for it
    and its "nominal" value (which may differ from the actual number of
    milliseconds allowed to a request, for operations spanning several requests).

    Args:
        nominal_ms: the timeout in milliseconds as set by the user.
        request_ms: the milliseconds a given HTTP request is allowed to last.
            This may be smaller than `nominal_ms` when the remaining part of
            an overall deadline is what limits the request.
        label: the name of the timeout setting as known by the user.
    """

    nominal_ms: int | None
    request_ms: int | None
    label: str | None

    def __init__(
        self,
        *,
        request_ms: int | None,
        nominal_ms: int | None = None,
        label: str | None = None,
    ) -> None:
        self.nominal_ms = nominal_ms
        self.request_ms = request_ms
        self.label = label

    def __bool__(self) -> bool:
        return self.nominal_ms is not None or self.request_ms is not None


class MultiCallTimeoutManager:
    """
    Keeps track of the overall deadline of a method that issues several
    requests, such as a paginated find or a chunked insert_many.
    It is safe to query a manager from several threads.

    Args:
        overall_timeout_ms: an optional max duration to track (milliseconds).
            Zero or None mean no deadline.
        timeout_label: the name of the setting `overall_timeout_ms` comes from,
            for error messages.

    Attributes:
        overall_timeout_ms: an optional max duration to track (milliseconds)
        started_ms: monotonic timestamp of the instance construction (milliseconds)
        deadline_ms: optional deadline in milliseconds (computed by the class).
        timeout_label: the name of the setting for `overall_timeout_ms`.
    """

    overall_timeout_ms: int | None
    started_ms: int
    deadline_ms: int | None
    timeout_label: str | None

    def __init__(
        self,
        overall_timeout_ms: int | None,
        timeout_label: str | None = None,
    ) -> None:
        self.started_ms = int(time.monotonic() * 1000)
        self.timeout_label = timeout_label
        self.overall_timeout_ms = overall_timeout_ms or None
        if self.overall_timeout_ms is not None:
            self.deadline_ms = self.started_ms + self.overall_timeout_ms
        else:
            self.deadline_ms = None

    def remaining_ms(self) -> int | None:
        """
        The milliseconds left before the deadline (possibly zero or negative
        if it is past), or None if there is no deadline.
        """
        if self.deadline_ms is None:
            return None
        return self.deadline_ms - int(time.monotonic() * 1000)

    def timeout_exception(self) -> DataAPITimeoutException:
        """Build the error signaling that the overall deadline has passed."""
        return DataAPITimeoutException(
            text=_timeout_honoured_text(
                "Operation timed out.",
                self.overall_timeout_ms,
                self.timeout_label,
            ),
            timeout_type="generic",
            endpoint=None,
            raw_payload=None,
        )

    def remaining_timeout(
        self, cap_time_ms: int | None = None, cap_timeout_label: str | None = None
    ) -> _TimeoutContext:
        """
        Get the timeout to use for the next request of the operation, raising
        a DataAPITimeoutException instead if the deadline is already past.

        Args:
            cap_time_ms: an additional constraint (typically the per-request
                timeout): if the time left exceeds it, the cap is returned.
            cap_timeout_label: the name of the setting for `cap_time_ms`.

        Returns:
            A _TimeoutContext detailing how long the next request may last.
        """

        _cap_time_ms = cap_time_ms or None
        remaining = self.remaining_ms()
        if remaining is None:
            if _cap_time_ms is None:
                return _TimeoutContext(
                    nominal_ms=self.overall_timeout_ms,
                    request_ms=None,
                    label=self.timeout_label,
                )
            return _TimeoutContext(
                nominal_ms=_cap_time_ms,
                request_ms=_cap_time_ms,
                label=cap_timeout_label,
            )
        if remaining <= 0:
            raise self.timeout_exception()
        if _cap_time_ms is not None and remaining > _cap_time_ms:
            return _TimeoutContext(
                nominal_ms=_cap_time_ms,
                request_ms=_cap_time_ms,
                label=cap_timeout_label,
            )
        return _TimeoutContext(
            nominal_ms=self.overall_timeout_ms,
            request_ms=remaining,
            label=self.timeout_label,
        )


__all__ = [
    "CollectionDeleteManyException",
    "CollectionUpdateManyException",
    "CursorException",
    "DataAPIErrorDescriptor",
    "DataAPIException",
    "DataAPIHttpException",
    "DataAPIResponseException",
    "DataAPITimeoutException",
    "DataAPIWarningDescriptor",
    "MultiCallTimeoutManager",
    "TooManyDocumentsToCountException",
    "UnexpectedDataAPIResponseException",
]
