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

from dataclasses import dataclass, field
from typing import Sequence, TypeVar

from docapi.constants import CallerType
from docapi.settings.defaults import (
    API_PATH_ENV_MAP,
    API_VERSION_ENV_MAP,
    DEFAULT_GENERAL_METHOD_TIMEOUT_MS,
    DEFAULT_INSERT_MANY_CHUNK_SIZE,
    DEFAULT_INSERT_MANY_CONCURRENCY,
    DEFAULT_MAX_INSERT_MANY_CHUNK_SIZE,
    DEFAULT_REQUEST_TIMEOUT_MS,
)
from docapi.utils.unset import _UNSET, UnsetType

T = TypeVar("T")


def _overridden(override: T | UnsetType, current: T) -> T:
    return current if isinstance(override, UnsetType) else override


@dataclass(frozen=True)
class TimeoutOptions:
    """
    The timeout settings, as a partial override. All values are integers
    expressed in milliseconds; a value of zero means no timeout at all.
    Unspecified values are inherited from the "spawner" object
    (see `APIOptions`).

    Attributes:
        request_timeout_ms: the timeout imposed on each single HTTP request.
        general_method_timeout_ms: a timeout on the overall duration of a
            method call. For single-request methods (e.g. `find_one`) the
            least of this and `request_timeout_ms` is used; for multi-request
            methods (`insert_many`, cursors' `to_list`, `update_many`, ...)
            this bounds the whole operation while each request still obeys
            `request_timeout_ms`.
    """

    request_timeout_ms: int | UnsetType = _UNSET
    general_method_timeout_ms: int | UnsetType = _UNSET


@dataclass(frozen=True)
class FullTimeoutOptions(TimeoutOptions):
    """
    The "full" counterpart of `TimeoutOptions`: all settings are defined.
    This is what objects such as Collection hold in their `api_options`.
    """

    request_timeout_ms: int
    general_method_timeout_ms: int

    def with_override(self, other: TimeoutOptions) -> FullTimeoutOptions:
        """
        Return a new full options object, with the defined settings of
        `other` taking precedence over those of this object.
        """

        return FullTimeoutOptions(
            request_timeout_ms=_overridden(
                other.request_timeout_ms, self.request_timeout_ms
            ),
            general_method_timeout_ms=_overridden(
                other.general_method_timeout_ms, self.general_method_timeout_ms
            ),
        )


@dataclass(frozen=True)
class InsertManyOptions:
    """
    The settings governing how `insert_many` splits and dispatches its input.

    Attributes:
        chunk_size: how many documents go in each insertMany command.
        concurrency: how many chunks may be in flight at the same time.
            It must be 1 for ordered insertions.
        max_chunk_size: the largest chunk accepted by the server. Asking
            for larger chunks is an error caught before any request is made.
    """

    chunk_size: int | UnsetType = _UNSET
    concurrency: int | UnsetType = _UNSET
    max_chunk_size: int | UnsetType = _UNSET


@dataclass(frozen=True)
class FullInsertManyOptions(InsertManyOptions):
    chunk_size: int
    concurrency: int
    max_chunk_size: int

    def with_override(self, other: InsertManyOptions) -> FullInsertManyOptions:
        return FullInsertManyOptions(
            chunk_size=_overridden(other.chunk_size, self.chunk_size),
            concurrency=_overridden(other.concurrency, self.concurrency),
            max_chunk_size=_overridden(other.max_chunk_size, self.max_chunk_size),
        )


@dataclass(frozen=True)
class DataAPIURLOptions:
    """
    Settings for the construction of the full URL to the Data API,
    rarely in need of customization.

    Attributes:
        api_path: the path appended to the endpoint, e.g. "/api/json".
            Pass None for no path.
        api_version: the version segment, e.g. "/v1". Pass None to omit it.
    """

    api_path: str | None | UnsetType = _UNSET
    api_version: str | None | UnsetType = _UNSET


@dataclass(frozen=True)
class FullDataAPIURLOptions(DataAPIURLOptions):
    api_path: str | None
    api_version: str | None

    def with_override(self, other: DataAPIURLOptions) -> FullDataAPIURLOptions:
        return FullDataAPIURLOptions(
            api_path=_overridden(other.api_path, self.api_path),
            api_version=_overridden(other.api_version, self.api_version),
        )


@dataclass(frozen=True)
class APIOptions:
    """
    All the settings that determine how the objects of the hierarchy
    (DataAPIClient, Database, Collection) interact with the Data API,
    expressed as a partial override: unspecified attributes keep the value
    inherited from the object they are applied to.

    An APIOptions is passed as the `api_options` argument of the client
    constructor and of the `with_options` methods, or as `spawn_api_options`
    to spawning methods such as `get_database` and `get_collection`.

    Defined attributes replace the inherited ones completely, with the
    exception of `database_additional_headers` and `redacted_header_names`
    which are merged into the inherited ones.

    Attributes:
        environment: the kind of Data API deployment, e.g. "prod" or "hcd".
            It can be set only when creating the DataAPIClient.
        callers: a sequence of (name, version) "caller identities" to
            advertise in the User-Agent header of requests.
        database_additional_headers: free-form additional request headers.
            A header with a value of None is suppressed.
        redacted_header_names: (case-insensitive) names of the headers
            carrying secrets, masked when logging requests.
        token: the authentication token, sent in the "Token" header.
        timeout_options: a `TimeoutOptions` (see).
        insert_many_options: an `InsertManyOptions` (see).
        data_api_url_options: a `DataAPIURLOptions` (see).
    """

    environment: str | UnsetType = _UNSET
    callers: Sequence[CallerType] | UnsetType = _UNSET
    database_additional_headers: dict[str, str | None] | UnsetType = _UNSET
    redacted_header_names: set[str] | UnsetType = _UNSET
    token: str | None | UnsetType = _UNSET
    timeout_options: TimeoutOptions | UnsetType = _UNSET
    insert_many_options: InsertManyOptions | UnsetType = _UNSET
    data_api_url_options: DataAPIURLOptions | UnsetType = _UNSET


@dataclass(frozen=True)
class FullAPIOptions(APIOptions):
    """
    The "full" counterpart of `APIOptions`, with all settings defined.
    Objects of the hierarchy expose one as their `api_options` attribute.
    """

    environment: str
    callers: Sequence[CallerType]
    database_additional_headers: dict[str, str | None] = field(default_factory=dict)
    redacted_header_names: set[str] = field(default_factory=set)
    token: str | None = None
    timeout_options: FullTimeoutOptions = field(
        default_factory=lambda: defaultTimeoutOptions
    )
    insert_many_options: FullInsertManyOptions = field(
        default_factory=lambda: defaultInsertManyOptions
    )
    data_api_url_options: FullDataAPIURLOptions = field(
        default_factory=lambda: FullDataAPIURLOptions(api_path=None, api_version=None)
    )

    def __repr__(self) -> str:
        pieces = [
            f"environment={self.environment!r}",
            "token=***" if self.token else None,
            f"callers={list(self.callers)!r}" if self.callers else None,
            "...",
        ]
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"

    def with_override(self, other: APIOptions | None | UnsetType) -> FullAPIOptions:
        """
        Apply an override, returning a new full options object. Nested option
        groups are overridden in turn, while additional headers and redacted
        header names are merged.

        Args:
            other: a not-necessarily-fully-specified options object. All its
                defined settings take precedence.
        """

        if other is None or isinstance(other, UnsetType):
            return self

        if isinstance(other.database_additional_headers, UnsetType):
            database_additional_headers = self.database_additional_headers
        else:
            database_additional_headers = {
                **self.database_additional_headers,
                **other.database_additional_headers,
            }
        if isinstance(other.redacted_header_names, UnsetType):
            redacted_header_names = self.redacted_header_names
        else:
            redacted_header_names = self.redacted_header_names | set(
                other.redacted_header_names
            )

        timeout_options = self.timeout_options
        if isinstance(other.timeout_options, TimeoutOptions):
            timeout_options = timeout_options.with_override(other.timeout_options)
        insert_many_options = self.insert_many_options
        if isinstance(other.insert_many_options, InsertManyOptions):
            insert_many_options = insert_many_options.with_override(
                other.insert_many_options
            )
        data_api_url_options = self.data_api_url_options
        if isinstance(other.data_api_url_options, DataAPIURLOptions):
            data_api_url_options = data_api_url_options.with_override(
                other.data_api_url_options
            )

        return FullAPIOptions(
            environment=_overridden(other.environment, self.environment),
            callers=_overridden(other.callers, self.callers),
            database_additional_headers=database_additional_headers,
            redacted_header_names=redacted_header_names,
            token=_overridden(other.token, self.token),
            timeout_options=timeout_options,
            insert_many_options=insert_many_options,
            data_api_url_options=data_api_url_options,
        )


defaultTimeoutOptions = FullTimeoutOptions(
    request_timeout_ms=DEFAULT_REQUEST_TIMEOUT_MS,
    general_method_timeout_ms=DEFAULT_GENERAL_METHOD_TIMEOUT_MS,
)
defaultInsertManyOptions = FullInsertManyOptions(
    chunk_size=DEFAULT_INSERT_MANY_CHUNK_SIZE,
    concurrency=DEFAULT_INSERT_MANY_CONCURRENCY,
    max_chunk_size=DEFAULT_MAX_INSERT_MANY_CHUNK_SIZE,
)


def defaultAPIOptions(environment: str) -> FullAPIOptions:
    """
    The default, full APIOptions for a given environment, built from the
    constants in `docapi.settings.defaults`.
    """

    return FullAPIOptions(
        environment=environment,
        callers=[],
        database_additional_headers={},
        redacted_header_names=set(),
        token=None,
        timeout_options=defaultTimeoutOptions,
        insert_many_options=defaultInsertManyOptions,
        data_api_url_options=FullDataAPIURLOptions(
            api_path=API_PATH_ENV_MAP[environment],
            api_version=API_VERSION_ENV_MAP[environment],
        ),
    )
