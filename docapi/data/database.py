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

from docapi.constants import DefaultDocumentType, Environment
from docapi.data.collection import Collection
from docapi.exceptions import _select_singlereq_timeout_gm, _TimeoutContext
from docapi.settings.defaults import (
    DEFAULT_DATA_API_AUTH_HEADER,
    DEFAULT_HOSTED_KEYSPACE,
)
from docapi.utils.api_commander import APICommander
from docapi.utils.api_options import APIOptions, FullAPIOptions
from docapi.utils.unset import _UNSET, UnsetType

logger = logging.getLogger(__name__)


class Database:
    """
    A Data API database, from which Collection objects are obtained.

    This class is not meant for direct instantiation: use the `get_database`
    method of DataAPIClient instead.

    A Database always has a "working keyspace" that the collections obtained
    from it belong to (unless otherwise specified). On the hosted environments,
    if none is given, "default_keyspace" is used.

    Args:
        api_endpoint: the full "API Endpoint" string used to reach the Data API.
            Example: "https://01234567-us-east1.apps.example.com"
        keyspace: the working keyspace.
        api_options: a complete specification of the API Options for this instance.

    Example:
        >>> from docapi import DataAPIClient
        >>> my_client = DataAPIClient()
        >>> my_db = my_client.get_database(
        ...     "https://01234567-us-east1.apps.example.com",
        ...     token="my-token",
        ... )

    Note:
        creating an instance of Database does not trigger any request: the
        database must exist beforehand.
    """

    def __init__(
        self,
        *,
        api_endpoint: str,
        keyspace: str | None,
        api_options: FullAPIOptions,
    ) -> None:
        self.api_options = api_options
        self.api_endpoint = api_endpoint.strip("/")
        self._using_keyspace: str | None
        if keyspace is None and self.api_options.environment in Environment.hosted_values:
            self._using_keyspace = DEFAULT_HOSTED_KEYSPACE
        else:
            self._using_keyspace = keyspace
        self._commander_headers: dict[str, str | None] = {
            DEFAULT_DATA_API_AUTH_HEADER: self.api_options.token,
            **self.api_options.database_additional_headers,
        }

    def __getattr__(self, collection_name: str) -> Collection[DefaultDocumentType]:
        # dunder and private lookups (e.g. by copy or pickle) are not collections
        if collection_name.startswith("_"):
            raise AttributeError(collection_name)
        return self.get_collection(name=collection_name)

    def __getitem__(self, collection_name: str) -> Collection[DefaultDocumentType]:
        return self.get_collection(name=collection_name)

    def __repr__(self) -> str:
        ep_desc = f'api_endpoint="{self.api_endpoint}"'
        if self._using_keyspace is None:
            keyspace_desc = "keyspace not set"
        else:
            keyspace_desc = f'keyspace="{self._using_keyspace}"'
        return (
            f"{self.__class__.__name__}({ep_desc}, {keyspace_desc}, "
            f"api_options={self.api_options})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Database):
            return all(
                [
                    self.api_endpoint == other.api_endpoint,
                    self.keyspace == other.keyspace,
                    self.api_options == other.api_options,
                ]
            )
        return False

    def _get_api_commander(
        self,
        keyspace: str | None,
        collection_name: str | None = None,
    ) -> APICommander:
        url_options = self.api_options.data_api_url_options
        path_components = [
            comp
            for comp in (
                ncomp.strip("/")
                for ncomp in (
                    url_options.api_path,
                    url_options.api_version,
                    keyspace,
                    collection_name,
                )
                if ncomp is not None
            )
            if comp != ""
        ]
        return APICommander(
            api_endpoint=self.api_endpoint,
            path=f"/{'/'.join(path_components)}",
            headers=self._commander_headers,
            callers=self.api_options.callers,
            redacted_header_names=self.api_options.redacted_header_names,
        )

    def _copy(
        self,
        *,
        keyspace: str | None = None,
        token: str | None | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Database:
        final_api_options = self.api_options.with_override(api_options).with_override(
            APIOptions(token=token)
        )
        return Database(
            api_endpoint=self.api_endpoint,
            keyspace=keyspace or self.keyspace,
            api_options=final_api_options,
        )

    def with_options(
        self,
        *,
        keyspace: str | None = None,
        token: str | None | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Database:
        """
        Create a clone of this database with some changed attributes.

        Args:
            keyspace: the working keyspace for the clone.
            token: a token for the clone.
            api_options: any additional options to set for the clone, as an
                APIOptions where only the settings to change are given. The named
                parameters take precedence over the same settings here.

        Returns:
            a new `Database` instance.

        Example:
            >>> my_db_2 = my_db.with_options(keyspace="the_other_keyspace")
        """

        return self._copy(
            keyspace=keyspace,
            token=token,
            api_options=api_options,
        )

    @property
    def keyspace(self) -> str | None:
        """The working keyspace of this database (possibly None)."""

        return self._using_keyspace

    def get_collection(
        self,
        name: str,
        *,
        keyspace: str | None = None,
        spawn_api_options: APIOptions | UnsetType = _UNSET,
    ) -> Collection[DefaultDocumentType]:
        """
        Spawn a `Collection` object representing a collection on this database.
        No request is made: the collection must exist already.

        Args:
            name: the name of the collection.
            keyspace: the keyspace containing the collection. If not given,
                the working keyspace of this database is used.
            spawn_api_options: a (partial) specification of API Options to
                override those inherited from the database, for instance to
                change the timeouts or the insert_many chunking defaults.

        Returns:
            a `Collection` instance.

        Example:
            >>> my_coll = my_db.get_collection("my_collection")
            >>> my_coll.count_documents({}, upper_bound=100)
            41

        Note:
            `my_db.coll_name` and `my_db["coll_name"]` are equivalent
            to `my_db.get_collection("coll_name")`.
        """

        _keyspace = keyspace or self.keyspace
        if _keyspace is None:
            raise ValueError(
                "No keyspace specified. This operation requires a keyspace to "
                "be set, e.g. through the `with_options` method."
            )
        return Collection(
            database=self,
            name=name,
            keyspace=_keyspace,
            api_options=self.api_options.with_override(spawn_api_options),
        )

    def command(
        self,
        body: dict[str, Any],
        *,
        keyspace: str | None | UnsetType = _UNSET,
        collection_name: str | None = None,
        raise_api_errors: bool = True,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """
        Send a POST request to the Data API for this database with
        an arbitrary, caller-provided payload.

        Args:
            body: a JSON-serializable dictionary, the payload of the request.
            keyspace: the keyspace to target. If unspecified, the working keyspace
                is used. An explicit None targets the database as a whole
                (the "/<keyspace>" component is left out of the URL).
            collection_name: if provided, the name is appended to the URL,
                making this a collection-level command. It cannot be used
                along with `keyspace=None`.
            raise_api_errors: if True, responses with a nonempty 'errors' field
                result in a DataAPIResponseException being raised.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request. If not provided, this object's defaults
                apply. (This method issues a single request, hence all timeout
                parameters are treated the same.)
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a dictionary with the response of the HTTP request.

        Example:
            >>> my_db.command({"findCollections": {}})
            {'status': {'collections': ['my_coll']}}
        """

        _request_timeout_ms, _rt_label = _select_singlereq_timeout_gm(
            timeout_options=self.api_options.timeout_options,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        _keyspace: str | None
        if keyspace is None:
            if collection_name is not None:
                raise ValueError(
                    "Cannot pass collection_name to database "
                    "`command` on a no-keyspace command"
                )
            _keyspace = None
        elif isinstance(keyspace, UnsetType):
            _keyspace = self.keyspace
        else:
            _keyspace = keyspace
        command_commander = self._get_api_commander(
            keyspace=_keyspace,
            collection_name=collection_name,
        )
        _cmd_desc = ",".join(sorted(body.keys())) if body else "(none)"
        logger.info(f"command={_cmd_desc} on {self.__class__.__name__}")
        req_response = command_commander.request(
            payload=body,
            raise_api_errors=raise_api_errors,
            timeout_context=_TimeoutContext(
                request_ms=_request_timeout_ms, label=_rt_label
            ),
        )
        logger.info(f"finished command={_cmd_desc} on {self.__class__.__name__}")
        return req_response
