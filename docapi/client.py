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
from typing import Any, Sequence

from docapi.constants import CallerType, Environment
from docapi.data.database import Database
from docapi.utils.api_options import APIOptions, defaultAPIOptions
from docapi.utils.unset import _UNSET, UnsetType

logger = logging.getLogger(__name__)


class DataAPIClient:
    """
    A client for using the Data API. This is the entry point, sitting
    at the top of the "client -> database -> collection" hierarchy.

    Args:
        token: a token to the database, sent with each request. It is more
            common to pass it when spawning a Database with `get_database`.
        environment: a string representing the target Data API environment.
            It can be left unspecified for the default value of `Environment.PROD`;
            other values include `Environment.OTHER`, `Environment.HCD`.
        callers: a list of caller identities, i.e. applications or frameworks
            on behalf of which the Data API calls are performed. These end up
            in the request user-agent. Each caller identity is a
            ("caller_name", "caller_version") pair.
        api_options: a (partial) specification of API Options to override the
            system defaults. The named parameters, if passed, take precedence
            over the same settings here.

    Example:
        >>> from docapi import DataAPIClient
        >>> my_client = DataAPIClient()
        >>> my_db = my_client.get_database(
        ...     "https://01234567-us-east1.apps.example.com",
        ...     token="my-token",
        ... )
        >>> my_coll = my_db.get_collection("movies")
        >>> my_coll.insert_one({"title": "The Title"})
        CollectionInsertOneResult(inserted_id=..., raw_results=...)
    """

    def __init__(
        self,
        token: str | None | UnsetType = _UNSET,
        *,
        environment: str | UnsetType = _UNSET,
        callers: Sequence[CallerType] | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> None:
        # this parameter bootstraps the defaults, has a special treatment:
        _environment: str
        if isinstance(environment, UnsetType):
            _environment = Environment.PROD.lower()
        else:
            _environment = environment.lower()
        if _environment not in Environment.values:
            raise ValueError(f"Unsupported `environment` value: '{_environment}'.")
        arg_api_options = APIOptions(
            callers=callers,
            token=token,
        )
        self.api_options = (
            defaultAPIOptions(_environment)
            .with_override(api_options)
            .with_override(arg_api_options)
        )

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.api_options})"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, DataAPIClient):
            return all(
                [
                    self.api_options.token == other.api_options.token,
                    self.api_options.environment == other.api_options.environment,
                    self.api_options.callers == other.api_options.callers,
                ]
            )
        return False

    def __getitem__(self, api_endpoint: str) -> Database:
        return self.get_database(api_endpoint=api_endpoint)

    def _copy(
        self,
        *,
        token: str | None | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> DataAPIClient:
        final_api_options = self.api_options.with_override(api_options).with_override(
            APIOptions(token=token)
        )
        return DataAPIClient(
            token=token,
            environment=final_api_options.environment,
            api_options=final_api_options,
        )

    def with_options(
        self,
        *,
        token: str | None | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> DataAPIClient:
        """
        Create a clone of this DataAPIClient with some changed attributes.

        Args:
            token: a token for the clone.
            api_options: any additional options to set for the clone, as an
                APIOptions where only the settings to change are given.
                The `token` parameter takes precedence over the same setting here.

        Returns:
            a new DataAPIClient instance.

        Example:
            >>> other_auth_client = my_client.with_options(token="other-token")
        """

        return self._copy(
            token=token,
            api_options=api_options,
        )

    def get_database(
        self,
        api_endpoint: str,
        *,
        token: str | None | UnsetType = _UNSET,
        keyspace: str | None = None,
        spawn_api_options: APIOptions | UnsetType = _UNSET,
    ) -> Database:
        """
        Get a Database object from this client, for doing data-related work.
        No request is made: the database must exist already.

        Args:
            api_endpoint: the full "API Endpoint" string used to reach the Data API.
            token: if supplied, it overrides the token inherited from the client.
            keyspace: the working keyspace of the database. If not given, on
                the hosted environments "default_keyspace" is used, while
                elsewhere the keyspace is left unset (and must be provided
                later, e.g. to `get_collection`).
            spawn_api_options: a (partial) specification of API Options to
                override those inherited from the client. The `token` parameter,
                if passed, takes precedence over the same setting here.

        Returns:
            a Database object with which to work on Data API collections.

        Example:
            >>> my_db = my_client.get_database(
            ...     "https://01234567-us-east1.apps.example.com",
            ...     token="my-token",
            ... )
            >>> my_coll = my_db["my_collection"]
        """

        resulting_api_options = self.api_options.with_override(
            spawn_api_options
        ).with_override(APIOptions(token=token))
        logger.info(f"spawning a Database for '{api_endpoint}'")
        return Database(
            api_endpoint=api_endpoint,
            keyspace=keyspace,
            api_options=resulting_api_options,
        )
