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
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Generic

from typing_extensions import override

from docapi.constants import (
    FilterType,
    ProjectionType,
    SortType,
    normalize_optional_projection,
)
from docapi.data.cursors.pagination import TRAW, Page
from docapi.exceptions import (
    UnexpectedDataAPIResponseException,
    _TimeoutContext,
)

if TYPE_CHECKING:
    from docapi.data.collection import Collection

logger = logging.getLogger(__name__)


class _QueryEngine(ABC, Generic[TRAW]):
    @abstractmethod
    def _fetch_page(
        self,
        *,
        page_state: str | None,
        timeout_context: _TimeoutContext,
    ) -> Page[TRAW]:
        """Run the query for one page, issuing exactly one request."""
        ...


class _CollectionFindQueryEngine(Generic[TRAW], _QueryEngine[TRAW]):
    """
    The immutable description of a find query on a collection, able to
    retrieve any page of its results given the page state.
    """

    collection: Collection[TRAW]
    filter: FilterType | None
    projection: ProjectionType | None
    sort: SortType | None
    limit: int | None
    skip: int | None
    include_similarity: bool | None
    include_sort_vector: bool | None

    def __init__(
        self,
        *,
        collection: Collection[TRAW],
        filter: FilterType | None,
        projection: ProjectionType | None,
        sort: SortType | None,
        limit: int | None,
        skip: int | None,
        include_similarity: bool | None,
        include_sort_vector: bool | None,
    ) -> None:
        self.collection = collection
        self.filter = filter
        self.projection = projection
        self.sort = sort
        self.limit = limit
        self.skip = skip
        self.include_similarity = include_similarity
        self.include_sort_vector = include_sort_vector
        self._query_subpayload = {
            k: v
            for k, v in {
                "filter": self.filter,
                "projection": normalize_optional_projection(self.projection),
                "sort": self.sort,
            }.items()
            if v is not None
        }
        # a limit of zero means no limit
        self._base_options = {
            k: v
            for k, v in {
                "limit": self.limit or None,
                "skip": self.skip,
                "includeSimilarity": self.include_similarity,
                "includeSortVector": self.include_sort_vector,
            }.items()
            if v is not None
        }

    def _make_payload(self, page_state: str | None) -> dict[str, Any]:
        options = {
            **self._base_options,
            **({"pageState": page_state} if page_state else {}),
        }
        return {
            "find": {
                **self._query_subpayload,
                **({"options": options} if options else {}),
            },
        }

    @override
    def _fetch_page(
        self,
        *,
        page_state: str | None,
        timeout_context: _TimeoutContext,
    ) -> Page[TRAW]:
        payload = self._make_payload(page_state)
        _page_str = page_state if page_state else "(first page)"
        logger.info(
            f"cursor fetching a page: {_page_str} from '{self.collection.name}'"
        )
        response = self.collection._api_commander.request(
            payload=payload,
            timeout_context=timeout_context,
        )
        logger.info(
            f"cursor finished fetching a page: {_page_str} from "
            f"'{self.collection.name}'"
        )

        response_data = response.get("data") or {}
        if not isinstance(response_data.get("documents"), list):
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from find API command (no 'documents').",
                raw_response=response,
            )
        sort_vector = (response.get("status") or {}).get("sortVector")
        return Page(
            items=response_data["documents"],
            next_page_state=response_data.get("nextPageState"),
            sort_vector=sort_vector,
        )
