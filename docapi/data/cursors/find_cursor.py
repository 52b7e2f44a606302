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
from copy import deepcopy
from typing import TYPE_CHECKING, Any, Callable, Generic, cast

from docapi.constants import FilterType, ProjectionType, SortType
from docapi.data.cursors.cursor import (
    TNEW,
    TRAW,
    AbstractCursor,
    CursorState,
    T,
    _revise_timeouts_for_cursor_copy,
)
from docapi.data.cursors.pagination import Page
from docapi.data.cursors.query_engine import _CollectionFindQueryEngine
from docapi.exceptions import (
    CursorException,
    MultiCallTimeoutManager,
    _TimeoutContext,
)
from docapi.utils.unset import _UNSET, UnsetType

if TYPE_CHECKING:
    from docapi.data.collection import Collection

logger = logging.getLogger(__name__)


class CollectionFindCursor(AbstractCursor, Generic[TRAW, T]):
    """
    A cursor over the documents matching a `find` on a Collection.

    The cursor performs no request until it is first consumed (or asked
    `has_next`), then fetches pages of results one at a time as iteration
    proceeds. Only the current page is held in memory.

    A cursor has two type parameters: TRAW is the type of the documents as
    returned by the API, T that of the items yielded after the optional
    mapping function (see `map`). Without a mapping, TRAW = T.

    Cursors are single-pass: once exhausted or closed they cannot be
    rewound (but see `clone`).

    Example:
        >>> cursor = collection.find({}, projection={"seq": True, "_id": False})
        >>> for document in cursor:
        ...     print(document)
        ...
        {'seq': 1}
        {'seq': 4}
        {'seq': 15}
    """

    _collection: Collection[TRAW]
    _query_engine: _CollectionFindQueryEngine[TRAW]
    _request_timeout_ms: int | None
    _overall_timeout_ms: int | None
    _request_timeout_label: str | None
    _overall_timeout_label: str | None
    _timeout_manager: MultiCallTimeoutManager
    _filter: FilterType | None
    _projection: ProjectionType | None
    _sort: SortType | None
    _limit: int | None
    _skip: int | None
    _include_similarity: bool | None
    _include_sort_vector: bool | None
    _mapper: Callable[[TRAW], T] | None
    _page: Page[TRAW] | None
    _page_index: int
    _pages_retrieved: int
    _last_sort_vector: list[float] | None

    def __init__(
        self,
        *,
        collection: Collection[TRAW],
        request_timeout_ms: int | None,
        overall_timeout_ms: int | None,
        request_timeout_label: str | None = None,
        overall_timeout_label: str | None = None,
        filter: FilterType | None = None,
        projection: ProjectionType | None = None,
        sort: SortType | None = None,
        limit: int | None = None,
        skip: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        mapper: Callable[[TRAW], T] | None = None,
    ) -> None:
        AbstractCursor.__init__(self)
        self._collection = collection
        self._filter = deepcopy(filter)
        self._projection = projection
        self._sort = deepcopy(sort)
        self._limit = limit
        self._skip = skip
        self._include_similarity = include_similarity
        self._include_sort_vector = include_sort_vector
        self._mapper = mapper
        self._request_timeout_ms = request_timeout_ms
        self._overall_timeout_ms = overall_timeout_ms
        self._request_timeout_label = request_timeout_label
        self._overall_timeout_label = overall_timeout_label
        self._query_engine = _CollectionFindQueryEngine(
            collection=collection,
            filter=self._filter,
            projection=self._projection,
            sort=self._sort,
            limit=self._limit,
            skip=self._skip,
            include_similarity=self._include_similarity,
            include_sort_vector=self._include_sort_vector,
        )
        self._timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=self._overall_timeout_ms,
            timeout_label=self._overall_timeout_label,
        )
        self._page = None
        self._page_index = 0
        self._pages_retrieved = 0
        self._last_sort_vector = None

    def _copy(
        self,
        *,
        request_timeout_ms: int | None | UnsetType = _UNSET,
        overall_timeout_ms: int | None | UnsetType = _UNSET,
        request_timeout_label: str | None | UnsetType = _UNSET,
        overall_timeout_label: str | None | UnsetType = _UNSET,
        filter: FilterType | None | UnsetType = _UNSET,
        projection: ProjectionType | None | UnsetType = _UNSET,
        sort: SortType | None | UnsetType = _UNSET,
        limit: int | None | UnsetType = _UNSET,
        skip: int | None | UnsetType = _UNSET,
        include_similarity: bool | None | UnsetType = _UNSET,
        include_sort_vector: bool | None | UnsetType = _UNSET,
    ) -> CollectionFindCursor[TRAW, T]:
        def _pick(new: Any, old: Any) -> Any:
            return old if isinstance(new, UnsetType) else new

        return CollectionFindCursor(
            collection=self._collection,
            request_timeout_ms=_pick(request_timeout_ms, self._request_timeout_ms),
            overall_timeout_ms=_pick(overall_timeout_ms, self._overall_timeout_ms),
            request_timeout_label=_pick(
                request_timeout_label, self._request_timeout_label
            ),
            overall_timeout_label=_pick(
                overall_timeout_label, self._overall_timeout_label
            ),
            filter=_pick(filter, self._filter),
            projection=_pick(projection, self._projection),
            sort=_pick(sort, self._sort),
            limit=_pick(limit, self._limit),
            skip=_pick(skip, self._skip),
            include_similarity=_pick(include_similarity, self._include_similarity),
            include_sort_vector=_pick(include_sort_vector, self._include_sort_vector),
            mapper=self._mapper,
        )

    def _imprint_internal_state(self, other: CollectionFindCursor[TRAW, Any]) -> None:
        """Copy the iteration state of this cursor onto another one."""
        other._state = self._state
        other._consumed = self._consumed
        other._page = self._page
        other._page_index = self._page_index
        other._pages_retrieved = self._pages_retrieved
        other._last_sort_vector = self._last_sort_vector

    def _load_page(self, page_state: str | None) -> Page[TRAW]:
        page = self._query_engine._fetch_page(
            page_state=page_state,
            timeout_context=self._timeout_manager.remaining_timeout(
                cap_time_ms=self._request_timeout_ms,
                cap_timeout_label=self._request_timeout_label,
            ),
        )
        # the previous page, if any, becomes unreachable here
        self._page = page
        self._page_index = 0
        self._pages_retrieved += 1
        if page.sort_vector is not None:
            self._last_sort_vector = page.sort_vector
        return page

    def _try_ensure_page(self) -> bool:
        """
        Make sure the held page has an unread item, fetching further pages
        as needed. Return False if there are no more items.
        This method never changes the cursor state.
        """
        if self._state in (CursorState.EXHAUSTED, CursorState.CLOSED):
            return False
        page = self._page if self._page is not None else self._load_page(None)
        # pages may legitimately come back empty while not being the last one
        while self._page_index >= len(page.items):
            if page.next_page_state is None:
                return False
            page = self._load_page(page.next_page_state)
        return True

    def _mark_exhausted(self) -> None:
        # the last page is released as soon as nothing is left on it
        self._state = CursorState.EXHAUSTED
        self._page = None
        self._page_index = 0

    def _apply_mapper(self, document: TRAW) -> T:
        return cast(T, self._mapper(document) if self._mapper is not None else document)

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}("{self._collection.name}", '
            f"{self._state.value}, "
            f"consumed so far: {self._consumed})"
        )

    def __iter__(self) -> CollectionFindCursor[TRAW, T]:
        self._ensure_alive()
        return self

    def __next__(self) -> T:
        if self._state in (CursorState.EXHAUSTED, CursorState.CLOSED):
            raise StopIteration
        if not self._try_ensure_page():
            self._mark_exhausted()
            raise StopIteration
        page = cast(Page[TRAW], self._page)
        document = page.items[self._page_index]
        self._page_index += 1
        self._consumed += 1
        if self._page_index >= len(page.items) and page.next_page_state is None:
            self._mark_exhausted()
        else:
            self._state = CursorState.ACTIVE
        return self._apply_mapper(document)

    @property
    def data_source(self) -> Collection[TRAW]:
        """The Collection this cursor reads from."""

        return self._collection

    @property
    def buffered_count(self) -> int:
        """
        The number of items in the held page not yet yielded.
        Reading this property never triggers requests.
        """

        if self._page is None:
            return 0
        return len(self._page.items) - self._page_index

    @property
    def pages_retrieved(self) -> int:
        """The number of pages fetched from the API so far."""

        return self._pages_retrieved

    def close(self) -> None:
        """
        Close the cursor, regardless of its state, discarding any results
        not yet consumed. A closed cursor never yields items again.
        """

        self._state = CursorState.CLOSED
        self._page = None
        self._page_index = 0

    def clone(self) -> CollectionFindCursor[TRAW, T]:
        """
        Create a new cursor with the same settings as this one (query,
        mapping, timeouts), in the NOT_STARTED state.
        """

        return self._copy()

    def filter(self, filter: FilterType | None) -> CollectionFindCursor[TRAW, T]:
        """
        Return a copy of this cursor with a new filter.
        Allowed only if the cursor is in the NOT_STARTED state.
        """

        self._ensure_not_started()
        return self._copy(filter=filter)

    def project(
        self, projection: ProjectionType | None
    ) -> CollectionFindCursor[TRAW, T]:
        """
        Return a copy of this cursor with a new projection. Allowed only
        if the cursor is NOT_STARTED and no mapping has been set on it.
        """

        self._ensure_not_started()
        if self._mapper is not None:
            raise CursorException(
                "Cannot set projection after map.",
                cursor_state=self._state.value,
            )
        return self._copy(projection=projection)

    def sort(self, sort: SortType | None) -> CollectionFindCursor[TRAW, T]:
        self._ensure_not_started()
        return self._copy(sort=sort)

    def limit(self, limit: int | None) -> CollectionFindCursor[TRAW, T]:
        self._ensure_not_started()
        return self._copy(limit=limit)

    def skip(self, skip: int | None) -> CollectionFindCursor[TRAW, T]:
        self._ensure_not_started()
        return self._copy(skip=skip)

    def include_similarity(
        self, include_similarity: bool | None
    ) -> CollectionFindCursor[TRAW, T]:
        """
        Return a copy of this cursor with a new include_similarity setting.
        Allowed only if the cursor is NOT_STARTED and no mapping has been set.
        """

        self._ensure_not_started()
        if self._mapper is not None:
            raise CursorException(
                "Cannot set include_similarity after map.",
                cursor_state=self._state.value,
            )
        return self._copy(include_similarity=include_similarity)

    def include_sort_vector(
        self, include_sort_vector: bool | None
    ) -> CollectionFindCursor[TRAW, T]:
        self._ensure_not_started()
        return self._copy(include_sort_vector=include_sort_vector)

    def map(self, mapper: Callable[[T], TNEW]) -> CollectionFindCursor[TRAW, TNEW]:
        """
        Return a copy of this cursor applying a mapping function to the
        yielded items. If a mapping is already set, the two are composed.
        Allowed only if the cursor is in the NOT_STARTED state.

        Example:
            >>> cursor = collection.find({}, limit=2).map(lambda doc: doc["seq"])
            >>> cursor.to_list()
            [1, 4]
        """

        self._ensure_not_started()
        composite_mapper: Callable[[TRAW], TNEW]
        if self._mapper is not None:
            previous_mapper = self._mapper

            def _composite(document: TRAW) -> TNEW:
                return mapper(previous_mapper(document))

            composite_mapper = _composite
        else:
            composite_mapper = cast(Callable[[TRAW], TNEW], mapper)
        return CollectionFindCursor(
            collection=self._collection,
            request_timeout_ms=self._request_timeout_ms,
            overall_timeout_ms=self._overall_timeout_ms,
            request_timeout_label=self._request_timeout_label,
            overall_timeout_label=self._overall_timeout_label,
            filter=self._filter,
            projection=self._projection,
            sort=self._sort,
            limit=self._limit,
            skip=self._skip,
            include_similarity=self._include_similarity,
            include_sort_vector=self._include_sort_vector,
            mapper=composite_mapper,
        )

    def has_next(self) -> bool:
        """
        Whether the cursor has more items to yield.

        This may fetch a page: on a NOT_STARTED cursor it triggers the first
        fetch (the cursor stays NOT_STARTED), and when the held page is used
        up the next one is retrieved. If nothing is left the cursor becomes
        EXHAUSTED; asking again on an EXHAUSTED cursor closes it.
        On a CLOSED cursor this always returns False.
        """

        if self._state == CursorState.CLOSED:
            return False
        if self._state == CursorState.EXHAUSTED:
            self.close()
            return False
        if self._try_ensure_page():
            return True
        self._mark_exhausted()
        return False

    def for_each(
        self,
        function: Callable[[T], bool | None],
        *,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> None:
        """
        Consume the remaining items, invoking a callback on each of them.
        If the callback returns `False` (exactly), the method stops early,
        leaving the rest of the items on the cursor.

        Args:
            function: a callback taking one item of the cursor as argument.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                whole duration of this method. The per-request timeout of the
                cursor still applies to each page fetch.
            timeout_ms: an alias for `general_method_timeout_ms`.
        """

        self._ensure_alive()
        copy_req_ms, copy_ovr_ms = _revise_timeouts_for_cursor_copy(
            new_general_method_timeout_ms=general_method_timeout_ms,
            new_timeout_ms=timeout_ms,
            old_request_timeout_ms=self._request_timeout_ms,
        )
        _cursor = self._copy(
            request_timeout_ms=copy_req_ms,
            overall_timeout_ms=copy_ovr_ms,
            overall_timeout_label="general_method_timeout_ms",
        )
        self._imprint_internal_state(_cursor)
        try:
            for item in _cursor:
                if function(item) is False:
                    break
        finally:
            _cursor._imprint_internal_state(self)

    def to_list(
        self,
        *,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> list[T]:
        """
        Drain the cursor into a list. Only a NOT_STARTED cursor can be drained
        this way: calling this method on a cursor that has yielded items (or is
        exhausted, or closed) raises a CursorException. The cursor is
        EXHAUSTED afterwards.

        Args:
            general_method_timeout_ms: a timeout, in milliseconds, for the
                whole duration of this method. The per-request timeout of the
                cursor still applies to each page fetch.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a list with all the items of the cursor.

        Example:
            >>> collection.find({}, projection={"seq": True, "_id": False}).to_list()
            [{'seq': 1}, {'seq': 4}, {'seq': 15}]
        """

        self._ensure_not_started()
        copy_req_ms, copy_ovr_ms = _revise_timeouts_for_cursor_copy(
            new_general_method_timeout_ms=general_method_timeout_ms,
            new_timeout_ms=timeout_ms,
            old_request_timeout_ms=self._request_timeout_ms,
        )
        _cursor = self._copy(
            request_timeout_ms=copy_req_ms,
            overall_timeout_ms=copy_ovr_ms,
            overall_timeout_label="general_method_timeout_ms",
        )
        self._imprint_internal_state(_cursor)
        try:
            items = list(_cursor)
        finally:
            _cursor._imprint_internal_state(self)
        return items

    def get_item(self, offset: int) -> T | None:
        """
        Retrieve the item at a given (zero-based) position in the results of
        this cursor's query, with a dedicated request. The iteration state of
        the cursor is left untouched.

        Args:
            offset: the position of the desired item. It is counted from the
                start of the cursor's results (thus on top of its `skip`).

        Returns:
            the item (mapped, if the cursor has a mapping), or None if there
            is no item at that position.
        """

        if offset < 0:
            raise ValueError("The offset of a cursor item cannot be negative.")
        if self._limit and offset >= self._limit:
            return None
        lookup_engine: _CollectionFindQueryEngine[TRAW] = _CollectionFindQueryEngine(
            collection=self._collection,
            filter=self._filter,
            projection=self._projection,
            sort=self._sort,
            limit=1,
            skip=((self._skip or 0) + offset) or None,
            include_similarity=self._include_similarity,
            include_sort_vector=None,
        )
        page = lookup_engine._fetch_page(
            page_state=None,
            timeout_context=_TimeoutContext(
                request_ms=self._request_timeout_ms,
                nominal_ms=self._request_timeout_ms,
                label=self._request_timeout_label,
            ),
        )
        if not page.items:
            return None
        return self._apply_mapper(page.items[0])

    def first(self) -> T | None:
        """The first item of this cursor's results, without disturbing it."""

        return self.get_item(0)

    def get_sort_vector(self) -> list[float] | None:
        """
        The query vector used in the vector search behind this cursor, if it
        was run with `include_sort_vector=True` (otherwise None).

        On a NOT_STARTED cursor this triggers the first page fetch, while the
        cursor stays NOT_STARTED.
        """

        if self._state == CursorState.NOT_STARTED and self._page is None:
            self._try_ensure_page()
        return self._last_sort_vector
