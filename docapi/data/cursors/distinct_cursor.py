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
from collections import deque
from typing import Any, Callable, Deque, Generic, Iterable, cast

from docapi.constants import DefaultDocumentType
from docapi.data.cursors.cursor import AbstractCursor, CursorState, T
from docapi.data.cursors.find_cursor import CollectionFindCursor
from docapi.data.utils.distinct_extractors import (
    _create_document_key_extractor,
    _hash_document,
)

logger = logging.getLogger(__name__)


class CollectionDistinctCursor(AbstractCursor, Generic[T]):
    """
    A cursor over the distinct values that a field takes across the documents
    matching a query, as returned by `Collection.distinct`.

    The deduplication happens client-side: the underlying find cursor is run
    through all of its pages, and each value is yielded the first time it is
    met. Values are compared through a hash of their canonical JSON form, so
    that e.g. dictionaries differing only in key order count as the same value.

    The lifecycle is that of a find cursor (see `CursorState`): single-pass,
    with `has_next`, `close` and a `to_list` that only works on a cursor not
    yet started.

    Example:
        >>> cursor = collection.distinct("category")
        >>> cursor.to_list()
        ['fruit', 'vegetable']
    """

    _source: CollectionFindCursor[DefaultDocumentType, DefaultDocumentType]
    _key: str | Iterable[str | int]
    _value_decoder: Callable[[Any], T] | None
    _seen_hashes: set[str]
    _pending: Deque[Any]

    def __init__(
        self,
        *,
        source: CollectionFindCursor[DefaultDocumentType, DefaultDocumentType],
        key: str | Iterable[str | int],
        value_decoder: Callable[[Any], T] | None = None,
    ) -> None:
        AbstractCursor.__init__(self)
        self._source = source
        self._key = key
        self._extractor = _create_document_key_extractor(key)
        self._value_decoder = value_decoder
        self._seen_hashes = set()
        self._pending = deque()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}("{self._source.data_source.name}", '
            f"key={self._key!r}, {self._state.value}, "
            f"consumed so far: {self._consumed})"
        )

    def _try_ensure_pending(self) -> bool:
        """
        Pull documents from the source until a new value is available.
        Return False when the source is used up.
        This method never changes the state of this cursor.
        """
        while not self._pending:
            # only the exhaustion of the source ends the search: several
            # pages in a row may bring no new values
            if not self._source.has_next():
                return False
            document = next(self._source)
            for value in self._extractor(document):
                value_hash = _hash_document(value)
                if value_hash not in self._seen_hashes:
                    self._seen_hashes.add(value_hash)
                    self._pending.append(value)
        return True

    def __iter__(self) -> CollectionDistinctCursor[T]:
        self._ensure_alive()
        return self

    def __next__(self) -> T:
        if self._state in (CursorState.EXHAUSTED, CursorState.CLOSED):
            raise StopIteration
        if not self._try_ensure_pending():
            self._state = CursorState.EXHAUSTED
            raise StopIteration
        value = self._pending.popleft()
        self._state = CursorState.ACTIVE
        self._consumed += 1
        if self._value_decoder is not None:
            return self._value_decoder(value)
        return cast(T, value)

    @property
    def key(self) -> str | Iterable[str | int]:
        """The field path whose distinct values this cursor yields."""

        return self._key

    @property
    def data_source(self) -> Any:
        """The Collection this cursor reads from."""

        return self._source.data_source

    def has_next(self) -> bool:
        """
        Whether there are more distinct values to yield. The same rules as
        for `CollectionFindCursor.has_next` apply: this may fetch pages,
        a negative answer makes the cursor EXHAUSTED and asking again on an
        EXHAUSTED cursor closes it.
        """

        if self._state == CursorState.CLOSED:
            return False
        if self._state == CursorState.EXHAUSTED:
            self.close()
            return False
        if self._try_ensure_pending():
            return True
        self._state = CursorState.EXHAUSTED
        return False

    def close(self) -> None:
        self._state = CursorState.CLOSED
        self._source.close()
        self._pending.clear()

    def to_list(self) -> list[T]:
        """
        Drain the cursor into a list of all distinct values.
        Raises a CursorException if the cursor has already been started.
        """

        self._ensure_not_started()
        values = list(self)
        logger.info(
            f"distinct on '{self._source.data_source.name}': "
            f"{len(values)} values from {self._source.pages_retrieved} pages"
        )
        return values
