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

from abc import ABC, abstractmethod
from enum import Enum
from typing import TypeVar

from docapi.exceptions import CursorException

# A cursor reads TRAW from the API and yields T (which differ if mapping).
# The new cursor returned by .map yields TNEW.
TRAW = TypeVar("TRAW")
T = TypeVar("T")
TNEW = TypeVar("TNEW")


def _revise_timeouts_for_cursor_copy(
    *,
    new_general_method_timeout_ms: int | None,
    new_timeout_ms: int | None,
    old_request_timeout_ms: int | None,
) -> tuple[int | None, int | None]:
    """
    Compute the (request_timeout_ms, overall_timeout_ms) pair for the cursor
    copy that a draining method (to_list, for_each) runs on.

    The overall timeout is the one given to the method (`timeout_ms` wins over
    `general_method_timeout_ms`). The per-request timeout stays that of the
    original cursor, unless the overall timeout is even shorter.
    """
    overall_ms = (
        new_timeout_ms if new_timeout_ms is not None else new_general_method_timeout_ms
    )
    candidates = [ms for ms in (overall_ms, old_request_timeout_ms) if ms is not None]
    request_ms = min(candidates) if candidates else None
    return (request_ms, overall_ms)


class CursorState(Enum):
    """
    The states in the lifecycle of a cursor.

    Values:
        NOT_STARTED: no item has been yielded yet. A page may have been
            fetched already (e.g. by `has_next`).
        ACTIVE: some items have been yielded and there may be more.
        EXHAUSTED: the last item has been yielded (or there was none).
        CLOSED: the cursor was closed and will never yield again.
    """

    NOT_STARTED = "not_started"
    ACTIVE = "active"
    EXHAUSTED = "exhausted"
    CLOSED = "closed"


class AbstractCursor(ABC):
    """
    The lifecycle shared by all cursors: a state in `CursorState`
    and a count of the items yielded so far.

    A cursor is meant to be consumed from a single thread.
    """

    _state: CursorState
    _consumed: int

    def __init__(self) -> None:
        self._state = CursorState.NOT_STARTED
        self._consumed = 0

    def _ensure_alive(self) -> None:
        if self._state == CursorState.CLOSED:
            raise CursorException(
                text="Cursor is closed.",
                cursor_state=self._state.value,
            )

    def _ensure_not_started(self) -> None:
        if self._state != CursorState.NOT_STARTED:
            raise CursorException(
                text="Cursor has already been started.",
                cursor_state=self._state.value,
            )

    @property
    def state(self) -> CursorState:
        """The current state of this cursor, a value in `CursorState`."""

        return self._state

    @property
    def consumed(self) -> int:
        """The number of items yielded by this cursor so far."""

        return self._consumed

    @abstractmethod
    def has_next(self) -> bool: ...

    @abstractmethod
    def close(self) -> None: ...
