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

from dataclasses import dataclass
from typing import Generic, TypeVar

TRAW = TypeVar("TRAW")


@dataclass(frozen=True)
class Page(Generic[TRAW]):
    """
    A whole page of results from a find operation, as returned by one
    request to the Data API.

    Attributes:
        items: the documents on this page, in the order they were returned.
        next_page_state: the opaque token to fetch the following page with.
            None if and only if this is the last page.
        sort_vector: the query vector of a vector search run with the
            "include sort vector" flag set, otherwise None.
    """

    items: list[TRAW]
    next_page_state: str | None
    sort_vector: list[float] | None = None

    def __repr__(self) -> str:
        pieces = [
            f"items=<{len(self.items)} entries>",
            "next_page_state=..." if self.next_page_state else None,
            "sort_vector=..." if self.sort_vector else None,
        ]
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"
