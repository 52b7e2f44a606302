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

from abc import ABC
from dataclasses import dataclass, field
from typing import Any

from docapi.utils.str_enum import StrEnum


def _ids_repr(ids: list[Any], max_shown: int = 5) -> str:
    if len(ids) <= max_shown:
        return str(ids)
    shown = ", ".join(str(_id) for _id in ids[:max_shown])
    return f"[{shown} ... ({len(ids)} total)]"


@dataclass
class OperationResult(ABC):
    """
    The result of a mutation operation on a collection.

    Attributes:
        raw_results: the response(s) from the Data API. Operations spanning
            several requests (such as insert_many) have one item per request.
    """

    raw_results: list[dict[str, Any]]

    def _piecewise_repr(self, pieces: list[str | None]) -> str:
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"


class DocumentResponseStatus(StrEnum):
    """The outcome of writing one document, as reported by the Data API."""

    OK = "OK"
    ERROR = "ERROR"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class DocumentResponse:
    """
    The per-document report for one document of an insert_many.

    Attributes:
        id: the `_id` of the document.
        status: whether the document was written, failed or was skipped.
        error_index: for failed documents, the position of the relevant
            error in the "errors" of the response. None otherwise.
    """

    id: Any
    status: DocumentResponseStatus
    error_index: int | None = None


@dataclass
class CollectionInsertOneResult(OperationResult):
    """
    The result of an insert_one on a collection.

    Attributes:
        raw_results: a one-item list with the response from the Data API.
        inserted_id: the `_id` of the inserted document.
    """

    inserted_id: Any

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_id={self.inserted_id}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class CollectionInsertManyResult(OperationResult):
    """
    The result of an insert_many on a collection. Both lists follow the
    order of the input documents, regardless of how the chunks were run.

    Attributes:
        raw_results: the responses of the insertMany commands, one per
            chunk, in the order of the chunks.
        inserted_ids: the `_id` of the inserted documents.
        document_responses: the per-document reports, if the API returned
            them (otherwise an empty list).
    """

    inserted_ids: list[Any]
    document_responses: list[DocumentResponse] = field(default_factory=list)

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"inserted_ids={_ids_repr(self.inserted_ids)}",
                "document_responses=..." if self.document_responses else None,
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class CollectionUpdateResult(OperationResult):
    """
    The result of an update operation on a collection.

    Attributes:
        raw_results: the response(s) from the Data API.
        update_info: a dictionary with the fields "n" (int), "updatedExisting"
            (bool), "ok" (float), "nModified" (int) and, if a document was
            upserted, "upserted" with its `_id`.
    """

    update_info: dict[str, Any]

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"update_info={self.update_info}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )


@dataclass
class CollectionDeleteResult(OperationResult):
    """
    The result of a delete operation on a collection.

    Attributes:
        deleted_count: the number of deleted documents.
        raw_results: the response(s) from the Data API.
    """

    deleted_count: int

    def __repr__(self) -> str:
        return self._piecewise_repr(
            [
                f"deleted_count={self.deleted_count}",
                "raw_results=..." if self.raw_results is not None else None,
            ]
        )
