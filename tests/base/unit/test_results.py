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

import pytest

from docapi.data.collection import _prepare_chunk_result, _prepare_update_info
from docapi.exceptions import UnexpectedDataAPIResponseException
from docapi.results import (
    CollectionDeleteResult,
    CollectionInsertManyResult,
    DocumentResponse,
    DocumentResponseStatus,
)


class TestResults:
    @pytest.mark.describe("test of result reprs")
    def test_result_reprs(self) -> None:
        short = CollectionInsertManyResult(raw_results=[], inserted_ids=[1, 2])
        assert repr(short) == (
            "CollectionInsertManyResult(inserted_ids=[1, 2], raw_results=...)"
        )
        long = CollectionInsertManyResult(
            raw_results=[],
            inserted_ids=list(range(12)),
            document_responses=[DocumentResponse(0, DocumentResponseStatus.OK)],
        )
        assert "(12 total)" in repr(long)
        assert "document_responses=..." in repr(long)
        assert repr(CollectionDeleteResult(deleted_count=3, raw_results=[])) == (
            "CollectionDeleteResult(deleted_count=3, raw_results=...)"
        )

    @pytest.mark.describe("test of update info summaries")
    def test_prepare_update_info(self) -> None:
        assert _prepare_update_info([]) == {
            "n": 0,
            "updatedExisting": False,
            "ok": 1.0,
            "nModified": 0,
        }
        info = _prepare_update_info(
            [
                {"matchedCount": 2, "modifiedCount": 1, "upsertedId": "a"},
                {"matchedCount": 0, "modifiedCount": 0, "upsertedId": "b"},
            ]
        )
        assert info["n"] == 4
        assert info["upserteds"] == ["a", "b"]
        assert "upserted" not in info

    @pytest.mark.describe("test of insertMany chunk response parsing")
    def test_prepare_chunk_result(self) -> None:
        response = {
            "status": {
                "documentResponses": [
                    {"_id": "a", "status": "OK"},
                    {"_id": "b", "status": "ERROR", "errorsIdx": 0},
                    {"_id": "c", "status": "skipped"},
                ]
            }
        }
        result = _prepare_chunk_result(3, response)
        assert result.sequence_index == 3
        assert result.inserted_ids == ["a"]
        assert [d_r.status for d_r in result.document_responses] == [
            DocumentResponseStatus.OK,
            DocumentResponseStatus.ERROR,
            DocumentResponseStatus.SKIPPED,
        ]
        assert result.document_responses[1].error_index == 0

        plain = _prepare_chunk_result(0, {"status": {"insertedIds": ["x", "y"]}})
        assert plain.inserted_ids == ["x", "y"]
        assert plain.document_responses == []

        with pytest.raises(UnexpectedDataAPIResponseException):
            _prepare_chunk_result(0, {"data": {}})
