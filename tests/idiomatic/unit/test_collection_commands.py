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

import json
from typing import Any

import pytest
from pytest_httpserver import HTTPServer
from werkzeug import Request, Response

from docapi import Collection
from docapi.constants import ReturnDocument
from docapi.cursors import CursorState
from docapi.exceptions import (
    CollectionDeleteManyException,
    CollectionUpdateManyException,
    DataAPIResponseException,
    TooManyDocumentsToCountException,
    UnexpectedDataAPIResponseException,
)


def _json_response(body: dict[str, Any]) -> Response:
    return Response(json.dumps(body), content_type="application/json")


def paged_find_handler(request: Request) -> Response:
    """Serve documents 0..24 in pages of ten, with page states "p1", "p2"."""
    find_options = request.get_json()["find"].get("options") or {}
    page_index = int((find_options.get("pageState") or "p0")[1:])
    documents = [
        {"_id": i, "group": i % 3, "tags": [f"t{i % 4}"]}
        for i in range(page_index * 10, min(25, page_index * 10 + 10))
    ]
    next_page_state = f"p{page_index + 1}" if page_index < 2 else None
    return _json_response(
        {"data": {"documents": documents, "nextPageState": next_page_state}}
    )


def _logged_payloads(httpserver: HTTPServer) -> list[dict[str, Any]]:
    return [json.loads(req.get_data()) for req, _ in httpserver.log]


class TestCollectionReads:
    @pytest.mark.describe("test of find across pages")
    def test_find_pages(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_request(
            collection_path, method="POST"
        ).respond_with_handler(paged_find_handler)

        cursor = mock_collection.find({"group": {"$ne": None}}, projection=["group"])
        assert len(httpserver.log) == 0
        assert cursor.state == CursorState.NOT_STARTED

        ids = [doc["_id"] for doc in cursor]
        assert ids == list(range(25))
        assert cursor.state == CursorState.EXHAUSTED
        payloads = _logged_payloads(httpserver)
        assert len(payloads) == 3
        assert payloads[0] == {
            "find": {
                "filter": {"group": {"$ne": None}},
                "projection": {"group": True},
            }
        }
        assert [pl["find"].get("options") for pl in payloads[1:]] == [
            {"pageState": "p1"},
            {"pageState": "p2"},
        ]

    @pytest.mark.describe("test of find with options and mapping")
    def test_find_options_map(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_request(
            collection_path, method="POST"
        ).respond_with_handler(paged_find_handler)

        cursor = mock_collection.find(
            {}, sort={"_id": 1}, skip=2, limit=7, include_similarity=False
        ).map(lambda doc: doc["_id"])
        # the mock server ignores limit and skip
        assert cursor.to_list() == list(range(25))
        first_options = _logged_payloads(httpserver)[0]["find"]["options"]
        assert first_options == {"limit": 7, "skip": 2, "includeSimilarity": False}

    @pytest.mark.describe("test of find_page")
    def test_find_page(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_request(
            collection_path, method="POST"
        ).respond_with_handler(paged_find_handler)

        page1 = mock_collection.find_page({})
        assert [doc["_id"] for doc in page1.items] == list(range(10))
        assert page1.next_page_state == "p1"
        page3 = mock_collection.find_page({}, page_state="p2")
        assert [doc["_id"] for doc in page3.items] == list(range(20, 25))
        assert page3.next_page_state is None
        assert len(httpserver.log) == 2

    @pytest.mark.describe("test of distinct over several pages")
    def test_distinct(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_request(
            collection_path, method="POST"
        ).respond_with_handler(paged_find_handler)

        assert sorted(mock_collection.distinct("group", filter={})) == [0, 1, 2]
        assert mock_collection.distinct("tags").to_list() == ["t0", "t1", "t2", "t3"]
        decoded = mock_collection.distinct("group", value_decoder=lambda v: v * 10)
        assert sorted(decoded) == [0, 10, 20]
        payloads = _logged_payloads(httpserver)
        assert payloads[0]["find"] == {"filter": {}, "projection": {"group": True}}
        assert payloads[3]["find"] == {"projection": {"tags": True}}

    @pytest.mark.describe("test of find_one")
    def test_find_one(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={
                "findOne": {
                    "filter": {"a": 1},
                    "projection": {"a": True},
                    "options": {"includeSimilarity": True},
                }
            },
        ).respond_with_json({"data": {"document": {"_id": "x", "a": 1}}})
        doc = mock_collection.find_one(
            {"a": 1}, projection={"a": True}, include_similarity=True
        )
        assert doc == {"_id": "x", "a": 1}

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"data": {"document": None}})
        assert mock_collection.find_one({"a": 2}) is None

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"data": {}})
        with pytest.raises(UnexpectedDataAPIResponseException):
            mock_collection.find_one({})

    @pytest.mark.describe("test of count_documents and estimated_document_count")
    def test_counts(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={"countDocuments": {"filter": {"a": 1}}},
        ).respond_with_json({"status": {"count": 12}})
        assert mock_collection.count_documents({"a": 1}, upper_bound=100) == 12

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {"count": 12}})
        with pytest.raises(TooManyDocumentsToCountException) as exc:
            mock_collection.count_documents({}, upper_bound=10)
        assert not exc.value.server_max_count_exceeded

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {"count": 1000, "moreData": True}})
        with pytest.raises(TooManyDocumentsToCountException) as exc:
            mock_collection.count_documents({}, upper_bound=5000)
        assert exc.value.server_max_count_exceeded

        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={"estimatedDocumentCount": {}},
        ).respond_with_json({"status": {"count": 4321}})
        assert mock_collection.estimated_document_count() == 4321


class TestCollectionWrites:
    @pytest.mark.describe("test of insert_one")
    def test_insert_one(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={"insertOne": {"document": {"a": 1}}},
        ).respond_with_json({"status": {"insertedIds": ["new_id"]}})
        result = mock_collection.insert_one({"a": 1})
        assert result.inserted_id == "new_id"
        assert result.raw_results == [{"status": {"insertedIds": ["new_id"]}}]

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json(
            {"errors": [{"errorCode": "DOCUMENT_ALREADY_EXISTS", "message": "m"}]}
        )
        with pytest.raises(DataAPIResponseException):
            mock_collection.insert_one({"_id": "new_id"})

    @pytest.mark.describe("test of update_one with upsert")
    def test_update_one(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={
                "updateOne": {
                    "filter": {"a": 1},
                    "update": {"$set": {"b": 2}},
                    "options": {"upsert": True},
                }
            },
        ).respond_with_json(
            {"status": {"matchedCount": 0, "modifiedCount": 0, "upsertedId": "up"}}
        )
        result = mock_collection.update_one({"a": 1}, {"$set": {"b": 2}}, upsert=True)
        assert result.update_info == {
            "n": 1,
            "updatedExisting": False,
            "ok": 1.0,
            "nModified": 0,
            "upserted": "up",
        }

    @pytest.mark.describe("test of update_many through pages")
    def test_update_many(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        def _handler(request: Request) -> Response:
            um_options = request.get_json()["updateMany"]["options"]
            if "pageState" not in um_options:
                return _json_response(
                    {
                        "status": {
                            "matchedCount": 20,
                            "modifiedCount": 20,
                            "nextPageState": "next",
                        }
                    }
                )
            return _json_response({"status": {"matchedCount": 5, "modifiedCount": 4}})

        httpserver.expect_request(
            collection_path, method="POST"
        ).respond_with_handler(_handler)
        result = mock_collection.update_many({}, {"$inc": {"n": 1}})
        assert result.update_info == {
            "n": 25,
            "updatedExisting": True,
            "ok": 1.0,
            "nModified": 24,
        }
        assert len(result.raw_results) == 2
        payloads = _logged_payloads(httpserver)
        assert payloads[1]["updateMany"]["options"] == {
            "upsert": False,
            "pageState": "next",
        }

    @pytest.mark.describe("test of update_many failing midway")
    def test_update_many_failure(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_ordered_request(
            collection_path, method="POST"
        ).respond_with_json(
            {
                "status": {
                    "matchedCount": 20,
                    "modifiedCount": 20,
                    "nextPageState": "next",
                }
            }
        )
        httpserver.expect_ordered_request(
            collection_path, method="POST"
        ).respond_with_json({"errors": [{"errorCode": "E", "message": "broken"}]})
        with pytest.raises(CollectionUpdateManyException) as exc:
            mock_collection.update_many({}, {"$inc": {"n": 1}})
        assert exc.value.partial_result.update_info["nModified"] == 20
        assert isinstance(exc.value.cause, DataAPIResponseException)
        assert "broken" in str(exc.value)

    @pytest.mark.describe("test of delete_one and delete_many")
    def test_deletes(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_ordered_request(
            collection_path,
            method="POST",
            json={"deleteOne": {"filter": {"a": 1}, "sort": {"b": -1}}},
        ).respond_with_json({"status": {"deletedCount": 1}})
        httpserver.expect_ordered_request(
            collection_path,
            method="POST",
            json={"deleteMany": {"filter": {}}},
        ).respond_with_json({"status": {"deletedCount": 20, "moreData": True}})
        httpserver.expect_ordered_request(
            collection_path,
            method="POST",
            json={"deleteMany": {"filter": {}}},
        ).respond_with_json({"status": {"deletedCount": 3}})

        assert mock_collection.delete_one({"a": 1}, sort={"b": -1}).deleted_count == 1
        dm_result = mock_collection.delete_many({})
        assert dm_result.deleted_count == 23
        assert len(dm_result.raw_results) == 2

    @pytest.mark.describe("test of delete_many failing midway")
    def test_delete_many_failure(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_ordered_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {"deletedCount": 20, "moreData": True}})
        httpserver.expect_ordered_request(
            collection_path, method="POST"
        ).respond_with_json({"errors": [{"errorCode": "E", "message": "broken"}]})
        with pytest.raises(CollectionDeleteManyException) as exc:
            mock_collection.delete_many({})
        assert exc.value.partial_result.deleted_count == 20

    @pytest.mark.describe("test of the collection command method")
    def test_command(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={"countDocuments": {}},
        ).respond_with_json({"status": {"count": 3}})
        assert mock_collection.command({"countDocuments": {}}) == {
            "status": {"count": 3}
        }

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"errors": [{"message": "nope"}]})
        response = mock_collection.command({"bogus": {}}, raise_api_errors=False)
        assert response["errors"] == [{"message": "nope"}]


class TestCollectionFindAndModify:
    @pytest.mark.describe("test of replace_one")
    def test_replace_one(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_ordered_request(
            collection_path,
            method="POST",
            json={
                "findOneAndReplace": {
                    "filter": {"a": 1},
                    "replacement": {"a": 2},
                    "options": {"upsert": False},
                }
            },
        ).respond_with_json(
            {
                "data": {"document": {"_id": "x", "a": 1}},
                "status": {"matchedCount": 1, "modifiedCount": 1},
            }
        )
        httpserver.expect_ordered_request(
            collection_path,
            method="POST",
            json={
                "findOneAndReplace": {
                    "filter": {"a": 9},
                    "replacement": {"a": 3},
                    "options": {"upsert": True},
                    "sort": {"b": 1},
                }
            },
        ).respond_with_json(
            {
                "data": {"document": None},
                "status": {"matchedCount": 0, "modifiedCount": 0, "upsertedId": "up"},
            }
        )

        result = mock_collection.replace_one({"a": 1}, {"a": 2})
        assert result.update_info == {
            "n": 1,
            "updatedExisting": True,
            "ok": 1.0,
            "nModified": 1,
        }
        upserted = mock_collection.replace_one(
            {"a": 9}, {"a": 3}, sort={"b": 1}, upsert=True
        )
        assert upserted.update_info["upserted"] == "up"
        assert upserted.update_info["n"] == 1

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {"matchedCount": 0}})
        with pytest.raises(UnexpectedDataAPIResponseException):
            mock_collection.replace_one({}, {"a": 1})

    @pytest.mark.describe("test of find_one_and_replace")
    def test_find_one_and_replace(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={
                "findOneAndReplace": {
                    "filter": {"_id": "rule1"},
                    "projection": {"text": True},
                    "replacement": {"text": "F=ma"},
                    "options": {"returnDocument": "after", "upsert": False},
                }
            },
        ).respond_with_json(
            {"data": {"document": {"_id": "rule1", "text": "F=ma"}}, "status": {}}
        )
        document = mock_collection.find_one_and_replace(
            {"_id": "rule1"},
            {"text": "F=ma"},
            projection=["text"],
            return_document=ReturnDocument.AFTER,
        )
        assert document == {"_id": "rule1", "text": "F=ma"}

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"data": {"document": None}, "status": {}})
        assert mock_collection.find_one_and_replace({"_id": "no"}, {"a": 1}) is None

    @pytest.mark.describe("test of find_one_and_update")
    def test_find_one_and_update(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_oneshot_request(
            collection_path,
            method="POST",
            json={
                "findOneAndUpdate": {
                    "filter": {"name": "Johnny"},
                    "update": {"$inc": {"rank": 1}},
                    "options": {"returnDocument": "before", "upsert": True},
                    "sort": {"rank": -1},
                }
            },
        ).respond_with_json(
            {"data": {"document": {"_id": "j", "name": "Johnny", "rank": 0}}}
        )
        document = mock_collection.find_one_and_update(
            {"name": "Johnny"},
            {"$inc": {"rank": 1}},
            sort={"rank": -1},
            upsert=True,
        )
        assert document == {"_id": "j", "name": "Johnny", "rank": 0}

        httpserver.expect_oneshot_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {"matchedCount": 0}})
        with pytest.raises(UnexpectedDataAPIResponseException):
            mock_collection.find_one_and_update({}, {"$set": {"a": 1}})

    @pytest.mark.describe("test of find_one_and_delete")
    def test_find_one_and_delete(
        self,
        httpserver: HTTPServer,
        mock_collection: Collection[dict[str, Any]],
        collection_path: str,
    ) -> None:
        httpserver.expect_ordered_request(
            collection_path,
            method="POST",
            json={
                "findOneAndDelete": {
                    "filter": {"a": 1},
                    "projection": {"a": True},
                }
            },
        ).respond_with_json(
            {"data": {"document": {"_id": "x", "a": 1}}, "status": {"deletedCount": 1}}
        )
        httpserver.expect_ordered_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {"deletedCount": 0}})
        httpserver.expect_ordered_request(
            collection_path, method="POST"
        ).respond_with_json({"status": {}})

        assert mock_collection.find_one_and_delete(
            {"a": 1}, projection={"a": True}
        ) == {"_id": "x", "a": 1}
        assert mock_collection.find_one_and_delete({"a": 2}) is None
        with pytest.raises(UnexpectedDataAPIResponseException):
            mock_collection.find_one_and_delete({"a": 3})
