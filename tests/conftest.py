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

"""
Main conftest for shared fixtures.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any, Callable

import pytest
from blockbuster import BlockBuster, blockbuster_ctx
from pytest_httpserver import HTTPServer

from docapi import Collection, Database
from docapi.exceptions import _TimeoutContext
from docapi.utils.api_options import defaultAPIOptions

KEYSPACE = "keyspace"
COLLECTION_NAME = "collection"
COLLECTION_PATH = f"/v1/{KEYSPACE}/{COLLECTION_NAME}"


@pytest.fixture(autouse=True)
def blockbuster() -> Iterator[BlockBuster]:
    with blockbuster_ctx("docapi") as bb:
        bb.functions["os.stat"].can_block_in("httpx/_client.py", "_init_transport")
        yield bb


class FakeFindCommander:
    """
    Serves the pages of a find from memory. Page states are the
    string form of the page numbers ("1", "2", ...).
    """

    def __init__(
        self,
        pages: list[list[Any]],
        sort_vector: list[float] | None = None,
    ) -> None:
        self.pages = pages
        self.sort_vector = sort_vector
        self.payloads: list[dict[str, Any]] = []

    def request(
        self,
        *,
        payload: dict[str, Any],
        timeout_context: _TimeoutContext,
        raise_api_errors: bool = True,
    ) -> dict[str, Any]:
        self.payloads.append(payload)
        find_options = payload["find"].get("options") or {}
        page_number = int(find_options.get("pageState") or 0)
        next_page_state = (
            str(page_number + 1) if page_number + 1 < len(self.pages) else None
        )
        response: dict[str, Any] = {
            "data": {
                "documents": self.pages[page_number],
                "nextPageState": next_page_state,
            },
        }
        if self.sort_vector is not None:
            response["status"] = {"sortVector": self.sort_vector}
        return response


class FakeCollection:
    """Just enough of a Collection for cursors to run on."""

    def __init__(self, commander: Any, name: str = "fake_coll") -> None:
        self.name = name
        self._api_commander = commander


@pytest.fixture
def fake_collection_factory() -> Callable[..., FakeCollection]:
    def _factory(
        pages: list[list[Any]],
        sort_vector: list[float] | None = None,
    ) -> FakeCollection:
        return FakeCollection(FakeFindCommander(pages, sort_vector=sort_vector))

    return _factory


@pytest.fixture
def mock_collection(httpserver: HTTPServer) -> Collection[dict[str, Any]]:
    base_endpoint = httpserver.url_for("/")
    api_options = defaultAPIOptions(environment="other")
    return Database(
        api_endpoint=base_endpoint,
        keyspace=KEYSPACE,
        api_options=api_options,
    ).get_collection(COLLECTION_NAME)


@pytest.fixture
def collection_path() -> str:
    return COLLECTION_PATH
