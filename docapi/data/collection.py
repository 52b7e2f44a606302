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
from typing import TYPE_CHECKING, Any, Callable, Generic, Iterable

from docapi.constants import (
    DOC,
    FilterType,
    ProjectionType,
    ReturnDocument,
    SortType,
    normalize_optional_projection,
)
from docapi.data.cursors.distinct_cursor import CollectionDistinctCursor
from docapi.data.cursors.find_cursor import CollectionFindCursor
from docapi.data.cursors.pagination import Page
from docapi.data.cursors.query_engine import _CollectionFindQueryEngine
from docapi.data.utils.batch_executor import BatchExecutor, BatchPlan, ChunkResult
from docapi.data.utils.distinct_extractors import _reduce_distinct_key_to_safe
from docapi.exceptions import (
    CollectionDeleteManyException,
    CollectionUpdateManyException,
    DataAPIResponseException,
    MultiCallTimeoutManager,
    TooManyDocumentsToCountException,
    UnexpectedDataAPIResponseException,
    _first_valid_timeout,
    _select_singlereq_timeout_gm,
    _TimeoutContext,
)
from docapi.results import (
    CollectionDeleteResult,
    CollectionInsertManyResult,
    CollectionInsertOneResult,
    CollectionUpdateResult,
    DocumentResponse,
    DocumentResponseStatus,
)
from docapi.settings.defaults import DEFAULT_DATA_API_AUTH_HEADER
from docapi.utils.api_commander import APICommander
from docapi.utils.api_options import APIOptions, FullAPIOptions
from docapi.utils.unset import _UNSET, UnsetType

if TYPE_CHECKING:
    from docapi.data.database import Database


logger = logging.getLogger(__name__)


def _prepare_update_info(statuses: list[dict[str, Any]]) -> dict[str, Any]:
    """
    Summarize the "status" of one or more update responses into an
    update_info dictionary. The upserted ids are read from the dedicated
    "upsertedId" status field.
    """
    matched_count = sum(status.get("matchedCount", 0) for status in statuses)
    modified_count = sum(status.get("modifiedCount", 0) for status in statuses)
    upserted_ids = [status["upsertedId"] for status in statuses if "upsertedId" in status]
    update_info: dict[str, Any] = {
        "n": matched_count + len(upserted_ids),
        "updatedExisting": modified_count > 0,
        "ok": 1.0,
        "nModified": modified_count,
    }
    if len(upserted_ids) == 1:
        update_info["upserted"] = upserted_ids[0]
    elif upserted_ids:
        update_info["upserteds"] = upserted_ids
    return update_info


def _prepare_chunk_result(
    sequence_index: int, response: dict[str, Any]
) -> ChunkResult:
    """
    Parse the response to an insertMany command. Per-document responses are
    used when present, otherwise the plain list of inserted ids.
    """
    status = response.get("status") or {}
    if "documentResponses" in status:
        document_responses = [
            DocumentResponse(
                id=doc_resp.get("_id"),
                status=DocumentResponseStatus.coerce(doc_resp["status"]),
                error_index=doc_resp.get("errorsIdx"),
            )
            for doc_resp in status["documentResponses"]
        ]
        inserted_ids = [
            doc_resp.id
            for doc_resp in document_responses
            if doc_resp.status == DocumentResponseStatus.OK
        ]
    elif "insertedIds" in status:
        document_responses = []
        inserted_ids = list(status["insertedIds"])
    else:
        raise UnexpectedDataAPIResponseException(
            text="Faulty response from insertMany API command.",
            raw_response=response,
        )
    return ChunkResult(
        sequence_index=sequence_index,
        inserted_ids=inserted_ids,
        document_responses=document_responses,
        raw_response=response,
    )


class Collection(Generic[DOC]):
    """
    A Data API collection, the object to read and write documents with.

    This class is not meant for direct instantiation: it is obtained through
    the `get_collection` method of a Database (or simply `database["name"]`),
    from which it inherits its API options (token, endpoint, timeouts...).

    Args:
        database: the Database this collection belongs to.
        name: the collection name.
        keyspace: the keyspace of the collection. If None, that of the
            database is used.
        api_options: the complete set of options for this collection.

    Example:
        >>> my_coll = database.get_collection("my_collection")
        >>> my_coll.insert_one({"seq": 1})
        CollectionInsertOneResult(inserted_id=..., raw_results=...)
    """

    def __init__(
        self,
        *,
        database: Database,
        name: str,
        keyspace: str | None,
        api_options: FullAPIOptions,
    ) -> None:
        self.api_options = api_options
        self._name = name
        _keyspace = keyspace if keyspace is not None else database.keyspace
        if _keyspace is None:
            raise ValueError("Attempted to create Collection with 'keyspace' unset.")
        self._database = database._copy(keyspace=_keyspace, api_options=api_options)
        self._commander_headers: dict[str, str | None] = {
            DEFAULT_DATA_API_AUTH_HEADER: self.api_options.token,
            **self.api_options.database_additional_headers,
        }
        self._api_commander = self._get_api_commander()

    def __repr__(self) -> str:
        return (
            f'{self.__class__.__name__}(name="{self.name}", '
            f'keyspace="{self.keyspace}", '
            f'database.api_endpoint="{self.database.api_endpoint}", '
            f"api_options={self.api_options})"
        )

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Collection):
            return (self._name, self._database, self.api_options) == (
                other._name,
                other._database,
                other.api_options,
            )
        return False

    def _get_api_commander(self) -> APICommander:
        url_options = self.api_options.data_api_url_options
        path_components = [
            comp.strip("/")
            for comp in (
                url_options.api_path,
                url_options.api_version,
                self._database.keyspace,
                self._name,
            )
            if comp is not None and comp.strip("/") != ""
        ]
        return APICommander(
            api_endpoint=self._database.api_endpoint,
            path=f"/{'/'.join(path_components)}",
            headers=self._commander_headers,
            callers=self.api_options.callers,
            redacted_header_names=self.api_options.redacted_header_names,
        )

    def _request(
        self,
        *,
        payload: dict[str, Any],
        timeout_context: _TimeoutContext,
        raise_api_errors: bool = True,
    ) -> dict[str, Any]:
        return self._api_commander.request(
            payload=payload,
            raise_api_errors=raise_api_errors,
            timeout_context=timeout_context,
        )

    def _single_request_context(
        self,
        *,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> _TimeoutContext:
        _request_timeout_ms, _rt_label = _select_singlereq_timeout_gm(
            timeout_options=self.api_options.timeout_options,
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        return _TimeoutContext(request_ms=_request_timeout_ms, label=_rt_label)

    def _multi_call_timeouts(
        self,
        *,
        general_method_timeout_ms: int | None,
        request_timeout_ms: int | None,
        timeout_ms: int | None,
    ) -> tuple[tuple[int, str | None], tuple[int, str | None]]:
        # ((overall ms, label), (per-request ms, label)), defaults from options
        timeout_options = self.api_options.timeout_options
        overall = _first_valid_timeout(
            (general_method_timeout_ms, "general_method_timeout_ms"),
            (timeout_ms, "timeout_ms"),
            (timeout_options.general_method_timeout_ms, "general_method_timeout_ms"),
        )
        per_request = _first_valid_timeout(
            (request_timeout_ms, "request_timeout_ms"),
            (timeout_options.request_timeout_ms, "request_timeout_ms"),
        )
        return overall, per_request

    def _copy(
        self,
        *,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Collection[DOC]:
        return Collection(
            database=self.database,
            name=self.name,
            keyspace=self.keyspace,
            api_options=self.api_options.with_override(api_options),
        )

    def with_options(
        self,
        *,
        token: str | None | UnsetType = _UNSET,
        api_options: APIOptions | UnsetType = _UNSET,
    ) -> Collection[DOC]:
        """
        Create a clone of this collection with some changed settings.

        Args:
            token: a new token for the clone.
            api_options: any additional options for the clone, as an APIOptions
                where only the settings to change are given. The `token`
                parameter, if given, takes precedence over the same setting here.

        Returns:
            a new Collection instance.
        """

        final_options = self.api_options.with_override(api_options).with_override(
            APIOptions(token=token)
        )
        return Collection(
            database=self.database,
            name=self.name,
            keyspace=self.keyspace,
            api_options=final_options,
        )

    @property
    def database(self) -> Database:
        """The Database this collection belongs to."""

        return self._database

    @property
    def keyspace(self) -> str:
        _keyspace = self.database.keyspace
        if _keyspace is None:
            raise RuntimeError("The collection's DB is set with keyspace=None")
        return _keyspace

    @property
    def name(self) -> str:
        return self._name

    @property
    def full_name(self) -> str:
        """The fully-qualified collection name, "keyspace.collection_name"."""

        return f"{self.keyspace}.{self.name}"

    def insert_one(
        self,
        document: DOC,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionInsertOneResult:
        """
        Insert a single document in the collection.

        Args:
            document: the document to insert. If it has no `_id`,
                the API generates one.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request. If not given, the collection defaults
                apply. (This method issues a single request, hence all timeout
                parameters are treated the same.)
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionInsertOneResult.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        logger.info(f"insertOne on '{self.name}'")
        io_response = self._request(
            payload={"insertOne": {"document": document}},
            timeout_context=timeout_context,
        )
        logger.info(f"finished insertOne on '{self.name}'")
        inserted_ids = (io_response.get("status") or {}).get("insertedIds")
        if not inserted_ids:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from insert_one API command.",
                raw_response=io_response,
            )
        return CollectionInsertOneResult(
            raw_results=[io_response],
            inserted_id=inserted_ids[0],
        )

    def insert_many(
        self,
        documents: Iterable[DOC],
        *,
        ordered: bool = False,
        chunk_size: int | None = None,
        concurrency: int | None = None,
        request_timeout_ms: int | None = None,
        general_method_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionInsertManyResult:
        """
        Insert a list of documents into the collection, split into chunks
        that are written with separate insertMany commands, possibly
        concurrently. This is not an atomic operation.

        Args:
            documents: the documents to insert (a non-empty iterable).
            ordered: if False (default), chunks run concurrently and the API
                may write the documents of a chunk in any order. If True,
                chunks run one after the other and the first failure stops the
                insertion.
            chunk_size: how many documents go in each API request. It cannot
                exceed the server maximum. Defaults to the collection setting.
            concurrency: the max number of requests in flight at a time.
                It cannot be more than one for ordered insertions. Defaults to
                1 if ordered, to the collection setting otherwise.
            request_timeout_ms: a timeout, in milliseconds, for each request.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                method call.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionInsertManyResult, whose ids and per-document responses
            follow the order of the input documents.

        Raises:
            ValueError: for invalid settings or an empty input, before
                any request is made.
            DataAPITimeoutException: if the whole insertion exceeds the
                general method timeout.
            DataAPIResponseException: (or any other error) as raised by the
                failed chunk coming first in the input order. Documents in other
                chunks may have been written nevertheless.

        Example:
            >>> my_coll.insert_many([{"seq": i} for i in range(120)], chunk_size=20)
            CollectionInsertManyResult(inserted_ids=[...] ... (120 total)], ...)
        """

        im_options = self.api_options.insert_many_options
        _documents = list(documents)
        _chunk_size = chunk_size if chunk_size is not None else im_options.chunk_size
        _concurrency: int
        if concurrency is not None:
            _concurrency = concurrency
        else:
            _concurrency = 1 if ordered else im_options.concurrency
        plan = BatchPlan.create(
            _documents,
            chunk_size=_chunk_size,
            concurrency=_concurrency,
            ordered=ordered,
            max_chunk_size=im_options.max_chunk_size,
        )
        (overall_ms, overall_label), (req_ms, req_label) = self._multi_call_timeouts(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        command_options = {"ordered": ordered, "returnDocumentResponses": True}

        def _run_chunk(
            sequence_index: int,
            chunk: list[DOC],
            timeout_context: _TimeoutContext,
        ) -> ChunkResult:
            logger.info(f"insertMany(chunk {sequence_index}) on '{self.name}'")
            chunk_response = self._request(
                payload={
                    "insertMany": {"documents": chunk, "options": command_options},
                },
                timeout_context=timeout_context,
            )
            logger.info(f"finished insertMany(chunk {sequence_index}) on '{self.name}'")
            return _prepare_chunk_result(sequence_index, chunk_response)

        executor: BatchExecutor[DOC] = BatchExecutor(
            _run_chunk,
            timeout_ms=overall_ms,
            timeout_label=overall_label,
            request_timeout_ms=req_ms,
            request_timeout_label=req_label,
        )
        logger.info(f"inserting {len(_documents)} documents in '{self.name}'")
        chunk_results = executor.execute(plan)
        logger.info(f"finished inserting {len(_documents)} documents in '{self.name}'")
        return CollectionInsertManyResult(
            raw_results=[c_res.raw_response for c_res in chunk_results],
            inserted_ids=[
                inserted_id
                for c_res in chunk_results
                for inserted_id in c_res.inserted_ids
            ],
            document_responses=[
                doc_resp
                for c_res in chunk_results
                for doc_resp in c_res.document_responses
            ],
        )

    def find(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        skip: int | None = None,
        limit: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        sort: SortType | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionFindCursor[DOC, DOC]:
        """
        Find documents in the collection matching a filter. No request is
        made by this method: the returned cursor fetches pages of results
        as it is consumed.

        Args:
            filter: a predicate expressed as a dictionary according to the
                Data API filter syntax, e.g. `{"price": {"$lt": 100}}`.
            projection: which fields to return, either as a list of field names
                or as a dictionary such as `{"a": True, "b": False}`.
            skip: how many documents to skip. It requires a sort criterion.
            limit: the max number of documents to return. Zero means no limit.
            include_similarity: whether to add a "$similarity" field to the
                documents of a vector search.
            include_sort_vector: whether to retrieve the query vector of a
                vector search (see the cursor's `get_sort_vector`).
            sort: the sort criterion, e.g. `{"price": SortMode.ASCENDING}`.
            request_timeout_ms: a timeout, in milliseconds, for each request
                the cursor issues.
            timeout_ms: an alias for `request_timeout_ms`.

        Returns:
            a CollectionFindCursor, in the NOT_STARTED state.

        Example:
            >>> for doc in my_coll.find({"seq": {"$gt": 1}}, limit=2):
            ...     print(doc)
            ...
            {'_id': '...', 'seq': 2}
            {'_id': '...', 'seq': 3}
        """

        _request_timeout_ms, _rt_label = _first_valid_timeout(
            (request_timeout_ms, "request_timeout_ms"),
            (timeout_ms, "timeout_ms"),
            (self.api_options.timeout_options.request_timeout_ms, "request_timeout_ms"),
        )
        return CollectionFindCursor(
            collection=self,
            request_timeout_ms=_request_timeout_ms,
            overall_timeout_ms=None,
            request_timeout_label=_rt_label,
            filter=filter,
            projection=projection,
            sort=sort,
            limit=limit,
            skip=skip,
            include_similarity=include_similarity,
            include_sort_vector=include_sort_vector,
        )

    def find_page(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        skip: int | None = None,
        limit: int | None = None,
        include_similarity: bool | None = None,
        include_sort_vector: bool | None = None,
        sort: SortType | None = None,
        page_state: str | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> Page[DOC]:
        """
        Fetch a single page of results of a find, for callers handling the
        pagination themselves: the `next_page_state` of the returned page,
        passed back as `page_state` with otherwise the same query, retrieves
        the following page.

        Args:
            filter, projection, skip, limit, include_similarity,
                include_sort_vector, sort: as for the `find` method.
            page_state: the page state of the desired page, or None for the
                first page.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a Page of documents.
        """

        engine: _CollectionFindQueryEngine[DOC] = _CollectionFindQueryEngine(
            collection=self,
            filter=filter,
            projection=projection,
            sort=sort,
            limit=limit,
            skip=skip,
            include_similarity=include_similarity,
            include_sort_vector=include_sort_vector,
        )
        return engine._fetch_page(
            page_state=page_state,
            timeout_context=self._single_request_context(
                general_method_timeout_ms=general_method_timeout_ms,
                request_timeout_ms=request_timeout_ms,
                timeout_ms=timeout_ms,
            ),
        )

    def find_one(
        self,
        filter: FilterType | None = None,
        *,
        projection: ProjectionType | None = None,
        include_similarity: bool | None = None,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> DOC | None:
        """
        Run a search returning the first document matching a filter,
        or None if there is none. Arguments are as for `find`.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        fo_payload = {
            "findOne": {
                k: v
                for k, v in {
                    "filter": filter,
                    "projection": normalize_optional_projection(projection),
                    "options": (
                        None
                        if include_similarity is None
                        else {"includeSimilarity": include_similarity}
                    ),
                    "sort": sort,
                }.items()
                if v is not None
            }
        }
        logger.info(f"findOne on '{self.name}'")
        fo_response = self._request(payload=fo_payload, timeout_context=timeout_context)
        logger.info(f"finished findOne on '{self.name}'")
        response_data = fo_response.get("data") or {}
        if "document" not in response_data:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from findOne API command.",
                raw_response=fo_response,
            )
        return response_data["document"]  # type: ignore[no-any-return]

    def distinct(
        self,
        key: str | Iterable[str | int],
        *,
        filter: FilterType | None = None,
        value_decoder: Callable[[Any], Any] | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDistinctCursor[Any]:
        """
        Get a cursor over the distinct values of a field among the documents
        matching a filter. The deduplication is done client-side, by running a
        find through all the matching documents, so this may require many
        requests on large collections.

        Args:
            key: the field path whose values are sought. It can be a
                dot-notation string (where "&" escapes dots and itself, as in
                "a&.b" for the literal field name "a.b"), or a list of path
                segments where strings are field names and integers list
                indices. Lists met along the path are unrolled, unless a
                numeric segment picks one of their items. Example: "food.1.name".
            filter: a filter selecting the documents to consider.
            value_decoder: an optional function applied to each distinct value
                before it is yielded.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                lifetime of the cursor. If not given there is no such timeout.
            request_timeout_ms: a timeout, in milliseconds, for each request.
                Defaults to the collection setting.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionDistinctCursor, in the NOT_STARTED state.

        Example:
            >>> my_coll.insert_many([{"tags": ["a", "b"]}, {"tags": ["b", "c"]}])
            CollectionInsertManyResult(...)
            >>> my_coll.distinct("tags").to_list()
            ['a', 'b', 'c']
        """

        safe_key = _reduce_distinct_key_to_safe(key)
        _overall_timeout_ms, _ot_label = _first_valid_timeout(
            (general_method_timeout_ms, "general_method_timeout_ms"),
            (timeout_ms, "timeout_ms"),
        )
        _request_timeout_ms, _rt_label = _first_valid_timeout(
            (request_timeout_ms, "request_timeout_ms"),
            (self.api_options.timeout_options.request_timeout_ms, "request_timeout_ms"),
        )
        source: CollectionFindCursor[dict[str, Any], dict[str, Any]] = (
            CollectionFindCursor(
                collection=self,  # type: ignore[arg-type]
                request_timeout_ms=_request_timeout_ms,
                overall_timeout_ms=_overall_timeout_ms,
                request_timeout_label=_rt_label,
                overall_timeout_label=_ot_label,
                filter=filter,
                projection={safe_key: True},
            )
        )
        logger.info(f"preparing distinct('{safe_key}') on '{self.name}'")
        return CollectionDistinctCursor(
            source=source,
            key=key,
            value_decoder=value_decoder,
        )

    def count_documents(
        self,
        filter: FilterType,
        *,
        upper_bound: int,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> int:
        """
        Count the documents matching a filter.

        Args:
            filter: a filter selecting the documents to count.
            upper_bound: a required ceiling on the result. If the count
                exceeds it, an exception is raised.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            the number of matching documents.

        Raises:
            TooManyDocumentsToCountException: if the count exceeds `upper_bound`
                or the server's own maximum.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        logger.info(f"countDocuments on '{self.name}'")
        cd_response = self._request(
            payload={"countDocuments": {"filter": filter}},
            timeout_context=timeout_context,
        )
        logger.info(f"finished countDocuments on '{self.name}'")
        cd_status = cd_response.get("status") or {}
        if "count" not in cd_status:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from countDocuments API command.",
                raw_response=cd_response,
            )
        count: int = cd_status["count"]
        if cd_status.get("moreData", False):
            raise TooManyDocumentsToCountException(
                text=f"Document count exceeds {count}, the maximum allowed by the server",
                server_max_count_exceeded=True,
            )
        if count > upper_bound:
            raise TooManyDocumentsToCountException(
                text="Document count exceeds required upper bound",
                server_max_count_exceeded=False,
            )
        return count

    def estimated_document_count(
        self,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> int:
        """
        A fast, approximate count of all the documents in the collection.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        logger.info(f"estimatedDocumentCount on '{self.name}'")
        ed_response = self._request(
            payload={"estimatedDocumentCount": {}},
            timeout_context=timeout_context,
        )
        logger.info(f"finished estimatedDocumentCount on '{self.name}'")
        ed_status = ed_response.get("status") or {}
        if "count" not in ed_status:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from estimatedDocumentCount API command.",
                raw_response=ed_response,
            )
        return ed_status["count"]  # type: ignore[no-any-return]

    def update_one(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        sort: SortType | None = None,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Update a single document matching a filter.

        Args:
            filter: a filter selecting the document to update.
            update: the update prescription, such as `{"$set": {"a": 1}}`.
            sort: which document to pick, if several match the filter.
            upsert: whether to insert a new document if none matches.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionUpdateResult. If a document was upserted, its `_id`
            is found as "upserted" in the update_info.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        uo_payload = {
            "updateOne": {
                k: v
                for k, v in {
                    "filter": filter,
                    "update": update,
                    "options": {"upsert": upsert},
                    "sort": sort,
                }.items()
                if v is not None
            }
        }
        logger.info(f"updateOne on '{self.name}'")
        uo_response = self._request(payload=uo_payload, timeout_context=timeout_context)
        logger.info(f"finished updateOne on '{self.name}'")
        if "status" not in uo_response:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from updateOne API command.",
                raw_response=uo_response,
            )
        return CollectionUpdateResult(
            raw_results=[uo_response],
            update_info=_prepare_update_info([uo_response["status"]]),
        )

    def update_many(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Update all documents matching a filter. The API processes large
        updates in pages, hence this method may issue several requests.

        Args:
            filter: a filter selecting the documents to update.
            update: the update prescription, such as `{"$inc": {"n": 1}}`.
            upsert: whether to insert a new document if none matches.
            general_method_timeout_ms: a timeout, in milliseconds, for the whole
                method call.
            request_timeout_ms: a timeout, in milliseconds, for each request.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionUpdateResult summing up all the pages.

        Raises:
            CollectionUpdateManyException: if a page fails after others have
                been updated already. It carries the partial result.
        """

        (overall_ms, overall_label), (req_ms, req_label) = self._multi_call_timeouts(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=overall_ms,
            timeout_label=overall_label,
        )
        um_responses: list[dict[str, Any]] = []
        um_statuses: list[dict[str, Any]] = []
        page_state: str | None = None
        logger.info(f"starting update_many on '{self.name}'")
        while True:
            um_options: dict[str, Any] = {"upsert": upsert}
            if page_state is not None:
                um_options["pageState"] = page_state
            um_payload = {
                "updateMany": {
                    "filter": filter,
                    "update": update,
                    "options": um_options,
                }
            }
            logger.info(f"updateMany on '{self.name}'")
            um_response = self._request(
                payload=um_payload,
                raise_api_errors=False,
                timeout_context=timeout_manager.remaining_timeout(
                    cap_time_ms=req_ms,
                    cap_timeout_label=req_label,
                ),
            )
            logger.info(f"finished updateMany on '{self.name}'")
            if um_response.get("errors"):
                raise CollectionUpdateManyException(
                    partial_result=CollectionUpdateResult(
                        raw_results=um_responses,
                        update_info=_prepare_update_info(um_statuses),
                    ),
                    cause=DataAPIResponseException.from_response(
                        command=um_payload,
                        raw_response=um_response,
                    ),
                )
            if "status" not in um_response:
                raise UnexpectedDataAPIResponseException(
                    text="Faulty response from update_many API command.",
                    raw_response=um_response,
                )
            um_responses.append(um_response)
            um_statuses.append(um_response["status"])
            page_state = um_response["status"].get("nextPageState")
            if page_state is None:
                break
        logger.info(f"finished update_many on '{self.name}'")
        return CollectionUpdateResult(
            raw_results=um_responses,
            update_info=_prepare_update_info(um_statuses),
        )

    def replace_one(
        self,
        filter: FilterType,
        replacement: DOC,
        *,
        sort: SortType | None = None,
        upsert: bool = False,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionUpdateResult:
        """
        Replace a single document matching a filter with a new one.

        Args:
            filter: a filter selecting the document to replace.
            replacement: the new document to write in place of the match.
            sort: which document to pick, if several match the filter.
            upsert: whether to insert `replacement` if nothing matches.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            a CollectionUpdateResult. If a document was upserted, its `_id`
            is found as "upserted" in the update_info.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        fo_payload = {
            "findOneAndReplace": {
                k: v
                for k, v in {
                    "filter": filter,
                    "replacement": replacement,
                    "options": {"upsert": upsert},
                    "sort": sort,
                }.items()
                if v is not None
            }
        }
        logger.info(f"findOneAndReplace on '{self.name}'")
        fo_response = self._request(payload=fo_payload, timeout_context=timeout_context)
        logger.info(f"finished findOneAndReplace on '{self.name}'")
        if "document" not in (fo_response.get("data") or {}):
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from replace_one API command.",
                raw_response=fo_response,
            )
        return CollectionUpdateResult(
            raw_results=[fo_response],
            update_info=_prepare_update_info([fo_response.get("status") or {}]),
        )

    def find_one_and_replace(
        self,
        filter: FilterType,
        replacement: DOC,
        *,
        projection: ProjectionType | None = None,
        sort: SortType | None = None,
        upsert: bool = False,
        return_document: str = ReturnDocument.BEFORE,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> DOC | None:
        """
        Find a document and replace it entirely with a new one, optionally
        inserting the new one if nothing matches.

        Args:
            filter: a filter selecting the document to replace.
            replacement: the new document.
            projection: which fields of the returned document to include.
            sort: which document to pick, if several match the filter.
            upsert: whether to insert `replacement` if nothing matches.
            return_document: `ReturnDocument.BEFORE` (the default) to get the
                document as found, `ReturnDocument.AFTER` to get the new one.
            general_method_timeout_ms: a timeout, in milliseconds, for the
                underlying API request.
            request_timeout_ms: an alias for `general_method_timeout_ms`.
            timeout_ms: an alias for `general_method_timeout_ms`.

        Returns:
            the document before or after the replacement, or None if
            there was no match (or, with "before", if a document was upserted).

        Example:
            >>> my_coll.find_one_and_replace(
            ...     {"_id": "rule1"},
            ...     {"text": "F=ma"},
            ...     return_document=ReturnDocument.AFTER,
            ... )
            {'_id': 'rule1', 'text': 'F=ma'}
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        fo_payload = {
            "findOneAndReplace": {
                k: v
                for k, v in {
                    "filter": filter,
                    "projection": normalize_optional_projection(projection),
                    "replacement": replacement,
                    "options": {"returnDocument": return_document, "upsert": upsert},
                    "sort": sort,
                }.items()
                if v is not None
            }
        }
        logger.info(f"findOneAndReplace on '{self.name}'")
        fo_response = self._request(payload=fo_payload, timeout_context=timeout_context)
        logger.info(f"finished findOneAndReplace on '{self.name}'")
        response_data = fo_response.get("data") or {}
        if "document" not in response_data:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from find_one_and_replace API command.",
                raw_response=fo_response,
            )
        return response_data["document"]  # type: ignore[no-any-return]

    def find_one_and_update(
        self,
        filter: FilterType,
        update: dict[str, Any],
        *,
        projection: ProjectionType | None = None,
        sort: SortType | None = None,
        upsert: bool = False,
        return_document: str = ReturnDocument.BEFORE,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> DOC | None:
        """
        Find a document and update it as prescribed, optionally upserting.
        Arguments are as for `find_one_and_replace`, with `update` being the
        update prescription (e.g. `{"$inc": {"counter": 1}}`).

        Returns:
            the document before or after the update, or None if there was
            no match (or, with "before", if a document was upserted).
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        fo_payload = {
            "findOneAndUpdate": {
                k: v
                for k, v in {
                    "filter": filter,
                    "update": update,
                    "options": {"returnDocument": return_document, "upsert": upsert},
                    "sort": sort,
                    "projection": normalize_optional_projection(projection),
                }.items()
                if v is not None
            }
        }
        logger.info(f"findOneAndUpdate on '{self.name}'")
        fo_response = self._request(payload=fo_payload, timeout_context=timeout_context)
        logger.info(f"finished findOneAndUpdate on '{self.name}'")
        response_data = fo_response.get("data") or {}
        if "document" not in response_data:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from find_one_and_update API command.",
                raw_response=fo_response,
            )
        return response_data["document"]  # type: ignore[no-any-return]

    def find_one_and_delete(
        self,
        filter: FilterType,
        *,
        projection: ProjectionType | None = None,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> DOC | None:
        """
        Find a document matching a filter and delete it, returning it.

        Returns:
            the deleted document (or a projection of it), or None if
            nothing matched.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        fo_payload = {
            "findOneAndDelete": {
                k: v
                for k, v in {
                    "filter": filter,
                    "sort": sort,
                    "projection": normalize_optional_projection(projection),
                }.items()
                if v is not None
            }
        }
        logger.info(f"findOneAndDelete on '{self.name}'")
        fo_response = self._request(payload=fo_payload, timeout_context=timeout_context)
        logger.info(f"finished findOneAndDelete on '{self.name}'")
        response_data = fo_response.get("data") or {}
        if "document" in response_data:
            return response_data["document"]  # type: ignore[no-any-return]
        # a non-match comes back with no document and a zero count
        if (fo_response.get("status") or {}).get("deletedCount") == 0:
            return None
        raise UnexpectedDataAPIResponseException(
            text="Faulty response from find_one_and_delete API command.",
            raw_response=fo_response,
        )

    def delete_one(
        self,
        filter: FilterType,
        *,
        sort: SortType | None = None,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDeleteResult:
        """
        Delete one document matching a filter (picked according to `sort`
        if several match).

        Returns:
            a CollectionDeleteResult, with a `deleted_count` of 0 or 1.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        do_payload = {
            "deleteOne": {
                k: v for k, v in {"filter": filter, "sort": sort}.items() if v is not None
            }
        }
        logger.info(f"deleteOne on '{self.name}'")
        do_response = self._request(payload=do_payload, timeout_context=timeout_context)
        logger.info(f"finished deleteOne on '{self.name}'")
        do_status = do_response.get("status") or {}
        if "deletedCount" not in do_status:
            raise UnexpectedDataAPIResponseException(
                text="Faulty response from delete_one API command.",
                raw_response=do_response,
            )
        return CollectionDeleteResult(
            deleted_count=do_status["deletedCount"],
            raw_results=[do_response],
        )

    def delete_many(
        self,
        filter: FilterType,
        *,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> CollectionDeleteResult:
        """
        Delete all documents matching a filter. Pass `{}` to empty the whole
        collection. The API deletes in batches, hence this method may issue
        several requests, until the API reports there is nothing more to delete.

        Raises:
            CollectionDeleteManyException: if a request fails after some
                documents were deleted already. It carries the partial result.
        """

        (overall_ms, overall_label), (req_ms, req_label) = self._multi_call_timeouts(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=overall_ms,
            timeout_label=overall_label,
        )
        dm_payload = {"deleteMany": {"filter": filter}}
        dm_responses: list[dict[str, Any]] = []
        deleted_count = 0
        more_data = True
        logger.info(f"starting delete_many on '{self.name}'")
        while more_data:
            logger.info(f"deleteMany on '{self.name}'")
            dm_response = self._request(
                payload=dm_payload,
                raise_api_errors=False,
                timeout_context=timeout_manager.remaining_timeout(
                    cap_time_ms=req_ms,
                    cap_timeout_label=req_label,
                ),
            )
            logger.info(f"finished deleteMany on '{self.name}'")
            if dm_response.get("errors"):
                raise CollectionDeleteManyException(
                    partial_result=CollectionDeleteResult(
                        deleted_count=deleted_count,
                        raw_results=dm_responses,
                    ),
                    cause=DataAPIResponseException.from_response(
                        command=dm_payload,
                        raw_response=dm_response,
                    ),
                )
            dm_status = dm_response.get("status") or {}
            if "deletedCount" not in dm_status:
                raise UnexpectedDataAPIResponseException(
                    text="Faulty response from delete_many API command.",
                    raw_response=dm_response,
                )
            dm_responses.append(dm_response)
            deleted_count += dm_status["deletedCount"]
            more_data = bool(dm_status.get("moreData", False))
        logger.info(f"finished delete_many on '{self.name}'")
        return CollectionDeleteResult(
            deleted_count=deleted_count,
            raw_results=dm_responses,
        )

    def command(
        self,
        body: dict[str, Any],
        *,
        raise_api_errors: bool = True,
        general_method_timeout_ms: int | None = None,
        request_timeout_ms: int | None = None,
        timeout_ms: int | None = None,
    ) -> dict[str, Any]:
        """
        Send a raw command to the collection endpoint of the Data API and
        return the response as it is.

        Args:
            body: the command payload, e.g. `{"countDocuments": {}}`.
            raise_api_errors: if True (default), a response with "errors"
                raises a DataAPIResponseException.

        Returns:
            the response of the API, as a dictionary.
        """

        timeout_context = self._single_request_context(
            general_method_timeout_ms=general_method_timeout_ms,
            request_timeout_ms=request_timeout_ms,
            timeout_ms=timeout_ms,
        )
        _cmd_desc = ",".join(sorted(body.keys())) if body else "(none)"
        logger.info(f"command={_cmd_desc} on '{self.name}'")
        command_result = self._request(
            payload=body,
            raise_api_errors=raise_api_errors,
            timeout_context=timeout_context,
        )
        logger.info(f"finished command={_cmd_desc} on '{self.name}'")
        return command_result
