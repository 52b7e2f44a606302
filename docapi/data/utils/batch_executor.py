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
from concurrent.futures import ALL_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Sequence, TypeVar

from docapi.exceptions import MultiCallTimeoutManager, _TimeoutContext
from docapi.results import DocumentResponse

logger = logging.getLogger(__name__)

ITEM = TypeVar("ITEM")


@dataclass(frozen=True)
class ChunkResult:
    """
    What one chunk of a batch produced.

    Attributes:
        sequence_index: the (zero-based) position of the chunk in the plan.
        inserted_ids: the ids of the documents written by this chunk.
        document_responses: the per-document reports, if any.
        raw_response: the response of the command that ran the chunk.
    """

    sequence_index: int
    inserted_ids: list[Any]
    document_responses: list[DocumentResponse] = field(default_factory=list)
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class BatchPlan(Generic[ITEM]):
    """
    The split of a list of items into contiguous chunks, along with how the
    chunks are to be run. Use `BatchPlan.create` to get a validated plan.

    Attributes:
        chunks: (sequence_index, chunk) pairs covering the whole input in order.
        chunk_size: the number of items per chunk (the last one may be shorter).
        concurrency: the max number of chunks running at the same time.
        ordered: whether chunks run strictly in sequence, stopping at the
            first failure.
        max_chunk_size: the largest chunk size allowed.
    """

    chunks: tuple[tuple[int, list[ITEM]], ...]
    chunk_size: int
    concurrency: int
    ordered: bool
    max_chunk_size: int

    @staticmethod
    def create(
        items: Sequence[ITEM],
        *,
        chunk_size: int,
        concurrency: int,
        ordered: bool,
        max_chunk_size: int,
    ) -> BatchPlan[ITEM]:
        """
        Validate the settings and split the items into chunks.

        Raises:
            ValueError: for an empty input, a chunk size outside of
                [1, max_chunk_size], a concurrency below 1, or an ordered
                plan with a concurrency above 1.
        """

        if not items:
            raise ValueError("Cannot run a batch on an empty list of items.")
        if chunk_size < 1:
            raise ValueError(f"Chunk size must be a positive integer ({chunk_size}).")
        if chunk_size > max_chunk_size:
            raise ValueError(
                f"Chunk size {chunk_size} exceeds the maximum allowed "
                f"({max_chunk_size})."
            )
        if concurrency < 1:
            raise ValueError(
                f"Concurrency must be a positive integer ({concurrency})."
            )
        if ordered and concurrency > 1:
            raise ValueError("Cannot run ordered insertions with concurrency > 1.")
        chunks = tuple(
            (chunk_i, list(items[start : start + chunk_size]))
            for chunk_i, start in enumerate(range(0, len(items), chunk_size))
        )
        return BatchPlan(
            chunks=chunks,
            chunk_size=chunk_size,
            concurrency=concurrency,
            ordered=ordered,
            max_chunk_size=max_chunk_size,
        )

    @property
    def num_chunks(self) -> int:
        return len(self.chunks)


def _to_wait_seconds(remaining_ms: int | None) -> float | None:
    if remaining_ms is None:
        return None
    return max(remaining_ms, 0) / 1000.0


class BatchExecutor(Generic[ITEM]):
    """
    Runs the chunks of a `BatchPlan` on a pool of worker threads and collects
    their results in plan order.

    The whole execution is bounded by an overall timeout; each chunk is
    additionally bounded by the per-request timeout (capped by the time left).
    Any failure makes the whole execution fail: no partial results are
    returned, even though some chunks may have been written already.

    Args:
        chunk_runner: the function running one chunk (in a worker thread).
        timeout_ms: the overall timeout in milliseconds. Zero or None for none.
        timeout_label: the name of the setting `timeout_ms` comes from.
        request_timeout_ms: the timeout for each chunk's request.
        request_timeout_label: the name of the setting `request_timeout_ms`
            comes from.
    """

    def __init__(
        self,
        chunk_runner: Callable[[int, list[ITEM], _TimeoutContext], ChunkResult],
        *,
        timeout_ms: int | None,
        timeout_label: str | None = None,
        request_timeout_ms: int | None = None,
        request_timeout_label: str | None = None,
    ) -> None:
        self.chunk_runner = chunk_runner
        self.timeout_ms = timeout_ms
        self.timeout_label = timeout_label
        self.request_timeout_ms = request_timeout_ms
        self.request_timeout_label = request_timeout_label

    def _run_chunk(
        self,
        sequence_index: int,
        chunk: list[ITEM],
        timeout_manager: MultiCallTimeoutManager,
    ) -> ChunkResult:
        timeout_context = timeout_manager.remaining_timeout(
            cap_time_ms=self.request_timeout_ms,
            cap_timeout_label=self.request_timeout_label,
        )
        return self.chunk_runner(sequence_index, chunk, timeout_context)

    def execute(self, plan: BatchPlan[ITEM]) -> list[ChunkResult]:
        """
        Run all chunks of the plan, blocking until they complete.

        Returns:
            the ChunkResult of every chunk, sorted by sequence index.

        Raises:
            DataAPITimeoutException: if the overall timeout elapses first.
            Exception: the error raised by the failed chunk with the lowest
                sequence index, as it is (ordered plans stop at the first).
            KeyboardInterrupt: if the wait is interrupted, after cancelling
                the chunks not yet started.
        """

        timeout_manager = MultiCallTimeoutManager(
            overall_timeout_ms=self.timeout_ms,
            timeout_label=self.timeout_label,
        )
        logger.info(
            f"running batch of {plan.num_chunks} chunks "
            f"(concurrency={plan.concurrency}, ordered={plan.ordered})"
        )
        executor = ThreadPoolExecutor(
            max_workers=1 if plan.ordered else plan.concurrency,
            thread_name_prefix="docapi-batch",
        )
        completed = False
        try:
            if plan.ordered:
                results = self._execute_in_sequence(plan, executor, timeout_manager)
            else:
                results = self._execute_concurrently(plan, executor, timeout_manager)
            completed = True
        except KeyboardInterrupt:
            logger.warning("batch execution interrupted, cancelling pending chunks")
            raise
        finally:
            # when abandoning, in-flight chunks are left to finish on their own
            executor.shutdown(wait=completed, cancel_futures=not completed)
        logger.info(f"finished running batch of {plan.num_chunks} chunks")
        return results

    def _execute_in_sequence(
        self,
        plan: BatchPlan[ITEM],
        executor: ThreadPoolExecutor,
        timeout_manager: MultiCallTimeoutManager,
    ) -> list[ChunkResult]:
        # one chunk at a time: nothing is submitted after a failure
        results: list[ChunkResult] = []
        for sequence_index, chunk in plan.chunks:
            future = executor.submit(
                self._run_chunk, sequence_index, chunk, timeout_manager
            )
            done, _ = wait(
                [future],
                timeout=_to_wait_seconds(timeout_manager.remaining_ms()),
            )
            if not done:
                raise timeout_manager.timeout_exception()
            results.append(future.result())
        return results

    def _execute_concurrently(
        self,
        plan: BatchPlan[ITEM],
        executor: ThreadPoolExecutor,
        timeout_manager: MultiCallTimeoutManager,
    ) -> list[ChunkResult]:
        futures: list[Future[ChunkResult]] = [
            executor.submit(self._run_chunk, sequence_index, chunk, timeout_manager)
            for sequence_index, chunk in plan.chunks
        ]
        _, not_done = wait(
            futures,
            timeout=_to_wait_seconds(timeout_manager.remaining_ms()),
            return_when=ALL_COMPLETED,
        )
        if not_done:
            logger.warning(
                f"batch timed out with {len(not_done)} of {plan.num_chunks} "
                "chunks not completed"
            )
            raise timeout_manager.timeout_exception()

        # futures are in plan order, thus the first failure has the lowest index
        for future in futures:
            chunk_exception = future.exception()
            if chunk_exception is not None:
                raise chunk_exception
        return sorted(
            (future.result() for future in futures),
            key=lambda chunk_result: chunk_result.sequence_index,
        )
