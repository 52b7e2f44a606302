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

import hashlib
import json
from typing import Any, Callable, Iterable, Iterator, Optional, Tuple

from docapi.utils.document_paths import escape_field_names, unescape_field_path

# each step of a key path: the dict key and/or the list index it can match
KeyBlock = Tuple[Optional[str], Optional[int]]

ERROR_NO_EMPTY_SAFE_KEYSTART = (
    "The 'key' parameter for distinct cannot be empty or start with a list index."
)
ERROR_NO_EMPTY_KEYPATH = "Field path specification cannot be empty or have empty segments"


def _maybe_valid_list_index(key_block: str) -> int | None:
    # "0" and "12" qualify, while "012", "-1" and "+3" do not
    if key_block.isdigit() and str(int(key_block)) == key_block:
        return int(key_block)
    return None


def _key_to_blocks(key: str | Iterable[str | int]) -> list[KeyBlock]:
    blocks: list[KeyBlock]
    if isinstance(key, str):
        # a number-looking segment of a dot-path may match both a key and an index
        blocks = [
            (segment, _maybe_valid_list_index(segment))
            for segment in unescape_field_path(key)
        ]
    else:
        # in a list key, strings only match dict keys and ints only list indices
        blocks = [
            (segment, None) if isinstance(segment, str) else (None, segment)
            for segment in key
        ]
    if not blocks or any(k_str == "" for k_str, _ in blocks):
        raise ValueError(ERROR_NO_EMPTY_KEYPATH)
    return blocks


def _extract_values(blocks: list[KeyBlock], value: Any) -> Iterator[Any]:
    if not blocks:
        # the key path ends here: a list at the leaf yields its items
        if isinstance(value, list):
            yield from value
        else:
            yield value
        return

    k_str, k_int = blocks[0]
    if isinstance(value, dict):
        if k_str is not None and k_str in value:
            yield from _extract_values(blocks[1:], value[k_str])
    elif isinstance(value, list):
        if k_int is not None:
            if k_int < len(value):
                yield from _extract_values(blocks[1:], value[k_int])
        else:
            for item in value:
                yield from _extract_values(blocks, item)


def _create_document_key_extractor(
    key: str | Iterable[str | int],
) -> Callable[[dict[str, Any]], Iterable[Any]]:
    """
    Build a function returning all the values found in a document at the
    given key path. Lists met along the path are unrolled unless a numeric
    segment picks one of their elements; a list at the end of the path
    yields its items.

    Raises:
        ValueError: if the key is empty or has empty segments.
    """
    blocks = _key_to_blocks(key)

    def _extractor(document: dict[str, Any]) -> Iterable[Any]:
        return _extract_values(blocks, document)

    return _extractor


def _reduce_distinct_key_to_safe(distinct_key: str | Iterable[str | int]) -> str:
    """
    The part of the key usable as a projection for the underlying find,
    i.e. the segments before the first possible list index.

    Projecting on the full key would be wrong when a numeric segment is
    actually a dict key: with the document {"x": [{"y": 1, "0": 2}]} and the
    key "x.0", projecting on "x.0" would lose the {"y": 1} part.
    """
    safe_segments: list[str] = []
    for k_str, k_int in _key_to_blocks(distinct_key):
        if k_str is None or k_int is not None:
            break
        safe_segments.append(k_str)
    if not safe_segments:
        raise ValueError(ERROR_NO_EMPTY_SAFE_KEYSTART)
    return escape_field_names(safe_segments)


def _hash_document(value: Any) -> str:
    # key-sorted compact JSON: equal values get equal hashes
    normalized = json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.md5(normalized.encode()).hexdigest()
