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

from typing import Any

import pytest

from docapi.data.utils.distinct_extractors import (
    _create_document_key_extractor,
    _hash_document,
    _reduce_distinct_key_to_safe,
)

DOCUMENT_1 = {
    "l": ["L0", "L1", {"name": "L2"}],
    "d": {"0": "D0", "1": "D1", "2": {"name": "D2"}},
    "ll": [
        ["LL00", "LL01"],
        ["LL10", {"name": "LL11"}],
    ],
    "ld": [
        {"0": "LD00", "1": "LD01"},
        {"0": "LD10", "1": {"name": "LD11"}},
    ],
    "dl": {
        "0": ["DL00", "DL01"],
        "1": ["DL10", {"name": "DL11"}],
    },
}
DOCUMENT_2A = {"x": [{"y": 10}, {"y": 11}, {"y": 12}]}
DOCUMENT_2B = {"x": [{"y": 100}]}
DOCUMENT_3 = {"a": [1, 2, ["a", "b", "c"]]}
DOCUMENT_ESC = {
    "a.b": {"..": "the-dots"},
    "c&d": [
        {"&&": "the-ampersands"},
        {"..": "amp-then-dots"},
    ],
    ".": {"0": "dot-zero"},
    "&": ["amp-zero"],
}


def _assert_extracts(
    document: dict[str, Any], key: str | list[str | int], expected: list[Any]
) -> None:
    _extractor = _create_document_key_extractor(key)
    assert list(_extractor(document)) == expected


class TestDistinctExtractors:
    @pytest.mark.describe("test of key reduction to safe, from str")
    def test_reduce_key_to_safe_str(self) -> None:
        with pytest.raises(ValueError):
            _reduce_distinct_key_to_safe("")
        with pytest.raises(ValueError):
            _reduce_distinct_key_to_safe("0.a")
        assert _reduce_distinct_key_to_safe("a.b.0.d") == "a.b"
        assert _reduce_distinct_key_to_safe("a.b") == "a.b"
        assert _reduce_distinct_key_to_safe("a&.b.c.1") == "a&.b.c"

    @pytest.mark.describe("test of key reduction to safe, from list")
    def test_reduce_key_to_safe_list(self) -> None:
        with pytest.raises(ValueError):
            _reduce_distinct_key_to_safe([])
        with pytest.raises(ValueError):
            _reduce_distinct_key_to_safe([0, "a"])
        assert _reduce_distinct_key_to_safe(["a", "b", 0, "d"]) == "a.b"
        assert _reduce_distinct_key_to_safe(["a.b", "c"]) == "a&.b.c"
        # in list form, a string segment is always a field name
        assert _reduce_distinct_key_to_safe(["a", "0", "c"]) == "a.0.c"

    @pytest.mark.describe("test of plain fieldname extractor")
    def test_plain_fieldname_extractor(self) -> None:
        f_extractor = _create_document_key_extractor("f")

        assert list(f_extractor({})) == []
        assert list(f_extractor({"e": "E", "f": "F", "g": "G"})) == ["F"]
        assert list(f_extractor({"f": {"name": "F"}})) == [{"name": "F"}]
        assert list(f_extractor({"f": None})) == [None]
        assert list(f_extractor({"f": [1, [2], 3]})) == [1, [2], 3]

    @pytest.mark.describe("test of dotted fieldname extractor, from str")
    def test_dotted_fieldname_extractor_str(self) -> None:
        _assert_extracts(DOCUMENT_1, "l", ["L0", "L1", {"name": "L2"}])
        _assert_extracts(DOCUMENT_1, "l.1", ["L1"])
        _assert_extracts(DOCUMENT_1, "d.1", ["D1"])
        _assert_extracts(DOCUMENT_1, "ll.1", ["LL10", {"name": "LL11"}])
        _assert_extracts(DOCUMENT_1, "ll.1.1", [{"name": "LL11"}])
        _assert_extracts(DOCUMENT_1, "ld.1", [{"0": "LD10", "1": {"name": "LD11"}}])
        _assert_extracts(DOCUMENT_1, "ld.1.1", [{"name": "LD11"}])
        _assert_extracts(DOCUMENT_1, "dl.1.1", [{"name": "DL11"}])

        # lists along the path are unrolled unless an index picks an item
        _assert_extracts(DOCUMENT_2A, "x.y", [10, 11, 12])
        _assert_extracts(DOCUMENT_2A, "x.0.y", [10])
        _assert_extracts(DOCUMENT_2B, "x.1.y", [])
        _assert_extracts(DOCUMENT_3, "a.5", [])
        _assert_extracts(DOCUMENT_3, "a.2.1", ["b"])

    @pytest.mark.describe("test of dotted fieldname extractor, from list")
    def test_dotted_fieldname_extractor_list(self) -> None:
        _assert_extracts(DOCUMENT_1, ["l", 1], ["L1"])
        _assert_extracts(DOCUMENT_1, ["l", "1"], [])
        _assert_extracts(DOCUMENT_1, ["d", "1"], ["D1"])
        _assert_extracts(DOCUMENT_1, ["d", 1], [])
        _assert_extracts(DOCUMENT_1, ["ld", 1, "1"], [{"name": "LD11"}])
        _assert_extracts(DOCUMENT_1, ["ld", "1"], ["LD01", {"name": "LD11"}])
        _assert_extracts(DOCUMENT_1, ["ld", 1, 1], [])
        _assert_extracts(DOCUMENT_1, ["dl", "1", 1], [{"name": "DL11"}])
        _assert_extracts(DOCUMENT_1, ["dl", 1, 1], [])
        _assert_extracts(DOCUMENT_2A, ["x", "y"], [10, 11, 12])
        _assert_extracts(DOCUMENT_2A, ["x", 1, "y"], [11])

    @pytest.mark.describe("test of extractors on escaped field names")
    def test_escaped_fieldname_extractor(self) -> None:
        _assert_extracts(DOCUMENT_ESC, "a&.b.&.&.", ["the-dots"])
        _assert_extracts(DOCUMENT_ESC, "c&&d.&&&&", ["the-ampersands"])
        _assert_extracts(DOCUMENT_ESC, "c&&d.1.&.&.", ["amp-then-dots"])
        _assert_extracts(DOCUMENT_ESC, "c&&d.0.&.&.", [])
        _assert_extracts(DOCUMENT_ESC, "&..0", ["dot-zero"])
        _assert_extracts(DOCUMENT_ESC, "&&.0", ["amp-zero"])
        _assert_extracts(DOCUMENT_ESC, ["a.b", ".."], ["the-dots"])
        _assert_extracts(DOCUMENT_ESC, [".", 0], [])
        _assert_extracts(DOCUMENT_ESC, ["&", 0], ["amp-zero"])

    @pytest.mark.describe("test of failure modes in creating extractors")
    def test_failure_extractors(self) -> None:
        _create_document_key_extractor([0, 1, "two"])
        _create_document_key_extractor("0.1.two")

        with pytest.raises(ValueError):
            _create_document_key_extractor(".xyz")
        with pytest.raises(ValueError):
            _create_document_key_extractor("")
        with pytest.raises(ValueError):
            _create_document_key_extractor("a.b..d")
        with pytest.raises(ValueError):
            _create_document_key_extractor([])
        with pytest.raises(ValueError):
            _create_document_key_extractor(["a", "", "d"])
        with pytest.raises(ValueError):
            _create_document_key_extractor("a&b")

    @pytest.mark.describe("test of value hashing for deduplication")
    def test_hash_document(self) -> None:
        assert _hash_document({"a": 1, "b": 2}) == _hash_document({"b": 2, "a": 1})
        assert _hash_document([1, 2]) != _hash_document([2, 1])
        assert _hash_document(1) != _hash_document("1")
        assert _hash_document(None) == _hash_document(None)
        assert _hash_document({"x": [1, {"y": 2}]}) == _hash_document(
            {"x": [1, {"y": 2}]}
        )
