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

from docapi.utils.document_paths import escape_field_names, unescape_field_path

ESCAPE_TEST_FIELDS = {
    "a": "a",
    "a.b": "a&.b",
    "a&c": "a&&c",
    "xyz": "xyz",
    ".": "&.",
    "...": "&.&.&.",
    "&": "&&",
    "&&": "&&&&",
    "&.&.&..": "&&&.&&&.&&&.&.",
    "a&b.c.&.d": "a&&b&.c&.&&&.d",
    ".env": "&.env",
    "&quot": "&&quot",
    "qΩw": "qΩw",
}


class TestDocumentPaths:
    @pytest.mark.describe("test of escape_field_names")
    def test_escape_field_names(self) -> None:
        for lit_fn, esc_fn in ESCAPE_TEST_FIELDS.items():
            assert escape_field_names([lit_fn]) == esc_fn
        all_lits, all_escs = list(zip(*ESCAPE_TEST_FIELDS.items()))
        assert escape_field_names(all_lits) == ".".join(all_escs)
        assert escape_field_names([]) == ""
        assert escape_field_names(["f", 123, "tom&jerry"]) == "f.123.tom&&jerry"

    @pytest.mark.describe("test of unescape_field_path")
    def test_unescape_field_path(self) -> None:
        all_lits, all_escs = list(zip(*ESCAPE_TEST_FIELDS.items()))
        assert unescape_field_path(".".join(all_escs)) == list(all_lits)
        assert unescape_field_path(".".join(all_escs[3:6])) == list(all_lits[3:6])
        assert unescape_field_path("a.0.b") == ["a", "0", "b"]
        assert unescape_field_path("") == []

        with pytest.raises(ValueError, match="Illegal escape sequence"):
            unescape_field_path("a.b&?c.d")

        with pytest.raises(ValueError, match="Unterminated escape sequence"):
            unescape_field_path("a.b.c&")
