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

from typing import Iterable

ESCAPE_CHAR = "&"
SEGMENT_SEPARATOR = "."
ESCAPABLE_CHARS = {ESCAPE_CHAR, SEGMENT_SEPARATOR}


def escape_field_names(field_names: Iterable[str | int]) -> str:
    """
    Compose literal path segments into a dot-notation field path, escaping
    the separator and the escape character found in them.

    Example:
        >>> escape_field_names(["f", 123, "tom&jerry", "a.b"])
        'f.123.tom&&jerry.a&.b'
    """

    return SEGMENT_SEPARATOR.join(
        "".join(
            f"{ESCAPE_CHAR}{char}" if char in ESCAPABLE_CHARS else char
            for char in str(field_name)
        )
        for field_name in field_names
    )


def unescape_field_path(field_path: str) -> list[str]:
    """
    Split a dot-notation field path into its literal segments,
    resolving the escape sequences ("&." and "&&").

    Number-looking segments, such as "0", are returned as strings: it is up
    to the caller to interpret them as list indices where appropriate.

    Raises:
        ValueError: for an escape character followed by anything else than
            the separator or another escape character, or ending the path.

    Example:
        >>> unescape_field_path("a&.b.c&&d")
        ['a.b', 'c&d']
    """

    if not field_path:
        return []

    segments: list[str] = []
    current: list[str] = []
    chars = iter(field_path)
    for char in chars:
        if char == SEGMENT_SEPARATOR:
            segments.append("".join(current))
            current = []
        elif char == ESCAPE_CHAR:
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError(
                    "Unterminated escape sequence found at end of path "
                    f"specification '{field_path}'"
                )
            if escaped not in ESCAPABLE_CHARS:
                raise ValueError(
                    "Illegal escape sequence found while parsing field path "
                    f"specification '{field_path}': '{ESCAPE_CHAR}{escaped}'"
                )
            current.append(escaped)
        else:
            current.append(char)
    segments.append("".join(current))
    return segments
