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

from dataclasses import dataclass
from typing import Any


@dataclass
class DataAPIErrorDescriptor:
    """
    A single error as found in the "errors" list of a Data API response,
    typically with an error code and a text message.

    A response may carry errors alongside partial successes (for instance,
    an insertMany command inserting most documents but rejecting a couple).

    Attributes:
        error_code: the error's "errorCode" field.
        message: the error's "message" field.
        title: the error's "title" field.
        family: the error's "family" field.
        scope: the error's "scope" field.
        id: the error's "id" field.
        attributes: a dict with any further key-value pairs in the error.
    """

    title: str | None
    error_code: str | None
    message: str | None
    family: str | None
    scope: str | None
    id: str | None
    attributes: dict[str, Any]

    _known_dict_fields = {
        "title": "title",
        "errorCode": "error_code",
        "message": "message",
        "family": "family",
        "scope": "scope",
        "id": "id",
    }

    def __init__(self, error_dict: dict[str, Any] | str) -> None:
        _error_dict: dict[str, Any] = (
            {"message": error_dict} if isinstance(error_dict, str) else error_dict
        )
        for dict_key, attr_name in self._known_dict_fields.items():
            setattr(self, attr_name, _error_dict.get(dict_key))
        self.attributes = {
            k: v for k, v in _error_dict.items() if k not in self._known_dict_fields
        }

    def __repr__(self) -> str:
        pieces = [
            repr(self.title) if self.title else None,
            f"error_code={self.error_code!r}" if self.error_code else None,
            f"message={self.message!r}" if self.message else None,
            f"family={self.family!r}" if self.family else None,
            f"scope={self.scope!r}" if self.scope else None,
            f"id={self.id!r}" if self.id else None,
            f"attributes={self.attributes!r}" if self.attributes else None,
        ]
        return f"{self.__class__.__name__}({', '.join(pc for pc in pieces if pc)})"

    def __str__(self) -> str:
        return self.summary()

    def summary(self) -> str:
        """
        A succinct one-line description of this descriptor, such as
        "Title: message (ERROR_CODE)", depending on which fields are set.
        """

        text_parts = [part for part in (self.title, self.message) if part]
        text = ": ".join(text_parts)
        if self.error_code:
            return f"{text} ({self.error_code})" if text else self.error_code
        return text


@dataclass
class DataAPIWarningDescriptor(DataAPIErrorDescriptor):
    """
    A single warning as found in the "warnings" list of a Data API response.
    Its attributes are the same as for `DataAPIErrorDescriptor`.
    """

    def __init__(self, error_dict: dict[str, Any] | str) -> None:
        DataAPIErrorDescriptor.__init__(self, error_dict=error_dict)
