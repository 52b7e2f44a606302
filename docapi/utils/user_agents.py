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

from typing import Sequence

from docapi.constants import CallerType


def detect_docapi_user_agent() -> CallerType:
    from docapi import __version__

    return ("docapi", __version__)


def compose_user_agent_string(
    caller_name: str | None, caller_version: str | None
) -> str | None:
    """Render a (name, version) caller as "name/version", or just "name"."""
    if not caller_name:
        return None
    if caller_version:
        return f"{caller_name}/{caller_version}"
    return caller_name


def compose_full_user_agent(callers: Sequence[CallerType]) -> str | None:
    """
    Build a User-Agent string out of a list of callers, most generic last.
    Callers with no name are skipped. Returns None if nothing is left.
    """
    pieces = [
        ua_piece
        for ua_piece in (
            compose_user_agent_string(caller_name, caller_version)
            for caller_name, caller_version in callers
        )
        if ua_piece
    ]
    return " ".join(pieces) or None
