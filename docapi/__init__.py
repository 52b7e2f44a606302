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

__version__: str = "0.3.0"


import docapi.constants  # noqa: E402
import docapi.cursors  # noqa: F401, E402
from docapi.client import DataAPIClient  # noqa: E402
from docapi.collection import Collection  # noqa: E402
from docapi.database import Database  # noqa: E402

__all__ = [
    "Collection",
    "Database",
    "DataAPIClient",
    "__version__",
]
