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

# Environment names
DATA_API_ENVIRONMENT_PROD = "prod"
DATA_API_ENVIRONMENT_DEV = "dev"
DATA_API_ENVIRONMENT_TEST = "test"
DATA_API_ENVIRONMENT_DSE = "dse"
DATA_API_ENVIRONMENT_HCD = "hcd"
DATA_API_ENVIRONMENT_OTHER = "other"

# Defaults/settings for URL composition
DEFAULT_HOSTED_KEYSPACE = "default_keyspace"
API_PATH_ENV_MAP = {
    DATA_API_ENVIRONMENT_PROD: "/api/json",
    DATA_API_ENVIRONMENT_DEV: "/api/json",
    DATA_API_ENVIRONMENT_TEST: "/api/json",
    #
    DATA_API_ENVIRONMENT_DSE: "",
    DATA_API_ENVIRONMENT_HCD: "",
    DATA_API_ENVIRONMENT_OTHER: "",
}
API_VERSION_ENV_MAP = {
    DATA_API_ENVIRONMENT_PROD: "/v1",
    DATA_API_ENVIRONMENT_DEV: "/v1",
    DATA_API_ENVIRONMENT_TEST: "/v1",
    #
    DATA_API_ENVIRONMENT_DSE: "v1",
    DATA_API_ENVIRONMENT_HCD: "v1",
    DATA_API_ENVIRONMENT_OTHER: "v1",
}

# Defaults/settings for Data API requests
DEFAULT_REQUEST_TIMEOUT_MS = 10000
DEFAULT_GENERAL_METHOD_TIMEOUT_MS = 30000
DEFAULT_DATA_API_AUTH_HEADER = "Token"

# Defaults/settings for insert_many chunking
DEFAULT_INSERT_MANY_CHUNK_SIZE = 50
DEFAULT_INSERT_MANY_CONCURRENCY = 20
# the largest chunk the server accepts in a single insertMany command
DEFAULT_MAX_INSERT_MANY_CHUNK_SIZE = 100

# Settings for redacting secrets in string representations and logging
FIXED_SECRET_PLACEHOLDER = "***"
DEFAULT_REDACTED_HEADER_NAMES = {
    DEFAULT_DATA_API_AUTH_HEADER,
}
