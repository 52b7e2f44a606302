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

import time

import pytest

from docapi.exceptions import (
    DataAPITimeoutException,
    MultiCallTimeoutManager,
    _first_valid_timeout,
    _select_singlereq_timeout_gm,
)
from docapi.utils.api_options import FullTimeoutOptions


class TestTimeouts:
    @pytest.mark.describe("test MultiCallTimeoutManager")
    def test_multicalltimeoutmanager(self) -> None:
        mgr_n = MultiCallTimeoutManager(overall_timeout_ms=None)
        assert mgr_n.remaining_timeout().request_ms is None
        time.sleep(0.5)
        assert mgr_n.remaining_timeout().request_ms is None

        mgr_1 = MultiCallTimeoutManager(overall_timeout_ms=1000)
        crt_1 = mgr_1.remaining_timeout().request_ms
        assert crt_1 is not None
        time.sleep(0.6)
        crt_2 = mgr_1.remaining_timeout().request_ms
        assert crt_2 is not None
        assert crt_2 < crt_1
        time.sleep(0.6)
        with pytest.raises(DataAPITimeoutException):
            mgr_1.remaining_timeout().request_ms

    @pytest.mark.describe("test MultiCallTimeoutManager with a per-request cap")
    def test_multicalltimeoutmanager_capped(self) -> None:
        mgr_n = MultiCallTimeoutManager(overall_timeout_ms=0)
        ctx_n = mgr_n.remaining_timeout(cap_time_ms=300, cap_timeout_label="cap")
        assert ctx_n.request_ms == 300
        assert ctx_n.label == "cap"

        mgr_1 = MultiCallTimeoutManager(
            overall_timeout_ms=10000, timeout_label="general_method_timeout_ms"
        )
        ctx_1 = mgr_1.remaining_timeout(cap_time_ms=300, cap_timeout_label="cap")
        assert ctx_1.request_ms == 300
        assert ctx_1.label == "cap"
        ctx_2 = mgr_1.remaining_timeout(cap_time_ms=20000, cap_timeout_label="cap")
        assert ctx_2.request_ms is not None
        assert ctx_2.request_ms <= 10000
        assert ctx_2.label == "general_method_timeout_ms"

    @pytest.mark.describe("test of the message of an overall timeout")
    def test_multicalltimeoutmanager_message(self) -> None:
        mgr = MultiCallTimeoutManager(overall_timeout_ms=1, timeout_label="timeout_ms")
        time.sleep(0.05)
        with pytest.raises(DataAPITimeoutException) as exc:
            mgr.remaining_timeout()
        assert exc.value.timeout_type == "generic"
        assert "timeout_ms = 1 ms" in exc.value.text

    @pytest.mark.describe("test of timeout selection for single-request methods")
    def test_select_singlereq_timeout(self) -> None:
        opts = FullTimeoutOptions(
            request_timeout_ms=500, general_method_timeout_ms=3000
        )
        assert _select_singlereq_timeout_gm(
            timeout_options=opts, general_method_timeout_ms=None
        ) == (500, "request_timeout_ms")
        assert _select_singlereq_timeout_gm(
            timeout_options=opts, general_method_timeout_ms=8000
        ) == (8000, "general_method_timeout_ms")
        assert _select_singlereq_timeout_gm(
            timeout_options=opts,
            general_method_timeout_ms=8000,
            timeout_ms=100,
        ) == (100, "timeout_ms")

    @pytest.mark.describe("test of timeout selection for multi-request methods")
    def test_first_valid_timeout(self) -> None:
        assert _first_valid_timeout((None, "a"), (20, "b"), (30, "c")) == (20, "b")
        assert _first_valid_timeout((0, "a"), (20, "b")) == (0, "a")
        assert _first_valid_timeout((None, "a")) == (0, None)
