# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Tests for TrackingPolicy flags and RefreshMode parsing."""

import pytest

from pysef.data.tracking import RefreshMode, TrackingPolicy


class TestTrackingPolicy:
    def test_flags_combine(self):
        policy = TrackingPolicy.REFRESH_AFTER_SAVE | TrackingPolicy.NO_TRACKING
        assert TrackingPolicy.NO_TRACKING in policy
        assert TrackingPolicy.REFRESH_AFTER_SAVE in policy

    def test_none_has_no_flags(self):
        assert TrackingPolicy.NO_TRACKING not in TrackingPolicy.NONE

    def test_parse_comma_separated(self):
        assert TrackingPolicy.parse("refresh-after-save, no-tracking") == (
            TrackingPolicy.REFRESH_AFTER_SAVE | TrackingPolicy.NO_TRACKING
        )

    def test_parse_list(self):
        assert TrackingPolicy.parse(["no_tracking"]) == TrackingPolicy.NO_TRACKING

    def test_parse_empty_values(self):
        assert TrackingPolicy.parse(None) == TrackingPolicy.NONE
        assert TrackingPolicy.parse("") == TrackingPolicy.NONE
        assert TrackingPolicy.parse([]) == TrackingPolicy.NONE

    def test_parse_passes_policies_through(self):
        assert TrackingPolicy.parse(TrackingPolicy.NO_TRACKING) is TrackingPolicy.NO_TRACKING

    def test_parse_unknown_flag(self):
        with pytest.raises(ValueError, match="Unknown tracking flag 'lazy'"):
            TrackingPolicy.parse("lazy")


class TestRefreshMode:
    def test_parse_kebab_case(self):
        assert RefreshMode.parse("client-wins") is RefreshMode.CLIENT_WINS
        assert RefreshMode.parse("STORE_WINS") is RefreshMode.STORE_WINS

    def test_parse_unknown(self):
        with pytest.raises(ValueError, match="Unknown refresh mode"):
            RefreshMode.parse("last-wins")
