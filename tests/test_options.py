# Copyright 2026 Cisco Systems, Inc. and its affiliates
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
#
# SPDX-License-Identifier: Apache-2.0

"""
Tests for caller option parsing.
"""

import pytest

from applocker_synth.core.exceptions import ConfigurationError
from applocker_synth.core.models import CollectionType, ConflictResolution, EnforcementMode, RuleAction
from applocker_synth.core.options import GenerationOptions


class TestGenerationOptions:
    def test_defaults(self):
        options = GenerationOptions()
        assert options.collection_type == CollectionType.EXE
        assert options.action == RuleAction.ALLOW
        assert options.target_principal == "Everyone"
        assert options.conflict_resolution == ConflictResolution.KEEP_FIRST

    @pytest.mark.parametrize("value", ["KeepLast", "keeplast", "KEEP_LAST"])
    def test_enum_spellings(self, value):
        assert GenerationOptions(conflict_resolution=value).conflict_resolution == ConflictResolution.KEEP_LAST

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"action": "Permit"},
            {"collection_type": "Kernel"},
            {"enforcement_mode": 3},
            {"conflict_resolution": "Random"},
            {"group_by_publisher": "sometimes"},
            {"target_principal": "  "},
        ],
    )
    def test_rejects_values_off_whitelist(self, kwargs):
        with pytest.raises(ConfigurationError):
            GenerationOptions(**kwargs)


class TestFromMapping:
    def test_camel_case_aliases(self):
        options = GenerationOptions.from_mapping(
            {
                "collectionType": "Script",
                "ruleAction": "Deny",
                "targetGroup": "Users",
                "enforcementMode": "Enabled",
                "groupByPublisher": "false",
            }
        )
        assert options.collection_type == CollectionType.SCRIPT
        assert options.action == RuleAction.DENY
        assert options.target_principal == "Users"
        assert options.enforcement_mode == EnforcementMode.ENABLED
        assert options.group_by_publisher is False

    def test_base_supplies_missing_values(self):
        base = GenerationOptions(action="Deny", inspect_files=False)
        options = GenerationOptions.from_mapping({"collection_type": "Msi", "action": None}, base=base)
        assert options.action == RuleAction.DENY
        assert options.inspect_files is False
        assert options.collection_type == CollectionType.MSI

    def test_unknown_key(self):
        with pytest.raises(ConfigurationError) as exc_info:
            GenerationOptions.from_mapping({"strategy": "KeepFirst"})
        assert exc_info.value.field == "option"

    def test_error_lists_allowed_values(self):
        with pytest.raises(ConfigurationError) as exc_info:
            GenerationOptions.from_mapping({"conflictResolution": "Oldest"})
        assert "Newest" in exc_info.value.allowed
        assert "Oldest" in str(exc_info.value)

    def test_to_dict(self):
        assert GenerationOptions(action="Deny").to_dict()["action"] == "Deny"
