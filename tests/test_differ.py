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
Tests for the incremental differ.
"""

import pytest

from applocker_synth.core.differ import diff, path_matches, wildcard_match
from applocker_synth.core.models import RuleAction


class TestMatching:
    @pytest.mark.parametrize(
        "pattern,value,expected",
        [
            ("*", "anything", True),
            ("C:\\Tools\\*.exe", "c:\\tools\\app.EXE", True),
            ("C:\\Tools\\?.exe", "C:\\Tools\\ab.exe", False),
            ("C:\\Tools\\a.exe", "C:\\Tools\\a.exe.bak", False),
            ("C:\\[x]\\a.exe", "C:\\[x]\\a.exe", True),
        ],
    )
    def test_wildcard_match(self, pattern, value, expected):
        assert wildcard_match(pattern, value) is expected

    def test_trailing_separator_covers_folder(self):
        assert path_matches("C:\\Tools\\", "C:\\Tools\\sub\\a.exe")
        assert not path_matches("C:\\Tools\\", "C:\\Other\\a.exe")

    def test_forward_slashes_normalized(self):
        assert path_matches("C:/Tools/*", "C:\\Tools\\a.exe")


class TestNewItems:
    def test_empty_policy_everything_new(self, make_artifact):
        artifacts = [make_artifact("C:\\a.exe"), make_artifact("C:\\b.exe")]
        assert diff(artifacts, None).new_items == artifacts

    def test_covered_by_publisher_rule(self, make_artifact, make_rule, make_policy):
        policy = make_policy([make_rule(publisher="O=Contoso*")])
        artifact = make_artifact("C:\\a.exe", publisher="CN=x, O=Contoso, C=US")
        assert diff([artifact], policy).new_items == []

    def test_covered_by_wildcard_publisher_rule(self, make_artifact, make_rule, make_policy):
        policy = make_policy([make_rule(publisher="*Contoso*")])
        artifact = make_artifact("C:\\a.exe", publisher="CN=x, O=Contoso, C=US")
        assert diff([artifact], policy).new_items == []

    def test_covered_by_hash_rule(self, make_artifact, make_rule, make_policy):
        policy = make_policy([make_rule(hash="ABCD")])
        assert diff([make_artifact("C:\\a.exe", hash="0xabcd")], policy).new_items == []

    def test_covered_by_path_rule(self, make_artifact, make_rule, make_policy):
        policy = make_policy([make_rule(path="%PROGRAMFILES%\\*"), make_rule(path="C:\\Apps\\*")])
        assert diff([make_artifact("C:\\Apps\\Sub\\a.exe")], policy).new_items == []

    def test_covered_by_deny_rule(self, make_artifact, make_rule, make_policy):
        policy = make_policy([make_rule(path="C:\\Temp\\*", action=RuleAction.DENY)])
        assert diff([make_artifact("C:\\Temp\\x.exe")], policy).new_items == []

    def test_uncovered_artifacts_in_input_order(self, make_artifact, make_rule, make_policy):
        policy = make_policy([make_rule(publisher="O=Contoso*")])
        artifacts = [
            make_artifact("C:\\z.exe", publisher="O=Fabrikam"),
            make_artifact("C:\\a.exe", publisher="O=Contoso"),
            make_artifact("C:\\m.exe", hash="FF"),
        ]
        assert [a.name for a in diff(artifacts, policy).new_items] == ["z.exe", "m.exe"]


class TestRemovedItems:
    def test_unmatched_publisher_and_hash_rules(self, make_artifact, make_rule, make_policy):
        kept = make_rule(publisher="O=Contoso*")
        gone_publisher = make_rule(publisher="O=Retired*")
        gone_hash = make_rule(hash="DEAD")
        policy = make_policy([kept, gone_publisher, gone_hash])
        delta = diff([make_artifact("C:\\a.exe", publisher="O=Contoso")], policy)
        assert delta.removed_items == [gone_publisher, gone_hash]

    def test_path_rules_never_removed(self, make_rule, make_policy):
        policy = make_policy([make_rule(path="C:\\Old\\*")])
        assert diff([], policy).removed_items == []

    def test_detection_can_be_disabled(self, make_rule, make_policy):
        policy = make_policy([make_rule(hash="DEAD")])
        assert diff([], policy, detect_removed=False).is_empty


def test_delta_to_dict(make_artifact, make_rule, make_policy):
    delta = diff([make_artifact("C:\\n.exe", hash="AA")], make_policy([make_rule(hash="BB")]))
    data = delta.to_dict()
    assert data["newCount"] == 1
    assert data["removedCount"] == 1
    assert data["removedItems"][0]["type"] == "Hash"
