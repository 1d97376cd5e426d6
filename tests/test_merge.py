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
Tests for policy merging and conflict resolution.
"""

from datetime import datetime, timedelta

import pytest

from applocker_synth.core.exceptions import ConfigurationError
from applocker_synth.core.merge import PolicyMerger, merge, merge_policies, merge_rules
from applocker_synth.core.models import (
    CollectionType,
    ConflictResolution,
    EnforcementMode,
    HashCondition,
    PathCondition,
    Policy,
    PublisherCondition,
    Rule,
    RuleAction,
    RuleCollection,
)

T0 = datetime(2026, 1, 1, 12, 0, 0)


def _exe_rules(policy: Policy) -> list[Rule]:
    return list(policy.get(CollectionType.EXE).rules)


class TestStrategies:
    """Each strategy applied to an incoming rule equivalent to an existing one."""

    @pytest.fixture
    def pair(self, make_rule, make_policy):
        existing = make_rule(publisher="O=Contoso*", name="existing")
        incoming = make_rule(publisher="o=contoso*", name="incoming")
        return make_policy([existing]), existing, incoming

    def test_keep_first_discards_incoming(self, pair):
        policy, existing, incoming = pair
        result = merge_rules(policy, [incoming], ConflictResolution.KEEP_FIRST)
        assert _exe_rules(result.policy) == [existing]
        assert result.discarded == 1
        assert result.added == 0

    def test_keep_last_replaces_in_place(self, pair, make_rule, make_policy):
        _, existing, incoming = pair
        other = make_rule(path="C:\\Tools\\*")
        policy = make_policy([existing, other])
        result = merge_rules(policy, [incoming], "KeepLast")
        assert _exe_rules(result.policy) == [incoming, other]
        assert result.replaced == 1

    def test_merge_all_keeps_both(self, pair):
        policy, existing, incoming = pair
        result = merge_rules(policy, [incoming], ConflictResolution.MERGE_ALL)
        assert _exe_rules(result.policy) == [existing, incoming]
        assert result.added == 1

    def test_newest_prefers_later_timestamp(self, pair):
        policy, existing, incoming = pair
        result = merge_rules(
            policy,
            [incoming],
            ConflictResolution.NEWEST,
            existing_timestamp=T0,
            incoming_timestamp=T0 + timedelta(days=1),
        )
        assert _exe_rules(result.policy) == [incoming]

    def test_newest_keeps_existing_when_older_incoming(self, pair):
        policy, existing, incoming = pair
        result = merge_rules(
            policy,
            [incoming],
            ConflictResolution.NEWEST,
            existing_timestamp=T0,
            incoming_timestamp=T0 - timedelta(days=1),
        )
        assert _exe_rules(result.policy) == [existing]

    def test_newest_tie_keeps_existing(self, pair):
        policy, existing, incoming = pair
        result = merge_rules(
            policy, [incoming], ConflictResolution.NEWEST, existing_timestamp=T0, incoming_timestamp=T0
        )
        assert _exe_rules(result.policy) == [existing]

    def test_newest_missing_timestamp_is_oldest(self, pair):
        policy, existing, incoming = pair
        result = merge_rules(policy, [incoming], ConflictResolution.NEWEST, incoming_timestamp=T0)
        assert _exe_rules(result.policy) == [incoming]

    def test_newest_per_rule_timestamps(self, pair):
        policy, existing, incoming = pair
        stamps = {existing.id: T0 + timedelta(hours=1), incoming.id: T0}
        result = merge_rules(policy, [incoming], ConflictResolution.NEWEST, rule_timestamps=stamps)
        assert _exe_rules(result.policy) == [existing]

    def test_bad_strategy_rejected(self):
        with pytest.raises(ConfigurationError):
            PolicyMerger("Random")


class TestEquivalence:
    def test_same_identity_different_type_not_equivalent(self, make_rule, make_policy):
        existing = make_rule(path="C:\\X")
        incoming = Rule(
            id="in",
            name="pub",
            action=RuleAction.ALLOW,
            collection_type=CollectionType.EXE,
            condition=PublisherCondition(publisher_name="C:\\X"),
        )
        result = merge_rules(make_policy([existing]), [incoming])
        assert len(_exe_rules(result.policy)) == 2

    def test_different_collection_not_equivalent(self, make_rule, make_policy):
        existing = make_rule(publisher="O=A*")
        incoming = make_rule(publisher="O=A*", collection_type=CollectionType.MSI)
        result = merge_rules(make_policy([existing]), [incoming])
        assert result.added == 1
        assert len(result.policy.get(CollectionType.MSI).rules) == 1

    def test_hash_identity_ignores_case(self, make_rule, make_policy):
        existing = make_rule(hash="ABCD")
        incoming = make_rule(hash="abcd")
        assert merge(make_policy([existing]), [incoming]).rule_count == 1

    def test_duplicates_within_incoming_batch(self, make_rule):
        rules = [make_rule(publisher="O=A*"), make_rule(publisher="O=A*")]
        result = merge_rules(None, rules)
        assert result.policy.rule_count == 1
        assert result.discarded == 1


class TestPolicyInvariants:
    def test_merge_into_empty_creates_collections(self, make_rule):
        rules = [make_rule(publisher="O=A*"), make_rule(publisher="O=B*", collection_type=CollectionType.SCRIPT)]
        policy = merge(None, rules, enforcement_mode="Enabled")
        assert policy.get(CollectionType.EXE).enforcement_mode == EnforcementMode.ENABLED
        assert len(policy.get(CollectionType.SCRIPT).rules) == 1

    def test_rule_lands_in_its_own_collection(self, make_rule, make_policy):
        rule = make_rule(hash="AA", collection_type=CollectionType.DLL)
        policy = merge(make_policy([]), [rule])
        assert policy.get(CollectionType.DLL).rules == (rule,)
        assert policy.get(CollectionType.EXE).rules == ()

    def test_enforcement_mode_preserved(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*")], mode=EnforcementMode.ENABLED)
        merged = merge(base, [make_rule(publisher="O=B*")], enforcement_mode="AuditOnly")
        assert merged.get(CollectionType.EXE).enforcement_mode == EnforcementMode.ENABLED

    def test_existing_policy_not_modified(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*")])
        merge(base, [make_rule(publisher="O=B*")])
        assert base.rule_count == 1

    def test_idempotent_with_keep_first(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*"), make_rule(hash="AA")])
        once = merge(base, base.all_rules(), ConflictResolution.KEEP_FIRST)
        assert once == base

    def test_malformed_rule_recorded_and_skipped(self, make_rule):
        bad = make_rule(publisher="   ", name="empty publisher")
        good = make_rule(publisher="O=A*")
        result = merge_rules(None, [bad, "not a rule", good])
        assert result.policy.rule_count == 1
        assert result.failed == 2
        assert result.conflicts[0].rule_name == "empty publisher"

    @pytest.mark.parametrize(
        "condition",
        [PathCondition(path=None), PublisherCondition(publisher_name=None), HashCondition(data=None)],
    )
    def test_non_text_condition_recorded_and_skipped(self, condition, make_rule):
        bad = Rule(
            id="bad",
            name="broken condition",
            action=RuleAction.ALLOW,
            collection_type=CollectionType.EXE,
            condition=condition,
        )
        result = merge_rules(None, [bad, make_rule(publisher="O=A*")])
        assert result.failed == 1
        assert result.policy.rule_count == 1
        assert result.conflicts[0].rule_id == "bad"


class TestMergePolicies:
    def test_rules_from_both_sides(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*")])
        other = make_policy([make_rule(publisher="O=B*"), make_rule(publisher="O=A*")])
        result = merge_policies(base, other)
        assert result.policy.rule_count == 2
        assert result.discarded == 1

    def test_mode_conflict_keeps_base_mode(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*")], mode=EnforcementMode.AUDIT_ONLY)
        other = make_policy([make_rule(publisher="O=B*")], mode=EnforcementMode.ENABLED)
        result = merge_policies(base, other)
        assert result.policy.get(CollectionType.EXE).enforcement_mode == EnforcementMode.AUDIT_ONLY
        assert len(result.mode_conflicts) == 1
        conflict = result.mode_conflicts[0]
        assert conflict.other_mode == EnforcementMode.ENABLED
        assert conflict.resolved_mode == EnforcementMode.AUDIT_ONLY

    def test_collection_only_in_other_keeps_its_mode(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*")])
        other = Policy(
            collections={
                CollectionType.MSI: RuleCollection(
                    CollectionType.MSI,
                    EnforcementMode.ENABLED,
                    (make_rule(publisher="O=B*", collection_type=CollectionType.MSI),),
                )
            }
        )
        result = merge_policies(base, other)
        assert result.policy.get(CollectionType.MSI).enforcement_mode == EnforcementMode.ENABLED
        assert result.mode_conflicts == []

    def test_override_sets_every_mode(self, make_rule, make_policy):
        base = make_policy([make_rule(publisher="O=A*")])
        other = make_policy([make_rule(publisher="O=B*")], mode=EnforcementMode.ENABLED)
        result = merge_policies(base, other, enforcement_override="Enabled")
        assert result.policy.get(CollectionType.EXE).enforcement_mode == EnforcementMode.ENABLED
        assert result.mode_conflicts[0].resolved_mode == EnforcementMode.ENABLED

    def test_bad_override_rejected(self, make_policy):
        with pytest.raises(ConfigurationError):
            merge_policies(make_policy([]), make_policy([]), enforcement_override="Strict")

    def test_result_to_dict(self, make_rule, make_policy):
        result = merge_policies(make_policy([]), make_policy([make_rule(publisher="O=A*")]), "MergeAll")
        data = result.to_dict()
        assert data["strategy"] == "MergeAll"
        assert data["added"] == 1
        assert data["ruleCount"] == 1
