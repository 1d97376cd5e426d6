# Copyright 2026 Cisco Systems, Inc.
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
Policy assembly and merging.

Rules are inserted into the collection matching their ``collection_type``.
Two rules are *equivalent* when they sit in the same collection and share an
identity key (rule type plus publisher pattern, path or hash, compared
case-insensitively).  What happens to an incoming rule equivalent to one
already present is decided by the :class:`ConflictResolution` strategy:

- ``KeepFirst``: the incoming rule is discarded.
- ``KeepLast``: the incoming rule replaces the existing one in place.
- ``MergeAll``: both are kept.
- ``Newest``: the rule with the later timestamp wins; ties keep the existing
  rule and a missing timestamp counts as oldest.

A rule that cannot be merged (no usable identity) is recorded as a
:class:`MergeConflict` and the batch continues.  The base policy's enforcement
mode is never changed unless the caller passes an explicit override.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .exceptions import MalformedRuleError
from .models import (
    CollectionType,
    ConflictResolution,
    EnforcementMode,
    Policy,
    Rule,
    RuleCollection,
    RuleType,
)
from .options import parse_option

logger = logging.getLogger(__name__)

IdentityKey = tuple[RuleType, str]


@dataclass(frozen=True)
class MergeConflict:
    """A rule that could not be merged."""

    rule_id: str
    rule_name: str
    reason: str

    def to_dict(self) -> dict[str, Any]:
        return {"ruleId": self.rule_id, "ruleName": self.rule_name, "reason": self.reason}


@dataclass(frozen=True)
class ModeConflict:
    """Two same-type collections declared different enforcement modes."""

    collection_type: CollectionType
    base_mode: EnforcementMode
    other_mode: EnforcementMode
    resolved_mode: EnforcementMode

    def to_dict(self) -> dict[str, Any]:
        return {
            "collectionType": self.collection_type.value,
            "baseMode": self.base_mode.value,
            "otherMode": self.other_mode.value,
            "resolvedMode": self.resolved_mode.value,
        }


@dataclass
class MergeResult:
    """Merged policy plus what happened to each incoming rule."""

    policy: Policy
    strategy: ConflictResolution = ConflictResolution.KEEP_FIRST
    added: int = 0
    replaced: int = 0
    discarded: int = 0
    conflicts: list[MergeConflict] = field(default_factory=list)
    mode_conflicts: list[ModeConflict] = field(default_factory=list)

    @property
    def failed(self) -> int:
        return len(self.conflicts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "added": self.added,
            "replaced": self.replaced,
            "discarded": self.discarded,
            "failed": self.failed,
            "ruleCount": self.policy.rule_count,
            "conflicts": [c.to_dict() for c in self.conflicts],
            "modeConflicts": [c.to_dict() for c in self.mode_conflicts],
        }


class _WorkingCollection:
    """Mutable rule list for one collection while a merge is in progress."""

    def __init__(self, collection_type: CollectionType, mode: EnforcementMode, rules: Iterable[Rule] = ()):
        self.collection_type = collection_type
        self.mode = mode
        self.rules: list[Rule] = []
        # identity key -> index of the first rule holding it
        self.index: dict[IdentityKey, int] = {}
        for rule in rules:
            self.append(rule)

    def append(self, rule: Rule) -> None:
        try:
            key = rule.identity_key()
        except MalformedRuleError:
            key = None
        if key is not None and key not in self.index:
            self.index[key] = len(self.rules)
        self.rules.append(rule)

    def freeze(self) -> RuleCollection:
        return RuleCollection(self.collection_type, self.mode, tuple(self.rules))


class PolicyMerger:
    """Merges rules into policies under one conflict-resolution strategy."""

    def __init__(
        self,
        strategy: ConflictResolution | str = ConflictResolution.KEEP_FIRST,
        enforcement_mode: EnforcementMode | str = EnforcementMode.AUDIT_ONLY,
    ):
        """
        Initialize merger.

        Args:
            strategy: Conflict resolution strategy.
            enforcement_mode: Mode given to collections the merge creates.

        Raises:
            ConfigurationError: If either value is not an allowed option.
        """
        self.strategy = parse_option("conflict_resolution", ConflictResolution, strategy)
        self.enforcement_mode = parse_option("enforcement_mode", EnforcementMode, enforcement_mode)

    def merge_rules(
        self,
        existing: Policy | None,
        new_rules: Iterable[Rule],
        *,
        existing_timestamp: datetime | None = None,
        incoming_timestamp: datetime | None = None,
        rule_timestamps: Mapping[str, datetime] | None = None,
    ) -> MergeResult:
        """
        Insert *new_rules* into a copy of *existing* (or an empty policy).

        Args:
            existing: Policy to start from. Never modified.
            new_rules: Incoming rules, merged in order.
            existing_timestamp: Age of every existing rule for ``Newest``.
            incoming_timestamp: Age of every incoming rule for ``Newest``.
            rule_timestamps: Per-rule timestamps keyed by rule id; take
                precedence over the per-side timestamps.

        Returns:
            MergeResult holding the new policy and merge counters.
        """
        existing = existing or Policy.empty()
        rule_timestamps = rule_timestamps or {}
        working = {
            coll.collection_type: _WorkingCollection(coll.collection_type, coll.enforcement_mode, coll.rules)
            for coll in existing.ordered_collections()
        }
        incoming_ids: set[str] = set()
        result = MergeResult(policy=existing, strategy=self.strategy)

        def timestamp_of(rule: Rule) -> datetime | None:
            if rule.id in rule_timestamps:
                return rule_timestamps[rule.id]
            return incoming_timestamp if rule.id in incoming_ids else existing_timestamp

        for rule in new_rules:
            try:
                if not isinstance(rule, Rule):
                    raise MalformedRuleError(f"Not a rule: {rule!r}")
                key = rule.identity_key()
            except MalformedRuleError as e:
                rule_id = getattr(rule, "id", "")
                logger.warning("Skipping rule %s during merge: %s", rule_id or "<unknown>", e)
                result.conflicts.append(MergeConflict(str(rule_id), str(getattr(rule, "name", "")), str(e)))
                continue

            target = working.get(rule.collection_type)
            if target is None:
                target = working[rule.collection_type] = _WorkingCollection(rule.collection_type, self.enforcement_mode)

            position = target.index.get(key)
            if position is None or self.strategy == ConflictResolution.MERGE_ALL:
                target.append(rule)
                incoming_ids.add(rule.id)
                result.added += 1
                continue

            current = target.rules[position]
            incoming_wins = self.strategy == ConflictResolution.KEEP_LAST
            if self.strategy == ConflictResolution.NEWEST:
                incoming_wins = _is_newer(timestamp_of(current), rule_timestamps.get(rule.id, incoming_timestamp))
            if incoming_wins:
                logger.debug("Rule %s replaces equivalent rule %s", rule.id, current.id)
                target.rules[position] = rule
                incoming_ids.add(rule.id)
                result.replaced += 1
            else:
                logger.debug("Rule %s discarded, equivalent to %s", rule.id, current.id)
                result.discarded += 1

        result.policy = Policy(collections={ct: wc.freeze() for ct, wc in working.items()})
        logger.info(
            "Merged with %s: %d added, %d replaced, %d discarded, %d failed",
            self.strategy.value,
            result.added,
            result.replaced,
            result.discarded,
            result.failed,
        )
        return result

    def merge_policies(
        self,
        base: Policy,
        other: Policy,
        *,
        enforcement_override: EnforcementMode | str | None = None,
        base_timestamp: datetime | None = None,
        other_timestamp: datetime | None = None,
    ) -> MergeResult:
        """
        Merge *other* into *base* collection by collection.

        When both policies hold a collection of the same type with different
        enforcement modes, the base mode is kept and the disagreement is
        reported in ``mode_conflicts``.  A collection only *other* holds keeps
        its own mode.  ``enforcement_override`` sets the mode of every
        collection in the merged policy.

        Raises:
            ConfigurationError: If the override is not an allowed mode.
        """
        override = None
        if enforcement_override is not None:
            override = parse_option("enforcement_mode", EnforcementMode, enforcement_override)

        start = base
        mode_conflicts: list[ModeConflict] = []
        for coll in other.ordered_collections():
            mine = base.get(coll.collection_type)
            if mine is None:
                start = start.with_collection(RuleCollection(coll.collection_type, coll.enforcement_mode))
            elif mine.enforcement_mode != coll.enforcement_mode:
                resolved = override or mine.enforcement_mode
                logger.warning(
                    "Enforcement mode conflict in %s collection: base %s, other %s; keeping %s",
                    coll.collection_type.value,
                    mine.enforcement_mode.value,
                    coll.enforcement_mode.value,
                    resolved.value,
                )
                mode_conflicts.append(
                    ModeConflict(coll.collection_type, mine.enforcement_mode, coll.enforcement_mode, resolved)
                )

        result = self.merge_rules(
            start,
            other.all_rules(),
            existing_timestamp=base_timestamp,
            incoming_timestamp=other_timestamp,
        )
        if override is not None:
            result.policy = Policy(
                collections={
                    ct: RuleCollection(ct, override, coll.rules) for ct, coll in result.policy.collections.items()
                }
            )
        result.mode_conflicts = mode_conflicts
        return result


def _is_newer(current: datetime | None, incoming: datetime | None) -> bool:
    """True when *incoming* is strictly later; a missing timestamp is oldest."""
    if incoming is None:
        return False
    if current is None:
        return True
    return incoming > current


def merge_rules(
    existing: Policy | None,
    new_rules: Iterable[Rule],
    strategy: ConflictResolution | str = ConflictResolution.KEEP_FIRST,
    *,
    enforcement_mode: EnforcementMode | str = EnforcementMode.AUDIT_ONLY,
    existing_timestamp: datetime | None = None,
    incoming_timestamp: datetime | None = None,
    rule_timestamps: Mapping[str, datetime] | None = None,
) -> MergeResult:
    """Merge rules and return the full :class:`MergeResult`."""
    return PolicyMerger(strategy, enforcement_mode).merge_rules(
        existing,
        new_rules,
        existing_timestamp=existing_timestamp,
        incoming_timestamp=incoming_timestamp,
        rule_timestamps=rule_timestamps,
    )


def merge(
    existing: Policy | None,
    new_rules: Iterable[Rule],
    strategy: ConflictResolution | str = ConflictResolution.KEEP_FIRST,
    **kwargs: Any,
) -> Policy:
    """Merge rules into *existing* and return only the resulting policy."""
    return merge_rules(existing, new_rules, strategy, **kwargs).policy


def merge_policies(
    base: Policy,
    other: Policy,
    strategy: ConflictResolution | str = ConflictResolution.KEEP_FIRST,
    enforcement_override: EnforcementMode | str | None = None,
    **kwargs: Any,
) -> MergeResult:
    """Merge two policies; see :meth:`PolicyMerger.merge_policies`."""
    return PolicyMerger(strategy).merge_policies(base, other, enforcement_override=enforcement_override, **kwargs)
