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
Incremental diff between freshly scanned artifacts and an existing policy.

The result is a proposal only: feed ``new_items`` through synthesis and merge
to apply it, and review ``removed_items`` before deleting anything.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from .models import Artifact, HashCondition, PathCondition, Policy, PublisherCondition, Rule, normalize_hash

logger = logging.getLogger(__name__)


@dataclass
class PolicyDelta:
    """Artifacts the policy does not cover yet, and rules nothing matched."""

    new_items: list[Artifact] = field(default_factory=list)
    removed_items: list[Rule] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.new_items and not self.removed_items

    def to_dict(self) -> dict[str, Any]:
        return {
            "newItems": [a.to_dict() for a in self.new_items],
            "removedItems": [r.to_dict() for r in self.removed_items],
            "newCount": len(self.new_items),
            "removedCount": len(self.removed_items),
        }


@lru_cache(maxsize=1024)
def _wildcard_regex(pattern: str) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.IGNORECASE | re.DOTALL)


def wildcard_match(pattern: str, value: str) -> bool:
    """Case-insensitive match supporting ``*`` and ``?`` only."""
    return _wildcard_regex(pattern).fullmatch(value) is not None


def _normalize_path(path: str) -> str:
    return path.strip().replace("/", "\\")


def path_matches(rule_path: str, artifact_path: str) -> bool:
    """Whether a Path rule condition covers *artifact_path*.

    A rule path ending in a separator covers everything below that folder.
    """
    pattern = _normalize_path(rule_path)
    if pattern.endswith("\\"):
        pattern += "*"
    return wildcard_match(pattern, _normalize_path(artifact_path))


def publisher_matches(rule_publisher: str, artifact: Artifact) -> bool:
    identity = artifact.publisher_identity
    if identity is None:
        return False
    if identity.lower() == rule_publisher.strip().lower():
        return True
    return wildcard_match(rule_publisher.strip(), (artifact.publisher_raw or "").strip())


def _covered(artifact: Artifact, rules: list[Rule]) -> bool:
    digest = (normalize_hash(artifact.hash) or "").lower()
    for rule in rules:
        condition = rule.condition
        if isinstance(condition, PathCondition):
            if artifact.path and path_matches(condition.path, artifact.path):
                return True
        elif isinstance(condition, HashCondition):
            if digest and digest == condition.identity():
                return True
        elif isinstance(condition, PublisherCondition):
            if publisher_matches(condition.publisher_name, artifact):
                return True
    return False


def _still_observed(rule: Rule, artifacts: list[Artifact]) -> bool:
    condition = rule.condition
    if isinstance(condition, HashCondition):
        wanted = condition.identity()
        return any((normalize_hash(a.hash) or "").lower() == wanted for a in artifacts)
    if isinstance(condition, PublisherCondition):
        return any(publisher_matches(condition.publisher_name, a) for a in artifacts)
    return True


def diff(
    new_artifacts: Iterable[Artifact],
    existing_policy: Policy | None,
    *,
    detect_removed: bool = True,
) -> PolicyDelta:
    """
    Compute the delta between *new_artifacts* and *existing_policy*.

    Args:
        new_artifacts: Artifacts from the latest scan.
        existing_policy: Policy currently deployed. Treated as empty when None.
        detect_removed: Report Publisher and Hash rules no artifact matches
            any more. Path rules are never reported, they are not derived
            from artifacts.

    Returns:
        PolicyDelta with uncovered artifacts and unmatched rules, both in
        input order.
    """
    artifacts = list(new_artifacts)
    rules = existing_policy.all_rules() if existing_policy is not None else []

    delta = PolicyDelta(new_items=[a for a in artifacts if not _covered(a, rules)])
    if detect_removed:
        delta.removed_items = [r for r in rules if not _still_observed(r, artifacts)]

    logger.debug(
        "Diff: %d of %d artifacts uncovered, %d of %d rules unmatched",
        len(delta.new_items),
        len(artifacts),
        len(delta.removed_items),
        len(rules),
    )
    return delta
