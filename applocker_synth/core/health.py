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
Policy health evaluation.

The evaluator runs a fixed, ordered list of checks and scores the policy as::

    score = max(0, 100 - 20 * critical - 5 * warning - 1 * info)

with status bands ``>= 80`` Healthy, ``>= 60`` Warning, ``>= 40`` Critical and
Failed below that.  Thresholds and location markers come from
:class:`~applocker_synth.core.generation_policy.HealthPolicy`; the formula and
bands are fixed.
"""

from __future__ import annotations

import logging

from .generation_policy import GenerationPolicy, HealthPolicy
from .models import (
    HealthFinding,
    HealthReport,
    HealthStatus,
    PathCondition,
    Policy,
    RuleAction,
    RuleType,
    ServiceStatus,
    Severity,
)

logger = logging.getLogger(__name__)

CRITICAL_WEIGHT = 20
WARNING_WEIGHT = 5
INFO_WEIGHT = 1


def compute_score(critical: int, warning: int, info: int) -> int:
    """Health score for the given finding counts, floored at 0."""
    return max(0, 100 - CRITICAL_WEIGHT * critical - WARNING_WEIGHT * warning - INFO_WEIGHT * info)


def status_for_score(score: int) -> HealthStatus:
    if score >= 80:
        return HealthStatus.HEALTHY
    if score >= 60:
        return HealthStatus.WARNING
    if score >= 40:
        return HealthStatus.CRITICAL
    return HealthStatus.FAILED


class HealthEvaluator:
    """Scores an assembled policy against the health heuristics."""

    def __init__(self, policy: GenerationPolicy | HealthPolicy | None = None):
        """
        Initialize evaluator.

        Args:
            policy: Generation policy (or just its health section) supplying
                thresholds. Built-in defaults when None.
        """
        if isinstance(policy, GenerationPolicy):
            self.policy = policy.health
        else:
            self.policy = policy or GenerationPolicy.default().health

    def evaluate(self, policy: Policy, service_status: ServiceStatus | None = None) -> HealthReport:
        """
        Evaluate *policy*.

        Args:
            policy: Policy to score.
            service_status: State of the enforcement service on the target.
                The service check is skipped when None.

        Returns:
            HealthReport with findings in check order.
        """
        findings: list[HealthFinding] = []
        findings.extend(self._check_hash_volume(policy))
        findings.extend(self._check_user_writable_paths(policy))
        if service_status is not None:
            findings.extend(self._check_service(service_status))
        findings.extend(self._check_deny_rules(policy))
        findings.extend(self._check_catch_all(policy))

        report = HealthReport(score=0, status=HealthStatus.FAILED, findings=findings)
        report.score = compute_score(report.critical_count, report.warning_count, report.info_count)
        report.status = status_for_score(report.score)
        logger.debug(
            "Health score %d (%s): %d critical, %d warning, %d info",
            report.score,
            report.status.value,
            report.critical_count,
            report.warning_count,
            report.info_count,
        )
        return report

    def _check_hash_volume(self, policy: Policy) -> list[HealthFinding]:
        count = len(policy.rules_of_type(RuleType.HASH))
        if count == 0:
            return []
        if count > self.policy.hash_rule_critical_above:
            severity = Severity.CRITICAL
        elif count >= self.policy.hash_rule_warning_min:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO
        return [
            HealthFinding(
                severity=severity,
                category="Hash Rules",
                message=f"Policy contains {count} hash rule(s)",
                recommendation="Replace hash rules with publisher rules where files are signed; "
                "hash rules break on every update",
            )
        ]

    def _check_user_writable_paths(self, policy: Policy) -> list[HealthFinding]:
        markers = [m.lower() for m in self.policy.user_writable_locations if m]
        findings = []
        for rule in policy.rules_of_type(RuleType.PATH):
            if rule.action != RuleAction.ALLOW or not isinstance(rule.condition, PathCondition):
                continue
            path = rule.condition.path.lower()
            if any(marker in path for marker in markers):
                findings.append(
                    HealthFinding(
                        severity=Severity.CRITICAL,
                        category="User-Writable Path",
                        message=f"Rule '{rule.name}' allows execution from a user-writable location",
                        recommendation="Remove the rule or replace it with a publisher or hash rule",
                        rule_id=rule.id,
                    )
                )
        return findings

    def _check_service(self, status: ServiceStatus) -> list[HealthFinding]:
        if not status.installed or not status.running:
            state = "not installed" if not status.installed else "not running"
            return [
                HealthFinding(
                    severity=Severity.CRITICAL,
                    category="Enforcement Service",
                    message=f"Application Identity service (AppIDSvc) is {state}",
                    recommendation="Start AppIDSvc; rules are not enforced or audited without it",
                )
            ]
        if not status.is_automatic:
            return [
                HealthFinding(
                    severity=Severity.WARNING,
                    category="Enforcement Service",
                    message=f"Application Identity service start type is {status.start_type or 'unknown'}",
                    recommendation="Set AppIDSvc to start automatically",
                )
            ]
        return []

    def _check_deny_rules(self, policy: Policy) -> list[HealthFinding]:
        rules = policy.all_rules()
        deny_count = sum(1 for rule in rules if rule.action == RuleAction.DENY)
        if deny_count == 0:
            # Hash-only allow lists are exempt
            if not any(r.action == RuleAction.ALLOW and r.type != RuleType.HASH for r in rules):
                return []
            return [
                HealthFinding(
                    severity=Severity.WARNING,
                    category="Deny Rules",
                    message="Policy contains no deny rules",
                    recommendation="Add deny rules for user-writable locations such as %TEMP% and %USERPROFILE%",
                )
            ]
        if deny_count <= self.policy.deny_rule_info_max:
            return [
                HealthFinding(
                    severity=Severity.INFO,
                    category="Deny Rules",
                    message=f"Policy contains only {deny_count} deny rule(s)",
                    recommendation="Review whether common bypass locations are covered by deny rules",
                )
            ]
        return []

    def _check_catch_all(self, policy: Policy) -> list[HealthFinding]:
        names = {n.strip().lower() for n in self.policy.catch_all_rule_names}
        findings = []
        for rule in policy.all_rules():
            if rule.is_catch_all or rule.name.strip().lower() in names:
                findings.append(
                    HealthFinding(
                        severity=Severity.CRITICAL,
                        category="Catch-All Rule",
                        message=f"Rule '{rule.name}' matches every file",
                        recommendation="Remove default catch-all rules before enforcing the policy",
                        rule_id=rule.id,
                    )
                )
        return findings


def evaluate(policy: Policy, service_status: ServiceStatus | None = None) -> HealthReport:
    """Evaluate *policy* with the built-in health thresholds."""
    return HealthEvaluator().evaluate(policy, service_status)
