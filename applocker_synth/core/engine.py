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
Pipeline orchestration: records -> artifacts -> rules -> merged policy -> health.

The engine is synchronous and keeps no state between calls; every call takes
its options and inputs explicitly.  Callers must not run two merges into the
same target policy concurrently.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .differ import PolicyDelta, diff
from .file_inspector import FileInspector
from .generation_policy import GenerationPolicy
from .health import HealthEvaluator
from .merge import MergeResult, PolicyMerger
from .models import Artifact, GenerationStatistics, HealthReport, Policy, ServiceStatus
from .normalizer import NormalizationResult, RejectedRecord, load_artifact_document
from .options import GenerationOptions
from .synthesizer import RuleSynthesizer

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Everything one generation run produced."""

    policy: Policy
    statistics: GenerationStatistics
    health: HealthReport
    options: GenerationOptions
    merge: MergeResult | None = None
    rejected: list[RejectedRecord] = field(default_factory=list)
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def success(self) -> bool:
        """True unless artifacts were supplied and none of them produced a rule."""
        return self.statistics.total_artifacts == 0 or self.statistics.total_rules > 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "generatedAt": self.generated_at.isoformat(),
            "options": self.options.to_dict(),
            "statistics": self.statistics.to_dict(),
            "rejected": [r.to_dict() for r in self.rejected],
            "merge": self.merge.to_dict() if self.merge is not None else None,
            "health": self.health.to_dict(),
            "policy": self.policy.to_dict(),
        }


class RuleEngine:
    """Runs the full generation pipeline."""

    def __init__(self, policy: GenerationPolicy | None = None, inspector: FileInspector | None = None):
        """
        Initialize engine.

        Args:
            policy: Generation policy for defaults, normalization and health
                thresholds. If None, loads built-in defaults.
            inspector: File inspector for artifacts lacking publisher or hash.
        """
        self.policy = policy or GenerationPolicy.default()
        self.inspector = inspector or FileInspector(self.policy.file_inspection)
        self.synthesizer = RuleSynthesizer(self.inspector)
        self.evaluator = HealthEvaluator(self.policy.health)

    def resolve_options(self, options: GenerationOptions | Mapping[str, Any] | None) -> GenerationOptions:
        """Options object for a call; mappings are overlaid on the policy defaults.

        Raises:
            ConfigurationError: On an unknown key or disallowed value.
        """
        if isinstance(options, GenerationOptions):
            return options
        return GenerationOptions.from_mapping(options, base=self.policy.defaults)

    def normalize(self, records: Any) -> NormalizationResult:
        """Normalize raw records, an artifact document, or already-built Artifacts."""
        if isinstance(records, list) and records and all(isinstance(r, Artifact) for r in records):
            return NormalizationResult(artifacts=list(records))
        return load_artifact_document(records, self.policy.normalization)

    def generate(
        self,
        records: Any,
        options: GenerationOptions | Mapping[str, Any] | None = None,
        existing_policy: Policy | None = None,
        service_status: ServiceStatus | None = None,
        *,
        existing_timestamp: datetime | None = None,
    ) -> GenerationResult:
        """
        Generate rules from scan records and merge them into a policy.

        Args:
            records: Artifact document, list of raw records, or Artifacts.
            options: Caller options (object or mapping).
            existing_policy: Policy to merge into. Never modified.
            service_status: Enforcement service state for the health check.
            existing_timestamp: Age of *existing_policy* for the Newest
                strategy; generated rules are stamped with the current time.

        Returns:
            GenerationResult

        Raises:
            ConfigurationError: If an option is invalid. Nothing is processed.
            InvalidInputError: If *records* is not a usable document.
        """
        opts = self.resolve_options(options)
        merger = PolicyMerger(opts.conflict_resolution, opts.enforcement_mode)

        normalized = self.normalize(records)
        synthesis = self.synthesizer.synthesize_batch(normalized.artifacts, opts)
        stats = synthesis.statistics
        stats.total_artifacts += len(normalized.rejected)
        stats.errors += len(normalized.rejected)

        started = datetime.now()
        merge_result = merger.merge_rules(
            existing_policy,
            synthesis.rules,
            existing_timestamp=existing_timestamp,
            incoming_timestamp=started,
        )
        health = self.evaluator.evaluate(merge_result.policy, service_status)

        result = GenerationResult(
            policy=merge_result.policy,
            statistics=stats,
            health=health,
            options=opts,
            merge=merge_result,
            rejected=normalized.rejected,
            generated_at=started,
        )
        logger.info(
            "Generation finished: %d rules generated, policy holds %d rules, health %d (%s)",
            stats.total_rules,
            result.policy.rule_count,
            health.score,
            health.status.value,
        )
        return result

    def generate_incremental(
        self,
        records: Any,
        existing_policy: Policy,
        options: GenerationOptions | Mapping[str, Any] | None = None,
        service_status: ServiceStatus | None = None,
    ) -> tuple[PolicyDelta, GenerationResult]:
        """Diff *records* against *existing_policy* and generate rules only for uncovered artifacts.

        Removed rules are reported in the delta but left in the policy.
        """
        opts = self.resolve_options(options)
        normalized = self.normalize(records)
        delta = diff(normalized.artifacts, existing_policy)
        result = self.generate(delta.new_items, opts, existing_policy, service_status)
        result.rejected = normalized.rejected + result.rejected
        result.statistics.errors += len(normalized.rejected)
        return delta, result

    def evaluate(self, policy: Policy, service_status: ServiceStatus | None = None) -> HealthReport:
        return self.evaluator.evaluate(policy, service_status)
