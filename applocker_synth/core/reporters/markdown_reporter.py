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
Markdown format reporter for generation results and health reports.
"""

from ...core.engine import GenerationResult
from ...core.models import HashCondition, HealthFinding, HealthReport, PathCondition, Rule, Severity

_SEVERITY_PREFIX = {
    Severity.CRITICAL: "[CRITICAL]",
    Severity.WARNING: "[WARNING]",
    Severity.INFO: "[INFO]",
}


def _condition_text(rule: Rule) -> str:
    condition = rule.condition
    if isinstance(condition, PathCondition):
        return condition.path
    if isinstance(condition, HashCondition):
        return condition.data
    return condition.publisher_name


class MarkdownReporter:
    """Generates Markdown format reports."""

    def __init__(self, detailed: bool = True):
        """
        Initialize Markdown reporter.

        Args:
            detailed: If True, include recommendations and the rule list
        """
        self.detailed = detailed

    def generate_report(self, data: GenerationResult | HealthReport) -> str:
        """
        Generate Markdown report.

        Args:
            data: GenerationResult or HealthReport object

        Returns:
            Markdown string
        """
        if isinstance(data, GenerationResult):
            return self._generate_generation_report(data)
        return "\n".join(["# AppLocker Policy Health Report", ""] + self._health_lines(data))

    def _generate_generation_report(self, result: GenerationResult) -> str:
        """Generate report for one generation run."""
        stats = result.statistics
        lines = []

        # Header
        lines.append("# AppLocker Rule Generation Report")
        lines.append("")
        lines.append(f"**Status:** {'[OK] SUCCESS' if result.success else '[FAIL] NO RULES GENERATED'}")
        lines.append(f"**Collection:** {result.options.collection_type.value}")
        lines.append(f"**Action:** {result.options.action.value}")
        lines.append(f"**Conflict Resolution:** {result.options.conflict_resolution.value}")
        lines.append(f"**Timestamp:** {result.generated_at.isoformat()}")
        lines.append("")

        # Statistics
        lines.append("## Statistics")
        lines.append("")
        lines.append(f"- **Artifacts:** {stats.total_artifacts}")
        lines.append(f"- **Rules Generated:** {stats.total_rules}")
        lines.append(f"  - Publisher: {stats.publisher_rules}")
        lines.append(f"  - Hash: {stats.hash_rules}")
        lines.append(f"  - Path: {stats.path_rules}")
        lines.append(f"- **Duplicates:** {stats.duplicates}")
        lines.append(f"- **Skipped:** {stats.skipped}")
        lines.append(f"- **Errors:** {stats.errors}")
        lines.append("")

        if result.merge is not None:
            merge = result.merge
            lines.append("## Merge")
            lines.append("")
            lines.append(f"- **Added:** {merge.added}")
            lines.append(f"- **Replaced:** {merge.replaced}")
            lines.append(f"- **Discarded:** {merge.discarded}")
            lines.append(f"- **Failed:** {merge.failed}")
            lines.append(f"- **Policy Rules:** {result.policy.rule_count}")
            lines.append("")

        if stats.skipped_items:
            lines.append("## Skipped Artifacts")
            lines.append("")
            for skip in stats.skipped_items:
                lines.append(f"- {skip.artifact_name}: {skip.reason.value}")
            lines.append("")

        if result.rejected:
            lines.append("## Rejected Records")
            lines.append("")
            for rejected in result.rejected:
                where = f"{rejected.section}[{rejected.index}]" if rejected.section else f"[{rejected.index}]"
                lines.append(f"- {where}: {rejected.reason}")
            lines.append("")

        lines.append("## Health")
        lines.append("")
        lines.extend(self._health_lines(result.health, heading_level=3))

        if self.detailed and result.policy.rule_count:
            lines.append("## Rules")
            lines.append("")
            lines.append("| Collection | Type | Action | Name | Condition |")
            lines.append("|---|---|---|---|---|")
            for rule in result.policy.all_rules():
                condition = _condition_text(rule)
                lines.append(
                    f"| {rule.collection_type.value} | {rule.type.value} | {rule.action.value} "
                    f"| {rule.name} | `{condition}` |"
                )
            lines.append("")

        return "\n".join(lines)

    def _health_lines(self, report: HealthReport, heading_level: int = 2) -> list[str]:
        counts = report.summary_counts
        lines = [
            f"**Score:** {report.score}/100 ({report.status.value})",
            "",
            f"- **Critical:** {counts['critical']}",
            f"- **Warning:** {counts['warning']}",
            f"- **Info:** {counts['info']}",
            "",
        ]
        if not report.findings:
            lines.append("No health findings.")
            lines.append("")
            return lines
        hashes = "#" * heading_level
        for severity in (Severity.CRITICAL, Severity.WARNING, Severity.INFO):
            findings = report.get_findings_by_severity(severity)
            if findings:
                lines.append(f"{hashes} {severity.value}")
                lines.append("")
                for finding in findings:
                    lines.extend(self._format_finding(finding))
                lines.append("")
        return lines

    def _format_finding(self, finding: HealthFinding) -> list:
        prefix = _SEVERITY_PREFIX.get(finding.severity, "[INFO]")
        lines = [f"- {prefix} **{finding.category}:** {finding.message}"]
        if self.detailed and finding.recommendation:
            lines.append(f"  - Recommendation: {finding.recommendation}")
        return lines

    def save_report(self, data: GenerationResult | HealthReport, output_path: str):
        """
        Save Markdown report to file.

        Args:
            data: GenerationResult or HealthReport object
            output_path: Path to save file
        """
        report_md = self.generate_report(data)
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(report_md)
