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

"""Command-line interface for applocker-synth."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from ..config.config import EngineConfig
from ..config.constants import AppLockerSynthConstants
from ..core.dedupe import find_duplicates
from ..core.differ import diff
from ..core.engine import GenerationResult, RuleEngine
from ..core.exceptions import RuleEngineError
from ..core.generation_policy import GenerationPolicy
from ..core.health import HealthEvaluator
from ..core.merge import merge_policies, merge_rules
from ..core.models import HealthReport, Policy, PolicyPhase, ServiceStatus, lookup_enum
from ..core.normalizer import load_artifact_document
from ..core.options import GenerationOptions
from ..core.policy_xml import load_policy_file, policy_to_xml
from ..core.reporters.json_reporter import JSONReporter
from ..core.reporters.markdown_reporter import MarkdownReporter
from ..core.synthesizer import create_path_rule
from ..core.templates import create_rule_from_template, default_registry

logger = logging.getLogger("applocker_synth.cli")

SERVICE_STATUS_HELP = f"JSON {{Status, StartType}} of the {AppLockerSynthConstants.APPID_SERVICE_NAME} service"


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _configure_logging(args: argparse.Namespace, config: EngineConfig) -> None:
    level = logging.DEBUG if getattr(args, "verbose", False) else config.log_level_value
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s", stream=sys.stderr)


def _load_config(args: argparse.Namespace) -> EngineConfig:
    env_file = getattr(args, "env_file", None)
    if env_file:
        return EngineConfig.from_file(Path(env_file))
    return EngineConfig.from_env()


def _load_policy(args: argparse.Namespace, config: EngineConfig) -> GenerationPolicy:
    """Load generation policy from ``--policy`` flag, the environment, or the default."""
    policy = config.load_generation_policy(getattr(args, "policy", None))
    logger.info("Using generation policy %s", policy.policy_name)
    return policy


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8-sig") as fh:
        return json.load(fh)


def _load_service_status(args: argparse.Namespace) -> ServiceStatus | None:
    path = getattr(args, "service_status", None)
    if not path:
        return None
    return ServiceStatus.from_mapping(_read_json(path))


def _options_from_args(args: argparse.Namespace, policy: GenerationPolicy) -> GenerationOptions:
    """Overlay explicit CLI flags on the policy defaults."""
    overrides = {
        "collection_type": getattr(args, "collection_type", None),
        "action": getattr(args, "action", None),
        "target_principal": getattr(args, "target", None),
        "enforcement_mode": getattr(args, "enforcement_mode", None),
        "conflict_resolution": getattr(args, "conflict_resolution", None),
    }
    if getattr(args, "no_group_by_publisher", False):
        overrides["group_by_publisher"] = False
    if getattr(args, "no_inspect_files", False):
        overrides["inspect_files"] = False
    return GenerationOptions.from_mapping(overrides, base=policy.defaults)


def _load_existing(args: argparse.Namespace) -> Policy | None:
    path = getattr(args, "existing", None)
    return load_policy_file(path) if path else None


def _apply_phase(args: argparse.Namespace, policy: Policy) -> Policy:
    phase_value = getattr(args, "phase", None)
    if not phase_value:
        return policy
    phase = lookup_enum(PolicyPhase, phase_value) or lookup_enum(PolicyPhase, f"PHASE_{phase_value}")
    if phase is None:
        raise RuleEngineError(f"Unknown phase: {phase_value}")
    return policy.restrict_to_phase(phase)


def _write_output(args: argparse.Namespace, output: str) -> None:
    """Write *output* to a file or stdout."""
    if getattr(args, "output", None):
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(output)
        print(f"Output saved to: {args.output}", file=sys.stderr)
    else:
        print(output)


def _format_policy(args: argparse.Namespace, policy: Policy) -> str:
    if getattr(args, "format", "xml") == "json":
        return JSONReporter(pretty=not getattr(args, "compact", False)).generate_report(policy)
    return policy_to_xml(policy)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def generate_command(args: argparse.Namespace) -> int:
    """Handle the ``generate`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    try:
        policy = _load_policy(args, config)
        options = _options_from_args(args, policy)
        engine = RuleEngine(policy)
        records = _read_json(args.input)
        existing = _load_existing(args)
        result = engine.generate(records, options, existing, _load_service_status(args))
        result.policy = _apply_phase(args, result.policy)
    except (RuleEngineError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.policy_output:
        Path(args.policy_output).write_text(policy_to_xml(result.policy), encoding="utf-8")
        print(f"Policy saved to: {args.policy_output}", file=sys.stderr)

    if args.format == "xml":
        _write_output(args, policy_to_xml(result.policy))
    elif args.format == "json":
        _write_output(args, JSONReporter(pretty=not args.compact).generate_report(result))
    elif args.format == "markdown":
        _write_output(args, MarkdownReporter(detailed=args.detailed).generate_report(result))
    else:
        _write_output(args, _generate_summary(result))
    return 0 if result.success else 1


def merge_command(args: argparse.Namespace) -> int:
    """Handle the ``merge`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    try:
        base = load_policy_file(args.base)
        other = load_policy_file(args.other)
        result = merge_policies(
            base,
            other,
            args.conflict_resolution or _load_policy(args, config).defaults.conflict_resolution,
            enforcement_override=args.enforcement_override,
        )
    except (RuleEngineError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    for conflict in result.mode_conflicts:
        print(
            f"Warning: {conflict.collection_type.value} enforcement mode differs "
            f"({conflict.base_mode.value} vs {conflict.other_mode.value}); using {conflict.resolved_mode.value}",
            file=sys.stderr,
        )
    print(
        f"Merged: {result.added} added, {result.replaced} replaced, {result.discarded} discarded, "
        f"{result.failed} failed",
        file=sys.stderr,
    )
    _write_output(args, _format_policy(args, result.policy))
    return 0


def health_command(args: argparse.Namespace) -> int:
    """Handle the ``health`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    try:
        policy = load_policy_file(args.policy_file)
        report = HealthEvaluator(_load_policy(args, config)).evaluate(policy, _load_service_status(args))
    except (RuleEngineError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.format == "json":
        _write_output(args, JSONReporter(pretty=not args.compact).generate_report(report))
    elif args.format == "markdown":
        _write_output(args, MarkdownReporter(detailed=args.detailed).generate_report(report))
    else:
        _write_output(args, _generate_health_summary(report))

    if args.fail_under is not None and report.score < args.fail_under:
        return 2
    return 0


def diff_command(args: argparse.Namespace) -> int:
    """Handle the ``diff`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    try:
        policy = _load_policy(args, config)
        normalized = load_artifact_document(_read_json(args.input), policy.normalization)
        existing = load_policy_file(args.policy_file)
        delta = diff(normalized.artifacts, existing, detect_removed=not args.no_removed)
    except (RuleEngineError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.format == "json":
        _write_output(args, JSONReporter(pretty=not args.compact).generate_report(delta))
        return 0
    lines = [f"New artifacts: {len(delta.new_items)}"]
    lines.extend(f"  + {a.name} ({a.path})" for a in delta.new_items)
    lines.append(f"Unmatched rules: {len(delta.removed_items)}")
    lines.extend(f"  - {r.name} [{r.type.value}]" for r in delta.removed_items)
    _write_output(args, "\n".join(lines))
    return 0


def duplicates_command(args: argparse.Namespace) -> int:
    """Handle the ``duplicates`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    try:
        policy = _load_policy(args, config)
        normalized = load_artifact_document(_read_json(args.input), policy.normalization)
    except (RuleEngineError, OSError, json.JSONDecodeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = find_duplicates(normalized.artifacts)
    if args.format == "json":
        _write_output(args, JSONReporter(pretty=not args.compact).generate_report(report))
        return 0
    lines = [
        f"Total items: {report.total_items}",
        f"Path duplicates: {report.path_duplicate_count}",
        f"Publisher duplicates: {report.publisher_duplicate_count}",
    ]
    for path, artifacts in report.path_duplicates.items():
        lines.append(f"  {path}: {len(artifacts)} entries")
    for (publisher, name), artifacts in report.publisher_duplicates.items():
        lines.append(f"  {publisher} | {name}: {len(artifacts)} entries")
    _write_output(args, "\n".join(lines))
    return 0


def path_rule_command(args: argparse.Namespace) -> int:
    """Handle the ``path-rule`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    try:
        policy = _load_policy(args, config)
        options = _options_from_args(args, policy)
        rule = create_path_rule(args.path, options, name=args.name)
        result = merge_rules(
            _load_existing(args),
            [rule],
            options.conflict_resolution,
            enforcement_mode=options.enforcement_mode,
        )
    except (RuleEngineError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Created path rule {rule.name} ({rule.id})", file=sys.stderr)
    _write_output(args, _format_policy(args, result.policy))
    return 0


def templates_command(args: argparse.Namespace) -> int:
    """Handle the ``templates`` command."""
    config = _load_config(args)
    _configure_logging(args, config)
    registry = default_registry()

    if not args.apply:
        templates = registry.list_templates(args.category)
        print("Rule Templates:\n")
        for i, template in enumerate(templates, 1):
            condition = template.publisher or template.path
            print(f"  {i}. {template.id} [{template.action.value} {template.rule_type.value}]")
            print(f"     {template.name}: {condition}")
            print()
        return 0

    try:
        policy = _load_policy(args, config)
        options = _options_from_args(args, policy)
        rules = [create_rule_from_template(template_id, options) for template_id in args.apply]
        result = merge_rules(
            _load_existing(args),
            rules,
            options.conflict_resolution,
            enforcement_mode=options.enforcement_mode,
        )
    except (RuleEngineError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    _write_output(args, _format_policy(args, result.policy))
    return 0


def generate_policy_command(args: argparse.Namespace) -> int:
    """Handle the ``generate-policy`` command."""
    output_path = Path(args.output)
    try:
        policy = GenerationPolicy.default()
        policy.to_yaml(output_path)
        print(f"Generated default generation policy: {output_path}\n")
        print("Edit the file to customise, then use:")
        print(f"  applocker-synth generate --policy {output_path} artifacts.json\n")
        return 0
    except (RuleEngineError, OSError) as e:
        print(f"Error generating policy: {e}", file=sys.stderr)
        return 1


# ---------------------------------------------------------------------------
# Summary formatters
# ---------------------------------------------------------------------------


def _generate_health_summary(report: HealthReport) -> str:
    counts = report.summary_counts
    lines = [
        "=" * 60,
        "AppLocker Policy Health",
        "=" * 60,
        f"Score: {report.score}/100 ({report.status.value})",
        f"Critical: {counts['critical']}",
        f" Warning: {counts['warning']}",
        f"    Info: {counts['info']}",
    ]
    if report.findings:
        lines.append("")
        lines.append("Findings:")
        for finding in report.findings:
            lines.append(f"  [{finding.severity.value.upper()}] {finding.category}: {finding.message}")
    return "\n".join(lines)


def _generate_summary(result: GenerationResult) -> str:
    stats = result.statistics
    lines = [
        "=" * 60,
        "AppLocker Rule Generation",
        "=" * 60,
        f"Status: {'[OK] SUCCESS' if result.success else '[FAIL] NO RULES GENERATED'}",
        f"Artifacts: {stats.total_artifacts}",
        f"Rules Generated: {stats.total_rules} "
        f"(publisher {stats.publisher_rules}, hash {stats.hash_rules}, path {stats.path_rules})",
        f"Duplicates: {stats.duplicates}",
        f"Skipped: {stats.skipped}",
        f"Errors: {stats.errors}",
        f"Policy Rules: {result.policy.rule_count}",
        "",
        _generate_health_summary(result.health),
    ]
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Shared argparse helpers
# ---------------------------------------------------------------------------


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--output", "-o", help="Output file path")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging on stderr")
    parser.add_argument("--env-file", metavar="PATH", help="Load APPLOCKER_SYNTH_* settings from a .env file")
    parser.add_argument("--compact", action="store_true", help="Compact JSON output")
    parser.add_argument("--policy", metavar="PATH", help="Generation policy YAML (overrides APPLOCKER_SYNTH_POLICY)")


def _add_rule_flags(parser: argparse.ArgumentParser) -> None:
    """Rule options; values are validated by GenerationOptions, not argparse."""
    parser.add_argument("--collection-type", help="Exe, Msi, Script, Dll or Appx")
    parser.add_argument("--action", help="Allow or Deny")
    parser.add_argument("--target", help="Target principal (default: Everyone)")
    parser.add_argument("--enforcement-mode", help="AuditOnly, Enabled or NotConfigured for new collections")
    parser.add_argument("--conflict-resolution", help="KeepFirst, KeepLast, MergeAll or Newest")
    parser.add_argument("--existing", metavar="POLICY", help="Existing policy (.xml or .json) to merge into")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="applocker-synth - AppLocker rule synthesis, merge and health engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  applocker-synth generate artifacts.json --format xml -o policy.xml
  applocker-synth generate artifacts.json --existing policy.xml --conflict-resolution KeepLast
  applocker-synth merge base.xml incoming.xml -o merged.xml
  applocker-synth health policy.xml --service-status appidsvc.json --fail-under 80
  applocker-synth diff artifacts.json policy.xml
  applocker-synth duplicates artifacts.json
  applocker-synth path-rule "%PROGRAMFILES%\\Contoso\\*" --existing policy.xml
  applocker-synth templates --apply deny-temp --existing policy.xml
  applocker-synth generate-policy -o my_policy.yaml
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {AppLockerSynthConstants.VERSION}")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # -- generate ----------------------------------------------------------
    gen_p = subparsers.add_parser("generate", help="Generate rules from a scanner artifact document")
    gen_p.add_argument("input", help="Artifact document (JSON)")
    gen_p.add_argument(
        "--format", choices=["summary", "json", "markdown", "xml"], default="summary", help="Output format"
    )
    gen_p.add_argument("--policy-output", metavar="PATH", help="Also write the policy XML to PATH")
    gen_p.add_argument("--detailed", action="store_true", help="Include rule list (Markdown output only)")
    gen_p.add_argument("--no-group-by-publisher", action="store_true", help="One rule per artifact")
    gen_p.add_argument("--no-inspect-files", action="store_true", help="Never read files on disk")
    gen_p.add_argument("--service-status", metavar="PATH", help=SERVICE_STATUS_HELP)
    gen_p.add_argument("--phase", help="Restrict output to a deployment phase (1-4)")
    _add_rule_flags(gen_p)
    _add_common_flags(gen_p)

    # -- merge -------------------------------------------------------------
    merge_p = subparsers.add_parser("merge", help="Merge two policies")
    merge_p.add_argument("base", help="Base policy (.xml or .json)")
    merge_p.add_argument("other", help="Policy merged into the base")
    merge_p.add_argument("--conflict-resolution", help="KeepFirst, KeepLast, MergeAll or Newest")
    merge_p.add_argument("--enforcement-override", help="Set every collection to this enforcement mode")
    merge_p.add_argument("--format", choices=["xml", "json"], default="xml", help="Output format")
    _add_common_flags(merge_p)

    # -- health ------------------------------------------------------------
    health_p = subparsers.add_parser("health", help="Score a policy's health")
    health_p.add_argument("policy_file", help="Policy (.xml or .json)")
    health_p.add_argument("--service-status", metavar="PATH", help=SERVICE_STATUS_HELP)
    health_p.add_argument("--format", choices=["summary", "json", "markdown"], default="summary")
    health_p.add_argument("--detailed", action="store_true", help="Include recommendations (Markdown output only)")
    health_p.add_argument("--fail-under", type=int, metavar="SCORE", help="Exit with status 2 below this score")
    _add_common_flags(health_p)

    # -- diff --------------------------------------------------------------
    diff_p = subparsers.add_parser("diff", help="Show artifacts not covered by a policy")
    diff_p.add_argument("input", help="Artifact document (JSON)")
    diff_p.add_argument("policy_file", help="Existing policy (.xml or .json)")
    diff_p.add_argument("--no-removed", action="store_true", help="Do not report unmatched rules")
    diff_p.add_argument("--format", choices=["summary", "json"], default="summary")
    _add_common_flags(diff_p)

    # -- duplicates --------------------------------------------------------
    dup_p = subparsers.add_parser("duplicates", help="Report duplicate artifacts")
    dup_p.add_argument("input", help="Artifact document (JSON)")
    dup_p.add_argument("--format", choices=["summary", "json"], default="summary")
    _add_common_flags(dup_p)

    # -- path-rule ---------------------------------------------------------
    path_p = subparsers.add_parser("path-rule", help="Create a path rule explicitly")
    path_p.add_argument("path", help="File or folder path, wildcards allowed")
    path_p.add_argument("--name", help="Rule name")
    path_p.add_argument("--format", choices=["xml", "json"], default="xml", help="Output format")
    _add_rule_flags(path_p)
    _add_common_flags(path_p)

    # -- templates ---------------------------------------------------------
    tpl_p = subparsers.add_parser("templates", help="List or apply rule templates")
    tpl_p.add_argument("--category", help="Only list templates in this category")
    tpl_p.add_argument("--apply", nargs="+", metavar="ID", help="Create rules from these templates")
    tpl_p.add_argument("--format", choices=["xml", "json"], default="xml", help="Output format")
    _add_rule_flags(tpl_p)
    _add_common_flags(tpl_p)

    # -- generate-policy ---------------------------------------------------
    gp_p = subparsers.add_parser("generate-policy", help="Write the default generation policy YAML")
    gp_p.add_argument("--output", "-o", default="generation_policy.yaml", help="Output file path")

    # -- dispatch ----------------------------------------------------------
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    dispatch = {
        "generate": generate_command,
        "merge": merge_command,
        "health": health_command,
        "diff": diff_command,
        "duplicates": duplicates_command,
        "path-rule": path_rule_command,
        "templates": templates_command,
        "generate-policy": generate_policy_command,
    }
    handler = dispatch.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
