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
Rule synthesis: artifacts -> typed AppLocker rules.

The identity priority is fixed and not caller-configurable:

1. a resolvable publisher (from the artifact, or the file's signature when
   file inspection is enabled) yields a **Publisher** rule;
2. otherwise a resolvable hash (supplied, or computed from the file) yields a
   **Hash** rule;
3. otherwise the artifact is skipped and the skip is counted.

Path rules are never derived from artifacts.  A location does not establish
what a file is, so Path rules only come from :func:`create_path_rule`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from .dedupe import dedupe_by_path, dedupe_by_publisher_name
from .exceptions import ArtifactUnavailableError, InvalidInputError
from .file_inspector import FileInspector
from .models import (
    Artifact,
    GenerationStatistics,
    HashCondition,
    PathCondition,
    PublisherCondition,
    Rule,
    RuleType,
    Skip,
    SkipReason,
    new_rule_id,
    normalize_hash,
    path_file_name,
)
from .options import GenerationOptions
from .publisher import extract_publisher, publisher_display_name

logger = logging.getLogger(__name__)


@dataclass
class PublisherGrouping:
    """Ordered partition of artifacts by publisher pattern."""

    groups: dict[str, list[Artifact]] = field(default_factory=dict)
    ungrouped: list[Artifact] = field(default_factory=list)

    @property
    def group_count(self) -> int:
        return len(self.groups)

    def to_dict(self) -> dict:
        return {
            "groups": {pattern: [a.name for a in members] for pattern, members in self.groups.items()},
            "ungrouped": [a.name for a in self.ungrouped],
        }


@dataclass
class SynthesisResult:
    """Rules produced from one batch plus its statistics."""

    rules: list[Rule] = field(default_factory=list)
    statistics: GenerationStatistics = field(default_factory=GenerationStatistics)

    @property
    def skipped(self) -> list[Skip]:
        return self.statistics.skipped_items


def group_by_publisher(artifacts: Iterable[Artifact]) -> PublisherGrouping:
    """Partition artifacts by the publisher pattern they carry.

    Groups keep first-seen order; patterns compare case-insensitively and the
    first spelling seen names the group.
    """
    grouping = PublisherGrouping()
    spelling: dict[str, str] = {}
    for artifact in artifacts:
        pattern = artifact.publisher_identity
        if pattern is None:
            grouping.ungrouped.append(artifact)
            continue
        key = spelling.setdefault(pattern.lower(), pattern)
        grouping.groups.setdefault(key, []).append(artifact)
    return grouping


# ---------------------------------------------------------------------------
# Explicit rule creation
# ---------------------------------------------------------------------------


def create_publisher_rule(
    publisher: str,
    options: GenerationOptions | None = None,
    name: str | None = None,
    description: str = "",
    product_name: str = "*",
    binary_name: str = "*",
    as_pattern: bool = False,
) -> Rule:
    """Build a Publisher rule from a signer subject.

    With *as_pattern* the string is used verbatim as the publisher pattern.

    Raises:
        InvalidInputError: If *publisher* is empty.
    """
    options = options or GenerationOptions()
    if as_pattern:
        pattern = (publisher or "").strip() or None
    else:
        pattern = extract_publisher(publisher)
    if pattern is None:
        raise InvalidInputError("Publisher must not be empty", field="publisher")
    return Rule(
        id=new_rule_id(),
        name=name or f"{options.action.value} {publisher_display_name(pattern)}",
        action=options.action,
        collection_type=options.collection_type,
        condition=PublisherCondition(
            publisher_name=pattern,
            product_name=product_name or "*",
            binary_name=binary_name or "*",
        ),
        target_principal=options.target_principal,
        description=description,
    )


def create_hash_rule(
    file_hash: str,
    file_name: str,
    options: GenerationOptions | None = None,
    file_length: int | None = None,
    name: str | None = None,
    description: str = "",
) -> Rule:
    """Build a SHA-256 Hash rule.

    Raises:
        InvalidInputError: If *file_hash* is empty.
    """
    options = options or GenerationOptions()
    data = normalize_hash(file_hash)
    if data is None:
        raise InvalidInputError("Hash must not be empty", field="hash")
    return Rule(
        id=new_rule_id(),
        name=name or f"{options.action.value} {file_name or data[:16]}",
        action=options.action,
        collection_type=options.collection_type,
        condition=HashCondition(data=data, source_file_name=file_name, source_file_length=file_length or 0),
        target_principal=options.target_principal,
        description=description,
    )


def create_path_rule(
    path: str,
    options: GenerationOptions | None = None,
    name: str | None = None,
    description: str = "",
) -> Rule:
    """
    Build a Path rule.

    This is the only way to obtain a Path rule; batch synthesis never emits
    one.

    Args:
        path: File or folder path, environment variables and ``*`` allowed.
        options: Action, collection and principal for the rule.
        name: Rule name. Derived from the action and path when omitted.

    Raises:
        InvalidInputError: If *path* is empty.
    """
    options = options or GenerationOptions()
    if not isinstance(path, str) or not path.strip():
        raise InvalidInputError("Path must not be empty", field="path")
    path = path.strip()
    return Rule(
        id=new_rule_id(),
        name=name or f"{options.action.value} {path}",
        action=options.action,
        collection_type=options.collection_type,
        condition=PathCondition(path=path),
        target_principal=options.target_principal,
        description=description,
    )


# ---------------------------------------------------------------------------
# Synthesis
# ---------------------------------------------------------------------------


class RuleSynthesizer:
    """Turns artifacts into Publisher or Hash rules."""

    def __init__(self, inspector: FileInspector | None = None):
        """
        Initialize synthesizer.

        Args:
            inspector: Used for artifacts missing a publisher or hash when
                ``options.inspect_files`` is set. Defaults to a hashing-only
                inspector.
        """
        self.inspector = inspector or FileInspector()

    def synthesize(self, artifact: Artifact, options: GenerationOptions) -> Rule | Skip:
        """Convert one artifact into a rule, or a Skip explaining why not."""
        pattern, unavailable = self._resolve_publisher(artifact, options)
        if pattern is not None:
            return create_publisher_rule(pattern, options, description=_describe(artifact), as_pattern=True)
        return self._hash_rule_or_skip(artifact, options, unavailable)

    def synthesize_group(self, pattern: str, artifacts: list[Artifact], options: GenerationOptions) -> Rule:
        """One Publisher rule covering every artifact in a publisher group."""
        if len(artifacts) == 1:
            description = _describe(artifacts[0])
        else:
            description = f"Covers {len(artifacts)} files signed by {publisher_display_name(pattern)}"
        return create_publisher_rule(pattern, options, description=description, as_pattern=True)

    def synthesize_batch(self, artifacts: Iterable[Artifact], options: GenerationOptions) -> SynthesisResult:
        """
        Synthesize rules for a whole batch.

        Artifacts are first de-duplicated by path.  With
        ``options.group_by_publisher`` each publisher group yields exactly one
        rule; otherwise artifacts are de-duplicated by (publisher, name) and
        synthesized one by one.  Hash rules are de-duplicated by digest in
        both modes.

        Args:
            artifacts: Normalized artifacts.
            options: Caller options.

        Returns:
            SynthesisResult with rules in input order and run statistics.
        """
        items = list(artifacts)
        result = SynthesisResult()
        stats = result.statistics
        stats.total_artifacts = len(items)

        by_path = dedupe_by_path(items)
        stats.duplicates += by_path.duplicate_count
        stats.flagged += len(by_path.flagged)
        for artifact in by_path.flagged:
            logger.debug("Artifact %s has no path and was not path de-duplicated", artifact.name)

        if options.group_by_publisher:
            self._synthesize_grouped(by_path.unique, options, result)
        else:
            by_publisher = dedupe_by_publisher_name(by_path.unique)
            stats.duplicates += by_publisher.duplicate_count
            seen_hashes: set[str] = set()
            for artifact in by_publisher.unique:
                self._collect(self.synthesize(artifact, options), result, seen_hashes)

        logger.info(
            "Synthesized %d rules from %d artifacts (%d skipped, %d duplicates)",
            stats.total_rules,
            stats.total_artifacts,
            stats.skipped,
            stats.duplicates,
        )
        return result

    def _synthesize_grouped(self, artifacts: list[Artifact], options: GenerationOptions, result: SynthesisResult):
        groups: dict[str, list[Artifact]] = {}
        spelling: dict[str, str] = {}
        fallthrough: list[tuple[Artifact, bool]] = []
        for artifact in artifacts:
            pattern, unavailable = self._resolve_publisher(artifact, options)
            if pattern is None:
                fallthrough.append((artifact, unavailable))
                continue
            key = spelling.setdefault(pattern.lower(), pattern)
            groups.setdefault(key, []).append(artifact)

        for pattern, members in groups.items():
            rule = self.synthesize_group(pattern, members, options)
            result.rules.append(rule)
            result.statistics.record_rule(rule)

        seen_hashes: set[str] = set()
        for artifact, unavailable in fallthrough:
            self._collect(self._hash_rule_or_skip(artifact, options, unavailable), result, seen_hashes)

    def _collect(self, outcome: Rule | Skip, result: SynthesisResult, seen_hashes: set[str]) -> None:
        stats = result.statistics
        if isinstance(outcome, Skip):
            stats.record_skip(outcome)
            return
        if outcome.type == RuleType.HASH:
            digest = outcome.condition.identity()
            if digest in seen_hashes:
                stats.duplicates += 1
                return
            seen_hashes.add(digest)
        result.rules.append(outcome)
        stats.record_rule(outcome)

    def _resolve_publisher(self, artifact: Artifact, options: GenerationOptions) -> tuple[str | None, bool]:
        """Publisher pattern for *artifact* and whether its file proved unavailable."""
        pattern = artifact.publisher_identity
        if pattern is not None or not options.inspect_files or not artifact.path:
            return pattern, False
        try:
            return extract_publisher(self.inspector.read_publisher(artifact.path)), False
        except ArtifactUnavailableError as e:
            logger.debug("Signature lookup failed for %s: %s", artifact.name, e)
            return None, True

    def _hash_rule_or_skip(self, artifact: Artifact, options: GenerationOptions, unavailable: bool) -> Rule | Skip:
        file_name = path_file_name(artifact.path) or artifact.name
        if artifact.hash:
            return create_hash_rule(
                artifact.hash,
                file_name,
                options,
                file_length=artifact.size,
                description=_describe(artifact),
            )
        if not options.inspect_files or not artifact.path:
            return Skip(artifact.name, SkipReason.NO_IDENTITY, "No publisher or hash available")
        if unavailable:
            return Skip(artifact.name, SkipReason.ARTIFACT_UNAVAILABLE, "File is no longer available")
        try:
            identity = self.inspector.compute_identity(artifact.path)
        except ArtifactUnavailableError as e:
            logger.warning("Skipping %s: %s", artifact.name, e)
            return Skip(artifact.name, SkipReason.ARTIFACT_UNAVAILABLE, str(e))
        return create_hash_rule(
            identity.sha256 or "",
            file_name,
            options,
            file_length=artifact.size if artifact.size is not None else identity.size,
            description=_describe(artifact),
        )


def _describe(artifact: Artifact) -> str:
    if artifact.version:
        return f"Generated from {artifact.name} {artifact.version}"
    return f"Generated from {artifact.name}"


def synthesize(
    artifact: Artifact,
    options: GenerationOptions | None = None,
    inspector: FileInspector | None = None,
) -> Rule | Skip:
    """Synthesize a single artifact with a throwaway :class:`RuleSynthesizer`."""
    return RuleSynthesizer(inspector).synthesize(artifact, options or GenerationOptions())
