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
Generation policy: org-customisable defaults and health-check knobs.

A ``GenerationPolicy`` captures the default caller options, which scanner
placeholders mean "unsigned", the thresholds and location markers used by the
health evaluator, and limits for on-disk file inspection.

Usage
-----
    from applocker_synth.core.generation_policy import GenerationPolicy

    # Load built-in defaults
    policy = GenerationPolicy.default()

    # Load an org policy (merges on top of defaults)
    policy = GenerationPolicy.from_yaml("my_policy.yaml")

    # Dump the current (including default) policy for editing
    policy.to_yaml("generated_policy.yaml")

The health score formula and status bands are fixed and are not part of the
policy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..data import DEFAULT_POLICY_FILE
from .exceptions import ConfigurationError
from .options import GenerationOptions

logger = logging.getLogger(__name__)

_DEFAULT_POLICY_PATH = DEFAULT_POLICY_FILE

_DEFAULT_WRITABLE_LOCATIONS = [
    "%USERPROFILE%",
    "%TEMP%",
    "%APPDATA%",
    "%LOCALAPPDATA%",
    "%USERPROFILE%\\Desktop",
    "%USERPROFILE%\\Downloads",
]


# ---------------------------------------------------------------------------
# Data classes for each policy section
# ---------------------------------------------------------------------------


@dataclass
class NormalizationPolicy:
    """Controls artifact normalization."""

    # Publisher values the scanner emits for unsigned files
    unknown_publisher_markers: set[str] = field(default_factory=lambda: {"unknown", "n/a"})

    def is_unknown_publisher(self, value: str) -> bool:
        markers = {m.strip().lower() for m in self.unknown_publisher_markers}
        return value.strip().lower() in markers


@dataclass
class HealthPolicy:
    """Thresholds and markers used by the health evaluator."""

    # Hash rules above this count -> Critical
    hash_rule_critical_above: int = 20
    # Hash rules at or above this count (up to the critical bound) -> Warning
    hash_rule_warning_min: int = 10
    # 1..deny_rule_info_max Deny rules -> Info
    deny_rule_info_max: int = 4
    # Location markers an Allow path rule must not contain
    user_writable_locations: list[str] = field(default_factory=lambda: list(_DEFAULT_WRITABLE_LOCATIONS))
    # Names of built-in catch-all rules
    catch_all_rule_names: set[str] = field(default_factory=set)


@dataclass
class FileInspectionPolicy:
    """Limits for hashing files that are still on disk."""

    max_file_size_bytes: int = 524_288_000  # 500 MB
    chunk_size_bytes: int = 1_048_576


# ---------------------------------------------------------------------------
# The top-level policy object
# ---------------------------------------------------------------------------


@dataclass
class GenerationPolicy:
    """Organisational generation policy."""

    policy_name: str = "default"
    policy_version: str = "1.0"

    defaults: GenerationOptions = field(default_factory=GenerationOptions)
    normalization: NormalizationPolicy = field(default_factory=NormalizationPolicy)
    health: HealthPolicy = field(default_factory=HealthPolicy)
    file_inspection: FileInspectionPolicy = field(default_factory=FileInspectionPolicy)

    # -----------------------------------------------------------------------
    # Construction helpers
    # -----------------------------------------------------------------------

    @classmethod
    def default(cls) -> GenerationPolicy:
        """Load the built-in default policy that ships with the package."""
        return cls.from_yaml(_DEFAULT_POLICY_PATH)

    @classmethod
    def from_yaml(cls, path: str | Path) -> GenerationPolicy:
        """
        Load a policy from a YAML file.

        The YAML is first merged on top of the built-in defaults so that
        users only need to specify the sections they want to override.

        Raises:
            FileNotFoundError: If *path* does not exist.
            ConfigurationError: If the file is not a YAML mapping or a defaults
                value is outside its whitelist.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Policy file not found: {path}")

        with open(path, encoding="utf-8") as fh:
            try:
                raw: dict[str, Any] = yaml.safe_load(fh) or {}
            except yaml.YAMLError as e:
                raise ConfigurationError("policy file", str(path)) from e
        if not isinstance(raw, dict):
            raise ConfigurationError("policy file", str(path), ["a YAML mapping"])

        if path.resolve() == _DEFAULT_POLICY_PATH.resolve():
            return cls._from_dict(raw)

        merged = cls._deep_merge(cls._load_default_raw(), raw)
        policy = cls._from_dict(merged)
        logger.debug("Loaded generation policy %s from %s", policy.policy_name, path)
        return policy

    def to_yaml(self, path: str | Path) -> None:
        """Dump the full policy to a YAML file for editing."""
        with open(path, "w", encoding="utf-8") as fh:
            fh.write("# applocker-synth – Generation Policy\n")
            fh.write("# Only include sections you want to override; omitted sections\n")
            fh.write("# will use the built-in defaults.\n\n")
            yaml.safe_dump(self._to_dict(), fh, default_flow_style=False, sort_keys=False, width=120)

    # -----------------------------------------------------------------------
    # Internal parsing
    # -----------------------------------------------------------------------

    @classmethod
    def _load_default_raw(cls) -> dict[str, Any]:
        if _DEFAULT_POLICY_PATH.exists():
            with open(_DEFAULT_POLICY_PATH, encoding="utf-8") as fh:
                return yaml.safe_load(fh) or {}
        return {}

    @staticmethod
    def _deep_merge(base: dict, override: dict) -> dict:
        """Recursively merge *override* into *base*; lists in *override* replace."""
        result = dict(base)
        for key, val in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(val, dict):
                result[key] = GenerationPolicy._deep_merge(result[key], val)
            else:
                result[key] = val
        return result

    @classmethod
    def _from_dict(cls, d: dict[str, Any]) -> GenerationPolicy:
        df = d.get("defaults", {}) or {}
        nm = d.get("normalization", {}) or {}
        hl = d.get("health", {}) or {}
        fi = d.get("file_inspection", {}) or {}

        try:
            defaults = GenerationOptions.from_mapping(df)
        except ConfigurationError as e:
            raise ConfigurationError(f"defaults.{e.field}", e.value, e.allowed) from e

        return cls(
            policy_name=d.get("policy_name", "default"),
            policy_version=str(d.get("policy_version", "1.0")),
            defaults=defaults,
            normalization=NormalizationPolicy(
                unknown_publisher_markers=set(nm.get("unknown_publisher_markers", ["Unknown", "N/A"])),
            ),
            health=HealthPolicy(
                hash_rule_critical_above=int(hl.get("hash_rule_critical_above", 20)),
                hash_rule_warning_min=int(hl.get("hash_rule_warning_min", 10)),
                deny_rule_info_max=int(hl.get("deny_rule_info_max", 4)),
                user_writable_locations=list(hl.get("user_writable_locations", _DEFAULT_WRITABLE_LOCATIONS)),
                catch_all_rule_names=set(hl.get("catch_all_rule_names", [])),
            ),
            file_inspection=FileInspectionPolicy(
                max_file_size_bytes=int(fi.get("max_file_size_bytes", 524_288_000)),
                chunk_size_bytes=int(fi.get("chunk_size_bytes", 1_048_576)),
            ),
        )

    def _to_dict(self) -> dict[str, Any]:
        defaults = self.defaults
        return {
            "policy_name": self.policy_name,
            "policy_version": self.policy_version,
            "defaults": {
                "collection_type": defaults.collection_type.value,
                "action": defaults.action.value,
                "target_principal": defaults.target_principal,
                "enforcement_mode": defaults.enforcement_mode.value,
                "conflict_resolution": defaults.conflict_resolution.value,
                "group_by_publisher": defaults.group_by_publisher,
                "inspect_files": defaults.inspect_files,
            },
            "normalization": {
                "unknown_publisher_markers": sorted(self.normalization.unknown_publisher_markers),
            },
            "health": {
                "hash_rule_critical_above": self.health.hash_rule_critical_above,
                "hash_rule_warning_min": self.health.hash_rule_warning_min,
                "deny_rule_info_max": self.health.deny_rule_info_max,
                "user_writable_locations": self.health.user_writable_locations,
                "catch_all_rule_names": sorted(self.health.catch_all_rule_names),
            },
            "file_inspection": {
                "max_file_size_bytes": self.file_inspection.max_file_size_bytes,
                "chunk_size_bytes": self.file_inspection.chunk_size_bytes,
            },
        }
