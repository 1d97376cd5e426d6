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
Caller options for rule synthesis and merging.

Every engine call receives an explicit :class:`GenerationOptions`; there are no
process-wide defaults to mutate.  Enum-valued options are checked against
their closed whitelist at construction time and a disallowed value raises
:class:`~applocker_synth.core.exceptions.ConfigurationError` before any
artifact or rule is touched.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

from .exceptions import ConfigurationError
from .models import CollectionType, ConflictResolution, EnforcementMode, RuleAction, lookup_enum

# External (camelCase) option names -> dataclass field names
_OPTION_ALIASES = {
    "collectionType": "collection_type",
    "action": "action",
    "ruleAction": "action",
    "targetPrincipal": "target_principal",
    "targetGroup": "target_principal",
    "enforcementMode": "enforcement_mode",
    "conflictResolution": "conflict_resolution",
    "groupByPublisher": "group_by_publisher",
    "inspectFiles": "inspect_files",
}

_ENUM_FIELDS: dict[str, type[Enum]] = {
    "collection_type": CollectionType,
    "action": RuleAction,
    "enforcement_mode": EnforcementMode,
    "conflict_resolution": ConflictResolution,
}


def parse_option(field_name: str, enum_cls: type[Enum], value: Any) -> Any:
    """Resolve *value* to a member of *enum_cls* or raise ConfigurationError."""
    member = lookup_enum(enum_cls, value)
    if member is None:
        raise ConfigurationError(field_name, value, [str(m.value) for m in enum_cls])
    return member


def _parse_bool(field_name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no"):
        return False
    raise ConfigurationError(field_name, value, ["true", "false"])


@dataclass(frozen=True)
class GenerationOptions:
    """Options shared by synthesis, explicit rule creation and merging."""

    collection_type: CollectionType = CollectionType.EXE
    action: RuleAction = RuleAction.ALLOW
    target_principal: str = "Everyone"
    enforcement_mode: EnforcementMode = EnforcementMode.AUDIT_ONLY
    conflict_resolution: ConflictResolution = ConflictResolution.KEEP_FIRST
    group_by_publisher: bool = True
    inspect_files: bool = True

    def __post_init__(self):
        """Coerce string values to enums, rejecting anything off the whitelist."""
        for name, enum_cls in _ENUM_FIELDS.items():
            object.__setattr__(self, name, parse_option(name, enum_cls, getattr(self, name)))
        object.__setattr__(self, "group_by_publisher", _parse_bool("group_by_publisher", self.group_by_publisher))
        object.__setattr__(self, "inspect_files", _parse_bool("inspect_files", self.inspect_files))
        if not isinstance(self.target_principal, str) or not self.target_principal.strip():
            raise ConfigurationError("target_principal", self.target_principal)

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None, base: GenerationOptions | None = None) -> GenerationOptions:
        """
        Build options from a caller-supplied mapping.

        Keys may be camelCase (``conflictResolution``) or snake_case
        (``conflict_resolution``).  Values not given fall back to *base*
        (or the class defaults).

        Raises:
            ConfigurationError: On an unknown key or a disallowed value.
        """
        known = {f.name for f in fields(cls)}
        values = {f.name: getattr(base, f.name) for f in fields(cls)} if base is not None else {}
        for key, value in (data or {}).items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ConfigurationError("option", key, sorted(known))
            if value is None:
                continue
            values[name] = value
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        return {
            "collectionType": self.collection_type.value,
            "action": self.action.value,
            "targetPrincipal": self.target_principal,
            "enforcementMode": self.enforcement_mode.value,
            "conflictResolution": self.conflict_resolution.value,
            "groupByPublisher": self.group_by_publisher,
            "inspectFiles": self.inspect_files,
        }
