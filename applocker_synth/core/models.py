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
Data models for scan artifacts, AppLocker rules, policies and policy health.

Rules are a closed tagged union: the rule type is never stored separately, it
is derived from the condition payload (:class:`PublisherCondition`,
:class:`PathCondition` or :class:`HashCondition`), so a rule's type and the
shape of its condition cannot disagree.  Rules, collections and policies are
frozen; every merge or filter builds new objects.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, ClassVar, Union

from .exceptions import MalformedRuleError, PolicyFormatError
from .publisher import extract_publisher


class RuleType(str, Enum):
    """Kinds of AppLocker rule."""

    PUBLISHER = "Publisher"
    PATH = "Path"
    HASH = "Hash"


class RuleAction(str, Enum):
    ALLOW = "Allow"
    DENY = "Deny"


class CollectionType(str, Enum):
    """AppLocker rule collections."""

    EXE = "Exe"
    MSI = "Msi"
    SCRIPT = "Script"
    DLL = "Dll"
    APPX = "Appx"


class EnforcementMode(str, Enum):
    AUDIT_ONLY = "AuditOnly"
    ENABLED = "Enabled"
    NOT_CONFIGURED = "NotConfigured"


class ConflictResolution(str, Enum):
    """How the merge engine treats an incoming rule equivalent to an existing one."""

    KEEP_FIRST = "KeepFirst"
    KEEP_LAST = "KeepLast"
    MERGE_ALL = "MergeAll"
    NEWEST = "Newest"


class Severity(str, Enum):
    """Severity levels for policy health findings."""

    CRITICAL = "Critical"
    WARNING = "Warning"
    INFO = "Info"


class HealthStatus(str, Enum):
    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"
    FAILED = "Failed"


class SkipReason(str, Enum):
    """Why an artifact produced no rule."""

    NO_IDENTITY = "no_identity"
    ARTIFACT_UNAVAILABLE = "artifact_unavailable"
    INVALID_ARTIFACT = "invalid_artifact"


class PolicyPhase(str, Enum):
    """Staged AppLocker roll-out phases."""

    PHASE_1 = "Phase 1 (EXE Only)"
    PHASE_2 = "Phase 2 (EXE + Script)"
    PHASE_3 = "Phase 3 (EXE + Script + MSI)"
    PHASE_4 = "Phase 4 (All including DLL)"

    @property
    def collection_types(self) -> tuple[CollectionType, ...]:
        """Collections deployed in this phase."""
        return _PHASE_COLLECTIONS[self]


_PHASE_COLLECTIONS: dict[PolicyPhase, tuple[CollectionType, ...]] = {
    PolicyPhase.PHASE_1: (CollectionType.EXE,),
    PolicyPhase.PHASE_2: (CollectionType.EXE, CollectionType.SCRIPT),
    PolicyPhase.PHASE_3: (CollectionType.EXE, CollectionType.SCRIPT, CollectionType.MSI),
    PolicyPhase.PHASE_4: tuple(CollectionType),
}


def lookup_enum(enum_cls: type[Enum], value: Any) -> Any:
    """Return the member of *enum_cls* matching *value*, or ``None``.

    Members match by identity, by exact value, or case-insensitively by value
    or member name, so ``"keepfirst"``, ``"KeepFirst"`` and ``"KEEP_FIRST"``
    all resolve to :attr:`ConflictResolution.KEEP_FIRST`.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for member in enum_cls:
        if wanted in (str(member.value).lower(), member.name.lower()):
            return member
    return None


def new_rule_id() -> str:
    """Fresh unique rule identifier."""
    return str(uuid.uuid4())


def normalize_hash(value: str | None) -> str | None:
    """Strip an optional ``0x`` prefix and upper-case a digest string."""
    if value is None:
        return None
    text = str(value).strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    text = text.strip().upper()
    return text or None


def path_file_name(path: str) -> str:
    """Final segment of a Windows or POSIX style path."""
    return path.replace("\\", "/").rstrip("/").rsplit("/", 1)[-1]


# ---------------------------------------------------------------------------
# Artifacts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Artifact:
    """One observed file record supplied by an external scanner."""

    path: str
    name: str
    publisher_raw: str | None = None
    hash: str | None = None
    version: str | None = None
    source: str = "scan"
    size: int | None = None
    file_type: str | None = None

    @property
    def file_name(self) -> str:
        return path_file_name(self.path)

    @property
    def publisher_identity(self) -> str | None:
        """Wildcard trust pattern derived from ``publisher_raw``."""
        return extract_publisher(self.publisher_raw)

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "publisher": self.publisher_raw,
            "hash": self.hash,
            "version": self.version,
            "source": self.source,
            "size": self.size,
            "type": self.file_type,
        }


# ---------------------------------------------------------------------------
# Rule conditions (tagged union)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PublisherCondition:
    """Signing-identity condition; matches every product and version by default."""

    rule_type: ClassVar[RuleType] = RuleType.PUBLISHER
    identity_field: ClassVar[str] = "publisher_name"

    publisher_name: str
    product_name: str = "*"
    binary_name: str = "*"
    low_section: str = "*"
    high_section: str = "*"

    def identity(self) -> str:
        return self.publisher_name.strip().lower()

    @property
    def is_catch_all(self) -> bool:
        return (
            self.publisher_name.strip() in ("", "*")
            and self.product_name.strip() in ("", "*")
            and self.binary_name.strip() in ("", "*")
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "publisherName": self.publisher_name,
            "productName": self.product_name,
            "binaryName": self.binary_name,
            "lowSection": self.low_section,
            "highSection": self.high_section,
        }


@dataclass(frozen=True)
class PathCondition:
    """File-system location condition."""

    rule_type: ClassVar[RuleType] = RuleType.PATH
    identity_field: ClassVar[str] = "path"

    path: str

    def identity(self) -> str:
        return self.path.strip().replace("/", "\\").lower()

    @property
    def is_catch_all(self) -> bool:
        return self.path.strip() in ("", "*")

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path}


@dataclass(frozen=True)
class HashCondition:
    """Exact content digest condition."""

    rule_type: ClassVar[RuleType] = RuleType.HASH
    identity_field: ClassVar[str] = "data"

    data: str
    source_file_name: str = ""
    source_file_length: int = 0
    hash_type: str = "SHA256"

    def identity(self) -> str:
        return (normalize_hash(self.data) or "").lower()

    @property
    def is_catch_all(self) -> bool:
        return False

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.hash_type,
            "data": self.data,
            "sourceFileName": self.source_file_name,
            "sourceFileLength": self.source_file_length,
        }


RuleCondition = Union[PublisherCondition, PathCondition, HashCondition]

_CONDITION_CLASSES: dict[RuleType, type] = {
    RuleType.PUBLISHER: PublisherCondition,
    RuleType.PATH: PathCondition,
    RuleType.HASH: HashCondition,
}


def condition_from_dict(rule_type: RuleType, data: dict[str, Any]) -> RuleCondition:
    """Build the condition payload for *rule_type* from its structured form."""
    if rule_type == RuleType.PUBLISHER:
        return PublisherCondition(
            publisher_name=str(data.get("publisherName", "")),
            product_name=str(data.get("productName", "*")),
            binary_name=str(data.get("binaryName", "*")),
            low_section=str(data.get("lowSection", "*")),
            high_section=str(data.get("highSection", "*")),
        )
    if rule_type == RuleType.PATH:
        return PathCondition(path=str(data.get("path", "")))
    try:
        length = int(data.get("sourceFileLength", 0) or 0)
    except (TypeError, ValueError) as e:
        raise PolicyFormatError(f"Invalid hash source length: {data.get('sourceFileLength')!r}") from e
    return HashCondition(
        data=normalize_hash(data.get("data")) or "",
        source_file_name=str(data.get("sourceFileName", "")),
        source_file_length=length,
        hash_type=str(data.get("type", "SHA256")),
    )


# ---------------------------------------------------------------------------
# Rules, collections, policies
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Rule:
    """A single AppLocker rule."""

    id: str
    name: str
    action: RuleAction
    collection_type: CollectionType
    condition: RuleCondition
    target_principal: str = "Everyone"
    description: str = ""

    @property
    def type(self) -> RuleType:
        return self.condition.rule_type

    def identity_key(self) -> tuple[RuleType, str]:
        """Equivalence key used by merge and diff: (type, publisher pattern / path / hash).

        Raises:
            MalformedRuleError: If the condition carries no usable identity.
        """
        if not isinstance(self.condition, tuple(_CONDITION_CLASSES.values())):
            raise MalformedRuleError(f"Rule {self.id} has an unsupported condition: {self.condition!r}")
        raw = getattr(self.condition, self.condition.identity_field, None)
        if not isinstance(raw, str):
            raise MalformedRuleError(f"Rule {self.id} has a non-text {self.type.value} condition: {raw!r}")
        identity = self.condition.identity()
        if not identity:
            raise MalformedRuleError(f"Rule {self.id} has an empty {self.type.value} condition")
        return self.type, identity

    @property
    def is_catch_all(self) -> bool:
        return self.condition.is_catch_all

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "action": self.action.value,
            "collectionType": self.collection_type.value,
            "targetPrincipal": self.target_principal,
            "description": self.description,
            "condition": self.condition.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rule:
        rule_type = lookup_enum(RuleType, data.get("type"))
        action = lookup_enum(RuleAction, data.get("action"))
        collection_type = lookup_enum(CollectionType, data.get("collectionType"))
        if rule_type is None:
            raise PolicyFormatError(f"Unknown rule type: {data.get('type')!r}")
        if action is None:
            raise PolicyFormatError(f"Unknown rule action: {data.get('action')!r}")
        if collection_type is None:
            raise PolicyFormatError(f"Unknown collection type: {data.get('collectionType')!r}")
        condition = data.get("condition")
        if not isinstance(condition, dict):
            raise PolicyFormatError(f"Rule {data.get('id')!r} has no condition")
        return cls(
            id=str(data.get("id") or new_rule_id()),
            name=str(data.get("name", "")),
            action=action,
            collection_type=collection_type,
            condition=condition_from_dict(rule_type, condition),
            target_principal=str(data.get("targetPrincipal") or "Everyone"),
            description=str(data.get("description", "")),
        )


@dataclass(frozen=True)
class RuleCollection:
    """Ordered rules sharing one collection type, plus its enforcement mode."""

    collection_type: CollectionType
    enforcement_mode: EnforcementMode = EnforcementMode.AUDIT_ONLY
    rules: tuple[Rule, ...] = ()

    def __len__(self) -> int:
        return len(self.rules)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.collection_type.value,
            "enforcementMode": self.enforcement_mode.value,
            "rules": [rule.to_dict() for rule in self.rules],
        }


@dataclass(frozen=True)
class Policy:
    """Mapping of collection type to its rule collection (at most one per type)."""

    collections: dict[CollectionType, RuleCollection] = field(default_factory=dict)

    @classmethod
    def empty(cls) -> Policy:
        return cls()

    def get(self, collection_type: CollectionType) -> RuleCollection | None:
        return self.collections.get(collection_type)

    def ordered_collections(self) -> list[RuleCollection]:
        """Collections in canonical Exe, Msi, Script, Dll, Appx order."""
        return [self.collections[ct] for ct in CollectionType if ct in self.collections]

    def all_rules(self) -> list[Rule]:
        return [rule for coll in self.ordered_collections() for rule in coll.rules]

    def rules_of_type(self, rule_type: RuleType) -> list[Rule]:
        return [rule for rule in self.all_rules() if rule.type == rule_type]

    @property
    def rule_count(self) -> int:
        return sum(len(coll.rules) for coll in self.collections.values())

    def with_collection(self, collection: RuleCollection) -> Policy:
        """Return a copy with *collection* set (replacing any of the same type)."""
        collections = dict(self.collections)
        collections[collection.collection_type] = collection
        return replace(self, collections=collections)

    def restrict_to_phase(self, phase: PolicyPhase) -> Policy:
        """Return a copy holding only the collections *phase* deploys."""
        allowed = set(phase.collection_types)
        return Policy(collections={ct: coll for ct, coll in self.collections.items() if ct in allowed})

    def to_dict(self) -> dict[str, Any]:
        return {"ruleCollections": [coll.to_dict() for coll in self.ordered_collections()]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Policy:
        """Build a policy from its structured (JSON) form.

        Raises:
            PolicyFormatError: On unknown enum values, missing conditions or
                two collections of the same type.
        """
        if not isinstance(data, dict):
            raise PolicyFormatError("Policy document must be a mapping")
        collections: dict[CollectionType, RuleCollection] = {}
        for raw in data.get("ruleCollections", []) or []:
            collection_type = lookup_enum(CollectionType, raw.get("type"))
            if collection_type is None:
                raise PolicyFormatError(f"Unknown collection type: {raw.get('type')!r}")
            if collection_type in collections:
                raise PolicyFormatError(f"Duplicate rule collection: {collection_type.value}")
            mode = lookup_enum(EnforcementMode, raw.get("enforcementMode", EnforcementMode.AUDIT_ONLY.value))
            if mode is None:
                raise PolicyFormatError(f"Unknown enforcement mode: {raw.get('enforcementMode')!r}")
            rules = []
            for raw_rule in raw.get("rules", []) or []:
                rule = Rule.from_dict({**raw_rule, "collectionType": collection_type.value})
                rules.append(rule)
            collections[collection_type] = RuleCollection(collection_type, mode, tuple(rules))
        return cls(collections=collections)


# ---------------------------------------------------------------------------
# Synthesis outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Skip:
    """An artifact that produced no rule, kept for observability."""

    artifact_name: str
    reason: SkipReason
    detail: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.artifact_name, "reason": self.reason.value, "detail": self.detail}


@dataclass
class GenerationStatistics:
    """Counters produced alongside every synthesis run."""

    total_artifacts: int = 0
    publisher_rules: int = 0
    path_rules: int = 0
    hash_rules: int = 0
    skipped: int = 0
    errors: int = 0
    duplicates: int = 0
    # Artifacts kept without a de-duplication key (empty path)
    flagged: int = 0
    skipped_items: list[Skip] = field(default_factory=list)

    @property
    def total_rules(self) -> int:
        return self.publisher_rules + self.path_rules + self.hash_rules

    def record_rule(self, rule: Rule) -> None:
        if rule.type == RuleType.PUBLISHER:
            self.publisher_rules += 1
        elif rule.type == RuleType.PATH:
            self.path_rules += 1
        else:
            self.hash_rules += 1

    def record_skip(self, skip: Skip) -> None:
        self.skipped += 1
        if skip.reason == SkipReason.ARTIFACT_UNAVAILABLE:
            self.errors += 1
        self.skipped_items.append(skip)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalArtifacts": self.total_artifacts,
            "totalRules": self.total_rules,
            "rulesByType": {
                RuleType.PUBLISHER.value: self.publisher_rules,
                RuleType.PATH.value: self.path_rules,
                RuleType.HASH.value: self.hash_rules,
            },
            "skipped": self.skipped,
            "errors": self.errors,
            "duplicates": self.duplicates,
            "flagged": self.flagged,
            "skippedItems": [skip.to_dict() for skip in self.skipped_items],
        }


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


_SERVICE_STATUS_CODES = {1: "Stopped", 2: "StartPending", 3: "StopPending", 4: "Running", 7: "Paused"}
_SERVICE_START_CODES = {0: "Boot", 1: "System", 2: "Automatic", 3: "Manual", 4: "Disabled"}


@dataclass(frozen=True)
class ServiceStatus:
    """Caller-supplied state of the Application Identity (enforcement) service."""

    running: bool
    start_type: str = "Automatic"
    installed: bool = True

    @property
    def is_automatic(self) -> bool:
        return self.start_type.strip().lower().startswith("automatic")

    @classmethod
    def from_mapping(cls, data: dict[str, Any] | None) -> ServiceStatus:
        """Build from a ``{"Status": ..., "StartType": ...}`` service query result.

        Numeric service-controller codes are accepted as well as names.  A
        missing or empty mapping means the service is not installed.
        """
        if not data:
            return cls(running=False, start_type="", installed=False)
        status = data.get("Status", data.get("status", ""))
        start = data.get("StartType", data.get("startType", ""))
        if isinstance(status, int):
            status = _SERVICE_STATUS_CODES.get(status, str(status))
        if isinstance(start, int):
            start = _SERVICE_START_CODES.get(start, str(start))
        return cls(running=str(status).strip().lower() == "running", start_type=str(start))


@dataclass(frozen=True)
class HealthFinding:
    """A single policy health observation."""

    severity: Severity
    category: str
    message: str
    recommendation: str
    rule_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "severity": self.severity.value,
            "category": self.category,
            "message": self.message,
            "recommendation": self.recommendation,
            "ruleId": self.rule_id,
        }


@dataclass
class HealthReport:
    """Scored result of evaluating a policy."""

    score: int
    status: HealthStatus
    findings: list[HealthFinding] = field(default_factory=list)

    def get_findings_by_severity(self, severity: Severity) -> list[HealthFinding]:
        return [f for f in self.findings if f.severity == severity]

    @property
    def critical_count(self) -> int:
        return len(self.get_findings_by_severity(Severity.CRITICAL))

    @property
    def warning_count(self) -> int:
        return len(self.get_findings_by_severity(Severity.WARNING))

    @property
    def info_count(self) -> int:
        return len(self.get_findings_by_severity(Severity.INFO))

    @property
    def summary_counts(self) -> dict[str, int]:
        return {
            "critical": self.critical_count,
            "warning": self.warning_count,
            "info": self.info_count,
            "total": len(self.findings),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "status": self.status.value,
            "summary": self.summary_counts,
            "findings": [f.to_dict() for f in self.findings],
        }
