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
Artifact de-duplication.

Three independent keys are used at different pipeline stages:

* **path** – case-insensitive, separator-normalized location (first stage,
  straight after normalization);
* **hash** – content digest (duplicate checks on artifacts that already carry
  a hash; the synthesizer applies the same key to the Hash rules it builds,
  since digests may only be known after reading the file);
* **publisher + name** – signing identity plus product name (duplicate report
  and ungrouped synthesis).

Every function keeps the first-seen artifact for a key.
"""

from __future__ import annotations

from collections.abc import Callable, Hashable, Iterable
from dataclasses import dataclass, field
from typing import Any

from .models import Artifact

KeyFunc = Callable[[Artifact], Hashable | None]


def path_key(artifact: Artifact) -> str | None:
    """Normalized path key; ``None`` for an empty path."""
    path = artifact.path.strip()
    if not path:
        return None
    return path.replace("/", "\\").rstrip("\\").lower()


def hash_key(artifact: Artifact) -> str | None:
    return artifact.hash.lower() if artifact.hash else None


def publisher_name_key(artifact: Artifact) -> tuple[str, str] | None:
    publisher = artifact.publisher_identity
    if publisher is None:
        return None
    return publisher.lower(), artifact.name.strip().lower()


@dataclass
class DedupResult:
    """Outcome of one de-duplication pass."""

    unique: list[Artifact] = field(default_factory=list)
    duplicates: list[Artifact] = field(default_factory=list)
    # Artifacts passed through without a key (e.g. empty path)
    flagged: list[Artifact] = field(default_factory=list)

    @property
    def duplicate_count(self) -> int:
        return len(self.duplicates)


def dedupe(artifacts: Iterable[Artifact], key: KeyFunc) -> DedupResult:
    """Keep the first artifact for each key; keyless artifacts are kept and flagged."""
    result = DedupResult()
    seen: set[Hashable] = set()
    for artifact in artifacts:
        k = key(artifact)
        if k is None:
            result.unique.append(artifact)
            result.flagged.append(artifact)
            continue
        if k in seen:
            result.duplicates.append(artifact)
            continue
        seen.add(k)
        result.unique.append(artifact)
    return result


def dedupe_by_path(artifacts: Iterable[Artifact]) -> DedupResult:
    """Collapse artifacts sharing one normalized path; empty paths are never collapsed."""
    return dedupe(artifacts, path_key)


def dedupe_by_hash(artifacts: Iterable[Artifact]) -> DedupResult:
    """Collapse artifacts sharing a supplied hash.

    A caller utility for pre-hashed inventories.  Batch synthesis de-duplicates
    the resulting Hash rules by digest instead, after files are inspected.
    """
    return dedupe(artifacts, hash_key)


def dedupe_by_publisher_name(artifacts: Iterable[Artifact]) -> DedupResult:
    return dedupe(artifacts, publisher_name_key)


@dataclass
class DuplicateReport:
    """Groups of artifacts that share a key, for review before generation."""

    path_duplicates: dict[str, list[Artifact]] = field(default_factory=dict)
    publisher_duplicates: dict[tuple[str, str], list[Artifact]] = field(default_factory=dict)
    total_items: int = 0

    @property
    def path_duplicate_count(self) -> int:
        return len(self.path_duplicates)

    @property
    def publisher_duplicate_count(self) -> int:
        return len(self.publisher_duplicates)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalItems": self.total_items,
            "pathDuplicateCount": self.path_duplicate_count,
            "publisherDuplicateCount": self.publisher_duplicate_count,
            "pathDuplicates": {k: [a.name for a in v] for k, v in self.path_duplicates.items()},
            "publisherDuplicates": {f"{p}|{n}": [a.name for a in v] for (p, n), v in self.publisher_duplicates.items()},
        }


def _groups(artifacts: list[Artifact], key: KeyFunc) -> dict:
    groups: dict = {}
    for artifact in artifacts:
        k = key(artifact)
        if k is not None:
            groups.setdefault(k, []).append(artifact)
    return {k: v for k, v in groups.items() if len(v) > 1}


def find_duplicates(artifacts: Iterable[Artifact]) -> DuplicateReport:
    """Report artifacts sharing a path or a (publisher, name) pair."""
    items = list(artifacts)
    return DuplicateReport(
        path_duplicates=_groups(items, path_key),
        publisher_duplicates=_groups(items, publisher_name_key),
        total_items=len(items),
    )
