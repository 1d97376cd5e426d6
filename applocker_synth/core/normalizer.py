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
Artifact normalization: heterogeneous scanner records -> canonical Artifacts.

Scanner output arrives in several shapes (PowerShell PascalCase objects,
camelCase UI inventory items, the ``{"Executables": [...], "WritablePaths":
[...]}`` artifact document).  Normalization is a pure function: it picks the
recognized fields, derives a missing name from the path, maps "unsigned"
placeholders to no publisher and drops everything else silently.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .exceptions import InvalidInputError
from .generation_policy import NormalizationPolicy
from .models import Artifact, normalize_hash, path_file_name

logger = logging.getLogger(__name__)

# Canonical field -> accepted record keys, in lookup order
_FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "path": ("path", "Path", "FilePath", "filePath", "FullName", "fullPath"),
    "name": ("name", "Name", "FileName", "fileName"),
    "publisher": ("publisher", "Publisher", "publisherRaw", "publisherName", "PublisherName", "Signer", "signer"),
    "hash": ("hash", "Hash", "SHA256", "sha256", "FileHash", "fileHash"),
    "version": ("version", "Version", "FileVersion", "ProductVersion"),
    "source": ("source", "Source"),
    "size": ("size", "Size", "Length", "length", "SourceFileLength"),
    "type": ("type", "Type"),
}

DOCUMENT_SECTIONS = ("Executables", "WritablePaths")


def _pick(record: Mapping[str, Any], canonical: str) -> Any:
    for key in _FIELD_KEYS[canonical]:
        if key in record and record[key] is not None:
            return record[key]
    return None


def _clean_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_size(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        size = int(value)
    except (TypeError, ValueError):
        return None
    return size if size >= 0 else None


def normalize_artifact(
    record: Mapping[str, Any],
    policy: NormalizationPolicy | None = None,
    *,
    default_source: str = "scan",
) -> Artifact:
    """
    Canonicalize one raw scanner record.

    Args:
        record: Raw record (any supported key style).
        policy: Normalization knobs; built-in markers when None.
        default_source: Source label used when the record has none.

    Returns:
        Artifact

    Raises:
        InvalidInputError: If the record is not a mapping or has no path.
    """
    if not isinstance(record, Mapping):
        raise InvalidInputError(f"Artifact record must be a mapping, got {type(record).__name__}")
    policy = policy or NormalizationPolicy()

    raw_path = _pick(record, "path")
    if raw_path is not None and not isinstance(raw_path, str):
        raise InvalidInputError("Artifact path must be a string", field="path")
    path = (raw_path or "").strip()
    if not path:
        raise InvalidInputError("Artifact path is required", field="path")

    name = _clean_text(_pick(record, "name")) or path_file_name(path)

    publisher = _clean_text(_pick(record, "publisher"))
    if publisher is not None and policy.is_unknown_publisher(publisher):
        publisher = None

    return Artifact(
        path=path,
        name=name,
        publisher_raw=publisher,
        hash=normalize_hash(_clean_text(_pick(record, "hash"))),
        version=_clean_text(_pick(record, "version")),
        source=_clean_text(_pick(record, "source")) or default_source,
        size=_parse_size(_pick(record, "size")),
        file_type=_clean_text(_pick(record, "type")),
    )


@dataclass(frozen=True)
class RejectedRecord:
    """A raw record that could not be normalized."""

    index: int
    reason: str
    section: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"index": self.index, "section": self.section, "reason": self.reason}


@dataclass
class NormalizationResult:
    """Artifacts normalized from a batch, plus the records that were rejected."""

    artifacts: list[Artifact] = field(default_factory=list)
    rejected: list[RejectedRecord] = field(default_factory=list)


def normalize_records(
    records: Iterable[Any],
    policy: NormalizationPolicy | None = None,
    *,
    section: str = "",
    default_source: str = "scan",
) -> NormalizationResult:
    """Normalize every record, collecting rejects instead of stopping."""
    result = NormalizationResult()
    for index, record in enumerate(records):
        try:
            result.artifacts.append(normalize_artifact(record, policy, default_source=default_source))
        except InvalidInputError as e:
            logger.debug("Rejected artifact record %s[%d]: %s", section or "records", index, e)
            result.rejected.append(RejectedRecord(index=index, reason=str(e), section=section))
    return result


def load_artifact_document(document: Any, policy: NormalizationPolicy | None = None) -> NormalizationResult:
    """
    Normalize a scanner artifact document.

    Accepts a bare list of records, or a mapping with ``Executables`` and/or
    ``WritablePaths`` lists.  Writable-path entries are location observations
    only, so any publisher they carry is discarded.

    Raises:
        InvalidInputError: If the document is neither a list nor a mapping
            with a recognized section.
    """
    if isinstance(document, list):
        return normalize_records(document, policy)
    if not isinstance(document, Mapping):
        raise InvalidInputError(f"Artifact document must be a list or mapping, got {type(document).__name__}")

    sections = [name for name in DOCUMENT_SECTIONS if name in document]
    if not sections:
        raise InvalidInputError(f"Artifact document has none of the sections: {', '.join(DOCUMENT_SECTIONS)}")

    combined = NormalizationResult()
    for section in sections:
        records = document.get(section) or []
        if not isinstance(records, list):
            raise InvalidInputError(f"Artifact document section {section} must be a list", field=section)
        if section == "WritablePaths":
            records = [_strip_publisher(r) for r in records]
            part = normalize_records(records, policy, section=section, default_source="writable_path")
        else:
            part = normalize_records(records, policy, section=section)
        combined.artifacts.extend(part.artifacts)
        combined.rejected.extend(part.rejected)
    return combined


def _strip_publisher(record: Any) -> Any:
    if not isinstance(record, Mapping):
        return record
    return {k: v for k, v in record.items() if k not in _FIELD_KEYS["publisher"]}
