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
Publisher extraction: certificate subject -> wildcard organization pattern.

The pattern is both the matching key of a Publisher rule and the grouping key
used when batching artifacts by vendor.
"""

from __future__ import annotations

import re

# ``O=`` as a whole RDN (not ``CO=`` / ``OU=``), optionally quoted.
_ORG_RE = re.compile(r'(?:^|,)\s*O\s*=\s*(?:"(?P<quoted>[^"]*)"|(?P<plain>[^,]*))', re.IGNORECASE)


def extract_organization(subject: str | None) -> str | None:
    """Return the bare ``O=`` value of *subject*, or ``None`` if it has none."""
    if not subject:
        return None
    match = _ORG_RE.search(subject)
    if not match:
        return None
    value = match.group("quoted") if match.group("quoted") is not None else match.group("plain")
    value = value.strip()
    return value or None


def extract_publisher(subject: str | None) -> str | None:
    """
    Derive the Publisher rule pattern from a signing identity string.

    ``"O=Contoso, L=Redmond, C=US"`` becomes ``"O=Contoso*"``.  A string
    without an ``O=`` component is returned verbatim (stripped), and an absent
    or blank value yields ``None``.

    Args:
        subject: Certificate-subject-like string.

    Returns:
        Wildcard organization pattern, the raw string, or None.
    """
    if subject is None:
        return None
    text = subject.strip()
    if not text:
        return None
    organization = extract_organization(text)
    if organization is None:
        return text
    # Already a pattern: keep a single trailing wildcard
    organization = organization.rstrip("*").strip() or organization
    return f"O={organization}*"


def publisher_display_name(pattern: str) -> str:
    """Human-readable vendor name for a pattern (``"O=Contoso*"`` -> ``"Contoso"``)."""
    organization = extract_organization(pattern)
    name = organization if organization is not None else pattern
    return name.rstrip("*").strip() or pattern
