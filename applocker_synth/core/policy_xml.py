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
AppLocker XML policy document boundary.

Rules are immutable values inside the engine; XML is produced and parsed only
here.  The document shape is::

    <AppLockerPolicy Version="1">
      <RuleCollection Type="Exe" EnforcementMode="AuditOnly">
        <FilePublisherRule Id=".." Name=".." Description=".." UserOrGroupSid="S-1-1-0" Action="Allow">
          <Conditions>
            <FilePublisherCondition PublisherName="O=Contoso*" ProductName="*" BinaryName="*">
              <BinaryVersionRange LowSection="*" HighSection="*" />
            </FilePublisherCondition>
          </Conditions>
        </FilePublisherRule>
      </RuleCollection>
    </AppLockerPolicy>
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path

from .exceptions import PolicyFormatError
from .models import (
    CollectionType,
    EnforcementMode,
    HashCondition,
    PathCondition,
    Policy,
    PublisherCondition,
    Rule,
    RuleAction,
    RuleCollection,
    lookup_enum,
    new_rule_id,
    normalize_hash,
)

logger = logging.getLogger(__name__)

# Well-known principals and their SIDs
WELL_KNOWN_SIDS = {
    "Everyone": "S-1-1-0",
    "Administrators": "S-1-5-32-544",
    "Users": "S-1-5-32-545",
    "Authenticated Users": "S-1-5-11",
}
_SID_NAMES = {sid: name for name, sid in WELL_KNOWN_SIDS.items()}

_RULE_TAGS = {
    PublisherCondition: "FilePublisherRule",
    PathCondition: "FilePathRule",
    HashCondition: "FileHashRule",
}


def principal_to_sid(principal: str) -> str:
    """SID for a principal name; SIDs and unknown names pass through unchanged."""
    for name, sid in WELL_KNOWN_SIDS.items():
        if name.lower() == principal.strip().lower():
            return sid
    return principal.strip()


def sid_to_principal(sid: str) -> str:
    return _SID_NAMES.get(sid.strip().upper(), sid.strip())


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def _condition_element(rule: Rule) -> ET.Element:
    conditions = ET.Element("Conditions")
    condition = rule.condition
    if isinstance(condition, PublisherCondition):
        element = ET.SubElement(
            conditions,
            "FilePublisherCondition",
            PublisherName=condition.publisher_name,
            ProductName=condition.product_name,
            BinaryName=condition.binary_name,
        )
        ET.SubElement(
            element,
            "BinaryVersionRange",
            LowSection=condition.low_section,
            HighSection=condition.high_section,
        )
    elif isinstance(condition, PathCondition):
        ET.SubElement(conditions, "FilePathCondition", Path=condition.path)
    else:
        element = ET.SubElement(conditions, "FileHashCondition")
        ET.SubElement(
            element,
            "FileHash",
            Type=condition.hash_type,
            Data=f"0x{condition.data}",
            SourceFileName=condition.source_file_name,
            SourceFileLength=str(condition.source_file_length),
        )
    return conditions


def _rule_element(rule: Rule) -> ET.Element:
    element = ET.Element(
        _RULE_TAGS[type(rule.condition)],
        Id=rule.id,
        Name=rule.name,
        Description=rule.description,
        UserOrGroupSid=principal_to_sid(rule.target_principal),
        Action=rule.action.value,
    )
    element.append(_condition_element(rule))
    return element


def policy_to_element(policy: Policy) -> ET.Element:
    root = ET.Element("AppLockerPolicy", Version="1")
    for collection in policy.ordered_collections():
        coll_el = ET.SubElement(
            root,
            "RuleCollection",
            Type=collection.collection_type.value,
            EnforcementMode=collection.enforcement_mode.value,
        )
        for rule in collection.rules:
            coll_el.append(_rule_element(rule))
    return root


def policy_to_xml(policy: Policy) -> str:
    """Serialize *policy* as an indented AppLocker XML document."""
    root = policy_to_element(policy)
    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="unicode")


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _require(element: ET.Element, path: str, rule_id: str) -> ET.Element:
    found = element.find(path)
    if found is None:
        raise PolicyFormatError(f"Rule {rule_id} is missing {path.rsplit('/', 1)[-1]}")
    return found


def _parse_condition(tag: str, element: ET.Element, rule_id: str):
    if tag == "FilePublisherRule":
        cond = _require(element, "Conditions/FilePublisherCondition", rule_id)
        version = cond.find("BinaryVersionRange")
        return PublisherCondition(
            publisher_name=cond.get("PublisherName", ""),
            product_name=cond.get("ProductName", "*"),
            binary_name=cond.get("BinaryName", "*"),
            low_section=version.get("LowSection", "*") if version is not None else "*",
            high_section=version.get("HighSection", "*") if version is not None else "*",
        )
    if tag == "FilePathRule":
        cond = _require(element, "Conditions/FilePathCondition", rule_id)
        return PathCondition(path=cond.get("Path", ""))
    file_hash = _require(element, "Conditions/FileHashCondition/FileHash", rule_id)
    try:
        length = int(file_hash.get("SourceFileLength", "0") or 0)
    except ValueError as e:
        raise PolicyFormatError(f"Rule {rule_id} has an invalid SourceFileLength") from e
    return HashCondition(
        data=normalize_hash(file_hash.get("Data")) or "",
        source_file_name=file_hash.get("SourceFileName", ""),
        source_file_length=length,
        hash_type=file_hash.get("Type", "SHA256"),
    )


def _parse_rule(element: ET.Element, collection_type: CollectionType) -> Rule:
    rule_id = element.get("Id") or new_rule_id()
    action = lookup_enum(RuleAction, element.get("Action"))
    if action is None:
        raise PolicyFormatError(f"Rule {rule_id} has an invalid Action: {element.get('Action')!r}")
    return Rule(
        id=rule_id,
        name=element.get("Name", ""),
        action=action,
        collection_type=collection_type,
        condition=_parse_condition(element.tag, element, rule_id),
        target_principal=sid_to_principal(element.get("UserOrGroupSid", "S-1-1-0")),
        description=element.get("Description", ""),
    )


def policy_from_element(root: ET.Element) -> Policy:
    if root.tag != "AppLockerPolicy":
        raise PolicyFormatError(f"Expected AppLockerPolicy root element, got {root.tag}")
    collections: dict[CollectionType, RuleCollection] = {}
    for coll_el in root.findall("RuleCollection"):
        collection_type = lookup_enum(CollectionType, coll_el.get("Type"))
        if collection_type is None:
            raise PolicyFormatError(f"Unknown rule collection type: {coll_el.get('Type')!r}")
        if collection_type in collections:
            raise PolicyFormatError(f"Duplicate rule collection: {collection_type.value}")
        mode = lookup_enum(EnforcementMode, coll_el.get("EnforcementMode", EnforcementMode.NOT_CONFIGURED.value))
        if mode is None:
            raise PolicyFormatError(f"Unknown enforcement mode: {coll_el.get('EnforcementMode')!r}")
        rules = []
        for child in coll_el:
            if child.tag not in _RULE_TAGS.values():
                logger.debug("Ignoring unsupported element %s in %s collection", child.tag, collection_type.value)
                continue
            rules.append(_parse_rule(child, collection_type))
        collections[collection_type] = RuleCollection(collection_type, mode, tuple(rules))
    return Policy(collections=collections)


def policy_from_xml(text: str) -> Policy:
    """Parse an AppLocker XML document.

    Raises:
        PolicyFormatError: If the XML is malformed or does not describe a
            valid policy.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as e:
        raise PolicyFormatError(f"Malformed policy XML: {e}") from e
    return policy_from_element(root)


def load_policy_file(path: str | Path) -> Policy:
    """Load a policy from ``.xml`` or structured ``.json`` file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8-sig")
    if path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise PolicyFormatError(f"Malformed policy JSON: {e}") from e
        return Policy.from_dict(data)
    return policy_from_xml(text)
