# Copyright 2026 Cisco Systems, Inc. and its affiliates
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
Tests for AppLocker XML serialization and parsing.
"""

import json
import xml.etree.ElementTree as ET

import pytest

from applocker_synth.core.exceptions import PolicyFormatError
from applocker_synth.core.models import (
    CollectionType,
    EnforcementMode,
    HashCondition,
    Policy,
    RuleAction,
    RuleCollection,
)
from applocker_synth.core.policy_xml import (
    load_policy_file,
    policy_from_xml,
    policy_to_xml,
    principal_to_sid,
    sid_to_principal,
)

SAMPLE_XML = """<AppLockerPolicy Version="1">
  <RuleCollection Type="Exe" EnforcementMode="Enabled">
    <FilePublisherRule Id="r1" Name="Allow Contoso" Description="" UserOrGroupSid="S-1-1-0" Action="Allow">
      <Conditions>
        <FilePublisherCondition PublisherName="O=Contoso*" ProductName="*" BinaryName="*">
          <BinaryVersionRange LowSection="*" HighSection="*" />
        </FilePublisherCondition>
      </Conditions>
    </FilePublisherRule>
    <FileHashRule Id="r2" Name="Allow tool" Description="" UserOrGroupSid="S-1-5-32-545" Action="Allow">
      <Conditions>
        <FileHashCondition>
          <FileHash Type="SHA256" Data="0xabcd" SourceFileName="tool.exe" SourceFileLength="10" />
        </FileHashCondition>
      </Conditions>
    </FileHashRule>
    <FilePathRule Id="r3" Name="Deny temp" Description="" UserOrGroupSid="S-1-5-21-1" Action="Deny">
      <Conditions>
        <FilePathCondition Path="%TEMP%\\*" />
      </Conditions>
      <Exceptions />
    </FilePathRule>
  </RuleCollection>
  <RuleCollection Type="Msi" EnforcementMode="AuditOnly" />
</AppLockerPolicy>
"""


class TestPrincipals:
    def test_well_known_names(self):
        assert principal_to_sid("Everyone") == "S-1-1-0"
        assert principal_to_sid("users") == "S-1-5-32-545"
        assert sid_to_principal("S-1-5-32-544") == "Administrators"

    def test_unknown_passes_through(self):
        assert principal_to_sid("S-1-5-21-42") == "S-1-5-21-42"
        assert sid_to_principal("S-1-5-21-42") == "S-1-5-21-42"


class TestParsing:
    def test_sample_document(self):
        policy = policy_from_xml(SAMPLE_XML)
        exe = policy.get(CollectionType.EXE)
        assert exe.enforcement_mode == EnforcementMode.ENABLED
        assert [r.id for r in exe.rules] == ["r1", "r2", "r3"]

        publisher, hashed, path = exe.rules
        assert publisher.condition.publisher_name == "O=Contoso*"
        assert publisher.target_principal == "Everyone"
        assert isinstance(hashed.condition, HashCondition)
        assert hashed.condition.data == "ABCD"
        assert hashed.condition.source_file_length == 10
        assert hashed.target_principal == "Users"
        assert path.action == RuleAction.DENY
        assert path.condition.path == "%TEMP%\\*"
        assert path.target_principal == "S-1-5-21-1"

    def test_empty_collection_kept(self):
        policy = policy_from_xml(SAMPLE_XML)
        msi = policy.get(CollectionType.MSI)
        assert msi.enforcement_mode == EnforcementMode.AUDIT_ONLY
        assert msi.rules == ()

    @pytest.mark.parametrize(
        "text",
        [
            "<AppLockerPolicy><RuleCollection",
            "<Policy />",
            '<AppLockerPolicy><RuleCollection Type="Kernel" /></AppLockerPolicy>',
            '<AppLockerPolicy><RuleCollection Type="Exe" EnforcementMode="Strict" /></AppLockerPolicy>',
            '<AppLockerPolicy><RuleCollection Type="Exe" /><RuleCollection Type="Exe" /></AppLockerPolicy>',
            '<AppLockerPolicy><RuleCollection Type="Exe">'
            '<FilePathRule Id="x" Action="Maybe"><Conditions><FilePathCondition Path="C:\\" /></Conditions>'
            "</FilePathRule></RuleCollection></AppLockerPolicy>",
            '<AppLockerPolicy><RuleCollection Type="Exe">'
            '<FileHashRule Id="x" Action="Allow"><Conditions /></FileHashRule>'
            "</RuleCollection></AppLockerPolicy>",
        ],
    )
    def test_malformed_documents(self, text):
        with pytest.raises(PolicyFormatError):
            policy_from_xml(text)


class TestSerialization:
    def test_round_trip(self, make_rule):
        rules = (
            make_rule(publisher="O=Contoso*", name="pub"),
            make_rule(path="%PROGRAMFILES%\\*", action=RuleAction.DENY, name="path"),
            make_rule(hash="ABCD", name="hash"),
        )
        policy = Policy(
            collections={
                CollectionType.EXE: RuleCollection(CollectionType.EXE, EnforcementMode.ENABLED, rules),
                CollectionType.SCRIPT: RuleCollection(CollectionType.SCRIPT, EnforcementMode.AUDIT_ONLY),
            }
        )
        assert policy_from_xml(policy_to_xml(policy)) == policy

    def test_document_shape(self, make_rule):
        rule = make_rule(hash="abcd")
        policy = Policy(collections={CollectionType.EXE: RuleCollection(CollectionType.EXE, rules=(rule,))})
        root = ET.fromstring(policy_to_xml(policy))
        assert root.tag == "AppLockerPolicy"
        collection = root.find("RuleCollection")
        assert collection.get("EnforcementMode") == "AuditOnly"
        element = collection.find("FileHashRule")
        assert element.get("UserOrGroupSid") == "S-1-1-0"
        assert element.find("Conditions/FileHashCondition/FileHash").get("Data") == "0xabcd"

    def test_collections_in_canonical_order(self):
        policy = Policy(
            collections={
                CollectionType.DLL: RuleCollection(CollectionType.DLL),
                CollectionType.EXE: RuleCollection(CollectionType.EXE),
            }
        )
        root = ET.fromstring(policy_to_xml(policy))
        assert [c.get("Type") for c in root.findall("RuleCollection")] == ["Exe", "Dll"]


class TestLoadPolicyFile:
    def test_xml_file(self, tmp_path):
        path = tmp_path / "policy.xml"
        path.write_text(SAMPLE_XML, encoding="utf-8")
        assert load_policy_file(path).rule_count == 3

    def test_json_file(self, tmp_path, make_rule, make_policy):
        policy = make_policy([make_rule(publisher="O=A*")])
        path = tmp_path / "policy.json"
        path.write_text(json.dumps(policy.to_dict()), encoding="utf-8")
        assert load_policy_file(path) == policy

    def test_bad_json(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(PolicyFormatError):
            load_policy_file(path)
