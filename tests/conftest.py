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
Pytest configuration and shared fixtures.

This file is automatically loaded by pytest before running tests.
All fixtures defined here are available to every test module without
explicit imports.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from dotenv import load_dotenv

from applocker_synth.core.file_inspector import FileInspector
from applocker_synth.core.generation_policy import GenerationPolicy
from applocker_synth.core.models import (
    Artifact,
    CollectionType,
    EnforcementMode,
    HashCondition,
    PathCondition,
    Policy,
    PublisherCondition,
    Rule,
    RuleAction,
    RuleCollection,
    new_rule_id,
)
from applocker_synth.core.options import GenerationOptions

# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------

project_root = Path(__file__).parent.parent
env_file = project_root / ".env"

if env_file.exists():
    load_dotenv(env_file)


# ---------------------------------------------------------------------------
# Policy / options fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def default_policy() -> GenerationPolicy:
    """The built-in generation policy."""
    return GenerationPolicy.default()


@pytest.fixture
def offline_options() -> GenerationOptions:
    """Default options with on-disk inspection disabled."""
    return GenerationOptions(inspect_files=False)


@pytest.fixture
def no_signature_inspector() -> FileInspector:
    """Inspector that hashes files but never reports a signer."""
    return FileInspector(signature_reader=None)


# ---------------------------------------------------------------------------
# Factory fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def make_artifact():
    """Factory fixture for :class:`Artifact` values.

    Usage::

        artifact = make_artifact("C:\\\\A\\\\a.exe", publisher="O=Contoso, C=US")
    """

    def _make(
        path: str = "C:\\Tools\\tool.exe",
        name: str | None = None,
        publisher: str | None = None,
        hash: str | None = None,
        version: str | None = None,
        size: int | None = None,
    ) -> Artifact:
        file_name = path.replace("\\", "/").rsplit("/", 1)[-1]
        return Artifact(
            path=path,
            name=name or file_name,
            publisher_raw=publisher,
            hash=hash,
            version=version,
            size=size,
        )

    return _make


@pytest.fixture
def make_rule():
    """Factory fixture for :class:`Rule` values.

    Exactly one of *publisher*, *path* or *hash* selects the rule type.
    """

    def _make(
        publisher: str | None = None,
        path: str | None = None,
        hash: str | None = None,
        action: RuleAction = RuleAction.ALLOW,
        collection_type: CollectionType = CollectionType.EXE,
        name: str | None = None,
        rule_id: str | None = None,
    ) -> Rule:
        if publisher is not None:
            condition = PublisherCondition(publisher_name=publisher)
        elif path is not None:
            condition = PathCondition(path=path)
        else:
            condition = HashCondition(data=hash or "", source_file_name="file.exe", source_file_length=1)
        return Rule(
            id=rule_id or new_rule_id(),
            name=name or f"{action.value} rule",
            action=action,
            collection_type=collection_type,
            condition=condition,
        )

    return _make


@pytest.fixture
def make_policy():
    """Factory fixture: a single-collection :class:`Policy` from rules."""

    def _make(
        rules: list[Rule],
        collection_type: CollectionType = CollectionType.EXE,
        mode: EnforcementMode = EnforcementMode.AUDIT_ONLY,
    ) -> Policy:
        return Policy(collections={collection_type: RuleCollection(collection_type, mode, tuple(rules))})

    return _make
