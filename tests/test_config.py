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
Tests for process configuration.
"""

import logging

import pytest

from applocker_synth.config.config import EngineConfig
from applocker_synth.config.constants import AppLockerSynthConstants

_ENV_VARS = (
    "APPLOCKER_SYNTH_POLICY",
    "APPLOCKER_SYNTH_LOG_LEVEL",
    "APPLOCKER_SYNTH_INSPECT_FILES",
    "APPLOCKER_SYNTH_MAX_HASH_FILE_MB",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.policy_path is None
        assert config.log_level == AppLockerSynthConstants.DEFAULT_LOG_LEVEL
        assert config.inspect_files is True
        assert config.log_level_value == logging.WARNING

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("APPLOCKER_SYNTH_LOG_LEVEL", "debug")
        monkeypatch.setenv("APPLOCKER_SYNTH_INSPECT_FILES", "false")
        monkeypatch.setenv("APPLOCKER_SYNTH_MAX_HASH_FILE_MB", "8")
        config = EngineConfig.from_env()
        assert config.log_level == "DEBUG"
        assert config.log_level_value == logging.DEBUG
        assert config.inspect_files is False
        assert config.max_hash_file_mb == 8

    def test_explicit_values_win(self, monkeypatch):
        monkeypatch.setenv("APPLOCKER_SYNTH_LOG_LEVEL", "DEBUG")
        assert EngineConfig(log_level="ERROR").log_level == "ERROR"

    def test_invalid_size_ignored(self, monkeypatch):
        monkeypatch.setenv("APPLOCKER_SYNTH_MAX_HASH_FILE_MB", "lots")
        assert EngineConfig().max_hash_file_mb == AppLockerSynthConstants.DEFAULT_MAX_HASH_FILE_MB

    def test_unknown_log_level(self):
        assert EngineConfig(log_level="CHATTY").log_level_value == logging.WARNING

    def test_from_file(self, tmp_path, monkeypatch):
        # registered so the values load_dotenv writes are undone afterwards
        monkeypatch.setenv("APPLOCKER_SYNTH_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("APPLOCKER_SYNTH_INSPECT_FILES", "true")
        env_file = tmp_path / ".env"
        env_file.write_text("APPLOCKER_SYNTH_LOG_LEVEL=INFO\nAPPLOCKER_SYNTH_INSPECT_FILES=0\n", encoding="utf-8")
        config = EngineConfig.from_file(env_file)
        assert config.log_level == "INFO"
        assert config.inspect_files is False


class TestLoadGenerationPolicy:
    def test_builtin(self):
        policy = EngineConfig().load_generation_policy()
        assert policy.policy_name == "default"

    def test_policy_file_and_overrides(self, tmp_path):
        path = tmp_path / "org.yaml"
        path.write_text("policy_name: org\n", encoding="utf-8")
        config = EngineConfig(policy_path=str(path), inspect_files=False, max_hash_file_mb=1)
        policy = config.load_generation_policy()
        assert policy.policy_name == "org"
        assert policy.defaults.inspect_files is False
        assert policy.file_inspection.max_file_size_bytes == 1024 * 1024

    def test_missing_policy_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            EngineConfig().load_generation_policy(str(tmp_path / "absent.yaml"))
