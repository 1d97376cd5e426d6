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
Process configuration for the applocker-synth command line.

The engine itself never reads the environment; the CLI builds an
:class:`EngineConfig` and passes explicit objects down.
"""

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path

from dotenv import load_dotenv

from ..core.generation_policy import GenerationPolicy
from .constants import AppLockerSynthConstants

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    """
    Configuration for applocker-synth.

    Values left at their defaults are filled from ``APPLOCKER_SYNTH_*``
    environment variables.
    """

    # Generation policy YAML overlaid on the built-in defaults
    policy_path: str | None = None

    # Logging
    log_level: str = AppLockerSynthConstants.DEFAULT_LOG_LEVEL

    # File inspection
    inspect_files: bool = True
    max_hash_file_mb: int = AppLockerSynthConstants.DEFAULT_MAX_HASH_FILE_MB

    # Output Options
    output_format: str = "summary"

    def __post_init__(self):
        """Load configuration from environment variables if not provided."""

        if self.policy_path is None:
            self.policy_path = os.getenv("APPLOCKER_SYNTH_POLICY") or None

        if self.log_level == AppLockerSynthConstants.DEFAULT_LOG_LEVEL:
            if env_level := os.getenv("APPLOCKER_SYNTH_LOG_LEVEL"):
                self.log_level = env_level.upper()

        if os.getenv("APPLOCKER_SYNTH_INSPECT_FILES", "").lower() in ("false", "0"):
            self.inspect_files = False

        if self.max_hash_file_mb == AppLockerSynthConstants.DEFAULT_MAX_HASH_FILE_MB:
            if env_size := os.getenv("APPLOCKER_SYNTH_MAX_HASH_FILE_MB"):
                try:
                    self.max_hash_file_mb = int(env_size)
                except ValueError:
                    logger.warning("Ignoring invalid APPLOCKER_SYNTH_MAX_HASH_FILE_MB: %s", env_size)

    @property
    def log_level_value(self) -> int:
        """Numeric logging level, WARNING for unknown names."""
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.WARNING

    def load_generation_policy(self, policy_path: str | None = None) -> GenerationPolicy:
        """
        Build the effective generation policy.

        Args:
            policy_path: Overrides ``self.policy_path``.

        Raises:
            FileNotFoundError: If the policy file does not exist.
        """
        path = policy_path or self.policy_path
        policy = GenerationPolicy.from_yaml(path) if path else GenerationPolicy.default()
        if not self.inspect_files:
            policy.defaults = replace(policy.defaults, inspect_files=False)
        if self.max_hash_file_mb != AppLockerSynthConstants.DEFAULT_MAX_HASH_FILE_MB:
            policy.file_inspection.max_file_size_bytes = self.max_hash_file_mb * 1024 * 1024
        return policy

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """
        Create configuration from environment variables.

        Returns:
            EngineConfig instance with values from environment
        """
        return cls()

    @classmethod
    def from_file(cls, config_file: Path) -> "EngineConfig":
        """
        Load configuration from .env file.

        Args:
            config_file: Path to .env file

        Returns:
            EngineConfig instance
        """
        if config_file.exists():
            load_dotenv(config_file, override=True)
        return cls.from_env()
