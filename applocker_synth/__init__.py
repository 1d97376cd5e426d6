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
applocker-synth - AppLocker rule synthesis, merge and health engine.
"""

from ._version import __version__

__author__ = "Cisco Systems, Inc."


def __getattr__(name: str):
    """Lazy-load public API symbols on first access.

    Keeps ``python -m applocker_synth.cli.cli`` from importing the whole
    engine (and PyYAML) before argument parsing.
    """
    _lazy_map = {
        "EngineConfig": (".config.config", "EngineConfig"),
        "AppLockerSynthConstants": (".config.constants", "AppLockerSynthConstants"),
        "Artifact": (".core.models", "Artifact"),
        "Rule": (".core.models", "Rule"),
        "RuleCollection": (".core.models", "RuleCollection"),
        "Policy": (".core.models", "Policy"),
        "ServiceStatus": (".core.models", "ServiceStatus"),
        "HealthReport": (".core.models", "HealthReport"),
        "GenerationOptions": (".core.options", "GenerationOptions"),
        "GenerationPolicy": (".core.generation_policy", "GenerationPolicy"),
        "normalize_artifact": (".core.normalizer", "normalize_artifact"),
        "load_artifact_document": (".core.normalizer", "load_artifact_document"),
        "extract_publisher": (".core.publisher", "extract_publisher"),
        "synthesize": (".core.synthesizer", "synthesize"),
        "create_path_rule": (".core.synthesizer", "create_path_rule"),
        "merge": (".core.merge", "merge"),
        "merge_policies": (".core.merge", "merge_policies"),
        "evaluate": (".core.health", "evaluate"),
        "diff": (".core.differ", "diff"),
        "RuleEngine": (".core.engine", "RuleEngine"),
        "policy_to_xml": (".core.policy_xml", "policy_to_xml"),
        "policy_from_xml": (".core.policy_xml", "policy_from_xml"),
    }
    if name in _lazy_map:
        module_path, attr = _lazy_map[name]
        import importlib

        mod = importlib.import_module(module_path, __package__)
        val = getattr(mod, attr)
        # Cache on the module so __getattr__ is only called once per symbol
        globals()[name] = val
        return val
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "RuleEngine",
    "Artifact",
    "Rule",
    "RuleCollection",
    "Policy",
    "ServiceStatus",
    "HealthReport",
    "GenerationOptions",
    "GenerationPolicy",
    "normalize_artifact",
    "load_artifact_document",
    "extract_publisher",
    "synthesize",
    "create_path_rule",
    "merge",
    "merge_policies",
    "evaluate",
    "diff",
    "policy_to_xml",
    "policy_from_xml",
    "EngineConfig",
    "AppLockerSynthConstants",
]
