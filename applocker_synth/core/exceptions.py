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

"""Rule engine exceptions.

All exceptions inherit from RuleEngineError for easy catching.  Only caller
mistakes and unparseable documents are raised; per-artifact and per-rule
problems inside a batch are reported as values (``Skip`` records and
``MergeConflict`` records) so the rest of the batch still runs.

Example:
    >>> from applocker_synth.core.options import GenerationOptions
    >>> from applocker_synth.core.exceptions import ConfigurationError
    >>>
    >>> try:
    ...     options = GenerationOptions.from_mapping({"action": "Permit"})
    ... except ConfigurationError as e:
    ...     print(f"Rejected: {e}")
"""

from __future__ import annotations

from collections.abc import Iterable


class RuleEngineError(Exception):
    """Base exception for all rule engine errors."""

    pass


class InvalidInputError(RuleEngineError, ValueError):
    """Raised when input data is rejected.

    This indicates:
    - An artifact record without a path
    - A malformed artifact record or document
    - An unknown enum value inside a data document
    """

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class ConfigurationError(RuleEngineError, ValueError):
    """Raised when caller options use a value outside the allowed set.

    The whole call is rejected before any processing starts.
    """

    def __init__(self, field: str, value: object, allowed: Iterable[str] = ()):
        self.field = field
        self.value = value
        self.allowed = list(allowed)
        message = f"Invalid value for {field}: {value!r}"
        if self.allowed:
            message += f" (allowed: {', '.join(self.allowed)})"
        super().__init__(message)


class ArtifactUnavailableError(RuleEngineError):
    """Raised when an artifact's file vanished or cannot be read.

    The synthesizer converts this into a Skip for that one artifact.
    """

    pass


class MalformedRuleError(RuleEngineError):
    """Raised when a rule's condition carries no usable identity."""

    pass


class PolicyFormatError(InvalidInputError):
    """Raised when a policy document (XML or structured) cannot be parsed."""

    pass


class TemplateNotFoundError(InvalidInputError):
    """Raised when a rule template id is unknown."""

    def __init__(self, template_id: str):
        super().__init__(f"Template {template_id} not found", field="template_id")
        self.template_id = template_id
