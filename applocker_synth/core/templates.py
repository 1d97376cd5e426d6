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
Rule templates – named, ready-made Publisher and Path rules.

Templates are declared in ``data/rule_templates.yaml``.  A template fixes the
rule's condition and action; the caller's :class:`GenerationOptions` supply
the collection type and target principal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from ..data import RULE_TEMPLATES_FILE
from .exceptions import PolicyFormatError, TemplateNotFoundError
from .models import Rule, RuleAction, RuleType, lookup_enum
from .options import GenerationOptions
from .synthesizer import create_path_rule, create_publisher_rule

logger = logging.getLogger(__name__)

_TEMPLATES_PATH = RULE_TEMPLATES_FILE


@dataclass(frozen=True)
class TemplateCategory:
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True)
class RuleTemplate:
    """A named rule recipe."""

    id: str
    name: str
    action: RuleAction
    rule_type: RuleType
    category: str
    description: str = ""
    publisher: str | None = None
    path: str | None = None
    tags: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "action": self.action.value,
            "ruleType": self.rule_type.value,
            "publisher": self.publisher,
            "path": self.path,
            "category": self.category,
            "tags": list(self.tags),
        }


class TemplateRegistry:
    """Read-only catalog of rule templates and their categories."""

    def __init__(self, templates: list[RuleTemplate] | None = None, categories: list[TemplateCategory] | None = None):
        self._templates: dict[str, RuleTemplate] = {t.id: t for t in templates or []}
        self._categories: dict[str, TemplateCategory] = {c.id: c for c in categories or []}

    @classmethod
    def from_yaml(cls, path: str | Path) -> TemplateRegistry:
        """Load templates from a YAML catalog.

        Raises:
            FileNotFoundError: If *path* does not exist.
            PolicyFormatError: On an unknown action or rule type, or a
                template without the condition its type needs.
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Template catalog not found: {path}")
        with open(path, encoding="utf-8") as fh:
            raw: dict[str, Any] = yaml.safe_load(fh) or {}

        categories = [
            TemplateCategory(id=str(cid), name=data.get("name", str(cid)), description=data.get("description", ""))
            for cid, data in (raw.get("categories") or {}).items()
        ]
        templates = [cls._parse_template(str(tid), data) for tid, data in (raw.get("templates") or {}).items()]
        logger.debug("Loaded %d rule templates from %s", len(templates), path)
        return cls(templates, categories)

    @staticmethod
    def _parse_template(template_id: str, data: dict[str, Any]) -> RuleTemplate:
        action = lookup_enum(RuleAction, data.get("action"))
        rule_type = lookup_enum(RuleType, data.get("rule_type"))
        if action is None or rule_type is None:
            raise PolicyFormatError(f"Template {template_id} has an invalid action or rule type")
        if rule_type == RuleType.HASH:
            raise PolicyFormatError(f"Template {template_id}: hash templates are not supported")
        template = RuleTemplate(
            id=template_id,
            name=data.get("name", template_id),
            action=action,
            rule_type=rule_type,
            category=str(data.get("category", "")),
            description=str(data.get("description", "")).strip(),
            publisher=data.get("publisher"),
            path=data.get("path"),
            tags=tuple(data.get("tags") or ()),
        )
        needed = template.publisher if rule_type == RuleType.PUBLISHER else template.path
        if not needed:
            raise PolicyFormatError(f"Template {template_id} is missing its {rule_type.value.lower()} condition")
        return template

    def get(self, template_id: str) -> RuleTemplate:
        """Look up a template by id.

        Raises:
            TemplateNotFoundError: If no template has that id.
        """
        try:
            return self._templates[template_id]
        except KeyError:
            raise TemplateNotFoundError(template_id) from None

    def list_templates(self, category: str | None = None) -> list[RuleTemplate]:
        """Templates in catalog order, optionally limited to one category.

        *category* may be a category id or its display name; ``"all"`` or
        None returns everything.
        """
        if category is None or category.lower() == "all":
            return list(self._templates.values())
        wanted = category.lower()
        ids = {cid for cid, c in self._categories.items() if wanted in (cid.lower(), c.name.lower())}
        return [t for t in self._templates.values() if t.category in ids]

    def categories(self) -> list[TemplateCategory]:
        return list(self._categories.values())

    def create_rule(self, template_id: str, options: GenerationOptions | None = None) -> Rule:
        """Instantiate a template as a new rule with a fresh id."""
        template = self.get(template_id)
        # The template decides the action
        options = replace(options or GenerationOptions(), action=template.action)
        if template.rule_type == RuleType.PUBLISHER:
            return create_publisher_rule(
                template.publisher or "",
                options,
                name=template.name,
                as_pattern=True,
                description=template.description,
            )
        return create_path_rule(template.path or "", options, name=template.name, description=template.description)

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: str) -> bool:
        return template_id in self._templates


@lru_cache(maxsize=1)
def default_registry() -> TemplateRegistry:
    """The built-in template catalog, loaded once."""
    return TemplateRegistry.from_yaml(_TEMPLATES_PATH)


def list_templates(category: str | None = None) -> list[RuleTemplate]:
    return default_registry().list_templates(category)


def get_template(template_id: str) -> RuleTemplate:
    return default_registry().get(template_id)


def create_rule_from_template(template_id: str, options: GenerationOptions | None = None) -> Rule:
    return default_registry().create_rule(template_id, options)
