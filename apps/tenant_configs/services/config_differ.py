"""
apps.tenant_configs.services.config_differ
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Structural diff between two tenant configuration snapshots.

Metadata fields are compared by value.  Editable sections are compared as
id → entity mappings by their sorted JSON form, so 1, 1.0 and True differ; sequence sections
(``content_showcase``) are keyed by each item's ``id``, falling back to the
item's position.  A section only appears in the diff when something in it
changed.

The differ is stateless: the same two documents always yield the same diff.
Missing or malformed sections are treated as empty.

Public API
----------
ConfigDiffer.diff(old_config, new_config) -> ConfigDiff
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from .section_classifier import (
    EDITABLE_SECTIONS,
    METADATA_FIELDS,
    SEQUENCE_SECTIONS,
)


@dataclass
class SectionChange:
    old_count: int
    new_count: int
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "old_count": self.old_count,
            "new_count": self.new_count,
            "added": list(self.added),
            "removed": list(self.removed),
            "modified": list(self.modified),
        }


@dataclass
class ConfigDiff:
    """
    Attributes:
        metadata_changes: ``{field: {"old": ..., "new": ...}}`` for every
            metadata field whose value differs.
        section_changes: ``{section: SectionChange}`` for every editable
            section that differs.
    """

    metadata_changes: dict[str, dict[str, Any]] = field(default_factory=dict)
    section_changes: dict[str, SectionChange] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.metadata_changes or self.section_changes)

    def to_dict(self) -> dict:
        return {
            "metadata_changes": dict(self.metadata_changes),
            "section_changes": {
                name: change.to_dict()
                for name, change in self.section_changes.items()
            },
            "has_changes": self.has_changes,
        }


def sequence_item_key(index: int, item: Any) -> str:
    """Key of one sequence item: its ``id``, or its position when it has none."""
    item_id = item.get("id") if isinstance(item, dict) else None
    return str(item_id) if item_id else str(index)


def canonical(value: Any) -> str:
    """Serialized form used for every equality check in a diff."""
    return json.dumps(value, sort_keys=True, default=str)


def section_as_mapping(section: Any) -> dict[str, Any]:
    """
    Normalise a section value to an ordered ``{id: entity}`` dict.

    Sequences are keyed by item ``id`` (or position); anything that is
    neither a mapping nor a sequence counts as empty.
    """
    if isinstance(section, dict):
        return {str(key): value for key, value in section.items()}
    if isinstance(section, (list, tuple)):
        mapping: dict[str, Any] = {}
        for index, item in enumerate(section):
            mapping.setdefault(sequence_item_key(index, item), item)
        return mapping
    return {}


class ConfigDiffer:
    """Pure, stateless configuration differ."""

    @staticmethod
    def diff(old_config: dict | None, new_config: dict | None) -> ConfigDiff:
        old_config = old_config or {}
        new_config = new_config or {}
        result = ConfigDiff()

        for field_name in METADATA_FIELDS:
            old_value = old_config.get(field_name)
            new_value = new_config.get(field_name)
            if canonical(old_value) != canonical(new_value):
                result.metadata_changes[field_name] = {
                    "old": old_value,
                    "new": new_value,
                }

        for section in EDITABLE_SECTIONS:
            change = ConfigDiffer._diff_section(
                section_as_mapping(old_config.get(section)),
                section_as_mapping(new_config.get(section)),
                ordered=section in SEQUENCE_SECTIONS,
            )
            if change is not None:
                result.section_changes[section] = change

        return result

    @staticmethod
    def _diff_section(
        old: dict[str, Any],
        new: dict[str, Any],
        ordered: bool = False,
    ) -> SectionChange | None:
        old_values = {key: canonical(value) for key, value in old.items()}
        new_values = {key: canonical(value) for key, value in new.items()}
        if old_values == new_values:
            if not ordered or list(old) == list(new):
                return None

        old_positions = {key: index for index, key in enumerate(old)}
        new_positions = {key: index for index, key in enumerate(new)}
        modified = [
            key for key in new
            if key in old and old_values[key] != new_values[key]
        ]
        if not modified and ordered and old_values == new_values:
            # Same items, different order.
            modified = [
                key for key in new
                if old_positions[key] != new_positions[key]
            ]

        return SectionChange(
            old_count=len(old),
            new_count=len(new),
            added=[key for key in new if key not in old],
            removed=[key for key in old if key not in new],
            modified=modified,
        )
