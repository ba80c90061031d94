"""
apps.editor.services.dependency_resolver
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Read-only impact analysis over the declared dependency edges.

Given an entity id in one editable section, the resolver scans every section
for entities whose declared reference fields (see
:data:`~apps.editor.services.entity_registry.REFERENCE_DECLARATIONS`) point
at that id.  It never mutates anything and never blocks a deletion; the
caller decides what to do with the report.

Public API
----------
DependencyResolver(state).get_dependencies(section, entity_id) -> DependencyReport | None
DependencyResolver(state).find_orphaned_references()            -> list[OrphanedReference]
DependencyResolver.for_config(config)                           -> DependencyResolver
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import structlog

from apps.tenant_configs.services.config_differ import section_as_mapping
from .entity_registry import (
    ENTITY_KINDS,
    REFERENCE_DECLARATIONS,
    EntityKind,
    EntityKindSpec,
    references_to,
    spec_for_section,
)

logger = structlog.get_logger(__name__)

EntitiesGetter = Callable[[str], dict[str, Any]]


@dataclass
class DependentEntity:
    """An entity that references the inspected entity."""

    kind: EntityKind
    entity_id: str
    name: str
    fields: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.entity_id,
            "name": self.name,
            "fields": list(self.fields),
        }


@dataclass
class DependencyReport:
    """
    Entities referencing ``entity_id``, grouped by their kind.

    Attributes:
        section: Section of the inspected entity.
        entity_id: The inspected entity's id.
        entity_name: Display name of the inspected entity (its id when it
            no longer exists or has no name).
        dependents: ``{kind: [DependentEntity, ...]}`` in scan order.
    """

    section: str
    entity_id: str
    entity_name: str
    dependents: dict[EntityKind, list[DependentEntity]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(len(items) for items in self.dependents.values())

    def entity_ids(self, kind: EntityKind | str) -> set[str]:
        return {item.entity_id for item in self.dependents.get(EntityKind(kind), [])}

    @property
    def summary(self) -> str:
        """
        Display-ready sentence, e.g.
        ``CTA "Apply Now" is used by 2 Branches (b1, b2).``
        """
        label = spec_for_section(self.section).label
        parts = []
        for kind, items in self.dependents.items():
            spec = ENTITY_KINDS[kind]
            names = ", ".join(item.name for item in items)
            parts.append(f"{len(items)} {spec.pluralise(len(items))} ({names})")
        if len(parts) > 1:
            used_by = ", ".join(parts[:-1]) + f" and {parts[-1]}"
        else:
            used_by = parts[0] if parts else "nothing"
        return f'{label} "{self.entity_name}" is used by {used_by}.'

    def to_dict(self) -> dict:
        return {
            "section": self.section,
            "entity_id": self.entity_id,
            "summary": self.summary,
            "dependents": {
                kind.value: [item.to_dict() for item in items]
                for kind, items in self.dependents.items()
            },
        }


@dataclass(frozen=True)
class OrphanedReference:
    """A declared reference whose target id does not exist."""

    kind: EntityKind
    entity_id: str
    field_name: str
    missing_kind: EntityKind
    missing_id: str

    @property
    def issue(self) -> str:
        target = ENTITY_KINDS[self.missing_kind].label
        return f"References non-existent {target} via {self.field_name}: {self.missing_id}"


class _ConfigView:
    def __init__(self, config: dict) -> None:
        self._config = config or {}

    def get_entities(self, section: str) -> dict[str, Any]:
        return section_as_mapping(self._config.get(section))


class DependencyResolver:
    """
    Impact analysis over one configuration snapshot.

    Args:
        state: Any object exposing ``get_entities(section) -> {id: entity}``,
            normally an :class:`~apps.editor.services.editor_state.EditorState`.
    """

    def __init__(self, state: Any) -> None:
        self._get_entities: EntitiesGetter = state.get_entities

    @classmethod
    def for_config(cls, config: dict) -> "DependencyResolver":
        """Build a resolver over a plain configuration document."""
        return cls(_ConfigView(config))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_dependencies(self, section: str, entity_id: str) -> DependencyReport | None:
        """
        Report every entity referencing *entity_id* of *section*.

        Returns:
            ``None`` when nothing references the entity (or *section* holds
            no entity kind); otherwise a :class:`DependencyReport`.
        """
        try:
            target_spec = spec_for_section(section)
        except KeyError:
            logger.warning("dependency_unknown_section", section=section)
            return None

        entity_id = str(entity_id)
        found: dict[tuple[EntityKind, str], DependentEntity] = {}

        for declaration in references_to(target_spec.kind):
            source_spec = ENTITY_KINDS[declaration.source]
            for source_id, entity in self._get_entities(source_spec.section).items():
                if entity_id not in declaration.referenced_ids(entity):
                    continue
                key = (source_spec.kind, source_id)
                dependent = found.get(key)
                if dependent is None:
                    dependent = DependentEntity(
                        kind=source_spec.kind,
                        entity_id=source_id,
                        name=source_spec.display_name(source_id, entity),
                    )
                    found[key] = dependent
                if declaration.field_name not in dependent.fields:
                    dependent.fields.append(declaration.field_name)

        if not found:
            return None

        report = DependencyReport(
            section=section,
            entity_id=entity_id,
            entity_name=self._display_name(target_spec, entity_id),
        )
        for (kind, _), dependent in found.items():
            report.dependents.setdefault(kind, []).append(dependent)
        return report

    def find_orphaned_references(self) -> list[OrphanedReference]:
        """List every declared reference pointing at a missing entity."""
        orphans: list[OrphanedReference] = []
        for declaration in REFERENCE_DECLARATIONS:
            source_spec = ENTITY_KINDS[declaration.source]
            targets = self._get_entities(ENTITY_KINDS[declaration.target].section)
            for source_id, entity in self._get_entities(source_spec.section).items():
                for referenced_id in declaration.referenced_ids(entity):
                    if referenced_id not in targets:
                        orphans.append(OrphanedReference(
                            kind=source_spec.kind,
                            entity_id=source_id,
                            field_name=declaration.field_name,
                            missing_kind=declaration.target,
                            missing_id=referenced_id,
                        ))
        return orphans

    def _display_name(self, spec: EntityKindSpec, entity_id: str) -> str:
        entity = self._get_entities(spec.section).get(entity_id)
        return spec.display_name(entity_id, entity)
