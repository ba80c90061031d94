"""
apps.editor.services.entity_registry
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Static registry of editable entity kinds and the references between them.

Entity kinds form a closed set (:class:`EntityKind`), one per editable
section.  Every "entity A references entity B by id" relation is declared
here, in :data:`REFERENCE_DECLARATIONS`, and nowhere else.  Adding a new
kind or reference field means adding a row below; the dependency resolver
and orphan detection pick it up automatically.

=========  =========================  ==============================  ========
Source     Field                      Condition                       Target
=========  =========================  ==============================  ========
form       ``program``                –                               program
cta        ``formId``                 ``action == "start_form"``      form
branch     ``available_ctas.primary`` –                               cta
branch     ``available_ctas.secondary`` (sequence)                    cta
showcase   ``action.cta_id``          ``action.type == "cta"``        cta
=========  =========================  ==============================  ========
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class EntityKind(str, Enum):
    PROGRAM = "program"
    FORM = "form"
    CTA = "cta"
    BRANCH = "branch"
    SHOWCASE = "showcase"


@dataclass(frozen=True)
class EntityKindSpec:
    """
    How one entity kind is stored and identified.

    Attributes:
        kind: The entity kind.
        section: Editable section holding entities of this kind.
        label / label_plural: Human-readable names for messages.
        id_field: Field carrying the entity id on a submitted entity.
        id_is_key_only: When ``True`` the id lives only in the section's
            mapping key; *id_field* is stripped before the entity is stored.
        name_field: Field used as the display name; the id is used when
            ``None`` or when the field is empty.
    """

    kind: EntityKind
    section: str
    label: str
    label_plural: str
    id_field: str
    id_is_key_only: bool = False
    name_field: str | None = None

    def extract_id(self, entity: dict) -> str | None:
        value = entity.get(self.id_field) if isinstance(entity, dict) else None
        return str(value) if value else None

    def display_name(self, entity_id: str, entity: Any) -> str:
        if self.name_field and isinstance(entity, dict):
            name = entity.get(self.name_field)
            if name:
                return str(name)
        return entity_id

    def pluralise(self, count: int) -> str:
        return self.label if count == 1 else self.label_plural


ENTITY_KINDS: dict[EntityKind, EntityKindSpec] = {
    EntityKind.PROGRAM: EntityKindSpec(
        kind=EntityKind.PROGRAM,
        section="programs",
        label="Program",
        label_plural="Programs",
        id_field="program_id",
        name_field="program_name",
    ),
    EntityKind.FORM: EntityKindSpec(
        kind=EntityKind.FORM,
        section="conversational_forms",
        label="Form",
        label_plural="Forms",
        id_field="form_id",
        name_field="title",
    ),
    EntityKind.CTA: EntityKindSpec(
        kind=EntityKind.CTA,
        section="cta_definitions",
        label="CTA",
        label_plural="CTAs",
        id_field="cta_id",
        id_is_key_only=True,
        name_field="label",
    ),
    EntityKind.BRANCH: EntityKindSpec(
        kind=EntityKind.BRANCH,
        section="conversation_branches",
        label="Branch",
        label_plural="Branches",
        id_field="branch_id",
        id_is_key_only=True,
    ),
    EntityKind.SHOWCASE: EntityKindSpec(
        kind=EntityKind.SHOWCASE,
        section="content_showcase",
        label="Showcase Item",
        label_plural="Showcase Items",
        id_field="id",
        name_field="name",
    ),
}

_BY_SECTION: dict[str, EntityKindSpec] = {
    spec.section: spec for spec in ENTITY_KINDS.values()
}


def spec_for_section(section: str) -> EntityKindSpec:
    """Raise :class:`KeyError` for a section that holds no entity kind."""
    return _BY_SECTION[section]


def spec_for_kind(kind: EntityKind | str) -> EntityKindSpec:
    return ENTITY_KINDS[EntityKind(kind)]


def _lookup(entity: Any, path: tuple[str, ...]) -> Any:
    value = entity
    for part in path:
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


@dataclass(frozen=True)
class ReferenceDeclaration:
    """
    A declared dependency edge: *source* entities reference *target*
    entities through the field at *path*.

    Attributes:
        many: The field holds an ordered sequence of ids instead of one id.
        condition: Optional ``(path, expected_value)``; the reference only
            counts when the value at that path equals *expected_value*.
    """

    source: EntityKind
    target: EntityKind
    path: tuple[str, ...]
    many: bool = False
    condition: tuple[tuple[str, ...], Any] | None = None

    @property
    def field_name(self) -> str:
        return ".".join(self.path)

    def referenced_ids(self, entity: Any) -> list[str]:
        """Ids referenced by *entity* through this field, in field order."""
        if self.condition is not None:
            condition_path, expected = self.condition
            if _lookup(entity, condition_path) != expected:
                return []

        value = _lookup(entity, self.path)
        if self.many:
            if not isinstance(value, (list, tuple)):
                return []
            return [str(item) for item in value if item]
        return [str(value)] if value else []


REFERENCE_DECLARATIONS: tuple[ReferenceDeclaration, ...] = (
    ReferenceDeclaration(
        source=EntityKind.FORM,
        target=EntityKind.PROGRAM,
        path=("program",),
    ),
    ReferenceDeclaration(
        source=EntityKind.CTA,
        target=EntityKind.FORM,
        path=("formId",),
        condition=(("action",), "start_form"),
    ),
    ReferenceDeclaration(
        source=EntityKind.BRANCH,
        target=EntityKind.CTA,
        path=("available_ctas", "primary"),
    ),
    ReferenceDeclaration(
        source=EntityKind.BRANCH,
        target=EntityKind.CTA,
        path=("available_ctas", "secondary"),
        many=True,
    ),
    ReferenceDeclaration(
        source=EntityKind.SHOWCASE,
        target=EntityKind.CTA,
        path=("action", "cta_id"),
        condition=(("action", "type"), "cta"),
    ),
)


def references_to(target: EntityKind) -> list[ReferenceDeclaration]:
    return [decl for decl in REFERENCE_DECLARATIONS if decl.target == target]
