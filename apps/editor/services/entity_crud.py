"""
apps.editor.services.entity_crud
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Generic create/update/delete controller over one editable section.

One :class:`EntityCRUDController` serves every entity kind; it is
parameterised by the section's
:class:`~apps.editor.services.entity_registry.EntityKindSpec` (id extraction
and display names), the shared
:class:`~apps.editor.services.editor_state.EditorState` (the entity store)
and a :class:`~apps.editor.services.dependency_resolver.DependencyResolver`
(deletion gating).

Operations never raise for expected failures.  Each returns a
:class:`CRUDResult` whose ``error`` is the ``to_dict()`` of the matching
:mod:`common.exceptions` error, and sends
:data:`~apps.editor.signals.entity_notification` on success or
:data:`~apps.editor.signals.entity_error` on failure.

==========================  ===================  ==========================
Error code                  Class                Meaning
==========================  ===================  ==========================
``conflict``                ``ConflictError``    ``create`` with an id
                                                 already in the section.
``not_found``               ``NotFoundError``    ``update``/``delete``/
                                                 ``duplicate`` of a
                                                 missing id.
``invalid_entity``          ``ValidationError``  The entity is not a
                                                 mapping or has no id.
``confirmation_required``   ``ConflictError``    ``delete`` of a referenced
                                                 entity without
                                                 ``confirmed=True``.
==========================  ===================  ==========================
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Callable

import structlog

from apps.editor import signals
from common.exceptions import AppError, ConflictError, NotFoundError, ValidationError
from .dependency_resolver import DependencyReport, DependencyResolver
from .editor_state import EditorState
from .entity_registry import EntityKindSpec, spec_for_section

logger = structlog.get_logger(__name__)

IdExtractor = Callable[[dict], "str | None"]


@dataclass
class CRUDResult:
    """
    Outcome of one controller operation.

    Attributes:
        ok: ``True`` iff the mapping was changed as requested.
        entity_id: Id the operation targeted.
        event: ``{"kind", "entity_name", "entity_id", "section", "message"}``
            on success.
        error: ``{"code", "detail"}`` from ``AppError.to_dict()`` on failure.
        dependencies: The blocking report for ``confirmation_required``.
    """

    ok: bool
    entity_id: str | None = None
    event: dict | None = None
    error: dict | None = None
    dependencies: DependencyReport | None = None


class EntityCRUDController:
    """
    CRUD state machine for the entities of one editable section.

    Usage::

        state = EditorState("acme")
        state.seed_from_config(config)
        ctas = EntityCRUDController(state, "cta_definitions")

        result = ctas.delete("cta2")
        if result.error and result.error["code"] == "confirmation_required":
            print(result.dependencies.summary)
            result = ctas.delete("cta2", confirmed=True)
    """

    def __init__(
        self,
        state: EditorState,
        section: str,
        resolver: DependencyResolver | None = None,
        *,
        entity_name: str | None = None,
        id_extractor: IdExtractor | None = None,
        messages: dict[str, str] | None = None,
    ) -> None:
        self.state = state
        self.section = section
        self.spec: EntityKindSpec = spec_for_section(section)
        self.resolver = resolver or DependencyResolver(state)
        self.entity_name = entity_name or self.spec.label
        self._id_extractor: IdExtractor = id_extractor or self.spec.extract_id
        self._messages = messages or {}

        # Transient editing state surfaced by the presentation layer.
        self.is_form_open = False
        self.is_delete_open = False
        self.editing_id: str | None = None
        self.deleting_id: str | None = None
        self.pending_dependencies: DependencyReport | None = None

    # ------------------------------------------------------------------
    # Entity data
    # ------------------------------------------------------------------

    @property
    def entity_map(self) -> dict[str, Any]:
        return self.state.get_entities(self.section)

    @property
    def entities(self) -> list[Any]:
        return list(self.entity_map.values())

    @property
    def existing_ids(self) -> list[str]:
        return list(self.entity_map)

    @property
    def is_edit_mode(self) -> bool:
        return self.editing_id is not None

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def open_create(self) -> None:
        self.editing_id = None
        self.is_form_open = True

    def open_edit(self, entity_id: str) -> None:
        self.editing_id = entity_id
        self.is_form_open = True

    def close_form(self) -> None:
        self.is_form_open = False
        self.editing_id = None

    def open_delete(self, entity_id: str) -> DependencyReport | None:
        """Stage a deletion and return its dependency report, if any."""
        self.deleting_id = entity_id
        self.is_delete_open = True
        self.pending_dependencies = self.resolver.get_dependencies(self.section, entity_id)
        return self.pending_dependencies

    def close_delete(self) -> None:
        self.is_delete_open = False
        self.deleting_id = None
        self.pending_dependencies = None

    def submit(self, entity: dict) -> CRUDResult:
        """Create or update depending on the staged mode; close on success."""
        if self.editing_id is not None:
            result = self.update(self.editing_id, entity)
        else:
            result = self.create(entity)
        if result.ok:
            self.close_form()
        return result

    def confirm_delete(self) -> CRUDResult:
        """Delete the staged entity after the user confirmed the report."""
        return self.delete(confirmed=True)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create(self, entity: dict, entity_id: str | None = None) -> CRUDResult:
        """Insert *entity*; never overwrites an existing id."""
        if not isinstance(entity, dict):
            return self._fail(self._invalid(f"{self.entity_name} must be a mapping."))

        entity_id = entity_id or self._id_extractor(entity)
        if not entity_id:
            return self._fail(self._invalid(f"{self.entity_name} has no id."))

        if entity_id in self.entity_map:
            return self._fail(
                ConflictError(f'{self.entity_name} "{entity_id}" already exists.'),
                entity_id,
            )

        self.state.upsert_entity(self.section, entity_id, self._prepare(entity, entity_id))
        self.state.mark_dirty()
        return self._succeed("created", entity_id)

    def update(self, entity_id: str, entity: dict) -> CRUDResult:
        """Replace an existing entity wholesale, keeping its position."""
        if not isinstance(entity, dict):
            return self._fail(
                self._invalid(f"{self.entity_name} must be a mapping."), entity_id
            )

        if entity_id not in self.entity_map:
            return self._fail(self._missing(entity_id), entity_id)

        self.state.upsert_entity(self.section, entity_id, self._prepare(entity, entity_id))
        self.state.mark_dirty()
        return self._succeed("updated", entity_id)

    def delete(self, entity_id: str | None = None, *, confirmed: bool = False) -> CRUDResult:
        """
        Remove an entity.  Referenced entities require ``confirmed=True``.

        Dependents are left untouched: their references dangle until a
        downstream validation flags them.

        Raises:
            ValueError: If no *entity_id* is given and nothing is staged.
        """
        target = entity_id if entity_id is not None else self.deleting_id
        if target is None:
            raise ValueError("delete() needs an entity id or a staged deletion.")

        if target not in self.entity_map:
            return self._fail(self._missing(target), target)

        if not confirmed:
            report = self.resolver.get_dependencies(self.section, target)
            if report is not None:
                self.deleting_id = target
                self.is_delete_open = True
                self.pending_dependencies = report
                result = self._fail(
                    ConflictError(report.summary, code="confirmation_required"),
                    target,
                )
                result.dependencies = report
                return result

        self.state.remove_entity(self.section, target)
        self.state.mark_dirty()
        if self.deleting_id == target:
            self.close_delete()
        return self._succeed("deleted", target)

    def duplicate(self, entity_id: str) -> CRUDResult:
        """Copy an entity under ``<id>_copy_<n>`` with a ``(Copy)`` name."""
        mapping = self.entity_map
        if entity_id not in mapping:
            return self._fail(self._missing(entity_id), entity_id)

        suffix = 1
        new_id = f"{entity_id}_copy_{suffix}"
        while new_id in mapping:
            suffix += 1
            new_id = f"{entity_id}_copy_{suffix}"

        clone = copy.deepcopy(mapping[entity_id])
        name_field = self.spec.name_field
        if name_field and isinstance(clone, dict) and clone.get(name_field):
            clone[name_field] = f"{clone[name_field]} (Copy)"
        return self.create(clone, new_id)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _prepare(self, entity: dict, entity_id: str) -> dict:
        stored = copy.deepcopy(entity)
        if self.spec.id_is_key_only:
            stored.pop(self.spec.id_field, None)
        else:
            stored[self.spec.id_field] = entity_id
        return stored

    def _invalid(self, message: str) -> ValidationError:
        return ValidationError(message, code="invalid_entity")

    def _missing(self, entity_id: str) -> NotFoundError:
        return NotFoundError(f'{self.entity_name} "{entity_id}" not found.')

    def _succeed(self, kind: str, entity_id: str) -> CRUDResult:
        message = self._messages.get(kind) or f"{self.entity_name} {kind} successfully"
        event = {
            "kind": kind,
            "entity_name": self.entity_name,
            "entity_id": entity_id,
            "section": self.section,
            "message": message,
        }
        logger.info(
            f"entity_{kind}",
            tenant_id=self.state.tenant_id,
            section=self.section,
            entity_id=entity_id,
        )
        signals.entity_notification.send(sender=self.__class__, controller=self, **event)
        return CRUDResult(ok=True, entity_id=entity_id, event=event)

    def _fail(self, exc: AppError, entity_id: str | None = None) -> CRUDResult:
        logger.warning(
            "entity_operation_failed",
            tenant_id=self.state.tenant_id,
            section=self.section,
            entity_id=entity_id,
            code=exc.code,
        )
        signals.entity_error.send(
            sender=self.__class__,
            controller=self,
            code=exc.code,
            message=exc.detail,
            entity_id=entity_id,
            section=self.section,
        )
        return CRUDResult(ok=False, entity_id=entity_id, error=exc.to_dict())
