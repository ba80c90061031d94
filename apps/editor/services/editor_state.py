"""
apps.editor.services.editor_state
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Explicit application-state object for one editing session.

Holds the loaded base configuration, one entity store per editable section,
and the dirty flag.  Controllers and managers receive the same
:class:`EditorState` instance; entity stores are only written through
:meth:`EditorState.upsert_entity`, :meth:`EditorState.remove_entity` and
:meth:`EditorState.restore_sections` so every write notifies the registered listeners.

Listeners
---------
store listeners   ``callback(section: str)`` after a section store changes.
dirty listeners   ``callback(is_dirty: bool)`` when the dirty flag flips.
"""
from __future__ import annotations

import copy
import threading
from typing import Any, Callable

import structlog

from apps.tenant_configs.services.config_differ import (
    section_as_mapping,
    sequence_item_key,
)
from apps.tenant_configs.services.merge_engine import ConfigMergeEngine
from apps.tenant_configs.services.section_classifier import (
    EDITABLE_SECTIONS,
    SEQUENCE_SECTIONS,
)

logger = structlog.get_logger(__name__)

StoreListener = Callable[[str], None]
DirtyListener = Callable[[bool], None]


def empty_section(section: str) -> dict | list:
    return [] if section in SEQUENCE_SECTIONS else {}


class EditorState:
    """
    Single-writer state shared by the controllers of one editing session.

    A re-entrant lock serialises writes against snapshot reads made from the
    autosave timer thread.
    """

    def __init__(self, tenant_id: str | None = None) -> None:
        self.tenant_id: str | None = tenant_id
        self.base_config: dict | None = None
        self._stores: dict[str, Any] = {
            section: empty_section(section) for section in EDITABLE_SECTIONS
        }
        self._is_dirty = False
        self._store_listeners: list[StoreListener] = []
        self._dirty_listeners: list[DirtyListener] = []
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def connect_store_listener(self, callback: StoreListener) -> None:
        if callback not in self._store_listeners:
            self._store_listeners.append(callback)

    def disconnect_store_listener(self, callback: StoreListener) -> None:
        if callback in self._store_listeners:
            self._store_listeners.remove(callback)

    def connect_dirty_listener(self, callback: DirtyListener) -> None:
        if callback not in self._dirty_listeners:
            self._dirty_listeners.append(callback)

    def disconnect_dirty_listener(self, callback: DirtyListener) -> None:
        if callback in self._dirty_listeners:
            self._dirty_listeners.remove(callback)

    def _notify_store(self, section: str) -> None:
        for callback in list(self._store_listeners):
            callback(section)

    # ------------------------------------------------------------------
    # Dirty flag
    # ------------------------------------------------------------------

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    def _set_dirty(self, value: bool) -> None:
        if self._is_dirty == value:
            return
        self._is_dirty = value
        logger.debug("editor_dirty_changed", tenant_id=self.tenant_id, is_dirty=value)
        for callback in list(self._dirty_listeners):
            callback(value)

    def mark_dirty(self) -> None:
        self._set_dirty(True)

    def mark_clean(self) -> None:
        self._set_dirty(False)

    # ------------------------------------------------------------------
    # Entity stores
    # ------------------------------------------------------------------

    def get_section(self, section: str) -> Any:
        """Raw store value: a dict, or a list for sequence sections."""
        return self._stores[section]

    def get_entities(self, section: str) -> dict[str, Any]:
        """Ordered ``{id: entity}`` view of a section store."""
        return section_as_mapping(self._stores[section])

    def upsert_entity(self, section: str, entity_id: str, entity: Any) -> None:
        """
        Store one entity under *entity_id*, replacing it in place if present.

        Sequence stores are edited in place so items sharing a key, or keyed
        only by position, are never collapsed.
        """
        with self._lock:
            store = self._store_for_write(section)
            if isinstance(store, list):
                index = self._find_item(store, entity_id)
                store = list(store)
                if index is None:
                    store.append(entity)
                else:
                    store[index] = entity
            else:
                store = dict(store)
                store[entity_id] = entity
            self._stores[section] = store
        self._notify_store(section)

    def remove_entity(self, section: str, entity_id: str) -> bool:
        """Drop the first entity keyed by *entity_id*; ``False`` if absent."""
        with self._lock:
            store = self._store_for_write(section)
            if isinstance(store, list):
                index = self._find_item(store, entity_id)
                if index is None:
                    return False
                store = store[:index] + store[index + 1:]
            else:
                if entity_id not in store:
                    return False
                store = {key: value for key, value in store.items() if key != entity_id}
            self._stores[section] = store
        self._notify_store(section)
        return True

    def _store_for_write(self, section: str) -> dict | list:
        store = self._stores[section]
        if isinstance(store, (dict, list)):
            return store
        return empty_section(section)

    @staticmethod
    def _find_item(items: list, entity_id: str) -> int | None:
        for index, item in enumerate(items):
            if sequence_item_key(index, item) == entity_id:
                return index
        return None

    def restore_sections(self, sections: dict[str, Any]) -> None:
        """Overwrite the given section stores wholesale."""
        changed = []
        with self._lock:
            for section, value in sections.items():
                if section not in self._stores or value is None:
                    continue
                self._stores[section] = copy.deepcopy(value)
                changed.append(section)
        for section in changed:
            self._notify_store(section)

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of every editable section store."""
        with self._lock:
            return copy.deepcopy(self._stores)

    # ------------------------------------------------------------------
    # Seeding and export
    # ------------------------------------------------------------------

    def seed_from_config(self, config: dict, tenant_id: str | None = None) -> None:
        """
        Load a base configuration and populate every section store from it.

        Missing sections seed empty stores.  The dirty flag is cleared.
        """
        with self._lock:
            if tenant_id is not None:
                self.tenant_id = tenant_id
            self.base_config = copy.deepcopy(config)
            for section in EDITABLE_SECTIONS:
                value = config.get(section)
                self._stores[section] = (
                    copy.deepcopy(value) if value is not None else empty_section(section)
                )
        self.mark_clean()
        for section in EDITABLE_SECTIONS:
            self._notify_store(section)

    def replace_base_config(self, config: dict) -> None:
        """Adopt a newly deployed document as the base without touching stores."""
        with self._lock:
            self.base_config = copy.deepcopy(config)

    def editable_sections(self) -> dict[str, Any]:
        """
        The edit payload for a merge: base metadata plus current stores.
        """
        payload = ConfigMergeEngine.extract_editable_sections(self.base_config or {})
        payload.update(self.snapshot())
        return payload
