"""
apps.editor.services.autosave
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Per-tenant crash/navigation recovery, independent of the deploy path.

:class:`AutoSaveManager` watches an
:class:`~apps.editor.services.editor_state.EditorState`.  While the state is
dirty, every store change restarts a :class:`DebouncedTask`; when it finally
fires, the current stores are written as one JSON snapshot under
``<AUTOSAVE_STORAGE_KEY_PREFIX>-<tenant_id>`` in the ephemeral cache.

Snapshot format::

    {
        "tenantId": "acme",
        "timestamp": "2026-01-01T00:00:00Z",
        "programs": {...},
        "forms": {...},
        "ctas": {...},
        "branches": {...},
        "contentShowcase": [...]
    }

Rules
-----
- Selecting a tenant restores its snapshot only when the embedded
  ``tenantId`` matches; recovered state is always dirty.  A mismatched
  snapshot is ignored and left in place.
- Dirty flipping to ``False`` (a deploy or reset) deletes the snapshot.
- A synchronous flush is registered for interpreter exit and unregistered
  on :meth:`AutoSaveManager.stop`.
- A snapshot is only written while the state is dirty, and a clear racing a
  write always leaves storage empty.
- Storage and serialization errors are logged, never raised.
"""
from __future__ import annotations

import atexit
import contextlib
import json
import threading
from typing import Any, Callable, Iterator

import structlog
from django.conf import settings
from django.core.cache import caches

from apps.tenant_configs.services.merge_engine import utc_timestamp
from common.exceptions import StorageError
from .editor_state import EditorState
from .scheduler import DebouncedTask, TimerFactory

logger = structlog.get_logger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 30
DEFAULT_KEY_PREFIX = "picasso-config-autosave"

# Snapshot key -> editable section.
SNAPSHOT_SECTIONS: tuple[tuple[str, str], ...] = (
    ("programs", "programs"),
    ("forms", "conversational_forms"),
    ("ctas", "cta_definitions"),
    ("branches", "conversation_branches"),
    ("contentShowcase", "content_showcase"),
)


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class CacheStorage:
    """
    Ephemeral key/value storage backed by a Django cache alias.

    Backend failures surface as :class:`~common.exceptions.StorageError`.
    """

    def __init__(self, alias: str | None = None, timeout: int | None = None) -> None:
        self.alias = alias or getattr(settings, "AUTOSAVE_CACHE_ALIAS", "autosave")
        self.timeout = timeout if timeout is not None else getattr(
            settings, "AUTOSAVE_TIMEOUT_SECONDS", 60 * 60 * 24
        )

    @property
    def _cache(self):
        return caches[self.alias]

    def get(self, key: str) -> str | None:
        try:
            return self._cache.get(key)
        except Exception as exc:
            raise StorageError(f"Could not read {key!r}: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        try:
            self._cache.set(key, value, timeout=self.timeout)
        except Exception as exc:
            raise StorageError(f"Could not write {key!r}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._cache.delete(key)
        except Exception as exc:
            raise StorageError(f"Could not delete {key!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class AutoSaveManager:
    """
    Mirror an :class:`EditorState` into per-tenant ephemeral storage.

    Args:
        state: The editing session's state.
        storage: Object with ``get``/``set``/``delete``; defaults to
            :class:`CacheStorage`.
        debounce_seconds: Defaults to ``settings.AUTOSAVE_DEBOUNCE_SECONDS``.
        key_prefix: Defaults to ``settings.AUTOSAVE_STORAGE_KEY_PREFIX``.
        enabled: Defaults to ``settings.AUTOSAVE_ENABLED``.
        timer_factory: Passed to :class:`DebouncedTask`.
        exit_hook: Registers the exit flush; defaults to :func:`atexit.register`.
        exit_unhook: Undoes ``exit_hook`` on :meth:`stop`; defaults to
            :func:`atexit.unregister`.
    """

    def __init__(
        self,
        state: EditorState,
        *,
        storage: Any = None,
        debounce_seconds: float | None = None,
        key_prefix: str | None = None,
        enabled: bool | None = None,
        timer_factory: TimerFactory | None = None,
        exit_hook: Callable[[Callable[[], None]], Any] | None = None,
        exit_unhook: Callable[[Callable[[], None]], Any] | None = None,
    ) -> None:
        self.state = state
        self.storage = storage if storage is not None else CacheStorage()
        if debounce_seconds is None:
            debounce_seconds = getattr(settings, "AUTOSAVE_DEBOUNCE_SECONDS", DEFAULT_DEBOUNCE_SECONDS)
        self.key_prefix = key_prefix or getattr(settings, "AUTOSAVE_STORAGE_KEY_PREFIX", DEFAULT_KEY_PREFIX)
        self.enabled = enabled if enabled is not None else getattr(settings, "AUTOSAVE_ENABLED", True)
        self.task = DebouncedTask(debounce_seconds, self._on_timer, timer_factory)
        self._exit_hook = exit_hook or atexit.register
        self._exit_unhook = exit_unhook or atexit.unregister

        self.tenant_id: str | None = None
        self.recovered = False
        self._started = False
        self._exit_registered = False
        self._paused = 0
        # Writes and clears never interleave; a clear bumps the generation.
        self._write_lock = threading.RLock()
        self._clear_generation = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self.state.connect_store_listener(self._on_store_change)
        self.state.connect_dirty_listener(self._on_dirty_change)
        if not self._exit_registered:
            self._exit_hook(self._on_exit)
            self._exit_registered = True
        self._started = True

    def stop(self) -> None:
        self.task.cancel()
        self.state.disconnect_store_listener(self._on_store_change)
        self.state.disconnect_dirty_listener(self._on_dirty_change)
        if self._exit_registered:
            self._exit_unhook(self._on_exit)
            self._exit_registered = False
        self._started = False

    @contextlib.contextmanager
    def paused(self) -> Iterator[None]:
        """Ignore state notifications inside the block (seeding, restoring)."""
        self._paused += 1
        try:
            yield
        finally:
            self._paused -= 1

    def storage_key(self, tenant_id: str | None = None) -> str:
        return f"{self.key_prefix}-{tenant_id or self.tenant_id}"

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def select_tenant(self, tenant_id: str) -> bool:
        """Switch to *tenant_id* and attempt recovery.  Returns ``recovered``."""
        self.task.cancel()
        self.tenant_id = tenant_id
        return self.load_from_storage()

    def load_from_storage(self) -> bool:
        """
        Restore the current tenant's snapshot into the entity stores.

        Returns:
            ``True`` when a matching snapshot was applied.
        """
        self.recovered = False
        if not self.tenant_id:
            return False

        key = self.storage_key()
        try:
            raw = self.storage.get(key)
        except StorageError as exc:
            logger.warning("autosave_load_failed", tenant_id=self.tenant_id, error=exc.detail)
            return False
        if raw is None:
            return False

        try:
            snapshot = json.loads(raw)
        except (TypeError, ValueError) as exc:
            logger.warning("autosave_corrupt", tenant_id=self.tenant_id, key=key, error=str(exc))
            return False

        if not isinstance(snapshot, dict) or snapshot.get("tenantId") != self.tenant_id:
            logger.warning(
                "autosave_tenant_mismatch",
                tenant_id=self.tenant_id,
                snapshot_tenant_id=snapshot.get("tenantId") if isinstance(snapshot, dict) else None,
            )
            return False

        sections = {
            section: snapshot[snapshot_key]
            for snapshot_key, section in SNAPSHOT_SECTIONS
            if snapshot.get(snapshot_key) is not None
        }
        with self.paused():
            self.state.restore_sections(sections)
            self.state.mark_dirty()
        self.recovered = True
        logger.info(
            "autosave_recovered",
            tenant_id=self.tenant_id,
            saved_at=snapshot.get("timestamp"),
            sections=sorted(sections),
        )
        return True

    def consume_recovery_notice(self) -> bool:
        """Return the recovery flag once, then clear it."""
        recovered, self.recovered = self.recovered, False
        return recovered

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    def build_snapshot(self) -> dict:
        stores = self.state.snapshot()
        snapshot: dict[str, Any] = {
            "tenantId": self.tenant_id,
            "timestamp": utc_timestamp(),
        }
        for snapshot_key, section in SNAPSHOT_SECTIONS:
            snapshot[snapshot_key] = stores.get(section)
        return snapshot

    def save_to_storage(self) -> bool:
        """
        Write the current stores now.  Returns ``True`` on success.

        A clear that lands while the write is in flight wins: the freshly
        written snapshot is deleted again.
        """
        if not self.tenant_id:
            return False
        key = self.storage_key()
        with self._write_lock:
            generation = self._clear_generation
            try:
                payload = json.dumps(self.build_snapshot())
            except (TypeError, ValueError) as exc:
                logger.error("autosave_failed", tenant_id=self.tenant_id, key=key, error=str(exc))
                return False
            try:
                self.storage.set(key, payload)
            except StorageError as exc:
                logger.error("autosave_failed", tenant_id=self.tenant_id, key=key, error=exc.detail)
                return False
            if generation != self._clear_generation:
                logger.info("autosave_superseded", tenant_id=self.tenant_id, key=key)
                self._delete(key)
                return False
        logger.debug("autosave_written", tenant_id=self.tenant_id, key=key, size=len(payload))
        return True

    def flush(self) -> bool:
        """Synchronously write pending changes, skipping the debounce."""
        self.task.cancel()
        with self._write_lock:
            if not (self.enabled and self.tenant_id and self.state.is_dirty):
                return False
            return self.save_to_storage()

    def clear_autosave(self, tenant_id: str | None = None) -> None:
        tenant_id = tenant_id or self.tenant_id
        if not tenant_id:
            return
        with self._write_lock:
            self._clear_generation += 1
            if self._delete(self.storage_key(tenant_id)):
                logger.debug("autosave_cleared", tenant_id=tenant_id)

    def _delete(self, key: str) -> bool:
        try:
            self.storage.delete(key)
        except StorageError as exc:
            logger.warning("autosave_clear_failed", key=key, error=exc.detail)
            return False
        return True

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def _on_store_change(self, section: str) -> None:
        if self._paused or not self.enabled or not self.tenant_id:
            return
        if self.state.is_dirty:
            self.task.reset()

    def _on_dirty_change(self, is_dirty: bool) -> None:
        if self._paused or not self.tenant_id:
            return
        if is_dirty:
            if self.enabled:
                self.task.reset()
        else:
            self.task.cancel()
            self.clear_autosave()

    def _on_timer(self) -> None:
        with self._write_lock:
            if self.state.is_dirty:
                self.save_to_storage()

    def _on_exit(self) -> None:
        if self._started:
            self.flush()
