"""
apps.editor.services.editor_session
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
One tenant editing session: state, controllers, autosave and deploy.

Usage::

    session = EditorSession()
    loaded = session.load("acme")
    if not loaded.ok:
        print(loaded.error["detail"])
    elif loaded.recovered:
        ...  # tell the user their unsaved work was restored

    session.controller("programs").create({"program_id": "p2", ...})
    result = session.deploy()
    if not result.ok:
        print(result.error["detail"])

The persistence collaborator is any object exposing ``load_config`` and
``save_config`` with the signatures of
:mod:`apps.tenant_configs.services.config_service`, which is the default.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import structlog
from django.conf import settings
from django.db import DatabaseError

from apps.tenant_configs.services import config_service
from apps.tenant_configs.services.config_differ import ConfigDiff, ConfigDiffer
from apps.tenant_configs.services.merge_engine import DEFAULT_VERSION, ConfigMergeEngine
from apps.tenant_configs.services.section_classifier import EDITABLE_SECTIONS
from common.exceptions import AppError, StorageError
from .autosave import AutoSaveManager
from .dependency_resolver import DependencyResolver
from .editor_state import EditorState
from .entity_crud import EntityCRUDController

logger = structlog.get_logger(__name__)


@dataclass
class LoadResult:
    """Outcome of :meth:`EditorSession.load`."""

    ok: bool
    tenant_id: str | None = None
    config: dict | None = None
    recovered: bool = False
    error: dict | None = None


@dataclass
class DeployResult:
    """
    Outcome of :meth:`EditorSession.deploy`.

    On failure nothing local changes: the base, the stores and the dirty
    flag are exactly as before the call.
    """

    ok: bool
    tenant_id: str | None = None
    timestamp: str | None = None
    backup_key: str | None = None
    diff: ConfigDiff | None = None
    error: dict | None = None


class EditorSession:
    """
    Args:
        backend: Persistence collaborator; defaults to ``config_service``.
        autosave: Pre-built :class:`AutoSaveManager`.  When omitted one is
            created over the session state with *autosave_options*.
    """

    def __init__(
        self,
        backend: Any = None,
        *,
        autosave: AutoSaveManager | None = None,
        **autosave_options: Any,
    ) -> None:
        self.backend = backend or config_service
        self.state = EditorState()
        self.resolver = DependencyResolver(self.state)
        self.controllers: dict[str, EntityCRUDController] = {
            section: EntityCRUDController(self.state, section, self.resolver)
            for section in EDITABLE_SECTIONS
        }
        self.autosave = autosave or AutoSaveManager(self.state, **autosave_options)
        self.autosave.start()

    @property
    def tenant_id(self) -> str | None:
        return self.state.tenant_id

    @property
    def recovered_from_autosave(self) -> bool:
        return self.autosave.recovered

    def controller(self, section: str) -> EntityCRUDController:
        return self.controllers[section]

    def close(self) -> None:
        """Flush pending edits and detach the autosave listeners."""
        self.autosave.flush()
        self.autosave.stop()

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self, tenant_id: str) -> LoadResult:
        """
        Load *tenant_id*, seed every store and attempt autosave recovery.

        A missing tenant or a storage failure leaves the current state
        untouched and comes back as a failed :class:`LoadResult`.
        """
        if self.state.is_dirty:
            # Last chance for the previous tenant's edits.
            self.autosave.flush()

        try:
            config = self._backend_call(self.backend.load_config, tenant_id)
        except AppError as exc:
            logger.warning("editor_session_load_failed", tenant_id=tenant_id, code=exc.code)
            return LoadResult(ok=False, tenant_id=tenant_id, error=exc.to_dict())

        with self.autosave.paused():
            self.state.seed_from_config(config, tenant_id=tenant_id)
        recovered = self.autosave.select_tenant(tenant_id)

        logger.info("editor_session_loaded", tenant_id=tenant_id, recovered=recovered)
        return LoadResult(ok=True, tenant_id=tenant_id, config=config, recovered=recovered)

    def reset(self) -> None:
        """Discard every unsaved edit and return to the base configuration."""
        self.state.seed_from_config(self.state.base_config or {})
        logger.info("editor_session_reset", tenant_id=self.tenant_id)

    # ------------------------------------------------------------------
    # Merge and diff
    # ------------------------------------------------------------------

    def get_merged_config(self) -> dict:
        return ConfigMergeEngine.merge(
            self.state.base_config,
            self.state.editable_sections(),
            default_version=getattr(settings, "CONFIG_DEFAULT_VERSION", DEFAULT_VERSION),
        )

    @staticmethod
    def generate_config_diff(old_config: dict | None, new_config: dict | None) -> ConfigDiff:
        return ConfigDiffer.diff(old_config, new_config)

    def has_unsaved_changes(self) -> bool:
        # Metadata always comes from the base, so only sections can differ.
        if self.state.base_config is None:
            return False
        diff = ConfigDiffer.diff(self.state.base_config, self.get_merged_config())
        return bool(diff.section_changes)

    # ------------------------------------------------------------------
    # Deploy
    # ------------------------------------------------------------------

    def deploy(self) -> DeployResult:
        """
        Merge the edited sections into the latest stored base and save.

        The backend replaces the stored document atomically.  On success the
        saved document becomes the new base and the state is marked clean,
        which clears the autosave snapshot.  Backend failures, database
        errors included, come back as a failed :class:`DeployResult`.
        """
        tenant_id = self.tenant_id
        if tenant_id is None:
            raise ValueError("deploy() needs a loaded tenant.")

        payload = self.state.editable_sections()
        try:
            result = self._backend_call(
                self.backend.save_config, tenant_id, payload, merge=True
            )
        except AppError as exc:
            logger.warning("editor_deploy_failed", tenant_id=tenant_id, code=exc.code)
            return DeployResult(ok=False, tenant_id=tenant_id, error=exc.to_dict())

        try:
            deployed = self._backend_call(self.backend.load_config, tenant_id)
        except AppError as exc:
            logger.warning("editor_deploy_reload_failed", tenant_id=tenant_id, code=exc.code)
            deployed = ConfigMergeEngine.merge(
                self.state.base_config,
                payload,
                timestamp=result.get("timestamp"),
            )

        diff = ConfigDiffer.diff(self.state.base_config, deployed)
        self.state.replace_base_config(deployed)
        self.state.mark_clean()

        logger.info(
            "editor_deployed",
            tenant_id=tenant_id,
            backup_key=result.get("backup_key"),
            diff=diff.to_dict(),
        )
        return DeployResult(
            ok=True,
            tenant_id=tenant_id,
            timestamp=result.get("timestamp"),
            backup_key=result.get("backup_key"),
            diff=diff,
        )

    @staticmethod
    def _backend_call(operation: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a backend operation, reporting database failures as StorageError."""
        try:
            return operation(*args, **kwargs)
        except DatabaseError as exc:
            raise StorageError(f"Configuration storage failed: {exc}") from exc
