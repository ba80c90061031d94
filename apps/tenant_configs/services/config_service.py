"""
apps.tenant_configs.services.config_service
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
All persistence logic for tenant configuration documents.

Views and the editing session must call only these functions.  No business
logic lives in views or serializers.

Responsibilities
----------------
- Loading a tenant's document, optionally reduced to its editable view via
  :meth:`~apps.tenant_configs.services.merge_engine.ConfigMergeEngine.extract_editable_sections`.
- Saving: validating the edit payload with
  :class:`~apps.tenant_configs.services.section_classifier.SectionClassifier`,
  merging it onto the stored base with
  :class:`~apps.tenant_configs.services.merge_engine.ConfigMergeEngine`,
  backing up the previous document and replacing it atomically.
- Listing tenants and backups, and summarising tenant metadata.
"""
from __future__ import annotations

import copy
import json

import structlog
from django.conf import settings
from django.db import transaction

from apps.tenant_configs.models import ConfigBackup, TenantConfiguration
from common.exceptions import NotFoundError, ValidationError
from .config_differ import ConfigDiffer
from .merge_engine import MERGE_TIMESTAMP_FIELD, ConfigMergeEngine, utc_timestamp
from .section_classifier import SectionClassifier

logger = structlog.get_logger(__name__)


def _default_version() -> str:
    return getattr(settings, "CONFIG_DEFAULT_VERSION", "1.3")


def _document_size(document: dict) -> int:
    return len(json.dumps(document).encode("utf-8"))


def _get_record(tenant_id: str) -> TenantConfiguration:
    record = TenantConfiguration.objects.filter(tenant_id=tenant_id).first()
    if record is None:
        raise NotFoundError(f"Configuration for tenant '{tenant_id}' not found.")
    return record


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def list_tenants() -> list[dict]:
    """Return ``{tenant_id, last_modified}`` for every stored tenant."""
    return [
        {"tenant_id": record.tenant_id, "last_modified": record.updated_at}
        for record in TenantConfiguration.objects.all()
    ]


def load_config(tenant_id: str, *, editable_only: bool = False) -> dict:
    """
    Return the stored document for *tenant_id*.

    Args:
        tenant_id: External tenant identifier.
        editable_only: When ``True``, strip read-only sections and return
            only metadata and editable sections.

    Returns:
        A copy of the stored document; mutating it does not affect storage.

    Raises:
        common.exceptions.NotFoundError: If the tenant has no document.
    """
    document = _get_record(tenant_id).document
    if editable_only:
        return ConfigMergeEngine.extract_editable_sections(document)
    return copy.deepcopy(document)


def get_metadata(tenant_id: str) -> dict:
    """Summarise a tenant's document without returning its sections."""
    record = _get_record(tenant_id)
    document = record.document
    return {
        "tenant_id": document.get("tenant_id", tenant_id),
        "version": document.get("version"),
        "chat_title": document.get("chat_title"),
        "company_name": document.get("company_name") or document.get("chat_title"),
        "last_updated": document.get(MERGE_TIMESTAMP_FIELD),
        "program_count": len(document.get("programs") or {}),
        "form_count": len(document.get("conversational_forms") or {}),
        "cta_count": len(document.get("cta_definitions") or {}),
        "branch_count": len(document.get("conversation_branches") or {}),
    }


def list_backups(tenant_id: str) -> list[dict]:
    """Return the tenant's backups, newest first."""
    return [
        {
            "key": backup.key,
            "last_modified": backup.created_at,
            "size": backup.size,
        }
        for backup in ConfigBackup.objects.filter(tenant_id=tenant_id)
    ]


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

def _create_backup(tenant_id: str, document: dict) -> str:
    stamp = utc_timestamp().replace(":", "-").replace(".", "-")
    key = f"backups/{tenant_id}-{stamp}.json"
    suffix = 1
    while ConfigBackup.objects.filter(key=key).exists():
        key = f"backups/{tenant_id}-{stamp}-{suffix}.json"
        suffix += 1

    ConfigBackup.objects.create(
        tenant_id=tenant_id,
        key=key,
        document=document,
        size=_document_size(document),
    )
    logger.info("config_backup_created", tenant_id=tenant_id, backup_key=key)
    return key


def save_config(
    tenant_id: str,
    config: dict,
    *,
    merge: bool = True,
    create_backup: bool = True,
    validate_only: bool = False,
) -> dict:
    """
    Persist a configuration for *tenant_id*.

    Steps:

    1. When *merge* is set, validate *config* as an edit payload; read-only
       or unknown keys raise :class:`~common.exceptions.ValidationError`.
    2. If *validate_only*, stop and report success.
    3. Inside one transaction, lock the stored document.  With *merge* and a
       stored document, merge *config* onto it; otherwise store *config*
       itself with ``tenant_id`` forced to *tenant_id*.
    4. Back up the previous document when *create_backup* is set.
    5. Replace the stored document wholesale.

    Returns:
        ``{"success", "tenant_id", "timestamp", "backup_key"}``, or
        ``{"valid", "message"}`` for a validate-only call.
    """
    if merge:
        validation = SectionClassifier.validate_edit_payload(config)
        if not validation.valid:
            logger.warning(
                "config_payload_rejected",
                tenant_id=tenant_id,
                error_count=len(validation.errors),
            )
            raise ValidationError(
                "Edit payload contains sections that cannot be edited.",
                errors=validation.errors,
            )

    if validate_only:
        return {"valid": True, "message": "Configuration is valid"}

    backup_key: str | None = None
    with transaction.atomic():
        record = (
            TenantConfiguration.objects
            .select_for_update()
            .filter(tenant_id=tenant_id)
            .first()
        )

        if merge and record is not None:
            final = ConfigMergeEngine.merge(
                record.document,
                config,
                default_version=_default_version(),
            )
            diff = ConfigDiffer.diff(record.document, final)
            logger.info("config_merged", tenant_id=tenant_id, diff=diff.to_dict())
        else:
            # No base to merge with: the payload becomes the document.
            final = copy.deepcopy(config)
            final["tenant_id"] = tenant_id
            if not final.get("version"):
                final["version"] = _default_version()
            final[MERGE_TIMESTAMP_FIELD] = utc_timestamp()
            logger.info("config_created", tenant_id=tenant_id, merge=merge)

        if record is None:
            record = TenantConfiguration(tenant_id=tenant_id)
        elif create_backup:
            backup_key = _create_backup(tenant_id, record.document)

        record.document = final
        record.save()

    logger.info("config_saved", tenant_id=tenant_id, backup_key=backup_key)
    return {
        "success": True,
        "tenant_id": tenant_id,
        "timestamp": final[MERGE_TIMESTAMP_FIELD],
        "backup_key": backup_key,
    }


def delete_config(tenant_id: str) -> dict:
    """Back up and delete a tenant's document."""
    with transaction.atomic():
        record = _get_record(tenant_id)
        backup_key = _create_backup(tenant_id, record.document)
        record.delete()

    logger.info("config_deleted", tenant_id=tenant_id, backup_key=backup_key)
    return {"success": True, "tenant_id": tenant_id, "backup_key": backup_key}
