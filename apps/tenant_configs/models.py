"""
apps.tenant_configs.models
~~~~~~~~~~~~~~~~~~~~~~~~~~
Persisted tenant configuration documents and their backups.

Models
------
TenantConfiguration
    The current configuration document for one tenant, stored as JSONB and
    replaced wholesale on every save.

ConfigBackup
    An immutable copy of a previous document, written before a save or a
    delete overwrites it.
"""
from django.db import models


class TenantConfiguration(models.Model):
    """
    The persisted configuration document of a single tenant.

    Fields
    ------
    tenant_id
        External tenant identifier (e.g. ``"AUS123957"``), unique.
    document
        Full configuration document: metadata, editable and read-only
        sections.
    created_at / updated_at
        Automatic timestamps.
    """

    tenant_id = models.CharField(max_length=255, unique=True)
    document = models.JSONField(
        default=dict,
        help_text="Full tenant configuration document stored as JSONB.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["tenant_id"]
        verbose_name = "Tenant Configuration"
        verbose_name_plural = "Tenant Configurations"

    def __str__(self) -> str:
        return self.tenant_id


class ConfigBackup(models.Model):
    """A point-in-time copy of a tenant's previous configuration document."""

    tenant_id = models.CharField(max_length=255, db_index=True)
    key = models.CharField(
        max_length=512,
        unique=True,
        help_text="Backup key, e.g. 'backups/AUS123957-2024-01-01T00-00-00-000Z.json'.",
    )
    document = models.JSONField()
    size = models.PositiveIntegerField(
        default=0,
        help_text="Size of the serialized document in bytes.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        verbose_name = "Config Backup"
        verbose_name_plural = "Config Backups"

    def __str__(self) -> str:
        return self.key
