"""
apps.tenant_configs.serializers
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
I/O-only serializers for the tenant configuration API.
No business logic; shape validation only.
"""
from rest_framework import serializers


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------

class SaveConfigRequestSerializer(serializers.Serializer):
    """Validates PUT /config/{tenant_id}/ request body."""

    config = serializers.DictField()
    merge = serializers.BooleanField(default=True)
    create_backup = serializers.BooleanField(default=True)
    validate_only = serializers.BooleanField(default=False)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class ConfigResponseSerializer(serializers.Serializer):
    config = serializers.JSONField()


class SaveConfigResponseSerializer(serializers.Serializer):
    success = serializers.BooleanField()
    tenant_id = serializers.CharField()
    timestamp = serializers.CharField()
    backup_key = serializers.CharField(allow_null=True)


class TenantSummarySerializer(serializers.Serializer):
    tenant_id = serializers.CharField()
    last_modified = serializers.DateTimeField()


class TenantMetadataSerializer(serializers.Serializer):
    tenant_id = serializers.CharField()
    version = serializers.CharField(allow_null=True)
    chat_title = serializers.CharField(allow_null=True)
    company_name = serializers.CharField(allow_null=True)
    last_updated = serializers.CharField(allow_null=True)
    program_count = serializers.IntegerField()
    form_count = serializers.IntegerField()
    cta_count = serializers.IntegerField()
    branch_count = serializers.IntegerField()


class BackupSerializer(serializers.Serializer):
    key = serializers.CharField()
    last_modified = serializers.DateTimeField()
    size = serializers.IntegerField()


class SectionInfoSerializer(serializers.Serializer):
    editable = serializers.ListField(child=serializers.CharField())
    read_only = serializers.ListField(child=serializers.CharField())
    metadata = serializers.ListField(child=serializers.CharField())


class ValidationErrorResponseSerializer(serializers.Serializer):
    """Response shape for a 422 edit-payload rejection."""

    code = serializers.CharField()
    detail = serializers.CharField()
    errors = serializers.ListField(child=serializers.DictField())
