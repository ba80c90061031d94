"""
apps.tenant_configs.admin
"""
from django.contrib import admin

from .models import ConfigBackup, TenantConfiguration


@admin.register(TenantConfiguration)
class TenantConfigurationAdmin(admin.ModelAdmin):
    list_display = ["tenant_id", "created_at", "updated_at"]
    search_fields = ["tenant_id"]
    readonly_fields = ["id", "created_at", "updated_at"]
    ordering = ["tenant_id"]


@admin.register(ConfigBackup)
class ConfigBackupAdmin(admin.ModelAdmin):
    list_display = ["key", "tenant_id", "size", "created_at"]
    list_filter = ["tenant_id"]
    search_fields = ["key", "tenant_id"]
    readonly_fields = ["id", "key", "tenant_id", "document", "size", "created_at"]
    ordering = ["-created_at"]
