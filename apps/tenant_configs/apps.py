"""
apps.tenant_configs.apps
"""
from django.apps import AppConfig


class TenantConfigsConfig(AppConfig):
    name = "apps.tenant_configs"
    label = "tenant_configs"
    verbose_name = "Tenant Configs"
    default_auto_field = "django.db.models.BigAutoField"
