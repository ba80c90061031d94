"""
apps.tenant_configs.services package.
"""
from .config_service import (  # noqa: F401
    delete_config,
    get_metadata,
    list_backups,
    list_tenants,
    load_config,
    save_config,
)
