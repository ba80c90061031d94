"""
apps.tenant_configs.urls
~~~~~~~~~~~~~~~~~~~~~~~~
URL routing for tenant configuration documents.
Mounted at /api/v1/ by the root URLconf.
"""
from django.urls import path

from .views import (
    SectionInfoView,
    TenantBackupsView,
    TenantConfigView,
    TenantListView,
    TenantMetadataView,
)

urlpatterns = [
    # GET /api/v1/config/tenants/
    path("config/tenants/", TenantListView.as_view(), name="config-tenants"),
    # GET|PUT|DELETE /api/v1/config/<tenant_id>/
    path("config/<str:tenant_id>/", TenantConfigView.as_view(), name="config-detail"),
    # GET /api/v1/config/<tenant_id>/metadata/
    path(
        "config/<str:tenant_id>/metadata/",
        TenantMetadataView.as_view(),
        name="config-metadata",
    ),
    # GET /api/v1/config/<tenant_id>/backups/
    path(
        "config/<str:tenant_id>/backups/",
        TenantBackupsView.as_view(),
        name="config-backups",
    ),
    # GET /api/v1/sections/
    path("sections/", SectionInfoView.as_view(), name="config-sections"),
]
