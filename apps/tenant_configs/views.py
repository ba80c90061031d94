"""
apps.tenant_configs.views
~~~~~~~~~~~~~~~~~~~~~~~~~
Thin DRF API views for tenant configuration documents.
All business logic is delegated to
:mod:`apps.tenant_configs.services.config_service`.

Endpoints
---------
GET    /config/tenants/                 – List stored tenants
GET    /config/{tenant_id}/             – Load config (``?editable_only=true``)
PUT    /config/{tenant_id}/             – Validate, merge and save config
DELETE /config/{tenant_id}/             – Back up and delete config
GET    /config/{tenant_id}/metadata/    – Tenant metadata summary
GET    /config/{tenant_id}/backups/     – Backups, newest first
GET    /sections/                       – Section classification
"""
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.tenant_configs.services import config_service
from apps.tenant_configs.services.section_classifier import get_section_info
from .serializers import (
    BackupSerializer,
    ConfigResponseSerializer,
    SaveConfigRequestSerializer,
    SaveConfigResponseSerializer,
    SectionInfoSerializer,
    TenantMetadataSerializer,
    TenantSummarySerializer,
    ValidationErrorResponseSerializer,
)

_NOT_FOUND = OpenApiResponse(description="No configuration stored for this tenant.")


class TenantListView(APIView):
    """GET /config/tenants/ – list stored tenants."""

    @extend_schema(
        summary="List Tenants",
        responses={200: TenantSummarySerializer(many=True)},
        tags=["Configs"],
    )
    def get(self, request: Request) -> Response:
        tenants = config_service.list_tenants()
        return Response({"tenants": TenantSummarySerializer(tenants, many=True).data})


class TenantConfigView(APIView):
    """GET / PUT / DELETE /config/{tenant_id}/"""

    @extend_schema(
        summary="Load Config",
        description=(
            "Returns the tenant's configuration document.  With "
            "editable_only=true, read-only sections are stripped."
        ),
        parameters=[
            OpenApiParameter("editable_only", OpenApiTypes.BOOL, required=False),
        ],
        responses={200: ConfigResponseSerializer, 404: _NOT_FOUND},
        tags=["Configs"],
    )
    def get(self, request: Request, tenant_id: str) -> Response:
        editable_only = (
            request.query_params.get("editable_only", "").lower() in ("1", "true", "yes")
        )
        config = config_service.load_config(tenant_id, editable_only=editable_only)
        return Response({"config": config})

    @extend_schema(
        summary="Save Config",
        description=(
            "Validates the edited sections, merges them onto the stored "
            "document (read-only sections are preserved), backs up the "
            "previous document and saves the result."
        ),
        request=SaveConfigRequestSerializer,
        responses={
            200: SaveConfigResponseSerializer,
            422: ValidationErrorResponseSerializer,
        },
        tags=["Configs"],
    )
    def put(self, request: Request, tenant_id: str) -> Response:
        serializer = SaveConfigRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        vd = serializer.validated_data

        result = config_service.save_config(
            tenant_id,
            vd["config"],
            merge=vd["merge"],
            create_backup=vd["create_backup"],
            validate_only=vd["validate_only"],
        )
        return Response(result, status=status.HTTP_200_OK)

    @extend_schema(
        summary="Delete Config",
        responses={200: OpenApiResponse(description="Deleted; backup key returned."), 404: _NOT_FOUND},
        tags=["Configs"],
    )
    def delete(self, request: Request, tenant_id: str) -> Response:
        return Response(config_service.delete_config(tenant_id))


class TenantMetadataView(APIView):
    """GET /config/{tenant_id}/metadata/"""

    @extend_schema(
        summary="Get Tenant Metadata",
        responses={200: TenantMetadataSerializer, 404: _NOT_FOUND},
        tags=["Configs"],
    )
    def get(self, request: Request, tenant_id: str) -> Response:
        metadata = config_service.get_metadata(tenant_id)
        return Response({"metadata": TenantMetadataSerializer(metadata).data})


class TenantBackupsView(APIView):
    """GET /config/{tenant_id}/backups/"""

    @extend_schema(
        summary="List Backups",
        responses={200: BackupSerializer(many=True)},
        tags=["Configs"],
    )
    def get(self, request: Request, tenant_id: str) -> Response:
        backups = config_service.list_backups(tenant_id)
        return Response({"backups": BackupSerializer(backups, many=True).data})


class SectionInfoView(APIView):
    """GET /sections/ – editable, read-only and metadata key lists."""

    @extend_schema(
        summary="Get Section Info",
        responses={200: SectionInfoSerializer},
        tags=["Configs"],
    )
    def get(self, request: Request) -> Response:
        return Response({"sections": get_section_info()})
