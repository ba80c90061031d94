"""
tests.test_tenant_configs
~~~~~~~~~~~~~~~~~~~~~~~~~~
pytest-django test suite for the persistence-facing side.

Covers:
- SectionClassifier   (unit, no DB)
- ConfigMergeEngine   (unit, no DB)
- ConfigDiffer        (unit, no DB)
- config_service      (integration, DB)
- API Endpoints       (integration, DB)
"""
from __future__ import annotations

import copy

import pytest
from rest_framework import status
from rest_framework.test import APIClient

from apps.tenant_configs.models import ConfigBackup, TenantConfiguration
from apps.tenant_configs.services import config_service
from apps.tenant_configs.services.config_differ import ConfigDiffer
from apps.tenant_configs.services.merge_engine import ConfigMergeEngine
from apps.tenant_configs.services.section_classifier import (
    EDITABLE_SECTIONS,
    METADATA_FIELDS,
    SectionClassifier,
    get_section_info,
    is_read_only_section,
)
from common.exceptions import NotFoundError, ValidationError

from .documents import P2, TENANT_CONFIG, TENANT_ID, fresh_config


# ===========================================================================
# Fixtures
# ===========================================================================

@pytest.fixture
def stored_config(db) -> TenantConfiguration:
    """Persist TENANT_CONFIG for TENANT_ID."""
    return TenantConfiguration.objects.create(tenant_id=TENANT_ID, document=fresh_config())


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


# ===========================================================================
# 1. SectionClassifier
# ===========================================================================

class TestSectionClassifier:
    """Unit tests for the key partition and edit payload validation."""

    def test_classify_partitions_every_key(self):
        """Each top-level key lands in exactly one category."""
        result = SectionClassifier.classify(TENANT_CONFIG)
        assert set(result.editable) == set(EDITABLE_SECTIONS)
        assert set(result.metadata) == set(METADATA_FIELDS)
        assert set(result.read_only) == {"branding", "features", "aws"}

    def test_unknown_key_is_read_only(self):
        """Keys outside the known lists are treated as read-only."""
        result = SectionClassifier.classify({"mystery_section": {"x": 1}})
        assert result.read_only == {"mystery_section": {"x": 1}}
        assert is_read_only_section("mystery_section")

    def test_valid_payload_passes(self):
        """Editable sections and metadata fields are accepted."""
        result = SectionClassifier.validate_edit_payload({
            "programs": {},
            "chat_title": "Austin Angels",
        })
        assert result.valid is True
        assert result.errors == []

    def test_all_offending_keys_reported(self):
        """Read-only and unknown keys are both reported, with distinct codes."""
        result = SectionClassifier.validate_edit_payload({
            "programs": {},
            "branding": {"primary_color": "red"},
            "mystery_section": {},
        })
        assert result.valid is False
        codes = {error["field"]: error["code"] for error in result.errors}
        assert codes == {
            "branding": "read_only_section",
            "mystery_section": "disallowed_section",
        }

    def test_section_info_lists(self):
        info = get_section_info()
        assert info["editable"] == list(EDITABLE_SECTIONS)
        assert "branding" in info["read_only"]
        assert "tenant_id" in info["metadata"]


# ===========================================================================
# 2. ConfigMergeEngine
# ===========================================================================

class TestConfigMergeEngine:
    """Unit tests for the deterministic merge."""

    def test_added_program_and_preserved_branding(self):
        """Editing programs keeps branding and yields exactly the edited ids."""
        base = {
            "tenant_id": "T",
            "programs": {"p1": {"program_id": "p1"}},
            "branding": {"color": "blue"},
        }
        edited = {"programs": {"p1": {"program_id": "p1"}, "p2": {"program_id": "p2"}}}

        merged = ConfigMergeEngine.merge(base, edited)

        assert merged["branding"] == {"color": "blue"}
        assert set(merged["programs"]) == {"p1", "p2"}
        diff = ConfigDiffer.diff(base, merged)
        assert diff.section_changes["programs"].added == ["p2"]

    def test_read_only_sections_never_taken_from_payload(self):
        """A read-only key in the payload is ignored by the merge."""
        merged = ConfigMergeEngine.merge(fresh_config(), {"branding": {"primary_color": "red"}})
        assert merged["branding"] == TENANT_CONFIG["branding"]
        assert merged["aws"] == TENANT_CONFIG["aws"]

    def test_sections_replaced_wholesale(self):
        """Entities missing from the edited section are dropped."""
        merged = ConfigMergeEngine.merge(fresh_config(), {"programs": {"p2": P2}})
        assert merged["programs"] == {"p2": P2}

    def test_absent_sections_kept_from_base(self):
        merged = ConfigMergeEngine.merge(fresh_config(), {"programs": {"p2": P2}})
        assert merged["cta_definitions"] == TENANT_CONFIG["cta_definitions"]
        assert merged["content_showcase"] == TENANT_CONFIG["content_showcase"]

    def test_tenant_id_forced_from_base(self):
        merged = ConfigMergeEngine.merge(fresh_config(), {"tenant_id": "HIJACK"})
        assert merged["tenant_id"] == TENANT_ID

    def test_metadata_copied_from_payload(self):
        merged = ConfigMergeEngine.merge(fresh_config(), {"chat_title": "Angels Chat"})
        assert merged["chat_title"] == "Angels Chat"

    def test_version_fallbacks(self):
        """Payload version wins, then the base version, then the default."""
        assert ConfigMergeEngine.merge({"version": "2.0"}, {})["version"] == "2.0"
        assert ConfigMergeEngine.merge({"version": "2.0"}, {"version": "2.1"})["version"] == "2.1"
        assert ConfigMergeEngine.merge({}, {})["version"] == "1.3"
        assert ConfigMergeEngine.merge({}, {}, default_version="9.9")["version"] == "9.9"

    def test_timestamp_stamped_not_copied(self):
        """Only the merge assigns last_updated; generated_at stays from base."""
        merged = ConfigMergeEngine.merge(
            fresh_config(),
            {"last_updated": "1999-01-01T00:00:00.000Z", "generated_at": "1999"},
            timestamp="2026-03-01T12:00:00.000Z",
        )
        assert merged["last_updated"] == "2026-03-01T12:00:00.000Z"
        assert merged["generated_at"] == TENANT_CONFIG["generated_at"]

    def test_default_timestamp_is_utc_iso(self):
        merged = ConfigMergeEngine.merge({}, {})
        assert merged["last_updated"].endswith("Z")
        assert "T" in merged["last_updated"]

    def test_inputs_not_mutated(self):
        base = fresh_config()
        edited = {"programs": {"p2": P2}}
        ConfigMergeEngine.merge(base, edited)
        assert base == TENANT_CONFIG
        assert edited == {"programs": {"p2": P2}}

    def test_result_independent_of_payload(self):
        """Mutating the merged document does not reach the payload."""
        edited = {"programs": {"p2": dict(P2)}}
        merged = ConfigMergeEngine.merge(fresh_config(), edited)
        merged["programs"]["p2"]["program_name"] = "changed"
        assert edited["programs"]["p2"]["program_name"] == "Dare to Dream"

    def test_merge_is_idempotent(self):
        edited = {"programs": {"p2": P2}, "chat_title": "New"}
        stamp = "2026-03-01T12:00:00.000Z"
        once = ConfigMergeEngine.merge(fresh_config(), edited, timestamp=stamp)
        twice = ConfigMergeEngine.merge(once, edited, timestamp=stamp)
        assert once == twice

    def test_round_trip_preserves_base(self):
        """Merging a document's own editable projection changes only the stamp."""
        for base in (
            fresh_config(),
            {"tenant_id": "T", "version": "2.0", "branding": {}, "programs": {}},
            {"version": "1.0", "content_showcase": [{"name": "Untitled"}, {"id": "0"}]},
        ):
            merged = ConfigMergeEngine.merge(
                base, ConfigMergeEngine.extract_editable_sections(base)
            )
            merged.pop("last_updated")
            expected = dict(base)
            expected.pop("last_updated", None)
            assert merged == expected

    def test_none_inputs_treated_as_empty(self):
        merged = ConfigMergeEngine.merge(None, None, timestamp="t")
        assert merged == {"version": "1.3", "last_updated": "t"}

    def test_merge_multiple_applies_in_order(self):
        merged = ConfigMergeEngine.merge_multiple(
            fresh_config(),
            [{"programs": {"p2": P2}}, {"chat_title": "Second"}, {"chat_title": "Third"}],
        )
        assert merged["programs"] == {"p2": P2}
        assert merged["chat_title"] == "Third"

    def test_extract_editable_sections(self):
        """Read-only sections are stripped; metadata and editable kept."""
        editable = ConfigMergeEngine.extract_editable_sections(TENANT_CONFIG)
        assert "branding" not in editable
        assert "aws" not in editable
        assert editable["programs"] == TENANT_CONFIG["programs"]
        assert editable["tenant_id"] == TENANT_ID


# ===========================================================================
# 3. ConfigDiffer
# ===========================================================================

class TestConfigDiffer:
    """Unit tests for the structural differ."""

    def test_identical_documents_have_no_changes(self):
        diff = ConfigDiffer.diff(TENANT_CONFIG, fresh_config())
        assert diff.has_changes is False
        assert diff.to_dict() == {
            "metadata_changes": {},
            "section_changes": {},
            "has_changes": False,
        }

    def test_added_removed_modified(self):
        new = fresh_config()
        new["cta_definitions"]["cta3"] = {"label": "Donate", "action": "external_link"}
        del new["cta_definitions"]["cta2"]
        new["cta_definitions"]["cta1"]["label"] = "Apply Today"

        change = ConfigDiffer.diff(TENANT_CONFIG, new).section_changes["cta_definitions"]

        assert change.added == ["cta3"]
        assert change.removed == ["cta2"]
        assert change.modified == ["cta1"]
        assert (change.old_count, change.new_count) == (2, 2)

    def test_metadata_change_recorded(self):
        new = fresh_config()
        new["chat_title"] = "New Title"
        diff = ConfigDiffer.diff(TENANT_CONFIG, new)
        assert diff.metadata_changes == {
            "chat_title": {"old": "Austin Angels", "new": "New Title"},
        }
        assert diff.section_changes == {}

    def test_showcase_compared_by_item_id(self):
        new = fresh_config()
        new["content_showcase"].append({"id": "s3", "name": "Back to School"})
        change = ConfigDiffer.diff(TENANT_CONFIG, new).section_changes["content_showcase"]
        assert change.added == ["s3"]
        assert change.modified == []

    def test_showcase_reorder_is_a_change(self):
        new = fresh_config()
        new["content_showcase"].reverse()
        change = ConfigDiffer.diff(TENANT_CONFIG, new).section_changes["content_showcase"]
        assert change.added == [] and change.removed == []
        assert set(change.modified) == {"s1", "s2"}

    def test_missing_section_treated_as_empty(self):
        new = fresh_config()
        del new["programs"]
        change = ConfigDiffer.diff(TENANT_CONFIG, new).section_changes["programs"]
        assert change.removed == ["p1"]
        assert change.new_count == 0

    def test_numeric_and_boolean_values_are_distinct(self):
        """1, 1.0 and True compare equal in Python but are different values."""
        old = fresh_config()
        old["programs"]["p1"]["priority"] = 1
        old["chat_title"] = 1
        for replacement in (True, 1.0):
            new = copy.deepcopy(old)
            new["programs"]["p1"]["priority"] = replacement
            new["chat_title"] = replacement

            diff = ConfigDiffer.diff(old, new)

            assert diff.section_changes["programs"].modified == ["p1"]
            assert diff.metadata_changes["chat_title"] == {"old": 1, "new": replacement}


# ===========================================================================
# 4. config_service (DB)
# ===========================================================================

@pytest.mark.django_db
class TestConfigService:
    """Integration tests for the ORM-backed persistence service."""

    def test_load_missing_tenant_raises(self):
        with pytest.raises(NotFoundError):
            config_service.load_config("NOPE")

    def test_load_returns_copy(self, stored_config):
        config = config_service.load_config(TENANT_ID)
        config["programs"]["p1"]["program_name"] = "changed"
        assert config_service.load_config(TENANT_ID)["programs"]["p1"]["program_name"] == "Love Box"

    def test_load_editable_only(self, stored_config):
        config = config_service.load_config(TENANT_ID, editable_only=True)
        assert "branding" not in config
        assert set(EDITABLE_SECTIONS) <= set(config)

    def test_save_merges_and_backs_up(self, stored_config):
        """Read-only sections survive; the previous document is backed up."""
        payload = {"programs": {"p1": TENANT_CONFIG["programs"]["p1"], "p2": P2}}

        result = config_service.save_config(TENANT_ID, payload)

        assert result["success"] is True
        assert result["backup_key"].startswith(f"backups/{TENANT_ID}-")
        stored_config.refresh_from_db()
        assert set(stored_config.document["programs"]) == {"p1", "p2"}
        assert stored_config.document["branding"] == TENANT_CONFIG["branding"]
        assert stored_config.document["last_updated"] == result["timestamp"]
        backup = ConfigBackup.objects.get(key=result["backup_key"])
        assert backup.document == TENANT_CONFIG

    def test_save_without_backup(self, stored_config):
        result = config_service.save_config(TENANT_ID, {"programs": {}}, create_backup=False)
        assert result["backup_key"] is None
        assert ConfigBackup.objects.count() == 0

    def test_save_rejects_read_only_payload(self, stored_config):
        """The whole save is refused and nothing is written."""
        with pytest.raises(ValidationError) as exc_info:
            config_service.save_config(
                TENANT_ID, {"programs": {}, "branding": {"primary_color": "red"}}
            )
        assert exc_info.value.errors[0]["code"] == "read_only_section"
        stored_config.refresh_from_db()
        assert stored_config.document == TENANT_CONFIG

    def test_validate_only_writes_nothing(self, stored_config):
        result = config_service.save_config(TENANT_ID, {"programs": {}}, validate_only=True)
        assert result == {"valid": True, "message": "Configuration is valid"}
        stored_config.refresh_from_db()
        assert stored_config.document["programs"] == TENANT_CONFIG["programs"]

    def test_save_new_tenant_forces_tenant_id(self, db):
        """Without a stored base the payload becomes the document."""
        result = config_service.save_config("NEW1", {"tenant_id": "OTHER", "programs": {}})

        document = config_service.load_config("NEW1")
        assert document["tenant_id"] == "NEW1"
        assert document["version"] == "1.3"
        assert document["last_updated"] == result["timestamp"]
        assert result["backup_key"] is None

    def test_metadata_summary(self, stored_config):
        metadata = config_service.get_metadata(TENANT_ID)
        assert metadata["tenant_id"] == TENANT_ID
        assert metadata["company_name"] == "Austin Angels"
        assert metadata["program_count"] == 1
        assert metadata["cta_count"] == 2

    def test_backups_newest_first(self, stored_config):
        first = config_service.save_config(TENANT_ID, {"chat_title": "One"})
        second = config_service.save_config(TENANT_ID, {"chat_title": "Two"})
        keys = [backup["key"] for backup in config_service.list_backups(TENANT_ID)]
        assert keys == [second["backup_key"], first["backup_key"]]

    def test_delete_backs_up_then_deletes(self, stored_config):
        result = config_service.delete_config(TENANT_ID)
        assert not TenantConfiguration.objects.filter(tenant_id=TENANT_ID).exists()
        assert ConfigBackup.objects.get(key=result["backup_key"]).document == TENANT_CONFIG

    def test_list_tenants(self, stored_config):
        tenants = config_service.list_tenants()
        assert [tenant["tenant_id"] for tenant in tenants] == [TENANT_ID]


# ===========================================================================
# 5. API Endpoints (DB)
# ===========================================================================

@pytest.mark.django_db
class TestAPIEndpoints:
    """Integration tests through the DRF views."""

    def test_list_tenants_200(self, api_client, stored_config):
        resp = api_client.get("/api/v1/config/tenants/")
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json()["tenants"][0]["tenant_id"] == TENANT_ID

    def test_get_config_200(self, api_client, stored_config):
        resp = api_client.get(f"/api/v1/config/{TENANT_ID}/")
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json()["config"]["branding"] == TENANT_CONFIG["branding"]

    def test_get_config_editable_only(self, api_client, stored_config):
        resp = api_client.get(f"/api/v1/config/{TENANT_ID}/?editable_only=true")
        assert resp.status_code == status.HTTP_200_OK
        assert "branding" not in resp.json()["config"]

    def test_get_config_404(self, api_client, db):
        resp = api_client.get("/api/v1/config/NOPE/")
        assert resp.status_code == status.HTTP_404_NOT_FOUND
        assert resp.json()["code"] == "not_found"

    def test_put_config_merges_200(self, api_client, stored_config):
        resp = api_client.put(
            f"/api/v1/config/{TENANT_ID}/",
            {"config": {"programs": {"p1": TENANT_CONFIG["programs"]["p1"], "p2": P2}}},
            format="json",
        )
        assert resp.status_code == status.HTTP_200_OK
        body = resp.json()
        assert body["success"] is True
        assert body["backup_key"]
        stored_config.refresh_from_db()
        assert set(stored_config.document["programs"]) == {"p1", "p2"}

    def test_put_config_read_only_422(self, api_client, stored_config):
        resp = api_client.put(
            f"/api/v1/config/{TENANT_ID}/",
            {"config": {"branding": {"primary_color": "red"}, "aws": {}}},
            format="json",
        )
        assert resp.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        body = resp.json()
        assert body["code"] == "validation_error"
        assert {error["field"] for error in body["errors"]} == {"branding", "aws"}

    def test_put_config_missing_body_400(self, api_client, stored_config):
        resp = api_client.put(f"/api/v1/config/{TENANT_ID}/", {}, format="json")
        assert resp.status_code == status.HTTP_400_BAD_REQUEST

    def test_delete_config_200(self, api_client, stored_config):
        resp = api_client.delete(f"/api/v1/config/{TENANT_ID}/")
        assert resp.status_code == status.HTTP_200_OK
        assert api_client.get(f"/api/v1/config/{TENANT_ID}/").status_code == 404

    def test_metadata_200(self, api_client, stored_config):
        resp = api_client.get(f"/api/v1/config/{TENANT_ID}/metadata/")
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json()["metadata"]["branch_count"] == 1

    def test_backups_200(self, api_client, stored_config):
        config_service.save_config(TENANT_ID, {"chat_title": "One"})
        resp = api_client.get(f"/api/v1/config/{TENANT_ID}/backups/")
        assert resp.status_code == status.HTTP_200_OK
        assert len(resp.json()["backups"]) == 1

    def test_sections_200(self, api_client):
        resp = api_client.get("/api/v1/sections/")
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json()["sections"] == get_section_info()

    def test_health_200(self, api_client, db):
        resp = api_client.get("/health/")
        assert resp.status_code == status.HTTP_200_OK
        assert resp.json() == {"status": "ok", "db": "ok", "autosave_cache": "ok"}

    def test_request_id_echoed(self, api_client):
        resp = api_client.get("/api/v1/sections/", HTTP_X_REQUEST_ID="req-123")
        assert resp["X-Request-ID"] == "req-123"
