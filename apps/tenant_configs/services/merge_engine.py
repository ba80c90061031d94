"""
apps.tenant_configs.services.merge_engine
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Deterministic merge of edited sections into a base tenant configuration.

Merge algorithm (executed in this exact order):

    1. Deep-copy *base*.  Read-only sections are carried over untouched and
       are never read from the edit payload.
    2. Each editable section present in the payload replaces the base
       section **wholesale**.  Sections are never patched key-by-key, so a
       stale client cannot resurrect entities deleted elsewhere.
    3. Each metadata field present in the payload overwrites the base value,
       except the timestamp fields which only the merge assigns.
    4. ``tenant_id`` is forced back to ``base["tenant_id"]``.
    5. A missing ``version`` falls back to the base version, then to
       *default_version*.
    6. ``last_updated`` is stamped with the merge time.

The merge is total: it never raises on well-formed dict input, performs no
schema validation, and never mutates its inputs.

This module is **pure Python** and has no Django imports.

Public API
----------
ConfigMergeEngine.merge(base, edited_sections)          -> dict
ConfigMergeEngine.merge_multiple(base, section_updates) -> dict
ConfigMergeEngine.extract_editable_sections(config)     -> dict
"""
from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Iterable

from .section_classifier import (
    EDITABLE_SECTIONS,
    METADATA_FIELDS,
    TIMESTAMP_FIELDS,
)

DEFAULT_VERSION = "1.3"

#: Field stamped by every merge.
MERGE_TIMESTAMP_FIELD = "last_updated"


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConfigMergeEngine:
    """
    Combines a base configuration with a set of edited editable sections.

    Example::

        base = {
            "tenant_id": "acme",
            "programs": {"p1": {...}},
            "branding": {"color": "blue"},
        }
        merged = ConfigMergeEngine.merge(
            base, {"programs": {"p1": {...}, "p2": {...}}}
        )
        # merged["branding"] == {"color": "blue"}
        # merged["programs"] has exactly p1 and p2
    """

    @staticmethod
    def merge(
        base: dict | None,
        edited_sections: dict | None,
        *,
        default_version: str = DEFAULT_VERSION,
        timestamp: str | None = None,
    ) -> dict:
        """
        Produce the document to persist.

        Args:
            base: The latest persisted configuration.  ``None`` is treated as
                an empty document.
            edited_sections: Editable sections and metadata supplied by the
                editing session.  Read-only and unknown keys are ignored.
            default_version: Version used when neither document has one.
            timestamp: Override for the merge timestamp; defaults to now.

        Returns:
            A new, independent dict.
        """
        base = base or {}
        edited_sections = edited_sections or {}
        merged = copy.deepcopy(base)

        for section in EDITABLE_SECTIONS:
            if section in edited_sections:
                merged[section] = copy.deepcopy(edited_sections[section])

        for field_name in METADATA_FIELDS:
            if field_name in TIMESTAMP_FIELDS:
                continue
            if field_name in edited_sections:
                merged[field_name] = copy.deepcopy(edited_sections[field_name])

        # Tenant identity is never client-editable.
        if "tenant_id" in base:
            merged["tenant_id"] = base["tenant_id"]
        else:
            merged.pop("tenant_id", None)

        if not merged.get("version"):
            merged["version"] = base.get("version") or default_version

        merged[MERGE_TIMESTAMP_FIELD] = timestamp or utc_timestamp()
        return merged

    @staticmethod
    def merge_multiple(
        base: dict | None,
        section_updates: Iterable[dict],
        **kwargs,
    ) -> dict:
        """Apply several edit payloads in order, each on top of the last."""
        merged = copy.deepcopy(base or {})
        for update in section_updates:
            merged = ConfigMergeEngine.merge(merged, update, **kwargs)
        return merged

    @staticmethod
    def extract_editable_sections(full_config: dict | None) -> dict:
        """Project a full configuration down to metadata and editable keys."""
        full_config = full_config or {}
        editable: dict = {}
        for field_name in METADATA_FIELDS:
            if field_name in full_config:
                editable[field_name] = copy.deepcopy(full_config[field_name])
        for section in EDITABLE_SECTIONS:
            if section in full_config:
                editable[section] = copy.deepcopy(full_config[section])
        return editable
