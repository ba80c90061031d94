"""
apps.tenant_configs.services.section_classifier
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Static partition of a tenant configuration document's top-level keys.

Every key belongs to exactly one category:

============  ===============================================================
Category      Keys
============  ===============================================================
metadata      ``tenant_id``, ``version``, ``chat_title``, ``company_name``,
              ``generated_at``, ``last_updated``
editable      ``programs``, ``conversational_forms``, ``cta_definitions``,
              ``conversation_branches``, ``content_showcase``
read-only     ``branding``, ``features``, ``quick_help``, ``action_chips``,
              ``widget_behavior``, ``aws``, ``card_inventory``,
              ``subscription_tier`` and **any key not listed above**
============  ===============================================================

This module is **pure Python** and has no Django imports.

Public API
----------
SectionClassifier.classify(document)             -> SectionClassification
SectionClassifier.validate_edit_payload(payload) -> EditPayloadValidationResult
get_section_info()                               -> dict
"""
from __future__ import annotations

from dataclasses import dataclass, field

#: A single validation error dict with "field", "code", and "message" keys.
ErrorDict = dict[str, str]

METADATA_FIELDS: tuple[str, ...] = (
    "tenant_id",
    "version",
    "chat_title",
    "company_name",
    "generated_at",
    "last_updated",
)

EDITABLE_SECTIONS: tuple[str, ...] = (
    "programs",
    "conversational_forms",
    "cta_definitions",
    "conversation_branches",
    "content_showcase",
)

#: Known read-only sections.  Unrecognised keys are read-only as well.
READ_ONLY_SECTIONS: tuple[str, ...] = (
    "branding",
    "features",
    "quick_help",
    "action_chips",
    "widget_behavior",
    "aws",
    "card_inventory",
    "subscription_tier",
)

#: Editable sections stored as an ordered sequence instead of an id mapping.
SEQUENCE_SECTIONS: frozenset[str] = frozenset({"content_showcase"})

#: Metadata fields that only the merge engine may assign.
TIMESTAMP_FIELDS: frozenset[str] = frozenset({"generated_at", "last_updated"})

_METADATA: frozenset[str] = frozenset(METADATA_FIELDS)
_EDITABLE: frozenset[str] = frozenset(EDITABLE_SECTIONS)
_READ_ONLY: frozenset[str] = frozenset(READ_ONLY_SECTIONS)


def is_metadata_field(name: str) -> bool:
    return name in _METADATA


def is_editable_section(name: str) -> bool:
    return name in _EDITABLE


def is_read_only_section(name: str) -> bool:
    """Known read-only sections and every unrecognised key."""
    return not (name in _METADATA or name in _EDITABLE)


def get_section_info() -> dict[str, list[str]]:
    """Return the three field-name lists, in declaration order."""
    return {
        "editable": list(EDITABLE_SECTIONS),
        "read_only": list(READ_ONLY_SECTIONS),
        "metadata": list(METADATA_FIELDS),
    }


@dataclass
class SectionClassification:
    """
    Result of :meth:`SectionClassifier.classify`.

    Each attribute is a dict holding the document's own values for the keys
    of that category.  Values are not copied.
    """

    editable: dict = field(default_factory=dict)
    read_only: dict = field(default_factory=dict)
    metadata: dict = field(default_factory=dict)


@dataclass
class EditPayloadValidationResult:
    """
    Attributes:
        valid: ``True`` iff no errors were found.
        errors: One error dict per offending key.

            ======================  =========================================
            Code                    Meaning
            ======================  =========================================
            ``read_only_section``   Key is a known read-only section.
            ``disallowed_section``  Key is neither editable nor metadata and
                                    not a known read-only section.
            ======================  =========================================
    """

    valid: bool
    errors: list[ErrorDict] = field(default_factory=list)


class SectionClassifier:
    """Side-effect free classification of configuration keys."""

    @staticmethod
    def classify(document: dict | None) -> SectionClassification:
        result = SectionClassification()
        for key, value in (document or {}).items():
            if key in _METADATA:
                result.metadata[key] = value
            elif key in _EDITABLE:
                result.editable[key] = value
            else:
                result.read_only[key] = value
        return result

    @staticmethod
    def validate_edit_payload(payload: dict | None) -> EditPayloadValidationResult:
        """
        Reject every key that is not an editable section or a metadata field.

        All offending keys are reported; the check never short-circuits.
        """
        errors: list[ErrorDict] = []
        for key in (payload or {}):
            if key in _EDITABLE or key in _METADATA:
                continue
            if key in _READ_ONLY:
                errors.append({
                    "field": key,
                    "code": "read_only_section",
                    "message": (
                        f'Section "{key}" is read-only and cannot be edited.'
                    ),
                })
            else:
                errors.append({
                    "field": key,
                    "code": "disallowed_section",
                    "message": (
                        f'Key "{key}" is not an editable section or metadata '
                        "field."
                    ),
                })
        return EditPayloadValidationResult(valid=not errors, errors=errors)
