"""
tests.documents
~~~~~~~~~~~~~~~
Realistic tenant configuration shared by the test modules.
"""
from __future__ import annotations

import copy

TENANT_ID = "AUS123957"

TENANT_CONFIG: dict = {
    "tenant_id": TENANT_ID,
    "version": "1.3",
    "chat_title": "Austin Angels",
    "company_name": "Austin Angels",
    "generated_at": "2025-01-01T00:00:00.000Z",
    "last_updated": "2025-01-02T00:00:00.000Z",
    # read-only
    "branding": {"primary_color": "blue", "font_family": "Inter"},
    "features": {"uploads": False, "photo_uploads": True},
    "aws": {"bucket": "picasso-configs", "region": "us-east-1"},
    # editable
    "programs": {
        "p1": {"program_id": "p1", "program_name": "Love Box"},
    },
    "conversational_forms": {
        "f1": {
            "form_id": "f1",
            "title": "Volunteer Application",
            "program": "p1",
            "fields": [{"id": "name", "type": "text", "required": True}],
        },
    },
    "cta_definitions": {
        "cta1": {"label": "Apply Now", "action": "start_form", "formId": "f1"},
        "cta2": {"label": "Learn More", "action": "external_link", "url": "https://example.org"},
    },
    "conversation_branches": {
        "b1": {
            "detection_keywords": ["volunteer"],
            "available_ctas": {"primary": "cta1", "secondary": ["cta2"]},
        },
    },
    "content_showcase": [
        {"id": "s1", "name": "Holiday Drive", "action": {"type": "cta", "cta_id": "cta1"}},
        {"id": "s2", "name": "Dare to Dream", "action": {"type": "link", "url": "https://example.org"}},
    ],
}

P2 = {"program_id": "p2", "program_name": "Dare to Dream"}


def fresh_config() -> dict:
    return copy.deepcopy(TENANT_CONFIG)
