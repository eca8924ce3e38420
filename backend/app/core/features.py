# app/core/features.py
from __future__ import annotations

from typing import Any, Mapping, Optional

KNOWN_FEATURE_FLAGS = frozenset(
    {
        "recruitment_crm_enabled",
        "events_management_enabled",
        "financial_tools_enabled",
        "messaging_enabled",
    }
)


def is_feature_enabled(flags: Optional[Mapping[str, Any]], name: str) -> bool:
    if not flags:
        return False
    return flags.get(name) is True
