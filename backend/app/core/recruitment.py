# app/core/recruitment.py
from __future__ import annotations

import re
from typing import Optional

RECRUIT_STAGES = (
    "New",
    "Contacted",
    "Event Invite",
    "Bid Given",
    "Accepted",
    "Declined",
)
DEFAULT_STAGE = "New"

RECRUITMENT_FEATURE_FLAG = "recruitment_crm_enabled"

_NON_DIGIT = re.compile(r"\D")


def is_valid_phone_number(phone: str) -> bool:
    """US style: 10 digits, or 11 with a country code, once punctuation is stripped."""
    digits = _NON_DIGIT.sub("", phone or "")
    return len(digits) in (10, 11)


def normalize_instagram_handle(handle: Optional[str]) -> Optional[str]:
    if handle is None:
        return None
    v = handle.strip().lstrip("@").strip()
    return v or None


def is_valid_stage(stage: Optional[str]) -> bool:
    return stage in RECRUIT_STAGES
