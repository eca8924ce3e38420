from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class BrandingPayload(BaseModel):
    """
    Full replacement body for PUT/POST. Colors are checked in the route so a
    bad value is a 400 with a readable message rather than a 422.
    """

    primary_logo_url: Optional[str] = Field(default=None, max_length=1024)
    secondary_logo_url: Optional[str] = Field(default=None, max_length=1024)
    logo_alt_text: Optional[str] = Field(default=None, max_length=200)
    primary_color: Optional[str] = Field(default=None, max_length=16)
    accent_color: Optional[str] = Field(default=None, max_length=16)
    organization_id: Optional[UUID] = None


class BrandingOut(BaseModel):
    id: UUID
    chapter_id: UUID
    primary_logo_url: Optional[str] = None
    secondary_logo_url: Optional[str] = None
    logo_alt_text: str
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None
    organization_id: Optional[UUID] = None
    created_by: Optional[UUID] = None
    updated_by: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BrandingMutationOut(BaseModel):
    success: bool = True
    branding: BrandingOut
    message: str


class ThemeOut(BaseModel):
    primary_color: str
    primary_color_hover: str
    accent_color: str
    accent_color_light: str
    focus_color: str
    primary_logo: Optional[str] = None
    secondary_logo: Optional[str] = None
    logo_alt_text: str


class LogoUploadOut(BaseModel):
    success: bool = True
    url: str
    path: str
    variant: str


class ChapterSummary(BaseModel):
    id: UUID
    name: str
    chapter_name: Optional[str] = None
    university: Optional[str] = None
    national_fraternity: Optional[str] = None

    model_config = {"from_attributes": True}


class BrandingWithChapterOut(BrandingOut):
    chapter: Optional[ChapterSummary] = None


class BrandingListOut(BaseModel):
    branding: List[BrandingWithChapterOut]
    chapters_without_branding: List[ChapterSummary]
    total: int
    page: int
    limit: int
    total_pages: int
    search: Optional[str] = None
